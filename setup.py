from setuptools import setup
from glob import glob
import os

package_name = 'gl_pose_sampler'

setup(
    name=package_name,
    version='0.1.0',
    packages=[
        package_name,
        package_name + '.nodes',
        package_name + '.core',
        package_name + '.utils',
    ],
    data_files=[
        ('share/ament_index/resource_index/packages',
            ['resource/' + package_name]),
        ('share/' + package_name, ['package.xml']),
        (os.path.join('share', package_name, 'launch'), glob('launch/*.launch.py')),
        (os.path.join('share', package_name, 'config'), glob('config/*.yaml')),
    ],
    install_requires=[
        'setuptools',
        'numpy',
        'scipy',
        'opencv-python',
        'pyyaml',
        'matplotlib',
    ],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=True,
    maintainer='root',
    maintainer_email='root@todo.todo',
    description='Global localization pose sampler using distance-field keypoints of 2D occupancy maps',
    license='Apache-2.0',
    tests_require=['pytest'],
    entry_points={
        'console_scripts': [
            'gl_pose_sampler_node = gl_pose_sampler.nodes.gl_pose_sampler_node:main',
        ],
    },
)
