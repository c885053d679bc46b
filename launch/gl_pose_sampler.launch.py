from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node
from ament_index_python.packages import get_package_share_directory
from pathlib import Path


def generate_launch_description():
    pkg_share = Path(get_package_share_directory('gl_pose_sampler'))
    config_dir = pkg_share / 'config'

    use_sim_time = LaunchConfiguration('use_sim_time')

    gl_pose_sampler_node = Node(
        package='gl_pose_sampler',
        executable='gl_pose_sampler_node',
        name='gl_pose_sampler',  # Must match yaml namespace (gl_pose_sampler.ros__parameters)
        parameters=[
            str(config_dir / 'gl_pose_sampler.yaml'),
            {'use_sim_time': use_sim_time},
        ],
        output='screen'
    )

    return LaunchDescription([
        DeclareLaunchArgument('use_sim_time', default_value='false'),
        gl_pose_sampler_node,
    ])
