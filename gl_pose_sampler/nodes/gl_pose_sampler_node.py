#!/usr/bin/env python3
"""
Global localization pose sampler node.

Subscribes to the static map, laser scans and odometry, and publishes candidate
global poses (PoseArray) whenever a full keyframe window has been matched
against the map. Local map and keypoint markers are published for RViz.

Usage:
    ros2 run gl_pose_sampler gl_pose_sampler_node
    ros2 launch gl_pose_sampler gl_pose_sampler.launch.py
"""

import traceback
from dataclasses import fields

import rclpy
from rclpy.duration import Duration
from rclpy.executors import ExternalShutdownException
from rclpy.node import Node
from rclpy.qos import DurabilityPolicy, QoSProfile, ReliabilityPolicy
from rclpy.time import Time
from geometry_msgs.msg import PoseArray
from nav_msgs.msg import OccupancyGrid, Odometry
from sensor_msgs.msg import LaserScan
from visualization_msgs.msg import Marker
from tf2_ros import TransformException
from tf2_ros.buffer import Buffer
from tf2_ros.transform_listener import TransformListener

from gl_pose_sampler.core.gl_pose_sampler import GLPoseSampler
from gl_pose_sampler.core.pose_sampling import BoxMullerNoise
from gl_pose_sampler.core.types import GLPoseSamplerParams
from gl_pose_sampler.utils import topics
from gl_pose_sampler.utils.conversions import (
    laser_scan_from_msg,
    occupancy_grid_from_msg,
    occupancy_grid_to_msg,
    pose2d_from_msg,
    pose2d_from_transform,
    pose2d_to_msg,
)
from gl_pose_sampler.utils.profiler import CycleProfiler
from gl_pose_sampler.utils.visualization import make_keypoints_marker


class GLPoseSamplerNode(Node):
    """ROS2 boundary of GLPoseSampler"""

    def __init__(self):
        super().__init__('gl_pose_sampler')

        # Topics and frames
        self.declare_parameter('map_name', topics.MAP_TOPIC)
        self.declare_parameter('scan_name', topics.SCAN_TOPIC)
        self.declare_parameter('odom_name', topics.ODOM_TOPIC)
        self.declare_parameter('poses_name', topics.SAMPLED_POSES_TOPIC)
        self.declare_parameter('local_map_name', topics.LOCAL_MAP_TOPIC)
        self.declare_parameter('sdf_keypoints_name', topics.SDF_KEYPOINTS_TOPIC)
        self.declare_parameter('local_sdf_keypoints_name', topics.LOCAL_SDF_KEYPOINTS_TOPIC)
        self.declare_parameter('map_frame', topics.MAP_FRAME)
        self.declare_parameter('odom_frame', topics.ODOM_FRAME)
        self.declare_parameter('base_link_frame', topics.BASE_LINK_FRAME)
        self.declare_parameter('laser_frame', topics.LASER_FRAME)

        # Sampler parameters (names match GLPoseSamplerParams)
        for f in fields(GLPoseSamplerParams):
            self.declare_parameter(f.name, f.default)

        # Node behaviour
        self.declare_parameter('transform_timeout', 60.0)
        self.declare_parameter('watchdog_period', 300.0)
        self.declare_parameter('random_seed', -1)
        self.declare_parameter('profile_csv', '')

        self.map_frame = self.get_parameter('map_frame').value
        self.odom_frame = self.get_parameter('odom_frame').value
        base_link_frame = self.get_parameter('base_link_frame').value
        laser_frame = self.get_parameter('laser_frame').value
        transform_timeout = self.get_parameter('transform_timeout').value
        watchdog_period = self.get_parameter('watchdog_period').value
        random_seed = self.get_parameter('random_seed').value
        profile_csv = self.get_parameter('profile_csv').value

        params = GLPoseSamplerParams.from_dict(
            {f.name: self.get_parameter(f.name).value for f in fields(GLPoseSamplerParams)}
        )

        # Fixed base_link -> laser offset (blocking, fatal on failure)
        self.tf_buffer = Buffer()
        self.tf_listener = TransformListener(self.tf_buffer, self, spin_thread=True)
        try:
            transform = self.tf_buffer.lookup_transform(
                base_link_frame, laser_frame, Time(),
                timeout=Duration(seconds=transform_timeout)
            )
        except TransformException as e:
            raise RuntimeError(
                f'Cannot get transform {base_link_frame} -> {laser_frame}: {e}'
            ) from e
        base_to_laser = pose2d_from_transform(transform)
        self.get_logger().info(
            f'Laser offset: x={base_to_laser.x:.3f}, y={base_to_laser.y:.3f}, '
            f'yaw={base_to_laser.yaw:.3f} rad'
        )

        self.sampler = GLPoseSampler(
            params,
            base_to_laser=base_to_laser,
            noise=BoxMullerNoise(seed=None if random_seed < 0 else random_seed),
            local_frame_id=self.odom_frame,
            ros_logger=self.get_logger()
        )

        # Optional per-cycle CSV profiling
        self.profiler = None
        self.cycle_count = 0
        if profile_csv:
            self.profiler = CycleProfiler(profile_csv)
            self.profiler.start()
            self.get_logger().info(f'Profiling cycles to {profile_csv}')

        # Subscribers
        map_qos = QoSProfile(
            depth=1,
            reliability=ReliabilityPolicy.RELIABLE,
            durability=DurabilityPolicy.TRANSIENT_LOCAL
        )
        self.map_sub = self.create_subscription(
            OccupancyGrid, self.get_parameter('map_name').value, self.map_callback, map_qos)
        self.scan_sub = self.create_subscription(
            LaserScan, self.get_parameter('scan_name').value, self.scan_callback, 10)
        self.odom_sub = self.create_subscription(
            Odometry, self.get_parameter('odom_name').value, self.odom_callback, 10)

        # Publishers
        self.poses_pub = self.create_publisher(
            PoseArray, self.get_parameter('poses_name').value, 1)
        self.local_map_pub = self.create_publisher(
            OccupancyGrid, self.get_parameter('local_map_name').value, 1)
        self.keypoints_pub = self.create_publisher(
            Marker, self.get_parameter('sdf_keypoints_name').value, 1)
        self.local_keypoints_pub = self.create_publisher(
            Marker, self.get_parameter('local_sdf_keypoints_name').value, 1)

        self.watchdog = self.create_timer(watchdog_period, self.watchdog_callback)

        self.get_logger().info('GL pose sampler ready')

    def map_callback(self, msg):
        if self.sampler.has_map:
            self.get_logger().debug('Global map already set, ignoring new map')
            return

        grid = occupancy_grid_from_msg(msg)
        global_map = self.sampler.set_map(grid)
        self.keypoints_pub.publish(
            make_keypoints_marker(global_map, grid.frame_id or self.map_frame,
                                  self.get_clock().now().to_msg())
        )

    def odom_callback(self, msg):
        self.sampler.update_odometry(pose2d_from_msg(msg.pose.pose))

    def scan_callback(self, msg):
        try:
            result = self.sampler.process_scan(laser_scan_from_msg(msg))
            if not result.local_map_built:
                return

            stamp = self.get_clock().now().to_msg()
            self.local_map_pub.publish(occupancy_grid_to_msg(result.local_map.grid, stamp))
            self.local_keypoints_pub.publish(
                make_keypoints_marker(result.local_map, self.odom_frame, stamp)
            )

            if result.matched:
                poses_msg = PoseArray()
                poses_msg.header.stamp = stamp
                poses_msg.header.frame_id = self.map_frame
                poses_msg.poses = [pose2d_to_msg(h.pose) for h in result.hypotheses]
                self.poses_pub.publish(poses_msg)

            if self.profiler is not None:
                self.cycle_count += 1
                self.profiler.record_cycle(self.cycle_count, result)

        except Exception as e:
            self.get_logger().error(f'Sampling cycle failed: {e}\n{traceback.format_exc()}')

    def watchdog_callback(self):
        missing = []
        if not self.sampler.has_map:
            missing.append('map')
        if not self.sampler.has_odometry:
            missing.append('odometry')

        if not missing:
            self.watchdog.cancel()
            return

        self.get_logger().error(f'No {" and ".join(missing)} received, shutting down')
        rclpy.try_shutdown()

    def destroy_node(self):
        if self.profiler is not None:
            self.profiler.close()
        super().destroy_node()


def main(args=None):
    rclpy.init(args=args)
    node = GLPoseSamplerNode()

    try:
        rclpy.spin(node)
    except (KeyboardInterrupt, ExternalShutdownException):
        pass
    finally:
        node.destroy_node()
        rclpy.try_shutdown()


if __name__ == '__main__':
    main()
