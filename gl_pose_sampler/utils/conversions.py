"""
ROS message <-> core type conversions.

Only imported by the ROS2 node; the core package never depends on it.
"""

import numpy as np
from geometry_msgs.msg import Pose
from nav_msgs.msg import OccupancyGrid as OccupancyGridMsg
from tf_transformations import euler_from_quaternion, quaternion_from_euler

from gl_pose_sampler.core.types import LaserScan, OccupancyGrid, Pose2D


def pose2d_from_msg(pose_msg) -> Pose2D:
    """geometry_msgs/Pose -> Pose2D (yaw only)"""
    q = pose_msg.orientation
    _, _, yaw = euler_from_quaternion([q.x, q.y, q.z, q.w])
    return Pose2D(pose_msg.position.x, pose_msg.position.y, yaw)


def pose2d_to_msg(pose: Pose2D) -> Pose:
    msg = Pose()
    msg.position.x = float(pose.x)
    msg.position.y = float(pose.y)
    msg.position.z = 0.0
    qx, qy, qz, qw = quaternion_from_euler(0.0, 0.0, pose.yaw)
    msg.orientation.x = float(qx)
    msg.orientation.y = float(qy)
    msg.orientation.z = float(qz)
    msg.orientation.w = float(qw)
    return msg


def pose2d_from_transform(transform_msg) -> Pose2D:
    """geometry_msgs/TransformStamped -> Pose2D of the child frame in the parent frame"""
    t = transform_msg.transform.translation
    q = transform_msg.transform.rotation
    _, _, yaw = euler_from_quaternion([q.x, q.y, q.z, q.w])
    return Pose2D(t.x, t.y, yaw)


def occupancy_grid_from_msg(msg) -> OccupancyGrid:
    info = msg.info
    return OccupancyGrid.from_flat(
        info.width,
        info.height,
        info.resolution,
        pose2d_from_msg(info.origin),
        msg.data,
        frame_id=msg.header.frame_id,
    )


def occupancy_grid_to_msg(grid: OccupancyGrid, stamp=None) -> OccupancyGridMsg:
    msg = OccupancyGridMsg()
    msg.header.frame_id = grid.frame_id
    if stamp is not None:
        msg.header.stamp = stamp
        msg.info.map_load_time = stamp
    msg.info.width = grid.width
    msg.info.height = grid.height
    msg.info.resolution = float(grid.resolution)
    msg.info.origin = pose2d_to_msg(grid.origin)
    msg.data = grid.to_flat()
    return msg


def laser_scan_from_msg(msg) -> LaserScan:
    return LaserScan(
        angle_min=msg.angle_min,
        angle_increment=msg.angle_increment,
        range_min=msg.range_min,
        range_max=msg.range_max,
        ranges=np.asarray(msg.ranges, dtype=np.float64),
    )
