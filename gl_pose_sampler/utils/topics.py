"""
Default topics and frames for the gl_pose_sampler project (ROS2)
"""

# Inputs
MAP_TOPIC = "/map"
SCAN_TOPIC = "/scan"
ODOM_TOPIC = "/odom"

# Outputs
SAMPLED_POSES_TOPIC = "/gl_sampled_poses"
LOCAL_MAP_TOPIC = "/gl_local_map"
SDF_KEYPOINTS_TOPIC = "/gl_sdf_keypoints"
LOCAL_SDF_KEYPOINTS_TOPIC = "/gl_local_sdf_keypoints"

# Frames
MAP_FRAME = "map"
ODOM_FRAME = "odom"
BASE_LINK_FRAME = "base_link"
LASER_FRAME = "base_laser"

# Keypoint markers, (r, g, b) per keypoint class value
MARKER_NAMESPACE = "gl_marker_namespace"
KEYPOINT_COLORS = {
    1: (1.0, 0.0, 1.0),   # maximum
    -1: (0.0, 1.0, 1.0),  # minimum
    0: (1.0, 1.0, 0.0),   # saddle
}
