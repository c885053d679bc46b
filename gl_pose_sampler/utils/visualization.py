"""
RViz markers for distance-field keypoints.
"""

from builtin_interfaces.msg import Duration
from geometry_msgs.msg import Point
from std_msgs.msg import ColorRGBA
from visualization_msgs.msg import Marker

from gl_pose_sampler.core.types import FeatureMap
from gl_pose_sampler.utils.topics import KEYPOINT_COLORS, MARKER_NAMESPACE

MARKER_SCALE = 0.2


def make_keypoints_marker(feature_map: FeatureMap, frame_id: str, stamp=None) -> Marker:
    """One SPHERE_LIST marker holding every keypoint, coloured by class"""
    marker = Marker()
    marker.header.frame_id = frame_id
    if stamp is not None:
        marker.header.stamp = stamp
    marker.ns = MARKER_NAMESPACE
    marker.id = 0
    marker.type = Marker.SPHERE_LIST
    marker.action = Marker.ADD
    marker.pose.orientation.w = 1.0
    marker.scale.x = MARKER_SCALE
    marker.scale.y = MARKER_SCALE
    marker.scale.z = MARKER_SCALE
    marker.lifetime = Duration()

    for kp in feature_map.keypoints:
        rgb = KEYPOINT_COLORS.get(int(kp.kind))
        if rgb is None:
            continue
        marker.points.append(Point(x=float(kp.x), y=float(kp.y), z=0.0))
        marker.colors.append(ColorRGBA(r=rgb[0], g=rgb[1], b=rgb[2], a=1.0))
    return marker
