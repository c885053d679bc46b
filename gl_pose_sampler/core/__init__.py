from .types import (
    Pose2D,
    OccupancyGrid,
    LaserScan,
    KeypointType,
    Keypoint,
    OrientationFeature,
    Keyframe,
    FeatureMap,
    Correspondence,
    PoseHypothesis,
    CycleStatus,
    SamplingResult,
    GLPoseSamplerParams,
)
from .distance_field import build_distance_field
from .keypoints import KeypointDetector
from .features import compute_orientation_features
from .local_map import KeyframeWindow, LocalMapBuilder
from .matching import find_correspondences
from .pose_sampling import BoxMullerNoise, PoseHypothesisGenerator
from .gl_pose_sampler import GLPoseSampler

__all__ = [
    'Pose2D',
    'OccupancyGrid',
    'LaserScan',
    'KeypointType',
    'Keypoint',
    'OrientationFeature',
    'Keyframe',
    'FeatureMap',
    'Correspondence',
    'PoseHypothesis',
    'CycleStatus',
    'SamplingResult',
    'GLPoseSamplerParams',
    'build_distance_field',
    'KeypointDetector',
    'compute_orientation_features',
    'KeyframeWindow',
    'LocalMapBuilder',
    'find_correspondences',
    'BoxMullerNoise',
    'PoseHypothesisGenerator',
    'GLPoseSampler',
]
