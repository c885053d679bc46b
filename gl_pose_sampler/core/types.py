"""
Value types shared by the global pose sampling pipeline.

Grids, scans and poses are plain immutable snapshots; the only mutable state of
the pipeline lives in ``KeyframeWindow`` (see local_map.py).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


FREE = 0
OCCUPIED = 100
UNKNOWN = -1


def wrap_angle(angle):
    """Wrap an angle (or array of angles) to [-pi, pi)."""
    return (angle + np.pi) % (2.0 * np.pi) - np.pi


@dataclass(frozen=True)
class Pose2D:
    """Planar pose (x, y, yaw) with SE(2) composition."""

    x: float = 0.0
    y: float = 0.0
    yaw: float = 0.0

    def compose(self, other: "Pose2D") -> "Pose2D":
        c = math.cos(self.yaw)
        s = math.sin(self.yaw)
        return Pose2D(
            self.x + c * other.x - s * other.y,
            self.y + s * other.x + c * other.y,
            float(wrap_angle(self.yaw + other.yaw)),
        )

    def inverse(self) -> "Pose2D":
        c = math.cos(self.yaw)
        s = math.sin(self.yaw)
        return Pose2D(
            -c * self.x - s * self.y,
            s * self.x - c * self.y,
            float(wrap_angle(-self.yaw)),
        )

    def between(self, other: "Pose2D") -> "Pose2D":
        """Relative pose of ``other`` expressed in this pose's frame."""
        return self.inverse().compose(other)

    def distance(self, other: "Pose2D") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class OccupancyGrid:
    """Occupancy grid with cells stored row-major as ``data[v, u]``.

    Args:
        width: Number of columns (u axis)
        height: Number of rows (v axis)
        resolution: Cell size in meters
        origin: Pose of cell (0, 0) in the reference frame
        data: int8 array of shape (height, width), {0 free, 100 occupied, -1 unknown}
        frame_id: Reference frame name
    """

    width: int
    height: int
    resolution: float
    origin: Pose2D
    data: np.ndarray
    frame_id: str = "map"

    def __post_init__(self):
        if self.resolution <= 0.0:
            raise ValueError(f"Grid resolution must be positive, got {self.resolution}")
        data = np.array(self.data, dtype=np.int8)
        if data.shape != (self.height, self.width):
            raise ValueError(
                f"Grid data shape {data.shape} does not match "
                f"(height, width) = ({self.height}, {self.width})"
            )
        data.setflags(write=False)
        object.__setattr__(self, "data", data)

    @classmethod
    def from_flat(cls, width: int, height: int, resolution: float, origin: Pose2D,
                  values, frame_id: str = "map") -> "OccupancyGrid":
        """Build a grid from a flat row-major cell list (nav_msgs layout)."""
        data = np.asarray(values, dtype=np.int8).reshape(height, width)
        return cls(width, height, resolution, origin, data, frame_id)

    def xy_to_uv(self, x, y) -> Tuple[np.ndarray, np.ndarray]:
        """Convert reference-frame coordinates to (possibly out of range) cell indices."""
        dx = np.asarray(x, dtype=np.float64) - self.origin.x
        dy = np.asarray(y, dtype=np.float64) - self.origin.y
        c = math.cos(-self.origin.yaw)
        s = math.sin(-self.origin.yaw)
        xx = dx * c - dy * s
        yy = dx * s + dy * c
        u = np.floor(xx / self.resolution).astype(np.int64)
        v = np.floor(yy / self.resolution).astype(np.int64)
        return u, v

    def uv_to_xy(self, u, v) -> Tuple[np.ndarray, np.ndarray]:
        xx = np.asarray(u, dtype=np.float64) * self.resolution
        yy = np.asarray(v, dtype=np.float64) * self.resolution
        c = math.cos(self.origin.yaw)
        s = math.sin(self.origin.yaw)
        x = xx * c - yy * s + self.origin.x
        y = xx * s + yy * c + self.origin.y
        return x, y

    def in_bounds(self, u, v, margin: int = 0):
        u = np.asarray(u)
        v = np.asarray(v)
        return (
            (u >= margin) & (u < self.width - margin)
            & (v >= margin) & (v < self.height - margin)
        )

    def to_flat(self) -> List[int]:
        return self.data.reshape(-1).tolist()


@dataclass(frozen=True)
class LaserScan:
    """2D range scan (subset of sensor_msgs/LaserScan used by the sampler)."""

    angle_min: float
    angle_increment: float
    range_min: float
    range_max: float
    ranges: np.ndarray

    def __post_init__(self):
        ranges = np.array(self.ranges, dtype=np.float64)
        ranges.setflags(write=False)
        object.__setattr__(self, "ranges", ranges)

    def beam_angles(self) -> np.ndarray:
        return self.angle_min + np.arange(len(self.ranges)) * self.angle_increment

    def valid_mask(self, min_range: float = 0.0) -> np.ndarray:
        """Beams inside [range_min, range_max] and not shorter than ``min_range``.

        NaN ranges compare false and are therefore never valid.
        """
        with np.errstate(invalid="ignore"):
            return (
                (self.ranges >= self.range_min)
                & (self.ranges <= self.range_max)
                & (self.ranges >= min_range)
            )

    def valid_ratio(self) -> float:
        if len(self.ranges) == 0:
            return 0.0
        return float(np.count_nonzero(self.valid_mask())) / len(self.ranges)


class KeypointType(IntEnum):
    """Keypoint class, using the sign convention of the Hessian test."""

    INVALID = -2
    MINIMUM = -1
    SADDLE = 0
    MAXIMUM = 1


@dataclass(frozen=True)
class Keypoint:
    u: int
    v: int
    x: float = 0.0
    y: float = 0.0
    kind: KeypointType = KeypointType.INVALID


@dataclass(frozen=True)
class OrientationFeature:
    """Rotation-invariant descriptor of the distance field around a keypoint.

    Attributes:
        dominant_orientation: Centre of the most populated 10 deg gradient bin (rad)
        average_distance: Mean distance-field value over the window (m)
        relative_orientation_hist: 17 bins of |deviation from dominant| in 10 deg steps
        cell_count: Number of window cells sampled, 0 for a degenerate window
    """

    dominant_orientation: float
    average_distance: float
    relative_orientation_hist: np.ndarray
    cell_count: int = 0

    @property
    def is_degenerate(self) -> bool:
        return self.cell_count == 0


@dataclass(frozen=True)
class Keyframe:
    scan: LaserScan
    pose: Pose2D


@dataclass(frozen=True)
class FeatureMap:
    """Keypoints and index-aligned features extracted from one grid."""

    grid: OccupancyGrid
    distance_field: np.ndarray
    keypoints: List[Keypoint]
    features: List[OrientationFeature]

    def __len__(self):
        return len(self.keypoints)

    def count(self, kind: KeypointType) -> int:
        return sum(1 for kp in self.keypoints if kp.kind == kind)


@dataclass(frozen=True)
class Correspondence:
    local_index: int
    global_index: int
    score: float


@dataclass(frozen=True)
class PoseHypothesis:
    pose: Pose2D
    correspondence: Correspondence
    matching_rate: Optional[float] = None


class CycleStatus(Enum):
    SCAN_REJECTED = "scan rejected"
    NO_ODOMETRY = "no odometry"
    FIRST_KEYFRAME = "first keyframe"
    NOT_KEYFRAME = "not a keyframe"
    WINDOW_FILLING = "keyframe window filling"
    NO_GLOBAL_MAP = "no global map"
    SUCCESS = "success"


@dataclass
class SamplingResult:
    """Outcome of one scan-triggered cycle."""

    status: CycleStatus
    description: str = ""
    local_map: Optional[FeatureMap] = None
    correspondences: List[Correspondence] = field(default_factory=list)
    hypotheses: List[PoseHypothesis] = field(default_factory=list)
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def local_map_built(self) -> bool:
        return self.local_map is not None

    @property
    def matched(self) -> bool:
        """True when matching ran, i.e. a (possibly empty) pose batch is due."""
        return self.status == CycleStatus.SUCCESS


@dataclass
class GLPoseSamplerParams:
    """Tunables of the sampler. Names follow the ROS parameter names."""

    # keyframes
    key_scans_num: int = 5
    key_scan_interval_dist: float = 0.5
    key_scan_interval_yaw: float = 5.0  # degrees
    min_valid_scan_ratio: float = 0.1
    local_map_resolution: float = 0.05  # used until a global map arrives

    # keypoints and features
    gradient_square_th: float = 10e-4
    keypoints_min_dist_from_map: float = 1.0
    sdf_feature_window_size: float = 1.0
    average_sdf_delta_th: float = 1.0

    # pose sampling
    add_random_samples: bool = True
    add_opposite_samples: bool = True
    random_samples_num: int = 10
    positional_random_noise: float = 0.5
    angular_random_noise: float = 0.3
    matching_rate_th: float = 0.1

    @property
    def key_scan_interval_yaw_rad(self) -> float:
        return math.radians(self.key_scan_interval_yaw)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "GLPoseSamplerParams":
        """Build parameters from a config mapping, ignoring unrelated keys.

        Accepts either a flat mapping or a ROS 2 parameter file layout
        (``<node>: {ros__parameters: {...}}``).
        """
        for value in config.values():
            if isinstance(value, dict) and "ros__parameters" in value:
                config = value["ros__parameters"]
                break
        kwargs = {}
        for f in fields(cls):
            if f.name not in config:
                continue
            value = config[f.name]
            if isinstance(f.default, bool) and not isinstance(value, bool):
                raise ValueError(f"{f.name} must be a boolean, got {value!r}")
            kwargs[f.name] = type(f.default)(value)
        return cls(**kwargs)
