"""
Keyframe Window and Local Map Module

Keeps a bounded, newest-first history of (scan, odometry pose) keyframes and
rasterises it into an egocentric occupancy grid by ray casting every beam.

Keyframe criteria:
    - The first scan is always a keyframe
    - Afterwards a scan becomes a keyframe when the robot moved farther than
      ``interval_dist`` OR turned more than ``interval_yaw`` since the last one
"""

from collections import deque
from enum import Enum
from typing import Iterator, Optional

import numpy as np

from gl_pose_sampler.core.types import (
    FREE,
    OCCUPIED,
    UNKNOWN,
    Keyframe,
    LaserScan,
    OccupancyGrid,
    Pose2D,
    wrap_angle,
)


class WindowEvent(Enum):
    FIRST = "first"
    INSERTED = "inserted"
    SKIPPED = "skipped"


class KeyframeWindow:
    """Fixed-capacity keyframe history, newest first.

    Args:
        capacity: Maximum number of keyframes N
        interval_dist: Translation threshold in meters
        interval_yaw: Rotation threshold in radians
    """

    def __init__(self, capacity: int = 5, interval_dist: float = 0.5,
                 interval_yaw: float = np.deg2rad(5.0)):
        if capacity < 1:
            raise ValueError(f"Keyframe window capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.interval_dist = interval_dist
        self.interval_yaw = interval_yaw

        self._keyframes = deque(maxlen=capacity)
        self._last_pose: Optional[Pose2D] = None

    def __len__(self):
        return len(self._keyframes)

    def __iter__(self) -> Iterator[Keyframe]:
        return iter(self._keyframes)

    def __getitem__(self, index: int) -> Keyframe:
        return self._keyframes[index]

    @property
    def is_full(self) -> bool:
        return len(self._keyframes) == self.capacity

    @property
    def newest(self) -> Optional[Keyframe]:
        return self._keyframes[0] if self._keyframes else None

    @property
    def oldest(self) -> Optional[Keyframe]:
        return self._keyframes[-1] if self._keyframes else None

    @property
    def last_pose(self) -> Optional[Pose2D]:
        """Pose of the most recently retained keyframe."""
        return self._last_pose

    def is_keyframe(self, pose: Pose2D) -> bool:
        if self._last_pose is None:
            return True
        translation = self._last_pose.distance(pose)
        rotation = abs(wrap_angle(pose.yaw - self._last_pose.yaw))
        return translation > self.interval_dist or rotation > self.interval_yaw

    def push(self, scan: LaserScan, pose: Pose2D) -> WindowEvent:
        """Offer a (scan, pose) pair; it is kept only if it qualifies as a keyframe."""
        if self._last_pose is None:
            self._keyframes.appendleft(Keyframe(scan, pose))
            self._last_pose = pose
            return WindowEvent.FIRST

        if not self.is_keyframe(pose):
            return WindowEvent.SKIPPED

        # deque(maxlen) drops the oldest entry from the right
        self._keyframes.appendleft(Keyframe(scan, pose))
        self._last_pose = pose
        return WindowEvent.INSERTED

    def clear(self):
        self._keyframes.clear()
        self._last_pose = None


class LocalMapBuilder:
    """Ray-casting rasteriser of a keyframe window.

    Args:
        resolution: Cell size in meters (normally the global map resolution)
        base_to_laser: Fixed pose of the scanner in the robot body frame
        min_range: Beams shorter than this are ignored (m)
        frame_id: Frame of the produced grid (odometry frame)
    """

    def __init__(self, resolution: float, base_to_laser: Pose2D = Pose2D(),
                 min_range: float = 0.0, frame_id: str = "odom"):
        self.resolution = resolution
        self.base_to_laser = base_to_laser
        self.min_range = min_range
        self.frame_id = frame_id

    def build(self, window: KeyframeWindow) -> OccupancyGrid:
        """Rasterise all keyframes into a grid centred on the oldest pose.

        The grid spans three times the scanner's maximum range.
        """
        if len(window) == 0:
            raise ValueError("Cannot build a local map from an empty keyframe window")

        range_max = window.newest.scan.range_max
        size = int(range_max * 3.0 / self.resolution)
        center = window.oldest.pose
        origin = Pose2D(center.x - range_max * 1.5, center.y - range_max * 1.5, 0.0)
        data = np.full((size, size), UNKNOWN, dtype=np.int8)

        for keyframe in window:
            self._raycast(data, origin, keyframe)

        return OccupancyGrid(size, size, self.resolution, origin, data, self.frame_id)

    def _raycast(self, data: np.ndarray, origin: Pose2D, keyframe: Keyframe):
        scan = keyframe.scan
        sensor = keyframe.pose.compose(self.base_to_laser)

        valid = scan.valid_mask(self.min_range)
        if not np.any(valid):
            return
        ranges = scan.ranges[valid]
        angles = scan.beam_angles()[valid] + sensor.yaw
        cos_t = np.cos(angles)
        sin_t = np.sin(angles)

        height, width = data.shape
        res = self.resolution

        # free cells along each beam, stepping one cell at a time
        steps = np.arange(0.0, ranges.max() - res, res)
        if len(steps) > 0:
            along = steps[None, :] < (ranges[:, None] - res)
            xs = sensor.x + steps[None, :] * cos_t[:, None]
            ys = sensor.y + steps[None, :] * sin_t[:, None]
            u = np.floor((xs[along] - origin.x) / res).astype(np.int64)
            v = np.floor((ys[along] - origin.y) / res).astype(np.int64)
            inside = (u >= 0) & (u < width) & (v >= 0) & (v < height)
            data[v[inside], u[inside]] = FREE

        # beam endpoints
        u = np.floor((sensor.x + ranges * cos_t - origin.x) / res).astype(np.int64)
        v = np.floor((sensor.y + ranges * sin_t - origin.y) / res).astype(np.int64)
        inside = (u >= 0) & (u < width) & (v >= 0) & (v < height)
        data[v[inside], u[inside]] = OCCUPIED
