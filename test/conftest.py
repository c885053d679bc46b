import os
import sys
import pytest
import numpy as np
from typing import Dict, Any

# Ensure local package import works for pytest collection.
_TEST_DIR = os.path.dirname(__file__)
_PKG_ROOT = os.path.abspath(os.path.join(_TEST_DIR, ".."))
if _PKG_ROOT not in sys.path:
    sys.path.insert(0, _PKG_ROOT)

from gl_pose_sampler.core.types import OCCUPIED, FREE, UNKNOWN, LaserScan, OccupancyGrid, Pose2D


# =============================================================================
# Config Fixtures
# =============================================================================

def _load_yaml_file(path: str) -> Dict[str, Any]:
    """Load a YAML config file, handling the ros__parameters wrapper."""
    import yaml
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    # ROS2 YAML files wrap parameters in <node>:/ros__parameters:
    for value in data.values():
        if isinstance(value, dict) and "ros__parameters" in value:
            return value["ros__parameters"]
    return data


@pytest.fixture
def shipped_config() -> Dict[str, Any]:
    """Parameters of config/gl_pose_sampler.yaml (unwrapped)."""
    config_path = os.path.join(_PKG_ROOT, "config", "gl_pose_sampler.yaml")
    if not os.path.exists(config_path):
        pytest.skip("config/gl_pose_sampler.yaml not found")
    return _load_yaml_file(config_path)


# =============================================================================
# Map and Scan Fixtures
# =============================================================================

def walled_grid(size: int, resolution: float = 0.1, origin: Pose2D = Pose2D()) -> OccupancyGrid:
    """Square grid of free cells enclosed by a one-cell obstacle border."""
    data = np.full((size, size), FREE, dtype=np.int8)
    data[0, :] = OCCUPIED
    data[-1, :] = OCCUPIED
    data[:, 0] = OCCUPIED
    data[:, -1] = OCCUPIED
    return OccupancyGrid(size, size, resolution, origin, data)


def box_ranges(pose: Pose2D, angles: np.ndarray, lo: float, hi: float) -> np.ndarray:
    """Range to the inner faces of the axis-aligned box [lo, hi]^2 along each beam."""
    a = angles + pose.yaw
    c = np.cos(a)
    s = np.sin(a)
    with np.errstate(divide="ignore", invalid="ignore"):
        tx = np.where(c > 0, (hi - pose.x) / c, np.where(c < 0, (lo - pose.x) / c, np.inf))
        ty = np.where(s > 0, (hi - pose.y) / s, np.where(s < 0, (lo - pose.y) / s, np.inf))
    return np.minimum(tx, ty)


@pytest.fixture
def room_grid() -> OccupancyGrid:
    """21x21 cells at 0.1 m: free interior [0.1, 2.0) m, walls on the border."""
    return walled_grid(21)


@pytest.fixture
def large_room_grid() -> OccupancyGrid:
    """41x41 cells at 0.1 m: free interior [0.1, 4.0) m, walls on the border."""
    return walled_grid(41)


@pytest.fixture
def room_scan():
    """Factory for a 360-beam scan of an empty box room taken at a body pose.

    Usage:
        scan = room_scan(Pose2D(1.0, 1.0, 0.0), inner=(0.1, 2.0))
    """
    def _make(pose: Pose2D, inner=(0.1, 4.0), range_max: float = 6.0,
              shrink: float = 0.0, num_beams: int = 360) -> LaserScan:
        increment = 2.0 * np.pi / num_beams
        angles = -np.pi + np.arange(num_beams) * increment
        ranges = box_ranges(pose, angles, inner[0], inner[1]) - shrink
        return LaserScan(-np.pi, increment, 0.0, range_max, ranges)
    return _make


@pytest.fixture
def invalid_scan() -> LaserScan:
    """100 beams, 5 of them in range."""
    ranges = np.full(100, np.inf)
    ranges[:5] = 1.5
    return LaserScan(-np.pi, 2.0 * np.pi / 100, 0.1, 6.0, ranges)


@pytest.fixture
def l_shaped_room() -> OccupancyGrid:
    """80x51 cells at 0.1 m: a 4.1 m square room with a corridor leaving its lower right side.

    Square interior u, v in [5, 45] (centre cell (25, 25)), corridor interior
    u in [46, 74], v in [5, 13]. Walls are one cell thick and sit four cells
    inside the grid border; everything outside the walls is unknown.
    """
    import cv2
    width, height = 80, 51
    interior = np.zeros((height, width), dtype=np.uint8)
    interior[5:46, 5:46] = 1
    interior[5:14, 46:75] = 1
    grown = cv2.dilate(interior, np.ones((3, 3), dtype=np.uint8))

    data = np.full((height, width), UNKNOWN, dtype=np.int8)
    data[grown > 0] = OCCUPIED
    data[interior > 0] = FREE
    return OccupancyGrid(width, height, 0.1, Pose2D(), data)


@pytest.fixture
def grid_scan():
    """Factory for a scan ray-marched through an occupancy grid.

    Each beam ends on the first sample (a tenth of a cell apart) that lies in
    an occupied cell, or is inf when nothing is hit within range.

    Usage:
        scan = grid_scan(grid, Pose2D(1.5, 2.5, 0.2))
    """
    def _make(grid: OccupancyGrid, pose: Pose2D, num_beams: int = 720,
              range_max: float = 8.0) -> LaserScan:
        increment = 2.0 * np.pi / num_beams
        angles = -np.pi + np.arange(num_beams) * increment + pose.yaw
        step = grid.resolution * 0.1
        t = np.arange(1, int(range_max / step) + 1) * step

        u, v = grid.xy_to_uv(pose.x + np.cos(angles)[:, None] * t[None, :],
                             pose.y + np.sin(angles)[:, None] * t[None, :])
        inside = grid.in_bounds(u, v)
        hit = np.zeros(u.shape, dtype=bool)
        hit[inside] = grid.data[v[inside], u[inside]] == OCCUPIED

        ranges = np.where(hit.any(axis=1), t[np.argmax(hit, axis=1)], np.inf)
        return LaserScan(-np.pi, increment, 0.0, range_max, ranges)
    return _make
