"""
Keypoint Detection Module

Finds distinctive cells of a distance field: ridges (local maxima, centres of
open space), basins (local minima) and saddles. A cell is a candidate when the
field is flat there (small Sobel gradient); the sign of the Hessian determinant
and of dxx then decides the class.

All derivatives come from ``hessian_terms``, so the vectorised detector and the
single-neighbourhood ``classify_patch`` produce identical labels.
"""

import logging
from typing import List, Tuple

import numpy as np

from gl_pose_sampler.core.types import FREE, Keypoint, KeypointType, OccupancyGrid


def hessian_terms(field: np.ndarray) -> Tuple[np.ndarray, ...]:
    """Sobel gradient and second-order partials on the interior of ``field``.

    Args:
        field: 2D array indexed ``[v, u]``, at least 3x3

    Returns:
        (dx, dy, dxx, dyy, dxy), each shaped ``(H - 2, W - 2)``
    """
    c = field[1:-1, 1:-1]
    n = field[:-2, 1:-1]
    s = field[2:, 1:-1]
    w = field[1:-1, :-2]
    e = field[1:-1, 2:]
    nw = field[:-2, :-2]
    ne = field[:-2, 2:]
    sw = field[2:, :-2]
    se = field[2:, 2:]

    dx = -nw - w - sw + ne + e + se
    dy = -nw - n - ne + sw + s + se
    dxx = w - 2.0 * c + e
    dyy = n - 2.0 * c + s
    dxy = nw - n - w + 2.0 * c - e - s + se
    return dx, dy, dxx, dyy, dxy


def classify(dx, dy, dxx, dyy, dxy, gradient_square_th: float) -> np.ndarray:
    """Vectorised Hessian test. Returns an int8 array of KeypointType values."""
    det = dxx * dyy - dxy * dxy
    flat = dx * dx + dy * dy < gradient_square_th

    kinds = np.full(np.shape(det), KeypointType.INVALID, dtype=np.int8)
    kinds[flat & (det > 0.0) & (dxx < 0.0)] = KeypointType.MAXIMUM
    kinds[flat & (det > 0.0) & (dxx > 0.0)] = KeypointType.MINIMUM
    kinds[flat & (det < 0.0)] = KeypointType.SADDLE
    return kinds


def classify_patch(patch: np.ndarray, gradient_square_th: float) -> KeypointType:
    """Classify the centre of a 3x3 distance-field neighbourhood."""
    patch = np.asarray(patch)
    if patch.shape != (3, 3):
        raise ValueError(f"Expected a 3x3 neighbourhood, got {patch.shape}")
    kinds = classify(*hessian_terms(patch), gradient_square_th)
    return KeypointType(int(kinds[0, 0]))


class KeypointDetector:
    """Distance-field keypoint detector.

    Args:
        gradient_square_th: Upper bound on dx^2 + dy^2 for a flat cell
        min_dist_from_map: Cells closer than this to an obstacle (m) are skipped
    """

    def __init__(self, gradient_square_th: float = 10e-4,
                 min_dist_from_map: float = 1.0, ros_logger=None):
        self.gradient_square_th = gradient_square_th
        self.min_dist_from_map = min_dist_from_map

        if ros_logger is not None:
            self.logger = ros_logger
        else:
            self.logger = logging.getLogger('KeypointDetector')

    def detect(self, grid: OccupancyGrid, field: np.ndarray) -> List[Keypoint]:
        """Detect keypoints of ``field``, ordered by u then v.

        Args:
            grid: Grid the field was built from (free cells, geometry)
            field: Distance field of ``grid``

        Returns:
            List of classified keypoints with world coordinates in the grid's frame
        """
        if grid.width < 3 or grid.height < 3:
            return []

        kinds = np.full(field.shape, KeypointType.INVALID, dtype=np.int8)
        kinds[1:-1, 1:-1] = classify(*hessian_terms(field), self.gradient_square_th)

        candidates = (
            (grid.data == FREE)
            & (field >= self.min_dist_from_map)
            & (kinds != KeypointType.INVALID)
        )
        # Border cells are INVALID already; transpose for u-major ordering
        us, vs = np.nonzero(candidates.T)
        xs, ys = grid.uv_to_xy(us, vs)

        keypoints = [
            Keypoint(int(u), int(v), float(x), float(y), KeypointType(int(kinds[v, u])))
            for u, v, x, y in zip(us, vs, xs, ys)
        ]
        self.logger.debug(f"Detected {len(keypoints)} keypoints on {grid.width}x{grid.height} grid")
        return keypoints
