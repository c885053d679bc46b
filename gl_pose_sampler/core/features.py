"""
Orientation Feature Module

Describes the distance field around each keypoint by its gradient directions.
The dominant direction is the mode of a 36-bin (10 deg) histogram; the
descriptor itself is a 17-bin histogram of each direction's absolute deviation
from the dominant one, which does not change when the whole window rotates.
"""

import math
from typing import List, Tuple

import numpy as np

from gl_pose_sampler.core.keypoints import hessian_terms
from gl_pose_sampler.core.types import Keypoint, OrientationFeature

ORIENTATION_BINS = 36
RELATIVE_ORIENTATION_BINS = 17
BIN_WIDTH_DEG = 10.0


def gradient_directions(field: np.ndarray) -> np.ndarray:
    """Sobel gradient direction (deg, [0, 360)) for every cell.

    Border cells have no 3x3 neighbourhood and are set to NaN.
    """
    dx, dy = hessian_terms(field)[:2]
    t = np.degrees(np.arctan2(dy.astype(np.float64), dx.astype(np.float64)))
    t = np.where(t < 0.0, t + 360.0, t)

    directions = np.full(field.shape, np.nan)
    directions[1:-1, 1:-1] = t
    return directions


def orientation_histograms(directions_deg) -> Tuple[float, np.ndarray, np.ndarray]:
    """Dominant orientation and relative-orientation histogram of a set of directions.

    Args:
        directions_deg: Gradient directions in degrees, [0, 360)

    Returns:
        (dominant orientation in degrees, 36-bin histogram, 17-bin relative histogram)
    """
    t = np.asarray(directions_deg, dtype=np.float64).ravel()
    idx = (t / BIN_WIDTH_DEG).astype(np.int64)
    keep = (idx >= 0) & (idx < ORIENTATION_BINS)
    t = t[keep]
    orient_hist = np.bincount(idx[keep], minlength=ORIENTATION_BINS)

    if len(t) == 0:
        return 0.0, orient_hist, np.zeros(RELATIVE_ORIENTATION_BINS, dtype=np.int64)

    # argmax returns the first (lowest) bin on ties
    dominant = (np.argmax(orient_hist) + 0.5) * BIN_WIDTH_DEG

    deviation = np.abs((dominant - t + 180.0) % 360.0 - 180.0)
    rel_idx = (deviation / BIN_WIDTH_DEG).astype(np.int64)
    # deviations of 170 deg and beyond fall outside the histogram
    rel_idx = rel_idx[rel_idx < RELATIVE_ORIENTATION_BINS]
    rel_hist = np.bincount(rel_idx, minlength=RELATIVE_ORIENTATION_BINS)
    return float(dominant), orient_hist, rel_hist


def compute_orientation_features(
    field: np.ndarray,
    keypoints: List[Keypoint],
    resolution: float,
    window_size: float = 1.0,
) -> List[OrientationFeature]:
    """One OrientationFeature per keypoint, index-aligned with ``keypoints``.

    Args:
        field: Distance field the keypoints were detected on
        keypoints: Keypoints to describe
        resolution: Grid resolution (m/cell)
        window_size: Half-width of the square window in meters

    Returns:
        List of features
    """
    height, width = field.shape
    r = int(window_size / resolution)
    directions = gradient_directions(field) if keypoints else None

    features = []
    for kp in keypoints:
        # cells closer than one cell to the border have no gradient
        u0 = max(kp.u - r, 1)
        u1 = min(kp.u + r, width - 2)
        v0 = max(kp.v - r, 1)
        v1 = min(kp.v + r, height - 2)

        if u1 < u0 or v1 < v0:
            features.append(OrientationFeature(
                0.0, 0.0, np.zeros(RELATIVE_ORIENTATION_BINS, dtype=np.int64), 0))
            continue

        window = field[v0:v1 + 1, u0:u1 + 1]
        cell_count = window.size
        average = float(np.sum(window, dtype=np.float64)) / cell_count

        dominant, _, rel_hist = orientation_histograms(directions[v0:v1 + 1, u0:u1 + 1])
        rel_hist.setflags(write=False)
        features.append(OrientationFeature(math.radians(dominant), average, rel_hist, cell_count))

    return features
