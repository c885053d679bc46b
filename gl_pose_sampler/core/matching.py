"""
Feature Correspondence Module

Nearest-neighbour matching of local orientation features against the global
feature set, restricted to keypoints of the same class and similar average
distance, with a best / second-best ratio test to reject ambiguous matches.
"""

from typing import List

import numpy as np
from scipy.spatial.distance import cdist

from gl_pose_sampler.core.types import Correspondence, FeatureMap

NO_MATCH = -1

# best * AMBIGUITY_RATIO must stay below the second best score
AMBIGUITY_RATIO = 1.5


def _histogram_matrix(feature_map: FeatureMap) -> np.ndarray:
    if len(feature_map) == 0:
        return np.zeros((0, 17))
    return np.array([f.relative_orientation_hist for f in feature_map.features], dtype=np.float64)


def find_correspondences(local_map: FeatureMap, global_map: FeatureMap,
                         average_sdf_delta_th: float = 1.0) -> List[int]:
    """Index of the matched global feature for every local feature.

    Args:
        local_map: Keypoints and features of the local submap
        global_map: Keypoints and features of the global map
        average_sdf_delta_th: Maximum difference of average distance values (m)

    Returns:
        List aligned with ``local_map.keypoints``; ``NO_MATCH`` (-1) where no
        unambiguous match exists
    """
    indices = [NO_MATCH] * len(local_map)
    if len(local_map) == 0 or len(global_map) == 0:
        return indices

    # L1 distance between all pairs of relative-orientation histograms
    scores = cdist(_histogram_matrix(local_map), _histogram_matrix(global_map), metric="cityblock")

    global_kinds = np.array([int(kp.kind) for kp in global_map.keypoints], dtype=np.int64)
    global_avg = np.array([f.average_distance for f in global_map.features])
    global_ok = np.array([not f.is_degenerate for f in global_map.features])

    for i, (kp, feature) in enumerate(zip(local_map.keypoints, local_map.features)):
        if feature.is_degenerate:
            continue

        candidates = np.flatnonzero(
            global_ok
            & (global_kinds == int(kp.kind))
            & (np.abs(feature.average_distance - global_avg) <= average_sdf_delta_th)
        )
        if len(candidates) == 0:
            continue

        order = np.argsort(scores[i, candidates], kind="stable")
        best = candidates[order[0]]
        if len(candidates) == 1:
            # a lone candidate is accepted whatever its score
            indices[i] = int(best)
            continue

        second = candidates[order[1]]
        if scores[i, best] * AMBIGUITY_RATIO < scores[i, second]:
            indices[i] = int(best)

    return indices


def to_correspondences(indices: List[int], local_map: FeatureMap,
                       global_map: FeatureMap) -> List[Correspondence]:
    """Accepted (local, global) pairs with their histogram distance."""
    pairs = []
    for i, j in enumerate(indices):
        if j == NO_MATCH:
            continue
        local_hist = np.asarray(local_map.features[i].relative_orientation_hist)
        global_hist = np.asarray(global_map.features[j].relative_orientation_hist)
        score = float(np.abs(local_hist - global_hist).sum())
        pairs.append(Correspondence(i, j, score))
    return pairs
