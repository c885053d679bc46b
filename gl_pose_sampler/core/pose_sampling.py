"""
Pose Hypothesis Module

Turns feature correspondences into candidate global robot poses. Each match
aligns the local keypoint with its global counterpart, rotated by the
difference of their dominant orientations. Candidates can be fanned out with
Gaussian noise (and flipped by pi to cover symmetric places such as corridors),
then verified by casting the newest keyframe scan into the global map.
"""

import logging
import math
from typing import List, Optional

import numpy as np

from gl_pose_sampler.core.types import (
    FREE,
    OCCUPIED,
    Correspondence,
    FeatureMap,
    LaserScan,
    OccupancyGrid,
    Pose2D,
    PoseHypothesis,
    wrap_angle,
)


class BoxMullerNoise:
    """Zero-mean Gaussian samples from uniform draws (Box-Muller transform).

    Args:
        seed: Seed for the underlying numpy Generator (None = nondeterministic)
        rng: Existing numpy Generator to draw from; overrides ``seed``
    """

    def __init__(self, seed: Optional[int] = None, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def sample(self, sigma: float) -> float:
        if sigma == 0.0:
            return 0.0
        # 1 - U lies in (0, 1], keeping log() finite
        u1 = 1.0 - self.rng.random()
        u2 = self.rng.random()
        return sigma * math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def compute_matching_rate(grid: OccupancyGrid, scan: LaserScan, pose: Pose2D,
                          base_to_laser: Pose2D = Pose2D(), min_range: float = 0.0) -> float:
    """Fraction of valid beams that end on or next to an occupied cell.

    Args:
        grid: Reference (global) occupancy grid
        scan: Scan to project
        pose: Candidate robot body pose in the grid's frame
        base_to_laser: Scanner pose in the body frame
        min_range: Beams shorter than this are not counted (m)

    Returns:
        Matching rate in [0, 1]; 0 when the scan has no valid beam
    """
    valid = scan.valid_mask(min_range)
    num_valid = int(np.count_nonzero(valid))
    if num_valid == 0:
        return 0.0

    sensor = pose.compose(base_to_laser)
    ranges = scan.ranges[valid]
    angles = scan.beam_angles()[valid] + sensor.yaw
    u, v = grid.xy_to_uv(sensor.x + ranges * np.cos(angles), sensor.y + ranges * np.sin(angles))

    inside = grid.in_bounds(u, v, margin=1)
    u = u[inside]
    v = v[inside]
    occupied = grid.data == OCCUPIED
    hit = (
        occupied[v, u]
        | occupied[v - 1, u]
        | occupied[v + 1, u]
        | occupied[v, u - 1]
        | occupied[v, u + 1]
    )
    return float(np.count_nonzero(hit)) / num_valid


class PoseHypothesisGenerator:
    """Candidate pose generation and scan-consistency verification.

    Args:
        global_map: Keypoints, features and grid of the known map
        base_to_laser: Scanner pose in the body frame
        add_random_samples: Fan each candidate out into noisy variants
        add_opposite_samples: Rotate every other variant by pi
        random_samples_num: Number of variants per candidate
        positional_random_noise: Std-dev of x/y noise (m)
        angular_random_noise: Std-dev of yaw noise (rad)
        matching_rate_th: Minimum matching rate, <= 0 disables verification
        min_range: Beams shorter than this are ignored by verification (m)
        noise: Gaussian source, injectable for reproducible sampling
    """

    def __init__(
        self,
        global_map: FeatureMap,
        base_to_laser: Pose2D = Pose2D(),
        add_random_samples: bool = True,
        add_opposite_samples: bool = True,
        random_samples_num: int = 10,
        positional_random_noise: float = 0.5,
        angular_random_noise: float = 0.3,
        matching_rate_th: float = 0.1,
        min_range: float = 0.0,
        noise: Optional[BoxMullerNoise] = None,
        ros_logger=None,
    ):
        self.global_map = global_map
        self.base_to_laser = base_to_laser
        self.add_random_samples = add_random_samples
        self.add_opposite_samples = add_opposite_samples
        self.random_samples_num = random_samples_num
        self.positional_random_noise = positional_random_noise
        self.angular_random_noise = angular_random_noise
        self.matching_rate_th = matching_rate_th
        self.min_range = min_range
        self.noise = noise if noise is not None else BoxMullerNoise()

        if ros_logger is not None:
            self.logger = ros_logger
        else:
            self.logger = logging.getLogger('PoseHypothesisGenerator')

    def candidate_pose(self, odom_pose: Pose2D, local_map: FeatureMap,
                       local_index: int, global_index: int) -> Optional[Pose2D]:
        """Body pose implied by one correspondence, or None if it lands off free space."""
        local_kp = local_map.keypoints[local_index]
        local_orient = local_map.features[local_index].dominant_orientation
        global_kp = self.global_map.keypoints[global_index]
        global_orient = self.global_map.features[global_index].dominant_orientation

        # scanner pose in the local (odometry) frame, relative to the keypoint
        sensor = odom_pose.compose(self.base_to_laser)
        dx = sensor.x - local_kp.x
        dy = sensor.y - local_kp.y

        d_orient = global_orient - local_orient
        c = math.cos(d_orient)
        s = math.sin(d_orient)
        global_sensor = Pose2D(
            global_kp.x + dx * c - dy * s,
            global_kp.y + dx * s + dy * c,
            float(wrap_angle(sensor.yaw + d_orient)),
        )
        base = global_sensor.compose(self.base_to_laser.inverse())

        grid = self.global_map.grid
        u, v = grid.xy_to_uv(base.x, base.y)
        if not grid.in_bounds(u, v) or grid.data[v, u] != FREE:
            return None
        return base

    def sample(self, base: Pose2D) -> List[Pose2D]:
        """Noisy variants of ``base`` (or ``base`` itself when sampling is off)."""
        if not self.add_random_samples:
            return [base]

        poses = []
        for j in range(self.random_samples_num):
            x = base.x + self.noise.sample(self.positional_random_noise)
            y = base.y + self.noise.sample(self.positional_random_noise)
            yaw = base.yaw + self.noise.sample(self.angular_random_noise)
            if self.add_opposite_samples and j % 2 == 1:
                yaw += math.pi
            poses.append(Pose2D(x, y, float(wrap_angle(yaw))))
        return poses

    def matching_rate(self, pose: Pose2D, scan: LaserScan) -> float:
        return compute_matching_rate(self.global_map.grid, scan, pose,
                                     self.base_to_laser, self.min_range)

    def generate(self, odom_pose: Pose2D, local_map: FeatureMap,
                 correspondences: List[Correspondence],
                 verification_scan: Optional[LaserScan] = None) -> List[PoseHypothesis]:
        """Pose hypotheses for all accepted correspondences.

        Args:
            odom_pose: Body pose (odometry frame) at the newest keyframe
            local_map: Local keypoints and features
            correspondences: Accepted (local, global) feature pairs
            verification_scan: Scan taken at ``odom_pose``; required when
                ``matching_rate_th`` > 0

        Returns:
            Surviving hypotheses in the global map frame
        """
        verify = self.matching_rate_th > 0.0
        if verify and verification_scan is None:
            raise ValueError("A verification scan is required when matching_rate_th > 0")

        hypotheses = []
        rejected_cells = 0
        rejected_rate = 0
        for correspondence in correspondences:
            base = self.candidate_pose(odom_pose, local_map,
                                       correspondence.local_index, correspondence.global_index)
            if base is None:
                rejected_cells += 1
                continue

            for pose in self.sample(base):
                rate = None
                if verify:
                    rate = self.matching_rate(pose, verification_scan)
                    if rate < self.matching_rate_th:
                        rejected_rate += 1
                        continue
                hypotheses.append(PoseHypothesis(pose, correspondence, rate))

        self.logger.debug(
            f"Generated {len(hypotheses)} hypotheses "
            f"(rejected: {rejected_cells} off free space, {rejected_rate} below matching rate)"
        )
        return hypotheses
