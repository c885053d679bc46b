"""
Global Pose Sampler

ROS2-independent pipeline proposing candidate global poses for a robot with no
prior pose estimate.

Algorithm:
    1. Global map (once): distance field -> keypoints -> orientation features
    2. Every scan: keyframe window update (displacement-triggered)
    3. Window full after an insertion: ray-cast local map -> same features
    4. Match local features against global ones (class + ratio test)
    5. One pose per match, optionally perturbed, verified against the global map

Reference:
    Akai, "Reliable Monte Carlo Localization for Mobile Robots" (arXiv:1908.01863),
    global localization sample generation from distance-field keypoints.

Example:
    >>> sampler = GLPoseSampler(GLPoseSamplerParams(), base_to_laser=Pose2D(0.2, 0.0, 0.0))
    >>> sampler.set_map(grid)
    >>> sampler.update_odometry(Pose2D(0.0, 0.0, 0.0))
    >>> result = sampler.process_scan(scan)
    >>> if result.matched:
    >>>     poses = [h.pose for h in result.hypotheses]
"""

import logging
from typing import Optional

from gl_pose_sampler.core.distance_field import build_distance_field
from gl_pose_sampler.core.features import compute_orientation_features
from gl_pose_sampler.core.keypoints import KeypointDetector
from gl_pose_sampler.core.local_map import KeyframeWindow, LocalMapBuilder, WindowEvent
from gl_pose_sampler.core.matching import find_correspondences, to_correspondences
from gl_pose_sampler.core.pose_sampling import BoxMullerNoise, PoseHypothesisGenerator
from gl_pose_sampler.core.types import (
    CycleStatus,
    FeatureMap,
    GLPoseSamplerParams,
    KeypointType,
    LaserScan,
    OccupancyGrid,
    Pose2D,
    SamplingResult,
)
from gl_pose_sampler.utils.io import CodeTimer


class GLPoseSampler:
    """Feature-based global pose sampler.

    The keyframe window is the only state that changes between scans; it is
    written exclusively by ``process_scan``. The global feature map is built
    once by ``set_map`` and read-only afterwards.

    Args:
        params: Sampler parameters
        base_to_laser: Fixed pose of the scanner in the robot body frame
        noise: Gaussian source for pose perturbation (seed it for reproducibility)
        local_frame_id: Frame of the local map (odometry frame)
    """

    def __init__(
        self,
        params: Optional[GLPoseSamplerParams] = None,
        base_to_laser: Pose2D = Pose2D(),
        noise: Optional[BoxMullerNoise] = None,
        local_frame_id: str = "odom",
        ros_logger=None,
    ):
        self.params = params if params is not None else GLPoseSamplerParams()
        self.base_to_laser = base_to_laser
        self.noise = noise if noise is not None else BoxMullerNoise()
        self.local_frame_id = local_frame_id

        self.ros_logger = ros_logger
        if ros_logger is not None:
            self.logger = ros_logger
        else:
            self.logger = logging.getLogger('GLPoseSampler')

        self.detector = KeypointDetector(
            gradient_square_th=self.params.gradient_square_th,
            min_dist_from_map=self.params.keypoints_min_dist_from_map,
            ros_logger=ros_logger,
        )
        self.window = KeyframeWindow(
            capacity=self.params.key_scans_num,
            interval_dist=self.params.key_scan_interval_dist,
            interval_yaw=self.params.key_scan_interval_yaw_rad,
        )

        # replaced by one at the global map resolution in set_map
        self.local_map_builder = LocalMapBuilder(
            self.params.local_map_resolution,
            base_to_laser=self.base_to_laser,
            min_range=self.params.keypoints_min_dist_from_map,
            frame_id=self.local_frame_id,
        )

        self.global_map: Optional[FeatureMap] = None
        self.generator: Optional[PoseHypothesisGenerator] = None
        self.odom_pose: Optional[Pose2D] = None

    @property
    def has_map(self) -> bool:
        return self.global_map is not None

    @property
    def has_odometry(self) -> bool:
        return self.odom_pose is not None

    def build_feature_map(self, grid: OccupancyGrid) -> FeatureMap:
        """Run distance field, keypoint and feature extraction on one grid."""
        field = build_distance_field(grid)
        keypoints = self.detector.detect(grid, field)
        features = compute_orientation_features(
            field, keypoints, grid.resolution, self.params.sdf_feature_window_size
        )
        return FeatureMap(grid, field, keypoints, features)

    def set_map(self, grid: OccupancyGrid) -> FeatureMap:
        """Build the global feature set from the known occupancy grid."""
        with CodeTimer("GLPoseSampler - global feature map", self.logger):
            self.global_map = self.build_feature_map(grid)

        self.generator = PoseHypothesisGenerator(
            self.global_map,
            base_to_laser=self.base_to_laser,
            add_random_samples=self.params.add_random_samples,
            add_opposite_samples=self.params.add_opposite_samples,
            random_samples_num=self.params.random_samples_num,
            positional_random_noise=self.params.positional_random_noise,
            angular_random_noise=self.params.angular_random_noise,
            matching_rate_th=self.params.matching_rate_th,
            min_range=self.params.keypoints_min_dist_from_map,
            noise=self.noise,
            ros_logger=self.ros_logger,
        )
        # local maps share the global resolution so both field scales agree
        self.local_map_builder = LocalMapBuilder(
            grid.resolution,
            base_to_laser=self.base_to_laser,
            min_range=self.params.keypoints_min_dist_from_map,
            frame_id=self.local_frame_id,
        )

        self.logger.info(
            f"Global map {grid.width}x{grid.height} @ {grid.resolution:.3f} m: "
            f"{len(self.global_map)} keypoints "
            f"(max={self.global_map.count(KeypointType.MAXIMUM)}, "
            f"min={self.global_map.count(KeypointType.MINIMUM)}, "
            f"saddle={self.global_map.count(KeypointType.SADDLE)})"
        )
        return self.global_map

    def update_odometry(self, pose: Pose2D) -> None:
        self.odom_pose = pose

    def process_scan(self, scan: LaserScan) -> SamplingResult:
        """Run one scan-triggered cycle.

        Args:
            scan: Newest range scan

        Returns:
            SamplingResult; ``matched`` is True when a pose batch should be published
        """
        ratio = scan.valid_ratio()
        if ratio < self.params.min_valid_scan_ratio:
            self.logger.warning(
                f"Invalid scan dropped: {ratio:.1%} of beams in range "
                f"(minimum {self.params.min_valid_scan_ratio:.1%})"
            )
            return SamplingResult(CycleStatus.SCAN_REJECTED, f"valid ratio {ratio:.3f}")

        if self.odom_pose is None:
            return SamplingResult(CycleStatus.NO_ODOMETRY)

        event = self.window.push(scan, self.odom_pose)
        if event == WindowEvent.FIRST:
            return SamplingResult(CycleStatus.FIRST_KEYFRAME)
        if event == WindowEvent.SKIPPED:
            return SamplingResult(CycleStatus.NOT_KEYFRAME)
        if not self.window.is_full:
            return SamplingResult(
                CycleStatus.WINDOW_FILLING, f"{len(self.window)}/{self.window.capacity} keyframes"
            )

        result = SamplingResult(CycleStatus.SUCCESS)
        with CodeTimer("local_map", self.logger, result.timings):
            local_grid = self.local_map_builder.build(self.window)
        with CodeTimer("local_features", self.logger, result.timings):
            result.local_map = self.build_feature_map(local_grid)

        if self.global_map is None:
            # local keypoints are still useful for diagnostics
            result.status = CycleStatus.NO_GLOBAL_MAP
            result.description = f"{len(result.local_map)} local keypoints, matching skipped"
            self.logger.info(f"No global map yet: {result.description}")
            return result

        with CodeTimer("matching", self.logger, result.timings):
            indices = find_correspondences(
                result.local_map, self.global_map, self.params.average_sdf_delta_th
            )
            result.correspondences = to_correspondences(indices, result.local_map, self.global_map)

        newest = self.window.newest
        with CodeTimer("sampling", self.logger, result.timings):
            result.hypotheses = self.generator.generate(
                newest.pose, result.local_map, result.correspondences, newest.scan
            )

        result.description = (
            f"{len(result.local_map)} local keypoints, "
            f"{len(result.correspondences)} correspondences, "
            f"{len(result.hypotheses)} poses"
        )
        self.logger.info(f"Sampling cycle: {result.description}")
        return result
