"""
Pipeline tests for GLPoseSampler: scan cycle states and end-to-end scenarios.
"""

import logging
import math

import numpy as np
import pytest

from gl_pose_sampler.core.gl_pose_sampler import GLPoseSampler
from gl_pose_sampler.core.matching import find_correspondences
from gl_pose_sampler.core.pose_sampling import BoxMullerNoise
from gl_pose_sampler.core.types import (
    Correspondence,
    CycleStatus,
    GLPoseSamplerParams,
    KeypointType,
    LaserScan,
    OccupancyGrid,
    Pose2D,
    wrap_angle,
)

# Straight drive through the 4 m room, 0.6 m between keyframes
TRAJECTORY = [Pose2D(1.0 + 0.6 * i, 2.0, 0.0) for i in range(5)]

# Through the square part of l_shaped_room, oldest pose on a cell corner
ROOM_TRAJECTORY = [Pose2D(1.5 + 0.6 * i, 2.5, 0.2) for i in range(5)]


def _room_params(**kwargs):
    options = dict(gradient_square_th=1e-3, keypoints_min_dist_from_map=0.5)
    options.update(kwargs)
    return GLPoseSamplerParams(**options)


def _drive(sampler, room_scan, poses):
    results = []
    for pose in poses:
        sampler.update_odometry(pose)
        results.append(sampler.process_scan(room_scan(pose)))
    return results


class TestScenarios:
    """End-to-end behaviour on synthetic rooms."""

    def test_enclosed_room_yields_one_maximum(self, room_grid):
        sampler = GLPoseSampler(_room_params())
        global_map = sampler.set_map(room_grid)

        maxima = [kp for kp in global_map.keypoints if kp.kind == KeypointType.MAXIMUM]
        assert global_map.count(KeypointType.MAXIMUM) == 1
        assert (maxima[0].x, maxima[0].y) == pytest.approx((1.0, 1.0))
        assert len(global_map.features) == len(global_map.keypoints)

    def test_shifted_grid_gives_shifted_pose(self, room_grid):
        dx, dy = 0.3, -0.2
        sampler = GLPoseSampler(_room_params(add_random_samples=False, matching_rate_th=0.0))
        global_map = sampler.set_map(room_grid)

        # same map seen from an odometry frame displaced by (dx, dy)
        local_grid = OccupancyGrid(room_grid.width, room_grid.height, room_grid.resolution,
                                   Pose2D(-dx, -dy, 0.0), room_grid.data, frame_id="odom")
        local_map = sampler.build_feature_map(local_grid)

        local_index = next(i for i, kp in enumerate(local_map.keypoints)
                           if kp.kind == KeypointType.MAXIMUM)
        global_index = next(i for i, kp in enumerate(global_map.keypoints)
                            if kp.kind == KeypointType.MAXIMUM)
        assert find_correspondences(local_map, global_map)[local_index] == global_index

        odom = Pose2D(0.4, 0.9, 0.3)
        hypotheses = sampler.generator.generate(
            odom, local_map, [Correspondence(local_index, global_index, 0.0)])

        assert len(hypotheses) == 1
        pose = hypotheses[0].pose
        assert pose.x == pytest.approx(odom.x + dx)
        assert pose.y == pytest.approx(odom.y + dy)
        assert pose.yaw == pytest.approx(odom.yaw)

    def test_invalid_scan_changes_nothing(self, large_room_grid, room_scan, invalid_scan):
        sampler = GLPoseSampler(_room_params())
        sampler.set_map(large_room_grid)
        sampler.update_odometry(TRAJECTORY[0])
        assert sampler.process_scan(room_scan(TRAJECTORY[0])).status == CycleStatus.FIRST_KEYFRAME

        sampler.update_odometry(TRAJECTORY[1])
        result = sampler.process_scan(invalid_scan)

        assert result.status == CycleStatus.SCAN_REJECTED
        assert not result.matched
        assert not result.local_map_built
        assert len(sampler.window) == 1
        assert sampler.window.last_pose == TRAJECTORY[0]

    def test_opposite_sampling_splits_evenly(self, room_grid):
        params = _room_params(add_random_samples=True, add_opposite_samples=True,
                              random_samples_num=10, positional_random_noise=0.0,
                              angular_random_noise=0.0)
        sampler = GLPoseSampler(params)
        sampler.set_map(room_grid)

        base = Pose2D(1.0, 1.0, -0.4)
        poses = sampler.generator.sample(base)
        flipped = [p for p in poses if abs(wrap_angle(p.yaw - base.yaw - math.pi)) < 1e-9]
        assert len(poses) == 10
        assert len(flipped) == 5

    @pytest.mark.parametrize("shift", [(0.0, 0.0), (1.0, -0.5)], ids=["aligned", "translated"])
    def test_pose_recovered_from_keyframes(self, l_shaped_room, grid_scan, shift):
        sampler = GLPoseSampler(_room_params(add_random_samples=False))
        sampler.set_map(l_shaped_room)

        # odometry frame is the map frame translated by ``shift``
        results = []
        for truth in ROOM_TRAJECTORY:
            sampler.update_odometry(Pose2D(truth.x + shift[0], truth.y + shift[1], truth.yaw))
            results.append(sampler.process_scan(grid_scan(l_shaped_room, truth)))

        result = results[-1]
        assert result.status == CycleStatus.SUCCESS
        assert len(result.correspondences) > 0
        assert len(result.correspondences) == len({c.local_index for c in result.correspondences})
        assert len(result.hypotheses) > 0
        assert all(h.matching_rate >= 0.1 for h in result.hypotheses)

        truth = ROOM_TRAJECTORY[-1]
        errors = [
            (math.hypot(h.pose.x - truth.x, h.pose.y - truth.y),
             abs(float(wrap_angle(h.pose.yaw - truth.yaw))))
            for h in result.hypotheses
        ]
        assert any(d < 0.1 and a < 0.05 for d, a in errors), errors


class TestScanCycle:
    """State transitions of process_scan."""

    def test_scan_before_odometry_is_ignored(self, room_scan):
        sampler = GLPoseSampler()
        result = sampler.process_scan(room_scan(TRAJECTORY[0]))
        assert result.status == CycleStatus.NO_ODOMETRY
        assert len(sampler.window) == 0

    def test_window_fills_then_builds_local_map(self, large_room_grid, room_scan):
        sampler = GLPoseSampler(_room_params(), noise=BoxMullerNoise(seed=0))
        sampler.set_map(large_room_grid)

        results = _drive(sampler, room_scan, TRAJECTORY)
        statuses = [r.status for r in results]
        assert statuses == [CycleStatus.FIRST_KEYFRAME] + [CycleStatus.WINDOW_FILLING] * 3 \
            + [CycleStatus.SUCCESS]

        result = results[-1]
        assert result.matched
        assert set(result.timings) == {"local_map", "local_features", "matching", "sampling"}

        grid = result.local_map.grid
        assert grid.width == int(6.0 * 3.0 / 0.1)
        assert grid.resolution == pytest.approx(0.1)
        assert grid.frame_id == "odom"
        # centred on the oldest keyframe
        assert grid.origin.x == pytest.approx(TRAJECTORY[0].x - 9.0)
        assert grid.origin.y == pytest.approx(TRAJECTORY[0].y - 9.0)

    def test_not_a_keyframe(self, large_room_grid, room_scan):
        sampler = GLPoseSampler(_room_params())
        sampler.set_map(large_room_grid)
        _drive(sampler, room_scan, TRAJECTORY[:1])

        result = _drive(sampler, room_scan, [Pose2D(1.1, 2.0, 0.0)])[0]
        assert result.status == CycleStatus.NOT_KEYFRAME
        assert len(sampler.window) == 1

    def test_full_window_matches_on_every_insertion(self, large_room_grid, room_scan):
        sampler = GLPoseSampler(_room_params(key_scans_num=2, matching_rate_th=0.0))
        sampler.set_map(large_room_grid)
        results = _drive(sampler, room_scan, TRAJECTORY[:3])
        assert [r.status for r in results] == [
            CycleStatus.FIRST_KEYFRAME, CycleStatus.SUCCESS, CycleStatus.SUCCESS]
        assert len(sampler.window) == 2

    def test_local_features_without_global_map(self, room_scan):
        sampler = GLPoseSampler(_room_params(key_scans_num=2))
        results = _drive(sampler, room_scan, TRAJECTORY[:2])

        result = results[-1]
        assert result.status == CycleStatus.NO_GLOBAL_MAP
        assert not result.matched
        assert result.local_map_built
        assert result.local_map.grid.resolution == pytest.approx(0.05)
        assert result.hypotheses == []

    def test_valid_ratio_boundary(self):
        sampler = GLPoseSampler(GLPoseSamplerParams(min_valid_scan_ratio=0.1))
        sampler.update_odometry(Pose2D())
        ranges = np.full(100, np.inf)
        ranges[:10] = 2.0
        scan = LaserScan(-math.pi, 2.0 * math.pi / 100, 0.1, 6.0, ranges)
        assert sampler.process_scan(scan).status == CycleStatus.FIRST_KEYFRAME

    def test_rejected_scan_is_logged(self, invalid_scan, caplog):
        sampler = GLPoseSampler()
        sampler.update_odometry(Pose2D())
        with caplog.at_level(logging.WARNING, logger="GLPoseSampler"):
            sampler.process_scan(invalid_scan)
        assert "Invalid scan" in caplog.text
