"""
Unit tests for timing and profiling utilities.
"""

import csv
import logging

import pytest

from gl_pose_sampler.core.types import CycleStatus, SamplingResult
from gl_pose_sampler.utils.io import CodeTimer
from gl_pose_sampler.utils.profiler import CycleProfiler


class TestCodeTimer:

    def test_sink_collects_duration(self):
        timings = {}
        with CodeTimer("block", sink=timings) as timer:
            sum(range(1000))
        assert timings["block"] == timer.took
        assert timer.took >= 0.0

    def test_reports_to_logger(self, caplog):
        logger = logging.getLogger("timer-test")
        with caplog.at_level(logging.DEBUG, logger="timer-test"):
            with CodeTimer("block", logger):
                pass
        assert "block" in caplog.text

    def test_silent(self, monkeypatch):
        monkeypatch.setattr(CodeTimer, "silent", True)
        timings = {}
        with CodeTimer("block", sink=timings) as timer:
            pass
        assert timer.took is None
        assert timings == {}

    def test_exception_still_measured(self):
        timings = {}
        with pytest.raises(RuntimeError):
            with CodeTimer("block", sink=timings):
                raise RuntimeError("boom")
        assert "block" in timings


class TestCycleProfiler:

    def test_csv_rows(self, tmp_path):
        path = tmp_path / "profile" / "cycles.csv"
        profiler = CycleProfiler(str(path), sample_interval=2)
        profiler.start()

        result = SamplingResult(CycleStatus.SUCCESS, timings={"matching": 0.002})
        for cycle_id in range(1, 5):
            profiler.record_cycle(cycle_id, result)
        profiler.close()

        with open(path, newline="") as f:
            rows = list(csv.DictReader(f))
        assert [int(row["cycle_id"]) for row in rows] == [2, 4]
        assert rows[0]["status"] == "SUCCESS"
        assert float(rows[0]["matching_ms"]) == pytest.approx(2.0)
        assert float(rows[0]["sampling_ms"]) == 0.0
        assert int(rows[0]["local_keypoints"]) == 0

    def test_write_before_start_is_noop(self, tmp_path):
        profiler = CycleProfiler(str(tmp_path / "cycles.csv"))
        profiler.record_cycle(1, SamplingResult(CycleStatus.SUCCESS))
        profiler.close()
        assert not (tmp_path / "cycles.csv").exists()
