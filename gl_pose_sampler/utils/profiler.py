"""
Sampling cycle profiling utilities for performance monitoring.
"""
import csv
import time
from pathlib import Path


class CycleProfiler:
    """CSV-based profiler for per-scan sampling cycles"""

    COLUMNS = [
        'cycle_id', 'timestamp_sec', 'status', 'local_map_ms', 'local_features_ms',
        'matching_ms', 'sampling_ms', 'local_keypoints', 'correspondences', 'poses'
    ]

    def __init__(self, csv_path: str, sample_interval: int = 1):
        """
        Args:
            csv_path: Path to CSV output file
            sample_interval: Record every N cycles
        """
        self.csv_path = Path(csv_path)
        self.sample_interval = sample_interval
        self.csv_file = None
        self.csv_writer = None
        self.current_cycle = 0
        self.row = {}

    def start(self):
        """Initialize CSV file with headers"""
        self.csv_path.parent.mkdir(parents=True, exist_ok=True)
        self.csv_file = open(self.csv_path, 'w', newline='')
        self.csv_writer = csv.writer(self.csv_file)
        self.csv_writer.writerow(self.COLUMNS)
        self.csv_file.flush()

    def record_cycle(self, cycle_id: int, result):
        """Record a SamplingResult that built a local map"""
        self.current_cycle = cycle_id
        timings = result.timings
        self.row = {
            'cycle_id': cycle_id,
            'timestamp_sec': time.time(),
            'status': result.status.name,
            'local_map_ms': timings.get('local_map', 0.0) * 1000.0,
            'local_features_ms': timings.get('local_features', 0.0) * 1000.0,
            'matching_ms': timings.get('matching', 0.0) * 1000.0,
            'sampling_ms': timings.get('sampling', 0.0) * 1000.0,
            'local_keypoints': len(result.local_map) if result.local_map is not None else 0,
            'correspondences': len(result.correspondences),
            'poses': len(result.hypotheses),
        }

        # Write to CSV if sampling interval matches
        if cycle_id % self.sample_interval == 0:
            self.write_csv_row()

    def write_csv_row(self):
        """Write current metrics to CSV"""
        if self.csv_writer is None:
            return
        self.csv_writer.writerow([self.row.get(column, 0) for column in self.COLUMNS])
        self.csv_file.flush()

    def close(self):
        """Close CSV file"""
        if self.csv_file:
            self.csv_file.close()
            self.csv_file = None
            self.csv_writer = None
