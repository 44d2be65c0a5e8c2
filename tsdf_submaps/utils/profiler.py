"""
Submap finalization statistics, kept in memory and optionally written to CSV.
"""
import csv
import time
from pathlib import Path


class SubmapProfiler:
    """Collects per-submap counters reported by Submap.finish_submap()"""

    COLUMNS = [
        'submap_id', 'timestamp_sec', 'finish_ms', 'esdf_ms', 'relevant_voxels',
        'isosurface_vertices', 'interpolation_misses', 'allocated_blocks'
    ]

    def __init__(self, csv_path=None):
        """
        Args:
            csv_path: Path to CSV output file (None keeps statistics in memory only)
        """
        self.csv_path = Path(csv_path) if csv_path is not None else None
        self.csv_file = None
        self.csv_writer = None
        self.metrics = {}

    def start(self):
        """Open the CSV file and write the header"""
        if self.csv_path is None:
            return
        self.csv_file = open(self.csv_path, 'w', newline='')
        self.csv_writer = csv.writer(self.csv_file)
        self.csv_writer.writerow(self.COLUMNS)
        self.csv_file.flush()

    def record(self, submap_id, **metrics):
        """Store the latest metrics of a submap and append them to the CSV"""
        metrics.setdefault('timestamp', time.time())
        self.metrics[submap_id] = metrics
        self.write_csv_row(submap_id)

    def get(self, submap_id, key, default=None):
        return self.metrics.get(submap_id, {}).get(key, default)

    def write_csv_row(self, submap_id):
        if self.csv_writer is None:
            return

        metrics = self.metrics[submap_id]
        row = [
            submap_id,
            metrics.get('timestamp'),
            metrics.get('finish_ms', 0),
            metrics.get('esdf_ms', 0),
            metrics.get('relevant_voxels', 0),
            metrics.get('isosurface_vertices', 0),
            metrics.get('interpolation_misses', 0),
            metrics.get('allocated_blocks', 0)
        ]
        self.csv_writer.writerow(row)
        self.csv_file.flush()

    def close(self):
        """Close CSV file"""
        if self.csv_file:
            self.csv_file.close()
            self.csv_file = None
            self.csv_writer = None
