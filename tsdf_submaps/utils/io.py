"""
I/O and timing utilities for tsdf_submaps.

Provides:
- CodeTimer: Performance measurement context manager
- load_submap_config: Read a SubmapConfig from YAML
"""
import logging
import timeit

import yaml

from tsdf_submaps.core.types import SubmapConfig


class CodeTimer(object):
    """Timer class used with `with` statement

    - Disable output by setting CodeTimer.silent = True
    - Pass a logger (e.g. a ROS node logger) to redirect the output

    with CodeTimer("Some function") as timer:
        some_func()
    timer.took_ms

    """

    silent = False

    def __init__(self, name="Code block", logger=None):
        self.name = name
        self.logger = logger if logger is not None else logging.getLogger('CodeTimer')
        self.took = 0.0

    def __enter__(self):
        """Start measuring at the start of indent"""
        self.start = timeit.default_timer()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        """
            Stop measuring at the end of indent. This will run even
            if the indented lines raise an exception.
        """
        self.took = timeit.default_timer() - self.start
        if not CodeTimer.silent:
            self.logger.debug("{} : {:.5f} s".format(self.name, float(self.took)))

    @property
    def took_ms(self):
        return 1000.0 * self.took


def load_submap_config(path):
    """
    Load submap parameters from a YAML file

    The file must hold a top-level 'submap' mapping, e.g.

        submap:
          voxel_size: 0.1
          registration_filter:
            min_voxel_weight: 1.0e-6

    Args:
        path: Path to the YAML file

    Returns:
        SubmapConfig
    """
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}
    if 'submap' not in data:
        raise ValueError(f"No 'submap' section in {path}")
    return SubmapConfig.from_dict(data['submap'])
