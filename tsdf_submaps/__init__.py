"""
TSDF submap core: cached registration points, bounding boxes and overlap
tests for submap based mapping.
"""

from .core import *  # noqa: F401,F403

__version__ = '0.1.0'
