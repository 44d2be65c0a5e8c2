from .profiler import SubmapProfiler
from .io import CodeTimer, load_submap_config
from .angles import normalize_angle, AngleLocalParameterization

__all__ = ['SubmapProfiler', 'CodeTimer', 'load_submap_config',
           'normalize_angle', 'AngleLocalParameterization']
