from .io import CodeTimer
from .map_io import load_map_yaml
from .profiler import CycleProfiler

__all__ = ['CodeTimer', 'load_map_yaml', 'CycleProfiler']
