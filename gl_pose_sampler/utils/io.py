"""
I/O and performance utilities for gl_pose_sampler.

Provides:
- CodeTimer: Performance measurement context manager
"""
import timeit


class CodeTimer(object):
    """Timer class used with `with` statement

    - Disable measurement by setting CodeTimer.silent = True
    - Pass a logger (ROS or Python) to report at debug level
    - Pass a dict as ``sink`` to collect durations (seconds) by name

    with CodeTimer("Some function", logger, timings):
        some_func()

    """

    silent = False

    def __init__(self, name="Code block", logger=None, sink=None):
        self.name = name
        self.logger = logger
        self.sink = sink
        self.took = None

    def __enter__(self):
        """Start measuring at the start of indent"""
        if not CodeTimer.silent:
            self.start = timeit.default_timer()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        """
            Stop measuring at the end of indent. This will run even
            if the indented lines raise an exception.
        """
        if CodeTimer.silent:
            return
        self.took = timeit.default_timer() - self.start
        if self.sink is not None:
            self.sink[self.name] = self.took
        if self.logger is not None:
            self.logger.debug("{} : {:.5f} s".format(self.name, float(self.took)))
