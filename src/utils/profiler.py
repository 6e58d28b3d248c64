"""Lightweight wall-clock profiling for simulation runs.

Provides:
    - timer(): Context manager reporting elapsed time to a sink
    - TimerAccumulator: Aggregate repeated measurements (e.g. per-source splats)

Timings end up in metadata.yaml next to the simulated volumes.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None):
    """Context manager for wall-clock timing.

    Parameters
    ----------
    name : str
        Timer name
    sink : Optional[Callable[[str, float], None]]
        Callback(name, elapsed_seconds); if None, logs at DEBUG

    Examples
    --------
    >>> timings = {}
    >>> with timer("inject", sink=timings.__setitem__):
    ...     injector.add_gaussian(100.0, (10, 10, 2))
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if sink is not None:
            sink(name, elapsed)
        else:
            logger.debug(f"{name}: {elapsed:.3f} s")


class TimerAccumulator:
    """Accumulate multiple timing measurements for averaging.

    Attributes
    ----------
    name : str
        Timer name
    total_time : float
        Accumulated time in seconds
    count : int
        Number of measurements
    """

    def __init__(self, name: str):
        self.name = name
        self.total_time = 0.0
        self.count = 0

    @contextmanager
    def measure(self):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.total_time += time.perf_counter() - start
            self.count += 1

    def mean(self) -> float:
        """Mean time per measurement in seconds, 0.0 if none."""
        return self.total_time / self.count if self.count > 0 else 0.0

    def summary(self) -> Dict[str, float]:
        """Total, mean and count, as recorded in metadata.yaml."""
        return {
            'total_s': float(self.total_time),
            'mean_s': float(self.mean()),
            'count': int(self.count),
        }

    def __repr__(self) -> str:
        return f"TimerAccumulator({self.name}, mean={self.mean():.4f}s, count={self.count})"
