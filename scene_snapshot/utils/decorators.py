"""
Utility decorators for Scene Snapshot
"""

import time
import logging
import functools
from typing import Callable, Any

logger = logging.getLogger(__name__)


def _timed_at(level: int) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                logger.log(level, f"{func.__qualname__} took {elapsed_ms:.1f}ms")
        return wrapper
    return decorator


def timed(func: Callable) -> Callable:
    """
    Log execution time of a function at DEBUG.

    Usage:
        @timed
        def load(path):
            ...

    Logs: "SnapshotReader.load took 12.3ms"
    """
    return _timed_at(logging.DEBUG)(func)


def timed_info(func: Callable) -> Callable:
    """
    Same as @timed but logs at INFO level.

    Used on whole snapshot / restore runs.
    """
    return _timed_at(logging.INFO)(func)


__all__ = ['timed', 'timed_info']
