"""
Utility functions for Scene Snapshot

Helper utilities for logging, timing decorators, path handling and the
advisory snapshot lock.
"""

from .logging_config import LoggingConfig
from .decorators import timed, timed_info
from .path_utils import (
    join_node_path,
    parent_node_path,
    sanitize_label,
    unique_path,
    write_text_atomic,
    escape_csv_field,
    split_csv_line,
)
from .locking import SnapshotLock, is_process_running

__all__ = [
    # Logging
    'LoggingConfig',
    # Decorators
    'timed',
    'timed_info',
    # Paths
    'join_node_path',
    'parent_node_path',
    'sanitize_label',
    'unique_path',
    'write_text_atomic',
    'escape_csv_field',
    'split_csv_line',
    # Locking
    'SnapshotLock',
    'is_process_running',
]
