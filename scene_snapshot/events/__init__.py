"""
Event system for Scene Snapshot

Qt event bus announcing snapshot and restore lifecycle.
"""

from .snapshot_events import SnapshotEventBus, get_snapshot_event_bus

__all__ = [
    'SnapshotEventBus',
    'get_snapshot_event_bus',
]
