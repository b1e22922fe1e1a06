"""
SnapshotEventBus - Qt signals for snapshot and restore lifecycle

Pattern: Singleton event bus for decoupled component communication
Editor panels connect here instead of polling SnapshotService.
"""

from typing import Any, Dict, Optional
from PyQt6.QtCore import QObject, pyqtSignal


class SnapshotEventBus(QObject):
    """
    Event bus for snapshot/restore runs

    Usage:
        bus = get_snapshot_event_bus()
        bus.snapshot_created.connect(on_created)
        service = SnapshotService(host, event_bus=bus)
    """

    # ==================== SNAPSHOT SIGNALS ====================
    snapshot_started = pyqtSignal(str, str)  # scope_kind, target_identity
    snapshot_progress = pyqtSignal(str, float)  # message, fraction 0..1
    snapshot_created = pyqtSignal(str, dict)  # folder_path, {category: count}
    snapshot_failed = pyqtSignal(str)  # error message

    # ==================== RESTORE SIGNALS ====================
    restore_started = pyqtSignal(str)  # snapshot path
    restore_progress = pyqtSignal(str, str)  # category, state
    restore_completed = pyqtSignal(str, dict)  # snapshot path, {category: state}
    restore_failed = pyqtSignal(str)  # error message

    def __init__(self, parent=None):
        super().__init__(parent)
        self._last_snapshot_path: str = ""
        self._restore_in_progress: bool = False

    # ==================== STATE GETTERS ====================
    @property
    def last_snapshot_path(self) -> str:
        """Folder of the most recent snapshot created in this session"""
        return self._last_snapshot_path

    @property
    def restore_in_progress(self) -> bool:
        return self._restore_in_progress

    # ==================== EMIT HELPERS ====================
    def emit_snapshot_started(self, scope_kind: str, target_identity: str):
        self.snapshot_started.emit(scope_kind, target_identity)

    def emit_snapshot_progress(self, message: str, fraction: float):
        self.snapshot_progress.emit(message, float(fraction))

    def emit_snapshot_created(self, folder_path: str, counts: Dict[str, int]):
        """Record and announce a finished snapshot"""
        self._last_snapshot_path = folder_path
        self.snapshot_created.emit(folder_path, dict(counts))

    def emit_snapshot_failed(self, message: str):
        self.snapshot_failed.emit(message)

    def emit_restore_started(self, source: str):
        self._restore_in_progress = True
        self.restore_started.emit(source)

    def emit_restore_progress(self, category: str, state: str):
        self.restore_progress.emit(category, state)

    def emit_restore_completed(self, source: str, states: Dict[str, Any]):
        self._restore_in_progress = False
        self.restore_completed.emit(source, dict(states))

    def emit_restore_failed(self, message: str):
        self._restore_in_progress = False
        self.restore_failed.emit(message)


# Singleton instance
_snapshot_event_bus: Optional[SnapshotEventBus] = None


def get_snapshot_event_bus() -> SnapshotEventBus:
    """
    Get global SnapshotEventBus singleton

    Returns:
        Global SnapshotEventBus instance
    """
    global _snapshot_event_bus
    if _snapshot_event_bus is None:
        _snapshot_event_bus = SnapshotEventBus()
    return _snapshot_event_bus


__all__ = ['SnapshotEventBus', 'get_snapshot_event_bus']
