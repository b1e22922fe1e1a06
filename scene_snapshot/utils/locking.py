"""
Advisory snapshot lock

A lock file holding "<pid> <hostname> <timestamp>" marks something as busy.
Snapshots and restores take the lock of their target identity
(SnapshotLock.for_target), kept under the user data `locks/` folder, so one
backup or restore runs per target at a time. Snapshot folders themselves are
never written to by a restore.

The file is created with O_EXCL so two processes cannot both win. A lock
whose PID is no longer running is stale and gets replaced.

Usage:
    with SnapshotLock.for_target("Avatar"):
        ...write snapshot...
"""

import hashlib
import logging
import os
import platform
import socket
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from ..config import Config
from ..core.exceptions import FatalSnapshotError, SnapshotLockedError

logger = logging.getLogger(__name__)


def is_process_running(pid: int) -> bool:
    """Check if a process with given PID is running."""
    if pid <= 0:
        return False

    if platform.system() == "Windows":
        import ctypes
        from ctypes import wintypes

        # os.kill(pid, 0) would terminate the process on Windows
        PROCESS_QUERY_INFORMATION = 0x0400
        kernel32 = ctypes.windll.kernel32
        kernel32.OpenProcess.argtypes = [wintypes.DWORD, wintypes.BOOL, wintypes.DWORD]
        kernel32.OpenProcess.restype = wintypes.HANDLE
        kernel32.CloseHandle.argtypes = [wintypes.HANDLE]
        kernel32.CloseHandle.restype = wintypes.BOOL

        handle = kernel32.OpenProcess(PROCESS_QUERY_INFORMATION, 0, pid)
        if handle:
            kernel32.CloseHandle(handle)
            return True
        return False

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    except OSError:
        return False
    return True


def target_lock_name(identity: str) -> str:
    """File name of the lock for a target identity"""
    digest = hashlib.md5(identity.encode('utf-8')).hexdigest()[:16]
    return f"{Config.TARGET_LOCK_PREFIX}{digest}.lock"


def read_lock_owner(lock_path: Path) -> Optional[Tuple[int, str]]:
    """(pid, hostname) from a lock file, or None if missing / unreadable"""
    try:
        parts = lock_path.read_text(encoding='utf-8').split()
        return int(parts[0]), parts[1] if len(parts) > 1 else ""
    except (OSError, ValueError, IndexError):
        return None


class SnapshotLock:
    """
    Exclusive advisory lock on a folder.

    Raises SnapshotLockedError on acquire when a live process holds it.
    """

    def __init__(self, folder: Path, name: str = Config.LOCK_FILE):
        self.folder = Path(folder)
        self.lock_path = self.folder / name
        self._acquired = False

    @classmethod
    def for_target(cls, identity: str, folder: Optional[Path] = None) -> 'SnapshotLock':
        """
        Lock guarding one target identity (a node path or ALL_ASSETS).

        Args:
            identity: Target identity of the snapshot or restore
            folder: Lock folder (default: Config locks directory)
        """
        if folder is None:
            try:
                folder = Config.get_locks_directory()
            except OSError as e:
                raise FatalSnapshotError("Cannot create lock directory", details=str(e))
        return cls(folder, target_lock_name(identity))

    @property
    def acquired(self) -> bool:
        return self._acquired

    def _owner_is_alive(self) -> Tuple[bool, Optional[int]]:
        owner = read_lock_owner(self.lock_path)
        if owner is None:
            return False, None
        pid, hostname = owner
        if hostname and hostname != socket.gethostname():
            # Cannot check a PID on another machine; treat as held
            return True, pid
        return is_process_running(pid), pid

    def acquire(self) -> 'SnapshotLock':
        """
        Raises:
            SnapshotLockedError: A live process holds the lock
            FatalSnapshotError: The lock file cannot be created
        """
        try:
            self.folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalSnapshotError(f"Cannot create lock folder: {self.folder}", details=str(e))
        content = (
            f"{os.getpid()} {socket.gethostname()} "
            f"{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
        )

        for _attempt in range(2):
            try:
                fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                alive, pid = self._owner_is_alive()
                if alive:
                    raise SnapshotLockedError(
                        f"Snapshot target is locked by process {pid}",
                        lock_path=str(self.lock_path),
                        owner_pid=pid,
                    )
                logger.info(f"Removing stale snapshot lock {self.lock_path} (PID: {pid})")
                try:
                    self.lock_path.unlink()
                except FileNotFoundError:
                    pass
                except OSError as e:
                    raise FatalSnapshotError(f"Cannot remove stale lock: {self.lock_path}", details=str(e))
                continue
            except OSError as e:
                raise FatalSnapshotError(f"Cannot create lock file: {self.lock_path}", details=str(e))

            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(content)
            self._acquired = True
            logger.debug(f"Lock acquired: {self.lock_path}")
            return self

        raise SnapshotLockedError(
            "Could not acquire snapshot lock",
            lock_path=str(self.lock_path),
        )

    def release(self):
        """Remove the lock file if this process owns it."""
        if not self._acquired:
            return
        try:
            owner = read_lock_owner(self.lock_path)
            if owner is not None and owner[0] == os.getpid():
                self.lock_path.unlink()
                logger.debug(f"Lock released: {self.lock_path}")
            elif owner is not None:
                logger.warning(
                    f"Lock file PID mismatch (expected: {os.getpid()}, found: {owner[0]})"
                )
        except OSError as e:
            logger.warning(f"Error releasing lock file: {e}")
        finally:
            self._acquired = False

    def __enter__(self) -> 'SnapshotLock':
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


__all__ = ['SnapshotLock', 'is_process_running', 'read_lock_owner', 'target_lock_name']
