"""
Custom exceptions for Scene Snapshot

Pattern: Domain-specific exceptions for proper error handling
Recoverable errors (property, entity, category) are caught and tallied by
the engine. Fatal errors propagate to the caller with no partial result.
"""


class SnapshotError(Exception):
    """Base exception for all snapshot errors"""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class PropertyError(SnapshotError):
    """A single property could not be read, written or converted"""

    def __init__(self, message: str, property_name: str = None, details: str = None):
        self.property_name = property_name
        super().__init__(message, details)


class DecodeError(PropertyError):
    """Encoded property text does not match its type tag"""
    pass


class EntityNotFoundError(SnapshotError):
    """Identity lookup failed while restoring"""

    def __init__(self, message: str, identity: str = None):
        self.identity = identity
        super().__init__(message, f"identity={identity}" if identity else None)


class CategoryIOError(SnapshotError):
    """A category file could not be read or written"""

    def __init__(self, message: str, category: str = None, details: str = None):
        self.category = category
        super().__init__(message, details)


class FatalSnapshotError(SnapshotError):
    """Operation cannot continue (folder not creatable, manifest unreadable)"""
    pass


class InvalidSnapshotError(FatalSnapshotError):
    """Path is neither a snapshot folder nor a legacy bundle file"""
    pass


class SnapshotLockedError(FatalSnapshotError):
    """Another backup or restore holds the advisory lock"""

    def __init__(self, message: str, lock_path: str = None, owner_pid: int = None):
        self.lock_path = lock_path
        self.owner_pid = owner_pid
        details = f"lock={lock_path}, pid={owner_pid}" if lock_path else None
        super().__init__(message, details)


__all__ = [
    'SnapshotError',
    'PropertyError',
    'DecodeError',
    'EntityNotFoundError',
    'CategoryIOError',
    'FatalSnapshotError',
    'InvalidSnapshotError',
    'SnapshotLockedError',
]
