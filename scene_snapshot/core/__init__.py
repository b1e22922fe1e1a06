"""
Core functionality for Scene Snapshot

Contains:
- Property codec and the on-disk record model
- Host interface (CorpusHost) and the in-memory reference host
- Scope resolution and entity serializers
- Cross-schema property remapping
- Custom exceptions for error handling
"""

from .exceptions import (
    SnapshotError,
    PropertyError,
    DecodeError,
    EntityNotFoundError,
    CategoryIOError,
    FatalSnapshotError,
    InvalidSnapshotError,
    SnapshotLockedError,
)
from .property_codec import PropertyTag, AssetRef, encode, decode
from .records import (
    PropertyEntry,
    MaterialRecord,
    BehaviorRecord,
    TextureSettingsRecord,
    NodeRecord,
    Manifest,
    Snapshot,
)
from .host import CorpusHost, EntityKind
from .scope import Scope, ScopeKind, ScopedEntity, resolve_nodes, resolve_entities
from .serializers import (
    serialize_properties,
    MaterialSerializer,
    BehaviorSerializer,
    TextureSerializer,
    NodeSerializer,
)
from .remapper import PropertyRemapper, TransferResult, get_property_remapper
from .memory_host import InMemoryCorpus

__all__ = [
    # Exceptions
    'SnapshotError',
    'PropertyError',
    'DecodeError',
    'EntityNotFoundError',
    'CategoryIOError',
    'FatalSnapshotError',
    'InvalidSnapshotError',
    'SnapshotLockedError',
    # Codec / records
    'PropertyTag',
    'AssetRef',
    'encode',
    'decode',
    'PropertyEntry',
    'MaterialRecord',
    'BehaviorRecord',
    'TextureSettingsRecord',
    'NodeRecord',
    'Manifest',
    'Snapshot',
    # Host / scope
    'CorpusHost',
    'EntityKind',
    'InMemoryCorpus',
    'Scope',
    'ScopeKind',
    'ScopedEntity',
    'resolve_nodes',
    'resolve_entities',
    # Serialization / remapping
    'serialize_properties',
    'MaterialSerializer',
    'BehaviorSerializer',
    'TextureSerializer',
    'NodeSerializer',
    'PropertyRemapper',
    'TransferResult',
    'get_property_remapper',
]
