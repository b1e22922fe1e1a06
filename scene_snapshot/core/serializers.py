"""
Entity Serializers - Capture entities in scope into records

Pattern: One serializer per category sharing a common base.

Every serializer:
- iterates top-level declared properties only
- skips deny-listed keys, Unsupported tags and unreadable values
- deduplicates entities within one run (a shared material is captured once)
- never aborts an entity because one property failed
"""

import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Optional, Set, Tuple

from ..config import Config, SnapshotOptions
from .host import (
    CorpusHost,
    EntityKind,
    NODE_ACTIVE,
    NODE_POSITION,
    NODE_ROTATION,
    NODE_SCALE,
)
from .property_codec import PropertyTag, encode
from .records import (
    BehaviorRecord,
    MaterialRecord,
    NodeRecord,
    PropertyEntry,
    TextureSettingsRecord,
)
from .scope import Scope, ScopeKind, resolve_entities, resolve_nodes

logger = logging.getLogger(__name__)


def serialize_properties(
    host: CorpusHost,
    handle: Any,
    reserved: FrozenSet[str] = Config.RESERVED_PROPERTY_KEYS,
) -> Tuple[List[PropertyEntry], int]:
    """
    Encode the top-level properties of one entity.

    Args:
        host: Corpus host
        handle: Entity handle
        reserved: Keys never captured

    Returns:
        Tuple of (entries, skipped count)
    """
    entries: List[PropertyEntry] = []
    seen: Set[str] = set()
    skipped = 0

    try:
        declared = list(host.list_properties(handle))
    except Exception as e:
        logger.warning(f"Cannot list properties: {e}")
        return entries, 1

    for name, tag in declared:
        if not name or name in reserved or name in seen:
            continue
        seen.add(name)

        tag = PropertyTag.from_name(tag)
        if tag is PropertyTag.UNSUPPORTED:
            skipped += 1
            continue

        try:
            raw = host.get_property(handle, name)
            text = encode(raw, tag)
        except Exception as e:
            # Host reads may raise anything; only this property is lost
            logger.debug(f"Skipping property {name}: {e}")
            skipped += 1
            continue

        if text is None:
            skipped += 1
            continue
        entries.append(PropertyEntry(name, tag, text))

    return entries, skipped


@dataclass
class CategoryCapture:
    """Records captured for one category plus per-run tallies"""
    category: str
    records: List[Any] = field(default_factory=list)
    skipped_properties: int = 0
    messages: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)


class EntitySerializer:
    """
    Base serializer.

    Subclasses set `category` and implement capture().
    """

    category: str = ""

    def __init__(self, host: CorpusHost, options: Optional[SnapshotOptions] = None):
        self._host = host
        self._options = options or SnapshotOptions()
        self._reserved = self._options.reserved_keys()

    def capture(self, scope: Scope) -> CategoryCapture:
        raise NotImplementedError

    def _properties(self, handle: Any, capture: CategoryCapture) -> List[PropertyEntry]:
        entries, skipped = serialize_properties(self._host, handle, self._reserved)
        capture.skipped_properties += skipped
        return entries


class MaterialSerializer(EntitySerializer):
    """Materials attached to nodes in scope (or every indexed material)"""

    category = 'materials'

    def capture(self, scope: Scope) -> CategoryCapture:
        capture = CategoryCapture(self.category)
        for item in resolve_entities(self._host, EntityKind.MATERIAL, scope):
            record = MaterialRecord(
                asset_path=item.identity or "",
                shader_name=self._host.get_schema_name(item.handle),
            )
            if self._options.include_material_properties:
                record.properties = self._properties(item.handle, capture)
            if not record.is_restorable:
                capture.messages.append(
                    f"Material without asset path captured but not restorable: {record.shader_name}"
                )
            capture.records.append(record)
        return capture


class BehaviorSerializer(EntitySerializer):
    """Behaviors on nodes in scope"""

    category = 'behaviors'

    def capture(self, scope: Scope) -> CategoryCapture:
        capture = CategoryCapture(self.category)
        for item in resolve_entities(self._host, EntityKind.BEHAVIOR, scope):
            owner = self._host.owner_of(item.handle)
            record = BehaviorRecord(
                owner_path=self._host.node_path(owner) if owner is not None else "",
                behavior_type_name=self._host.get_schema_name(item.handle),
            )
            if self._options.include_behavior_data:
                record.properties = self._properties(item.handle, capture)
            capture.records.append(record)
        return capture


class TextureSerializer(EntitySerializer):
    """Import settings of textures referenced by materials in scope"""

    category = 'textures'

    def capture(self, scope: Scope) -> CategoryCapture:
        capture = CategoryCapture(self.category)
        for item in resolve_entities(self._host, EntityKind.TEXTURE, scope):
            if not item.identity:
                capture.messages.append("Texture without asset path skipped")
                continue
            record = TextureSettingsRecord(asset_path=item.identity)
            for attr, host_name in TextureSettingsRecord.SETTING_FIELDS.items():
                try:
                    value = self._host.get_property(item.handle, host_name)
                    setattr(record, attr, _coerce_setting(getattr(record, attr), value))
                except Exception as e:
                    logger.debug(f"{item.identity}: no {host_name} ({e})")
                    capture.skipped_properties += 1
            capture.records.append(record)
        return capture


def _coerce_setting(default: Any, value: Any) -> Any:
    """Fit a host value to the type of the record field it replaces"""
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if hasattr(value, 'name') and not isinstance(value, str):
        return value.name
    return str(value)


class NodeSerializer(EntitySerializer):
    """Transform and active flag of nodes in scope (node scopes only)"""

    category = 'hierarchy'

    def capture(self, scope: Scope) -> CategoryCapture:
        capture = CategoryCapture(self.category)
        if scope.kind is ScopeKind.ENTIRE_CORPUS:
            capture.messages.append("Hierarchy is only captured for a target node")
            return capture

        for node in resolve_nodes(self._host, scope):
            record = NodeRecord(path=self._host.node_path(node))
            try:
                record.local_position = [float(v) for v in self._host.get_property(node, NODE_POSITION)]
                record.local_rotation = [float(v) for v in self._host.get_property(node, NODE_ROTATION)]
                record.local_scale = [float(v) for v in self._host.get_property(node, NODE_SCALE)]
                record.is_active = bool(self._host.get_property(node, NODE_ACTIVE))
            except Exception as e:
                logger.warning(f"Incomplete transform for {record.path}: {e}")
                capture.skipped_properties += 1
            capture.records.append(record)
        return capture


SERIALIZERS = {
    'materials': MaterialSerializer,
    'behaviors': BehaviorSerializer,
    'textures': TextureSerializer,
    'hierarchy': NodeSerializer,
}


__all__ = [
    'serialize_properties',
    'CategoryCapture',
    'EntitySerializer',
    'MaterialSerializer',
    'BehaviorSerializer',
    'TextureSerializer',
    'NodeSerializer',
    'SERIALIZERS',
]
