"""
Snapshot records - the on-disk data model

Each record is a dataclass with to_dict()/from_dict(). JSON key names match
the snapshot file format (camelCase), Python attributes are snake_case.
Records are created during serialization and treated as immutable after.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ..utils.path_utils import parent_node_path
from .property_codec import PropertyTag


@dataclass(frozen=True)
class PropertyEntry:
    """One encoded property: key, tag and canonical value text"""
    key: str
    type: PropertyTag
    value: str

    def to_dict(self) -> Dict[str, Any]:
        return {'key': self.key, 'type': self.type.value, 'value': self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PropertyEntry':
        # Old material bundles used propertyName/propertyType/propertyValue
        key = data.get('key', data.get('propertyName', ''))
        tag = data.get('type', data.get('propertyType', ''))
        value = data.get('value', data.get('propertyValue', ''))
        return cls(key=key, type=PropertyTag.from_name(tag), value=value)


def _entries_to_list(entries: List[PropertyEntry]) -> List[Dict[str, Any]]:
    return [e.to_dict() for e in entries]


def _entries_from_list(items: Optional[List[Dict[str, Any]]]) -> List[PropertyEntry]:
    entries: List[PropertyEntry] = []
    if not isinstance(items, list):
        # Old component bundles stored an opaque JSON string here
        return entries
    seen: Set[str] = set()
    for item in items:
        if not isinstance(item, dict):
            continue
        entry = PropertyEntry.from_dict(item)
        # Keys are unique per record; first occurrence wins
        if not entry.key or entry.key in seen:
            continue
        seen.add(entry.key)
        entries.append(entry)
    return entries


@dataclass
class MaterialRecord:
    """
    Captured material.

    asset_path is the identity key. An empty asset_path marks a material
    that is not backed by an asset: it is captured but never restored.
    """
    asset_path: str
    shader_name: str
    properties: List[PropertyEntry] = field(default_factory=list)

    @property
    def is_restorable(self) -> bool:
        return bool(self.asset_path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'assetPath': self.asset_path,
            'shaderName': self.shader_name,
            'properties': _entries_to_list(self.properties),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MaterialRecord':
        return cls(
            asset_path=data.get('assetPath', data.get('materialPath', '')) or '',
            shader_name=data.get('shaderName', '') or '',
            properties=_entries_from_list(
                data.get('properties', data.get('materialProperties'))
            ),
        )


@dataclass
class BehaviorRecord:
    """
    Captured behavior.

    owner_path is the slash-joined name path of the owning node. Siblings
    sharing a name produce the same path, so the owner may be ambiguous.
    """
    owner_path: str
    behavior_type_name: str
    properties: List[PropertyEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ownerPath': self.owner_path,
            'behaviorTypeName': self.behavior_type_name,
            'properties': _entries_to_list(self.properties),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BehaviorRecord':
        return cls(
            owner_path=data.get('ownerPath', data.get('gameObjectPath', '')) or '',
            behavior_type_name=data.get('behaviorTypeName', data.get('componentType', '')) or '',
            properties=_entries_from_list(
                data.get('properties', data.get('componentData'))
            ),
        )


@dataclass
class TextureSettingsRecord:
    """Import/compression settings of one texture asset"""
    asset_path: str
    max_size: int = 2048
    compression_mode: str = ""
    use_aggressive_compression: bool = False
    compression_quality: int = 50
    platform_format: str = ""

    # Record attribute -> host property name
    SETTING_FIELDS = {
        'max_size': 'maxSize',
        'compression_mode': 'compressionMode',
        'use_aggressive_compression': 'useAggressiveCompression',
        'compression_quality': 'compressionQuality',
        'platform_format': 'platformFormat',
    }

    def settings(self) -> Dict[str, Any]:
        """Host property name -> value"""
        return {host_name: getattr(self, attr) for attr, host_name in self.SETTING_FIELDS.items()}

    def to_dict(self) -> Dict[str, Any]:
        data = {'assetPath': self.asset_path}
        data.update(self.settings())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TextureSettingsRecord':
        return cls(
            asset_path=data.get('assetPath', data.get('texturePath', '')) or '',
            max_size=int(data.get('maxSize', data.get('maxTextureSize', 2048))),
            compression_mode=str(data.get('compressionMode', data.get('compression', ''))),
            use_aggressive_compression=bool(
                data.get('useAggressiveCompression', data.get('useCrunchCompression', False))
            ),
            compression_quality=int(
                data.get('compressionQuality', data.get('compressorQuality', 50))
            ),
            platform_format=str(data.get('platformFormat', data.get('format', ''))),
        )


def _vector(values: Any, size: int, default: float) -> List[float]:
    if isinstance(values, dict):
        # Older hierarchy files stored vectors as {"x":..,"y":..}
        keys = ('x', 'y', 'z', 'w')[:size]
        return [float(values.get(k, default)) for k in keys]
    values = list(values or [])
    if len(values) != size:
        return [default] * size if size != 4 else [0.0, 0.0, 0.0, 1.0]
    return [float(v) for v in values]


@dataclass
class NodeRecord:
    """Local transform and active flag of one node"""
    path: str
    local_position: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    local_rotation: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0, 1.0])
    local_scale: List[float] = field(default_factory=lambda: [1.0, 1.0, 1.0])
    is_active: bool = True

    @property
    def parent_path(self) -> str:
        return parent_node_path(self.path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'localPosition': list(self.local_position),
            'localRotation': list(self.local_rotation),
            'localScale': list(self.local_scale),
            'isActive': self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NodeRecord':
        return cls(
            path=data.get('path', data.get('gameObjectPath', '')) or '',
            local_position=_vector(data.get('localPosition'), 3, 0.0),
            local_rotation=_vector(data.get('localRotation'), 4, 0.0),
            local_scale=_vector(data.get('localScale'), 3, 1.0),
            is_active=bool(data.get('isActive', data.get('activeSelf', True))),
        )


@dataclass
class Manifest:
    """Metadata describing one snapshot folder"""
    format_version: str
    timestamp: str
    scope_kind: str
    target_identity: str
    categories_present: Set[str] = field(default_factory=set)
    host_environment_info: Dict[str, Any] = field(default_factory=dict)
    label: str = ""
    location: str = ""
    include_material_properties: bool = True
    include_behavior_data: bool = True
    created_by: str = "Scene Snapshot"
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'formatVersion': self.format_version,
            'timestamp': self.timestamp,
            'scopeKind': self.scope_kind,
            'targetIdentity': self.target_identity,
            'categoriesPresent': sorted(self.categories_present),
            'hostEnvironmentInfo': dict(self.host_environment_info),
            'label': self.label,
            'location': self.location,
            'includeMaterialProperties': self.include_material_properties,
            'includeBehaviorData': self.include_behavior_data,
            'createdBy': self.created_by,
            'notes': self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Manifest':
        return cls(
            format_version=str(data.get('formatVersion', data.get('version', ''))),
            timestamp=str(data.get('timestamp', '')),
            scope_kind=str(data.get('scopeKind', data.get('scope', ''))),
            target_identity=str(data.get('targetIdentity', data.get('targetPath', ''))),
            categories_present=set(data.get('categoriesPresent') or []),
            host_environment_info=dict(data.get('hostEnvironmentInfo') or {}),
            label=str(data.get('label', data.get('backupName', '')) or ''),
            location=str(data.get('location', data.get('backupLocation', '')) or ''),
            include_material_properties=bool(data.get('includeMaterialProperties', True)),
            include_behavior_data=bool(data.get('includeBehaviorData', True)),
            created_by=str(data.get('createdBy', 'Scene Snapshot')),
            notes=str(data.get('notes', '') or ''),
        )


@dataclass
class Snapshot:
    """
    A loaded (or about to be written) snapshot.

    A category list is None when the category was not requested or its
    file is absent; an empty list means captured with zero records.
    """
    manifest: Optional[Manifest] = None
    materials: Optional[List[MaterialRecord]] = None
    behaviors: Optional[List[BehaviorRecord]] = None
    textures: Optional[List[TextureSettingsRecord]] = None
    nodes: Optional[List[NodeRecord]] = None
    failed_categories: Dict[str, str] = field(default_factory=dict)

    def categories(self) -> Set[str]:
        """Category names that carry a record list"""
        present = set()
        if self.materials is not None:
            present.add('materials')
        if self.behaviors is not None:
            present.add('behaviors')
        if self.textures is not None:
            present.add('textures')
        if self.nodes is not None:
            present.add('hierarchy')
        return present


__all__ = [
    'PropertyEntry',
    'MaterialRecord',
    'BehaviorRecord',
    'TextureSettingsRecord',
    'NodeRecord',
    'Manifest',
    'Snapshot',
]
