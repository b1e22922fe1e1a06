"""
In-memory reference host.

A small scene model (nodes, materials, behaviors, textures) implementing
CorpusHost. Used by the test-suite and as a template for real host
integrations.

Usage:
    corpus = InMemoryCorpus()
    corpus.register_shader('Standard', {'_Color': (PropertyTag.COLOR, (1, 1, 1, 1))})
    root = corpus.add_root('Avatar')
    body = corpus.add_child(root, 'Body')
    mat = corpus.add_material('Assets/Body.mat', 'Standard')
    corpus.assign_material(body, mat)
"""

import itertools
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import PropertyError
from .host import (
    CorpusHost,
    EntityKind,
    NODE_ACTIVE,
    NODE_POSITION,
    NODE_ROTATION,
    NODE_SCALE,
)
from ..utils.path_utils import join_node_path
from .property_codec import AssetRef, PropertyTag

_runtime_ids = itertools.count(1000)


class MemoryEntity:
    """
    Base class for in-memory entities.

    Stores properties as name -> (tag, value) and tracks dirty fields.
    Identity is object identity, so entities are safe to use as handles.
    """

    def __init__(self, name: str):
        self.name = name
        self.runtime_id = next(_runtime_ids)
        self._properties: Dict[str, Tuple[PropertyTag, Any]] = {}
        self._dirty_fields: set = set()
        # Test hooks: names whose read / write raises
        self.unreadable: set = set()
        self.unwritable: set = set()

    def declare(self, name: str, tag: PropertyTag, value: Any = None):
        """Declare a property (schema change, not a tracked edit)."""
        self._properties[name] = (tag, value)

    def property_items(self) -> List[Tuple[str, PropertyTag]]:
        return [(name, tag) for name, (tag, _value) in self._properties.items()]

    def get(self, name: str) -> Any:
        if name in self.unreadable:
            raise PropertyError(f"Property '{name}' cannot be read", property_name=name)
        if name not in self._properties:
            raise PropertyError(f"No property '{name}' on {self.name}", property_name=name)
        return self._properties[name][1]

    def set(self, name: str, value: Any):
        if name in self.unwritable:
            raise PropertyError(f"Property '{name}' cannot be written", property_name=name)
        if name not in self._properties:
            raise PropertyError(f"No property '{name}' on {self.name}", property_name=name)
        tag = self._properties[name][0]
        self._properties[name] = (tag, value)
        self._dirty_fields.add(name)

    def has_field(self, name: str) -> bool:
        return name in self._properties

    def get_dirty_fields(self) -> set:
        return self._dirty_fields.copy()

    def __repr__(self):
        return f"<{type(self).__name__} {self.name!r}>"


class SceneNode(MemoryEntity):
    """A node in the hierarchy with a transform, materials and behaviors"""

    def __init__(self, name: str, parent: 'SceneNode' = None, active: bool = True):
        super().__init__(name)
        self.parent = parent
        self.children: List['SceneNode'] = []
        self.materials: List['MaterialAsset'] = []
        self.behaviors: List['Behavior'] = []
        self.declare(NODE_POSITION, PropertyTag.VECTOR3, (0.0, 0.0, 0.0))
        self.declare(NODE_ROTATION, PropertyTag.QUATERNION, (0.0, 0.0, 0.0, 1.0))
        self.declare(NODE_SCALE, PropertyTag.VECTOR3, (1.0, 1.0, 1.0))
        self.declare(NODE_ACTIVE, PropertyTag.BOOLEAN, active)

    @property
    def path(self) -> str:
        names = []
        node = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return join_node_path(reversed(names))

    @property
    def active(self) -> bool:
        return bool(self.get(NODE_ACTIVE))


class MaterialAsset(MemoryEntity):
    """A material. asset_path is None for scene-internal materials."""

    def __init__(self, name: str, shader_name: str, asset_path: Optional[str] = None):
        super().__init__(name)
        self.asset_path = asset_path
        self.shader_name = shader_name


class Behavior(MemoryEntity):
    """An opaque behavior attached to a node"""

    def __init__(self, type_name: str, owner: SceneNode):
        super().__init__(type_name)
        self.type_name = type_name
        self.owner = owner


class TextureAsset(MemoryEntity):
    """Texture asset with importer settings exposed as properties"""

    def __init__(
        self,
        asset_path: str,
        max_size: int = 2048,
        compression_mode: str = "Compressed",
        use_aggressive_compression: bool = False,
        compression_quality: int = 50,
        platform_format: str = "Automatic",
    ):
        super().__init__(Path(asset_path).name)
        self.asset_path = asset_path
        self.declare('maxSize', PropertyTag.INTEGER, max_size)
        self.declare('compressionMode', PropertyTag.ENUM, compression_mode)
        self.declare('useAggressiveCompression', PropertyTag.BOOLEAN, use_aggressive_compression)
        self.declare('compressionQuality', PropertyTag.INTEGER, compression_quality)
        self.declare('platformFormat', PropertyTag.ENUM, platform_format)


class InMemoryCorpus(CorpusHost):
    """
    Reference CorpusHost backed by plain Python objects.

    Shaders are registered up front as name -> {property: (tag, default)}.
    Switching a material's shader keeps values of same-named properties and
    resets the rest to the new shader's defaults.
    """

    def __init__(self, asset_root: Optional[Path] = None, project_name: str = "memory"):
        self.asset_root = Path(asset_root) if asset_root else None
        self.project_name = project_name
        self.roots: List[SceneNode] = []
        self.materials: Dict[str, MaterialAsset] = {}
        self.textures: Dict[str, TextureAsset] = {}
        self.shaders: Dict[str, Dict[str, Tuple[PropertyTag, Any]]] = {}
        self.dependencies: Dict[int, List[str]] = {}
        self._runtime_index: Dict[int, MemoryEntity] = {}

    # ==================== BUILDERS ====================

    def _track(self, entity: MemoryEntity) -> MemoryEntity:
        self._runtime_index[entity.runtime_id] = entity
        return entity

    def register_shader(self, name: str, properties: Dict[str, Tuple[PropertyTag, Any]]):
        self.shaders[name] = dict(properties)

    def add_root(self, name: str, active: bool = True) -> SceneNode:
        node = self._track(SceneNode(name, active=active))
        self.roots.append(node)
        return node

    def add_child(self, parent: SceneNode, name: str, active: bool = True) -> SceneNode:
        node = self._track(SceneNode(name, parent=parent, active=active))
        parent.children.append(node)
        return node

    def add_material(
        self,
        asset_path: Optional[str],
        shader_name: str,
        values: Optional[Dict[str, Any]] = None,
        name: str = None,
    ) -> MaterialAsset:
        """Create a material; asset_path None makes it scene-internal."""
        if name is None:
            name = Path(asset_path).stem if asset_path else "Material"
        material = self._track(MaterialAsset(name, shader_name, asset_path))
        for prop, (tag, default) in self.shaders.get(shader_name, {}).items():
            material.declare(prop, tag, default)
        for prop, value in (values or {}).items():
            material.set(prop, value)
        material._dirty_fields.clear()
        if asset_path:
            self.materials[asset_path] = material
        return material

    def add_texture(self, asset_path: str, **settings) -> TextureAsset:
        texture = self._track(TextureAsset(asset_path, **settings))
        self.textures[asset_path] = texture
        return texture

    def add_behavior(
        self,
        node: SceneNode,
        type_name: str,
        properties: Optional[Dict[str, Tuple[PropertyTag, Any]]] = None,
    ) -> Behavior:
        behavior = self._track(Behavior(type_name, node))
        for prop, (tag, value) in (properties or {}).items():
            behavior.declare(prop, tag, value)
        node.behaviors.append(behavior)
        return behavior

    def assign_material(self, node: SceneNode, material: MaterialAsset):
        node.materials.append(material)

    def add_dependency(self, entity: MemoryEntity, asset_path: str):
        self.dependencies.setdefault(entity.runtime_id, []).append(asset_path)

    def remove_node(self, node: SceneNode):
        """Detach a node (and its subtree) from the corpus"""
        if node.parent is None:
            self.roots.remove(node)
        else:
            node.parent.children.remove(node)
            node.parent = None

    # ==================== CorpusHost ====================

    def enumerate(self, kind: EntityKind) -> List[Any]:
        if kind is EntityKind.NODE:
            return list(self.roots)
        if kind is EntityKind.MATERIAL:
            return list(self.materials.values())
        if kind is EntityKind.TEXTURE:
            return list(self.textures.values())
        # Behaviors live on scene nodes and are not part of the asset index
        return []

    def get_identity(self, handle: Any) -> Optional[str]:
        if isinstance(handle, SceneNode):
            return handle.path
        if isinstance(handle, (MaterialAsset, TextureAsset)):
            return handle.asset_path or None
        if isinstance(handle, Behavior):
            return f"{handle.owner.path}:{handle.type_name}"
        return None

    def resolve_by_identity(self, kind: EntityKind, identity: str) -> Optional[Any]:
        if not identity:
            return None
        if kind is EntityKind.NODE:
            return self.find_node(identity)
        if kind is EntityKind.MATERIAL:
            return self.materials.get(identity)
        if kind is EntityKind.TEXTURE:
            return self.textures.get(identity)
        if kind is EntityKind.BEHAVIOR:
            owner_path, _, type_name = identity.rpartition(':')
            node = self.find_node(owner_path)
            if node is None:
                return None
            return next((b for b in node.behaviors if b.type_name == type_name), None)
        return None

    def list_properties(self, handle: MemoryEntity) -> List[Tuple[str, PropertyTag]]:
        return handle.property_items()

    def get_property(self, handle: MemoryEntity, name: str) -> Any:
        return handle.get(name)

    def set_property(self, handle: MemoryEntity, name: str, value: Any) -> None:
        if isinstance(value, AssetRef):
            value = self._resolve_reference(value)
        handle.set(name, value)

    def _resolve_reference(self, ref: AssetRef) -> AssetRef:
        """Only references to entities this corpus knows can be assigned"""
        if ref.path:
            if ref.path in self.textures or ref.path in self.materials:
                return ref
            raise PropertyError(f"Referenced asset not found: {ref.path}")
        if ref.runtime_id is not None and ref.runtime_id in self._runtime_index:
            return ref
        raise PropertyError(f"Referenced runtime object not found: {ref.runtime_id}")

    def get_schema_name(self, handle: Any) -> str:
        if isinstance(handle, MaterialAsset):
            return handle.shader_name
        if isinstance(handle, Behavior):
            return handle.type_name
        return type(handle).__name__

    def set_schema(self, handle: Any, name: str) -> None:
        if not isinstance(handle, MaterialAsset):
            raise PropertyError(f"Schema of {handle!r} cannot be changed")
        if name not in self.shaders:
            raise PropertyError(f"Unknown shader: {name}")
        previous = dict(handle._properties)
        handle._properties.clear()
        for prop, (tag, default) in self.shaders[name].items():
            old = previous.get(prop)
            value = old[1] if old is not None and old[0] == tag else default
            handle.declare(prop, tag, value)
        handle.shader_name = name

    def has_schema(self, name: str) -> bool:
        return name in self.shaders

    def children(self, node: SceneNode) -> List[SceneNode]:
        return list(node.children)

    def node_name(self, node: SceneNode) -> str:
        return node.name

    def node_path(self, node: SceneNode) -> str:
        return node.path

    def owner_of(self, behavior: Any) -> Optional[SceneNode]:
        return behavior.owner if isinstance(behavior, Behavior) else None

    def attached(self, node: SceneNode, kind: EntityKind) -> List[Any]:
        if kind is EntityKind.MATERIAL:
            return list(node.materials)
        if kind is EntityKind.BEHAVIOR:
            return list(node.behaviors)
        return []

    def resolve_runtime_id(self, runtime_id: int) -> Optional[Any]:
        return self._runtime_index.get(runtime_id)

    def asset_file_path(self, asset_path: str) -> Optional[Path]:
        if self.asset_root is None:
            return None
        path = self.asset_root / asset_path
        return path if path.is_file() else None

    def asset_dependencies(self, handle: MemoryEntity) -> List[str]:
        return list(self.dependencies.get(handle.runtime_id, []))

    def environment_info(self) -> Dict[str, Any]:
        return {
            'host': 'InMemoryCorpus',
            'projectName': self.project_name,
            'projectPath': str(self.asset_root) if self.asset_root else '',
        }


__all__ = [
    'InMemoryCorpus',
    'MemoryEntity',
    'SceneNode',
    'MaterialAsset',
    'Behavior',
    'TextureAsset',
]
