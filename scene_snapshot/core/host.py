"""
Corpus host interface

The engine never touches a concrete scene model. Any host (an editor
integration, a file-backed scene, the in-memory reference host) exposes
its node graph and entities through CorpusHost.

Handles are opaque to the engine. They only need to be hashable so a run
can deduplicate entities reachable from more than one place.
"""

import enum
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Hashable, List, Optional, Tuple

from .property_codec import PropertyTag

EntityHandle = Hashable


class EntityKind(enum.Enum):
    """Capturable entity kinds"""
    NODE = "node"
    MATERIAL = "material"
    BEHAVIOR = "behavior"
    TEXTURE = "texture"


# Property names every node exposes for its transform / active flag
NODE_POSITION = "localPosition"
NODE_ROTATION = "localRotation"
NODE_SCALE = "localScale"
NODE_ACTIVE = "isActive"


class CorpusHost(ABC):
    """
    Query/mutation interface a host exposes to the snapshot engine.

    Required:
    - enumerate / get_identity / resolve_by_identity
    - list_properties / get_property / set_property
    - get_schema_name / set_schema / has_schema
    - children / node_name / attached

    Optional (have defaults):
    - schema_properties, find_node, node_path, owner_of, resolve_runtime_id,
      asset_file_path, asset_dependencies, environment_info
    """

    # ==================== INDEX / IDENTITY ====================

    @abstractmethod
    def enumerate(self, kind: EntityKind) -> List[EntityHandle]:
        """
        Every entity of a kind in the host's asset index.

        For NODE this returns the root nodes of the corpus.
        """

    @abstractmethod
    def get_identity(self, handle: EntityHandle) -> Optional[str]:
        """Stable identity (asset path, node path) or None if it has none"""

    @abstractmethod
    def resolve_by_identity(self, kind: EntityKind, identity: str) -> Optional[EntityHandle]:
        """Find a live entity by its stable identity"""

    # ==================== PROPERTIES ====================

    @abstractmethod
    def list_properties(self, handle: EntityHandle) -> List[Tuple[str, PropertyTag]]:
        """Top-level declared properties with their tags"""

    @abstractmethod
    def get_property(self, handle: EntityHandle, name: str) -> Any:
        """Read a raw property value. May raise."""

    @abstractmethod
    def set_property(self, handle: EntityHandle, name: str, value: Any) -> None:
        """Write a raw property value. Raises on failure."""

    # ==================== SCHEMA ====================

    @abstractmethod
    def get_schema_name(self, handle: EntityHandle) -> str:
        """Current schema (shader name, behavior type name)"""

    @abstractmethod
    def set_schema(self, handle: EntityHandle, name: str) -> None:
        """Switch the entity to another schema"""

    def has_schema(self, name: str) -> bool:
        """Whether a schema of this name can be applied"""
        return False

    def schema_properties(self, handle: EntityHandle) -> List[str]:
        """Property names available under the entity's current schema"""
        return [name for name, _tag in self.list_properties(handle)]

    # ==================== NODE GRAPH ====================

    @abstractmethod
    def children(self, node: EntityHandle) -> List[EntityHandle]:
        """Direct children of a node, active or not"""

    @abstractmethod
    def node_name(self, node: EntityHandle) -> str:
        """Name of a node (one path segment)"""

    @abstractmethod
    def attached(self, node: EntityHandle, kind: EntityKind) -> List[EntityHandle]:
        """
        Entities attached to one node.

        MATERIAL: materials of the node's renderers (may repeat).
        BEHAVIOR: behaviors on the node.
        TEXTURE: not used; textures are found through materials.
        """

    def owner_of(self, behavior: EntityHandle) -> Optional[EntityHandle]:
        """Node a behavior is attached to, if the host can tell"""
        return None

    def node_path(self, node: EntityHandle) -> str:
        """Slash-joined ancestor-name path (default: get_identity)"""
        return self.get_identity(node) or self.node_name(node)

    def find_node(self, path: str) -> Optional[EntityHandle]:
        """Find a node by slash-joined name path (first match wins)"""
        segments = [s for s in path.split('/') if s]
        if not segments:
            return None
        candidates = self.enumerate(EntityKind.NODE)
        node = None
        for segment in segments:
            node = next((c for c in candidates if self.node_name(c) == segment), None)
            if node is None:
                return None
            candidates = self.children(node)
        return node

    # ==================== REFERENCES / FILES ====================

    def resolve_runtime_id(self, runtime_id: int) -> Optional[EntityHandle]:
        """Resolve a session-only numeric id. Hosts without one return None."""
        return None

    def asset_file_path(self, asset_path: str) -> Optional[Path]:
        """File on disk backing an asset path, or None (built-in, missing)"""
        return None

    def asset_dependencies(self, handle: EntityHandle) -> List[str]:
        """Extra asset paths an entity depends on (meshes etc.)"""
        return []

    def environment_info(self) -> Dict[str, Any]:
        """Host name/version/project, written into the manifest"""
        return {}


__all__ = [
    'CorpusHost',
    'EntityHandle',
    'EntityKind',
    'NODE_POSITION',
    'NODE_ROTATION',
    'NODE_SCALE',
    'NODE_ACTIVE',
]
