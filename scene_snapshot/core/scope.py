"""
Scope Resolver - Turn a scope selector into the entities a run covers

Pattern: Pure queries over CorpusHost, no mutation.

Node scopes walk the hierarchy pre-order (inactive nodes included) and
collect attached entities. EntireCorpus reads the host's asset index.
Every result is deduplicated by handle and tagged with its stable identity,
or None when the entity cannot be addressed after a restart.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Set

from .host import CorpusHost, EntityKind
from .property_codec import AssetRef, PropertyTag

logger = logging.getLogger(__name__)


class ScopeKind(enum.Enum):
    """Scope kinds. Values are the names written to the manifest."""
    ENTIRE_CORPUS = "EntireCorpus"
    SINGLE_ENTITY = "SingleEntity"
    ENTITY_SUBTREE = "EntitySubtree"

    @classmethod
    def from_name(cls, name: str) -> 'ScopeKind':
        """Parse manifest text, including the older AllAssets/GameObject names."""
        try:
            return cls(name)
        except ValueError:
            return _LEGACY_SCOPE_NAMES.get(str(name).lower(), cls.ENTIRE_CORPUS)


_LEGACY_SCOPE_NAMES = {
    'allassets': ScopeKind.ENTIRE_CORPUS,
    'singlegameobject': ScopeKind.SINGLE_ENTITY,
    'gameobjectrecursive': ScopeKind.ENTITY_SUBTREE,
}


@dataclass(frozen=True)
class Scope:
    """
    Scope selector.

    Use the factory classmethods rather than the constructor:
        Scope.entire_corpus()
        Scope.single(node)
        Scope.subtree(node)
    """
    kind: ScopeKind
    root: Any = None

    @classmethod
    def entire_corpus(cls) -> 'Scope':
        return cls(ScopeKind.ENTIRE_CORPUS)

    @classmethod
    def single(cls, node: Any) -> 'Scope':
        return cls(ScopeKind.SINGLE_ENTITY, node)

    @classmethod
    def subtree(cls, node: Any) -> 'Scope':
        return cls(ScopeKind.ENTITY_SUBTREE, node)

    @property
    def is_node_scope(self) -> bool:
        return self.kind is not ScopeKind.ENTIRE_CORPUS

    def __post_init__(self):
        if self.is_node_scope and self.root is None:
            raise ValueError(f"{self.kind.value} scope needs a target node")


@dataclass(frozen=True)
class ScopedEntity:
    """An entity in scope and its stable identity (None = not restorable)"""
    handle: Any
    identity: Optional[str]


def _walk(host: CorpusHost, node: Any, seen: Set[Any]) -> Iterator[Any]:
    # Iterative pre-order; deep hierarchies must not hit the recursion limit
    stack = [node]
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        yield current
        stack.extend(reversed(host.children(current)))


def resolve_nodes(host: CorpusHost, scope: Scope) -> List[Any]:
    """
    Nodes covered by a scope, pre-order, without duplicates.

    SingleEntity yields only the target; EntitySubtree yields the target
    and every descendant, active or not; EntireCorpus walks every root.
    """
    if scope.kind is ScopeKind.SINGLE_ENTITY:
        return [scope.root]

    roots = [scope.root] if scope.kind is ScopeKind.ENTITY_SUBTREE else host.enumerate(EntityKind.NODE)
    seen: Set[Any] = set()
    nodes: List[Any] = []
    for root in roots:
        nodes.extend(_walk(host, root, seen))
    return nodes


def _tag(host: CorpusHost, handles: List[Any]) -> List[ScopedEntity]:
    seen: Set[Any] = set()
    result: List[ScopedEntity] = []
    for handle in handles:
        if handle is None or handle in seen:
            continue
        seen.add(handle)
        result.append(ScopedEntity(handle, host.get_identity(handle)))
    return result


def referenced_asset_paths(host: CorpusHost, handle: Any) -> List[str]:
    """Asset paths of the AssetReference properties of one entity"""
    paths: List[str] = []
    for name, tag in host.list_properties(handle):
        if tag is not PropertyTag.ASSET_REFERENCE:
            continue
        try:
            value = host.get_property(handle, name)
        except Exception as e:
            logger.debug(f"Cannot read reference {name}: {e}")
            continue
        if isinstance(value, AssetRef) and value.path:
            paths.append(value.path)
        elif isinstance(value, str) and value:
            paths.append(value)
    return paths


def resolve_entities(host: CorpusHost, kind: EntityKind, scope: Scope) -> List[ScopedEntity]:
    """
    Materials, behaviors or textures covered by a scope.

    Args:
        host: Corpus host
        kind: MATERIAL, BEHAVIOR or TEXTURE
        scope: Scope selector

    Returns:
        Deduplicated ScopedEntity list in discovery order
    """
    if kind is EntityKind.NODE:
        return _tag(host, resolve_nodes(host, scope))

    if not scope.is_node_scope:
        return _tag(host, host.enumerate(kind))

    nodes = resolve_nodes(host, scope)

    if kind is EntityKind.TEXTURE:
        handles = []
        for material in resolve_entities(host, EntityKind.MATERIAL, scope):
            for path in referenced_asset_paths(host, material.handle):
                texture = host.resolve_by_identity(EntityKind.TEXTURE, path)
                if texture is not None:
                    handles.append(texture)
        return _tag(host, handles)

    handles = []
    for node in nodes:
        handles.extend(host.attached(node, kind))
    return _tag(host, handles)


__all__ = [
    'Scope',
    'ScopeKind',
    'ScopedEntity',
    'resolve_nodes',
    'resolve_entities',
    'referenced_asset_paths',
]
