"""
Schema Remapper - Transfer properties between differing schemas

Maps source property names to a target schema's property names and writes
values through the host, tallying per-property outcomes.

Resolution order for one source name:
1. Skip rules (exact, prefix, suffix; case-insensitive) reject it
2. Synonym table candidate, if the target schema has it
3. Case-insensitive verbatim match on the target schema
4. No target (skipped)

When a whole set of properties moves at once, a synonym never redirects a
value onto a name that another source property matches verbatim: with
_Cutoff and _AlphaCutoff on both sides, each keeps its own value.

Rules come from resources/property_mappings.json; a missing or broken file
falls back to the built-in defaults below.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..config import Config
from .exceptions import EntityNotFoundError, PropertyError
from .host import CorpusHost
from .property_codec import AssetRef, PropertyTag, decode
from .records import PropertyEntry

logger = logging.getLogger(__name__)


DEFAULT_SYNONYMS: Dict[str, str] = {
    '_MainTex': '_MainTex',
    '_Color': '_Color',
    '_BumpMap': '_BumpMap',
    '_BumpScale': '_BumpScale',
    '_NormalMap': '_BumpMap',
    '_NormalScale': '_BumpScale',
    '_BaseMap': '_MainTex',
    '_BaseColor': '_Color',
    '_Cutoff': '_AlphaCutoff',
    '_AlphaCutoff': '_Cutoff',
    '_EmissionMap': '_EmissionMap',
    '_EmissionColor': '_EmissionColor',
    '_Emission': '_EmissionColor',
    '_Metallic': '_Metallic',
    '_Glossiness': '_Glossiness',
    '_Smoothness': '_Glossiness',
    '_GlossMapScale': '_Glossiness',
    '_OcclusionMap': '_OcclusionMap',
    '_OcclusionStrength': '_OcclusionStrength',
    '_DetailAlbedoMap': '_DetailAlbedoMap',
    '_DetailTex': '_DetailAlbedoMap',
    '_DetailNormalMap': '_DetailNormalMap',
    '_DetailMask': '_DetailMask',
    '_SpecGlossMap': '_SpecGlossMap',
    '_SpecColor': '_SpecColor',
}

DEFAULT_IGNORED = ['shader_master_label', 'shader_is_using_thry_editor', 'shader_locale']
DEFAULT_IGNORED_PREFIXES = ['m_start_', 'm_end_', 's_start_', 's_end_', 'footer_', '_ShaderUI']
DEFAULT_IGNORED_SUFFIXES = [
    'Pan', 'UV', 'Stochastic', 'PixelMode', 'ThemeIndex',
    'GlobalMask', 'BlendType', 'Toggle', 'Enabled',
]


@dataclass
class TransferResult:
    """Outcome of moving a set of properties onto one entity"""
    transferred: int = 0
    failed: int = 0
    skipped: int = 0
    transferred_properties: List[str] = field(default_factory=list)
    failed_properties: List[str] = field(default_factory=list)

    def merge(self, other: 'TransferResult'):
        self.transferred += other.transferred
        self.failed += other.failed
        self.skipped += other.skipped
        self.transferred_properties.extend(other.transferred_properties)
        self.failed_properties.extend(other.failed_properties)


def decode_for_host(host: CorpusHost, entry: PropertyEntry) -> Any:
    """
    Decode an entry into a raw value the host can assign.

    Raises:
        DecodeError: Malformed value text
        EntityNotFoundError: Reference that only carries a session id the
            host can no longer resolve
    """
    value = decode(entry.value, entry.type)
    if isinstance(value, AssetRef) and not value.is_portable:
        if host.resolve_runtime_id(value.runtime_id) is None:
            raise EntityNotFoundError(
                f"Runtime reference {value.runtime_id} cannot be resolved",
                identity=str(value.runtime_id),
            )
    return value


class PropertyRemapper:
    """
    Cross-schema property name mapping and transfer.

    Usage:
        remapper = get_property_remapper()
        target = remapper.resolve_target_property('_NormalMap', ['_BumpMap'])
        result = remapper.transfer_entries(host, material, record.properties)
    """

    def __init__(
        self,
        synonyms: Optional[Dict[str, str]] = None,
        ignored: Optional[Iterable[str]] = None,
        ignored_prefixes: Optional[Iterable[str]] = None,
        ignored_suffixes: Optional[Iterable[str]] = None,
    ):
        synonyms = DEFAULT_SYNONYMS if synonyms is None else synonyms
        self._synonyms = {k.lower(): v for k, v in synonyms.items() if k and v}
        self._ignored = {
            n.lower() for n in (DEFAULT_IGNORED if ignored is None else ignored) if n
        }
        self._prefixes = [
            p.rstrip('*').lower()
            for p in (DEFAULT_IGNORED_PREFIXES if ignored_prefixes is None else ignored_prefixes)
            if p and p.rstrip('*')
        ]
        self._suffixes = [
            s.lstrip('*').lower()
            for s in (DEFAULT_IGNORED_SUFFIXES if ignored_suffixes is None else ignored_suffixes)
            if s and s.lstrip('*')
        ]

    # ==================== LOADING ====================

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PropertyRemapper':
        synonyms = {}
        for mapping in data.get('universalMappings') or []:
            source = mapping.get('source')
            target = mapping.get('target')
            if source and target:
                synonyms[source] = target
        return cls(
            synonyms=synonyms,
            ignored=data.get('ignoredProperties') or [],
            ignored_prefixes=data.get('ignoredPropertyPrefixes') or [],
            ignored_suffixes=data.get('ignoredPropertySuffixes') or [],
        )

    @classmethod
    def from_json(cls, path: Path) -> 'PropertyRemapper':
        """
        Load rules from a JSON file.

        Falls back to the built-in defaults when the file is missing or
        cannot be parsed.
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            remapper = cls.from_dict(data)
            logger.debug(f"Loaded {len(remapper._synonyms)} property mappings from {path}")
            return remapper
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Failed to load property mappings from {path}, using defaults: {e}")
            return cls()

    @classmethod
    def default(cls) -> 'PropertyRemapper':
        return cls.from_json(Config.PROPERTY_MAPPINGS_FILE)

    # ==================== NAME RESOLUTION ====================

    def should_skip(self, name: str) -> bool:
        """True if a property never transfers (empty or matching a skip rule)"""
        if not name:
            return True
        lowered = name.lower()
        if lowered in self._ignored:
            return True
        if any(lowered.startswith(p) for p in self._prefixes):
            return True
        return any(lowered.endswith(s) for s in self._suffixes)

    def resolve_target_property(self, source_name: str, target_schema: Iterable[str]) -> Optional[str]:
        """
        Map a source property name onto a target schema.

        Args:
            source_name: Property name on the source
            target_schema: Property names available on the target

        Returns:
            The target's own spelling of the property, or None
        """
        if self.should_skip(source_name):
            return None

        targets = {}
        for name in target_schema:
            targets.setdefault(name.lower(), name)

        candidate = self._synonyms.get(source_name.lower())
        if candidate and candidate.lower() in targets:
            return targets[candidate.lower()]

        return targets.get(source_name.lower())

    def resolve_targets(self, source_names: Iterable[str], target_schema: Iterable[str]) -> Dict[str, Optional[str]]:
        """
        Map a set of source names onto a target schema in one pass.

        Like resolve_target_property, except that a target name matched
        verbatim by one source name is not available to the others
        through the synonym table.

        Returns:
            Dict of source name -> target name (None when skipped)
        """
        source_names = list(source_names)
        targets = {}
        for name in target_schema:
            targets.setdefault(name.lower(), name)

        claimed = {
            name.lower() for name in source_names
            if name.lower() in targets and not self.should_skip(name)
        }

        resolved: Dict[str, Optional[str]] = {}
        for name in source_names:
            target = self.resolve_target_property(name, targets.values())
            if target is not None and target.lower() != name.lower() and target.lower() in claimed:
                target = targets.get(name.lower())
            resolved[name] = target
        return resolved

    # ==================== TRANSFER ====================

    def transfer_entries(
        self,
        host: CorpusHost,
        handle: Any,
        entries: Iterable[PropertyEntry],
        remap: bool = True,
    ) -> TransferResult:
        """
        Write recorded entries onto a live entity.

        Args:
            host: Corpus host
            handle: Target entity
            entries: Recorded properties
            remap: Apply skip rules and synonyms. False writes by exact name.

        Returns:
            TransferResult; a failing property never stops the others
        """
        result = TransferResult()
        entries = list(entries)
        target_schema = list(host.schema_properties(handle))
        available = set(target_schema)
        mapped = self.resolve_targets([e.key for e in entries], target_schema) if remap else {}

        for entry in entries:
            if entry.type is PropertyTag.UNSUPPORTED:
                result.skipped += 1
                continue

            if remap:
                target_name = mapped.get(entry.key)
            else:
                target_name = entry.key if entry.key in available else None
            if target_name is None:
                result.skipped += 1
                continue

            try:
                host.set_property(handle, target_name, decode_for_host(host, entry))
            except Exception as e:
                # Host writes may raise anything; the other entries still go through
                result.failed += 1
                result.failed_properties.append(f"{entry.key}: {e}")
                logger.debug(f"Property {entry.key} -> {target_name} failed: {e}")
                continue

            result.transferred += 1
            result.transferred_properties.append(f"{entry.key} -> {target_name}")

        return result

    def transfer_live(self, host: CorpusHost, source: Any, target: Any) -> TransferResult:
        """Copy properties from one live entity to another through the mapping"""
        # Local import: serializers imports this package's scope module
        from .serializers import serialize_properties

        entries, skipped = serialize_properties(host, source)
        result = self.transfer_entries(host, target, entries)
        result.skipped += skipped
        return result

    def swap_schema(self, host: CorpusHost, handle: Any, new_schema: str) -> TransferResult:
        """
        Switch an entity to another schema and carry its values across.

        Raises:
            PropertyError: If the host has no schema of that name
        """
        from .serializers import serialize_properties

        if not host.has_schema(new_schema):
            raise PropertyError(f"Schema not available: {new_schema}")

        entries, skipped = serialize_properties(host, handle)
        old_schema = host.get_schema_name(handle)
        host.set_schema(handle, new_schema)

        result = self.transfer_entries(host, handle, entries)
        result.skipped += skipped
        logger.info(
            f"Swapped schema {old_schema} -> {new_schema}: "
            f"{result.transferred} transferred, {result.failed} failed"
        )
        return result


# Global remapper instance
_property_remapper: Optional[PropertyRemapper] = None


def get_property_remapper() -> PropertyRemapper:
    """Get global PropertyRemapper singleton (loaded from the bundled rules)"""
    global _property_remapper
    if _property_remapper is None:
        _property_remapper = PropertyRemapper.default()
    return _property_remapper


__all__ = [
    'PropertyRemapper',
    'TransferResult',
    'decode_for_host',
    'get_property_remapper',
]
