"""
SnapshotReader - Load snapshot folders and legacy single-file bundles

Handles:
- Snapshot validation (manifest or any category file present)
- Per-category loading; an unreadable category is reported, not fatal
- Older folder layouts (backup.json metadata, components.json)
- Legacy single-file bundles with inline record lists
- Listing snapshots under a location
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..config import Config
from ..core.exceptions import CategoryIOError, FatalSnapshotError, InvalidSnapshotError
from ..core.records import (
    BehaviorRecord,
    Manifest,
    MaterialRecord,
    NodeRecord,
    Snapshot,
    TextureSettingsRecord,
)
from ..core.scope import ScopeKind
from ..utils.decorators import timed

logger = logging.getLogger(__name__)

RECORD_TYPES = {
    'materials': MaterialRecord,
    'behaviors': BehaviorRecord,
    'textures': TextureSettingsRecord,
    'hierarchy': NodeRecord,
}

SNAPSHOT_ATTRIBUTES = {
    'materials': 'materials',
    'behaviors': 'behaviors',
    'textures': 'textures',
    'hierarchy': 'nodes',
}

# Inline list keys accepted in single-file bundles, first match wins
BUNDLE_KEYS = {
    'materials': ('materials',),
    'behaviors': ('behaviors', 'components'),
    'textures': ('textures',),
    'hierarchy': ('nodes', 'gameObjects'),
}


def _read_json(path: Path) -> Any:
    with open(path, 'r', encoding='utf-8-sig') as f:
        return json.load(f)


class SnapshotReader:
    """Reads snapshots written by SnapshotWriter (and their predecessors)"""

    # ==================== VALIDATION ====================

    @classmethod
    def _category_file(cls, folder: Path, category: str) -> Optional[Path]:
        path = folder / Config.CATEGORY_FILES[category]
        if path.is_file():
            return path
        legacy = Config.LEGACY_CATEGORY_FILES.get(category)
        if legacy and (folder / legacy).is_file():
            return folder / legacy
        return None

    @classmethod
    def _manifest_file(cls, folder: Path) -> Optional[Path]:
        for name in (Config.MANIFEST_FILE, Config.LEGACY_METADATA_FILE):
            if (folder / name).is_file():
                return folder / name
        return None

    @classmethod
    def is_valid_snapshot(cls, path: Path) -> bool:
        """
        Check if a path holds a snapshot.

        A folder is valid if it has a manifest or any category file. A file
        is valid if it is a JSON bundle with at least one record list.
        """
        path = Path(path)
        if path.is_dir():
            if cls._manifest_file(path) is not None:
                return True
            return any(cls._category_file(path, c) is not None for c in Config.CATEGORY_FILES)
        if path.is_file() and path.suffix.lower() == '.json':
            try:
                data = _read_json(path)
            except (OSError, ValueError):
                return False
            return isinstance(data, dict) and any(
                isinstance(data.get(key), list)
                for keys in BUNDLE_KEYS.values() for key in keys
            )
        return False

    # ==================== MANIFEST ====================

    @classmethod
    def read_manifest(cls, folder: Path) -> Optional[Manifest]:
        """
        Parse the folder's manifest, or None when it has none.

        Raises:
            CategoryIOError: Manifest exists but cannot be parsed
        """
        path = cls._manifest_file(Path(folder))
        if path is None:
            return None
        try:
            data = _read_json(path)
            if not isinstance(data, dict):
                raise ValueError("manifest is not an object")
        except (OSError, ValueError) as e:
            raise CategoryIOError(f"Cannot read manifest {path.name}", category='manifest', details=str(e))

        manifest = Manifest.from_dict(data)
        if path.name == Config.LEGACY_METADATA_FILE:
            manifest.categories_present = cls._legacy_categories(folder)
            # Older metadata stored the scope as an enum ordinal
            if manifest.scope_kind.isdigit():
                kinds = list(ScopeKind)
                ordinal = int(manifest.scope_kind)
                if ordinal < len(kinds):
                    manifest.scope_kind = kinds[ordinal].value
            else:
                manifest.scope_kind = ScopeKind.from_name(manifest.scope_kind).value
        return manifest

    @classmethod
    def _legacy_categories(cls, folder: Path) -> set:
        present = set()
        for category in Config.CATEGORY_FILES:
            if cls._category_file(Path(folder), category) is not None:
                present.add(category)
        return present

    # ==================== LOADING ====================

    @classmethod
    @timed
    def load(
        cls,
        path: Path,
        categories: Optional[Iterable[str]] = None,
        require_manifest: bool = False,
    ) -> Snapshot:
        """
        Load a snapshot folder or a single-file bundle.

        Args:
            path: Snapshot folder or bundle file
            categories: Categories to load (default: all)
            require_manifest: Fail if the manifest is missing or unreadable

        Returns:
            Snapshot; unreadable categories are listed in failed_categories

        Raises:
            InvalidSnapshotError: Path is not a snapshot
            FatalSnapshotError: Manifest required but missing or unreadable
        """
        path = Path(path)
        if not cls.is_valid_snapshot(path):
            raise InvalidSnapshotError(f"Not a snapshot: {path}")

        wanted = [c for c in (categories or RECORD_TYPES) if c in RECORD_TYPES]

        if path.is_file():
            return cls.load_bundle(path, wanted)

        snapshot = Snapshot()
        try:
            snapshot.manifest = cls.read_manifest(path)
        except CategoryIOError as e:
            if require_manifest:
                raise FatalSnapshotError(str(e), details=e.details)
            logger.warning(f"{e}")
            snapshot.failed_categories['manifest'] = str(e)
        if snapshot.manifest is None and require_manifest and 'manifest' not in snapshot.failed_categories:
            raise FatalSnapshotError(f"Snapshot has no manifest: {path}")

        for category in wanted:
            file_path = cls._category_file(path, category)
            if file_path is None:
                continue
            try:
                records = cls._load_category(file_path, category)
            except CategoryIOError as e:
                logger.error(f"{e}")
                snapshot.failed_categories[category] = str(e)
                continue
            setattr(snapshot, SNAPSHOT_ATTRIBUTES[category], records)

        return snapshot

    @classmethod
    def _load_category(cls, file_path: Path, category: str) -> List[Any]:
        try:
            data = _read_json(file_path)
        except (OSError, ValueError) as e:
            raise CategoryIOError(f"Cannot read {file_path.name}", category=category, details=str(e))

        keys = [Config.CATEGORY_KEYS[category]]
        if category in Config.LEGACY_CATEGORY_KEYS:
            keys.append(Config.LEGACY_CATEGORY_KEYS[category])
        items = None
        if isinstance(data, dict):
            items = next((data[k] for k in keys if isinstance(data.get(k), list)), None)
        if items is None:
            raise CategoryIOError(
                f"{file_path.name} has no record list", category=category, details=f"expected {keys}"
            )
        return cls._records(category, items)

    @classmethod
    def _records(cls, category: str, items: List[Any]) -> List[Any]:
        record_type = RECORD_TYPES[category]
        records = []
        for item in items:
            if not isinstance(item, dict):
                logger.warning(f"Skipping malformed {category} record: {item!r}")
                continue
            try:
                records.append(record_type.from_dict(item))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {category} record: {e}")
        return records

    @classmethod
    def load_bundle(cls, path: Path, categories: Optional[Iterable[str]] = None) -> Snapshot:
        """
        Load a single-file bundle.

        Bundles carry inline lists (materials, behaviors/components,
        textures, nodes/gameObjects) and optional top-level metadata.
        """
        path = Path(path)
        try:
            data = _read_json(path)
        except (OSError, ValueError) as e:
            raise InvalidSnapshotError(f"Cannot read bundle: {path}", details=str(e))
        if not isinstance(data, dict):
            raise InvalidSnapshotError(f"Bundle is not a JSON object: {path}")

        snapshot = Snapshot()
        wanted = list(categories or RECORD_TYPES)
        for category in wanted:
            items = next(
                (data[k] for k in BUNDLE_KEYS[category] if isinstance(data.get(k), list)),
                None,
            )
            if items is None:
                continue
            setattr(snapshot, SNAPSHOT_ATTRIBUTES[category], cls._records(category, items))

        manifest_data = data.get('manifest') if isinstance(data.get('manifest'), dict) else data
        snapshot.manifest = Manifest.from_dict(manifest_data)
        if not snapshot.manifest.target_identity:
            snapshot.manifest.target_identity = str(data.get('avatarRootPath', '') or '')
        snapshot.manifest.categories_present = snapshot.categories()
        snapshot.manifest.location = str(path)
        return snapshot

    # ==================== LISTING ====================

    @classmethod
    def list_snapshots(cls, location: Path) -> List[Path]:
        """Snapshot folders and bundles under a location, newest first"""
        location = Path(location)
        if not location.is_dir():
            return []
        found = [p for p in location.iterdir() if not p.name.startswith('.') and cls.is_valid_snapshot(p)]
        return sorted(found, key=lambda p: p.stat().st_mtime, reverse=True)

    @classmethod
    def get_snapshot_info(cls, path: Path) -> Dict[str, Any]:
        """
        Summary of a snapshot without loading records.

        Returns:
            Manifest dictionary plus 'path' and 'valid'
        """
        path = Path(path)
        info: Dict[str, Any] = {'path': str(path), 'valid': cls.is_valid_snapshot(path)}
        if not info['valid']:
            return info
        if path.is_file():
            info.update(cls.load_bundle(path).manifest.to_dict())
            return info
        try:
            manifest = cls.read_manifest(path)
        except CategoryIOError as e:
            info['error'] = str(e)
            return info
        if manifest is not None:
            info.update(manifest.to_dict())
        return info


__all__ = ['SnapshotReader', 'RECORD_TYPES']
