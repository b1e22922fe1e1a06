"""
Configuration for Scene Snapshot

Centralized app configuration with sensible defaults.
Pattern: Single source of truth for all settings.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List, Optional


class Config:
    """
    Application configuration

    Features:
    - App metadata
    - Snapshot folder layout (file names, timestamp format)
    - Property deny-list applied by every serializer
    - Paths for user data, logs and default snapshot location
    """

    # ==================== APP METADATA ====================
    APP_NAME = "Scene Snapshot"
    APP_VERSION = "1.0.0"

    # On-disk format written into every manifest
    FORMAT_VERSION = "1.0.0"

    # ==================== PATHS ====================
    APP_ROOT: Path = Path(__file__).parent
    RESOURCES_FOLDER = APP_ROOT / "resources"
    PROPERTY_MAPPINGS_FILE = RESOURCES_FOLDER / "property_mappings.json"

    # Environment override for the user data directory (tests, portable installs)
    DATA_DIR_ENV = "SCENE_SNAPSHOT_HOME"

    # ==================== LOGGING ====================
    LOG_LEVEL_ENV = "SCENE_SNAPSHOT_LOG_LEVEL"
    LOG_FILE_PREFIX = "snapshot_"
    LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
    LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
    LOG_RETENTION_DAYS = 14

    # ==================== SNAPSHOT LAYOUT ====================
    MANIFEST_FILE = "manifest.json"
    MATERIALS_FILE = "materials.json"
    BEHAVIORS_FILE = "behaviors.json"
    TEXTURES_FILE = "textures.json"
    HIERARCHY_FILE = "hierarchy.json"
    ASSETS_FILE = "assets.csv"
    LOCK_FILE = ".snapshot.lock"
    TARGET_LOCK_PREFIX = "target_"

    # Category name -> file name, in write order
    CATEGORY_FILES = {
        'materials': MATERIALS_FILE,
        'behaviors': BEHAVIORS_FILE,
        'textures': TEXTURES_FILE,
        'hierarchy': HIERARCHY_FILE,
        'assets': ASSETS_FILE,
    }

    # Top-level JSON key holding each category's record list
    CATEGORY_KEYS = {
        'materials': 'materials',
        'behaviors': 'behaviors',
        'textures': 'textures',
        'hierarchy': 'nodes',
    }

    # Names used by older snapshot folders, still accepted on read
    LEGACY_METADATA_FILE = "backup.json"
    LEGACY_CATEGORY_FILES = {
        'behaviors': "components.json",
    }
    LEGACY_CATEGORY_KEYS = {
        'behaviors': 'components',
        'hierarchy': 'gameObjects',
    }

    # Folder name timestamp, e.g. 2026-10-19_14-03-22
    TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

    # Target identity written for whole-corpus snapshots
    ALL_ASSETS_TARGET = "ALL_ASSETS"

    # Asset manifest header (kept byte-compatible with older snapshots)
    ASSETS_CSV_HEADER = "asset path;size in bytes;md5"

    # ==================== SERIALIZATION ====================
    # Internal keys never captured, regardless of their tag
    RESERVED_PROPERTY_KEYS: FrozenSet[str] = frozenset([
        'm_ObjectHideFlags',
        'm_CorrespondingSourceObject',
        'm_PrefabInstance',
        'm_PrefabAsset',
    ])

    @classmethod
    def get_user_data_dir(cls) -> Path:
        """Get user data directory in OS AppData (or the env override)."""
        override = os.environ.get(cls.DATA_DIR_ENV)
        if override:
            user_dir = Path(override)
            user_dir.mkdir(parents=True, exist_ok=True)
            return user_dir

        if sys.platform == 'win32':
            base = Path(os.environ.get('LOCALAPPDATA', Path.home() / 'AppData' / 'Local'))
        elif sys.platform == 'darwin':
            base = Path.home() / 'Library' / 'Application Support'
        else:
            base = Path(os.environ.get('XDG_DATA_HOME', Path.home() / '.local' / 'share'))

        user_dir = base / 'SceneSnapshot'
        user_dir.mkdir(parents=True, exist_ok=True)
        return user_dir

    @classmethod
    def get_default_snapshot_location(cls) -> Path:
        """Folder that holds snapshot folders when the caller gives none"""
        location = cls.get_user_data_dir() / 'snapshots'
        location.mkdir(parents=True, exist_ok=True)
        return location

    @classmethod
    def get_logs_directory(cls) -> Path:
        """Get logs directory path"""
        logs_dir = cls.get_user_data_dir() / 'logs'
        logs_dir.mkdir(parents=True, exist_ok=True)
        return logs_dir

    @classmethod
    def get_locks_directory(cls) -> Path:
        """Folder holding the per-target advisory locks"""
        locks_dir = cls.get_user_data_dir() / 'locks'
        locks_dir.mkdir(parents=True, exist_ok=True)
        return locks_dir

    @classmethod
    def category_file(cls, category: str) -> str:
        """
        Get file name for a category.

        Raises:
            KeyError: If category is unknown
        """
        return cls.CATEGORY_FILES[category]


@dataclass
class SnapshotOptions:
    """
    What a snapshot (or a selective restore) covers.

    The same options object selects categories on restore: a category that
    is switched off is left untouched even if the snapshot contains it.
    """
    materials: bool = True
    behaviors: bool = True
    textures: bool = True
    hierarchy: bool = True
    assets: bool = True
    include_material_properties: bool = True
    include_behavior_data: bool = True
    location: Optional[Path] = None
    label: str = ""
    notes: str = ""
    extra_reserved_keys: List[str] = field(default_factory=list)

    def requested_categories(self) -> List[str]:
        """Requested category names, in write order."""
        return [name for name in Config.CATEGORY_FILES if getattr(self, name)]

    def reserved_keys(self) -> FrozenSet[str]:
        """Deny-list for this run (built-in keys plus extras)."""
        return Config.RESERVED_PROPERTY_KEYS | frozenset(self.extra_reserved_keys)

    def resolve_location(self) -> Path:
        """Snapshot location, falling back to the user data directory."""
        if self.location is not None:
            return Path(self.location)
        return Config.get_default_snapshot_location()


__all__ = ['Config', 'SnapshotOptions']
