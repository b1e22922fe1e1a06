"""
Services for Scene Snapshot

Snapshot writing, reading, restore and the provider facade.
"""

from .asset_manifest import AssetRow, collect_asset_paths, read_asset_manifest, write_asset_manifest
from .snapshot_writer import SnapshotWriter, SnapshotResult
from .snapshot_reader import SnapshotReader
from .restore_engine import RestoreEngine, RestoreSummary, CategoryResult, CategoryState
from .snapshot_service import (
    SnapshotProvider,
    FolderSnapshotProvider,
    BundleSnapshotProvider,
    SnapshotService,
    GuardedSwapResult,
)

__all__ = [
    # Asset manifest
    'AssetRow',
    'collect_asset_paths',
    'read_asset_manifest',
    'write_asset_manifest',
    # Writer / reader
    'SnapshotWriter',
    'SnapshotResult',
    'SnapshotReader',
    # Restore
    'RestoreEngine',
    'RestoreSummary',
    'CategoryResult',
    'CategoryState',
    # Facade
    'SnapshotProvider',
    'FolderSnapshotProvider',
    'BundleSnapshotProvider',
    'SnapshotService',
    'GuardedSwapResult',
]
