"""
SnapshotService - Facade over snapshot providers

Pattern: Strategy (SnapshotProvider) behind one service.

Handles:
- Creating snapshots through the configured provider
- Restoring a snapshot (folder or bundle) under the target's advisory lock
- Listing snapshots and reading their info
- Guarded schema swap: snapshot first, then swap with property transfer
- Announcing lifecycle on a SnapshotEventBus when one is injected
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..config import Config, SnapshotOptions
from ..core.exceptions import FatalSnapshotError, PropertyError, SnapshotError
from ..core.host import CorpusHost, EntityKind
from ..core.records import Snapshot
from ..core.remapper import PropertyRemapper, TransferResult, get_property_remapper
from ..core.scope import Scope, resolve_entities
from ..core.serializers import SERIALIZERS
from ..utils.locking import SnapshotLock
from ..utils.path_utils import unique_path, write_text_atomic
from .restore_engine import RestoreEngine, RestoreSummary
from .snapshot_reader import SnapshotReader
from .snapshot_writer import ProgressCallback, SnapshotResult, SnapshotWriter, target_identity

if TYPE_CHECKING:
    from ..events.snapshot_events import SnapshotEventBus

logger = logging.getLogger(__name__)


def restore_target(snapshot: Snapshot) -> str:
    """
    Target identity a restore locks.

    Snapshots without a manifest (legacy or interrupted) lock the whole corpus.
    """
    if snapshot.manifest is not None and snapshot.manifest.target_identity:
        return snapshot.manifest.target_identity
    return Config.ALL_ASSETS_TARGET


class SnapshotProvider(ABC):
    """How snapshots are stored"""

    name: str = ""

    @abstractmethod
    def create(
        self,
        host: CorpusHost,
        scope: Scope,
        options: SnapshotOptions,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SnapshotResult:
        """Capture the scope and persist it"""

    @abstractmethod
    def load(self, path: Path, options: SnapshotOptions, require_manifest: bool = False) -> Snapshot:
        """Load a stored snapshot"""

    def list(self, location: Path) -> List[Path]:
        return SnapshotReader.list_snapshots(location)

    def info(self, path: Path) -> Dict[str, Any]:
        return SnapshotReader.get_snapshot_info(path)


class FolderSnapshotProvider(SnapshotProvider):
    """One folder per snapshot: category JSON files, assets.csv, manifest.json"""

    name = "folder"

    def __init__(self, hasher=None):
        self._hasher = hasher

    def create(self, host, scope, options, progress_callback=None) -> SnapshotResult:
        kwargs = {'hasher': self._hasher} if self._hasher else {}
        return SnapshotWriter(host, options, **kwargs).write(scope, progress_callback)

    def load(self, path, options, require_manifest=False) -> Snapshot:
        return SnapshotReader.load(
            path,
            categories=options.requested_categories(),
            require_manifest=require_manifest,
        )


class BundleSnapshotProvider(SnapshotProvider):
    """
    Single JSON file per snapshot.

    Simpler to hand around than a folder; carries no asset manifest.
    """

    name = "bundle"

    def create(self, host, scope, options, progress_callback=None) -> SnapshotResult:
        location = options.resolve_location()
        try:
            location.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalSnapshotError(f"Cannot create snapshot location: {location}", details=str(e))

        with SnapshotLock.for_target(target_identity(host, scope)):
            started = datetime.now()
            writer = SnapshotWriter(host, options)
            bundle_path = unique_path(location, writer.folder_name(started), suffix=".json")
            manifest = writer.build_manifest(scope, started, bundle_path)
            result = SnapshotResult(folder=bundle_path, manifest=manifest)
            payload: Dict[str, Any] = {}

            categories = [c for c in options.requested_categories() if c in SERIALIZERS]
            for index, category in enumerate(categories):
                if progress_callback:
                    progress_callback(f"Capturing {category}...", index / (len(categories) + 1))
                try:
                    capture = SERIALIZERS[category](host, options).capture(scope)
                except Exception as e:
                    logger.error(f"Failed to capture {category}: {e}")
                    result.failed_categories[category] = str(e)
                    continue
                payload[Config.CATEGORY_KEYS[category]] = [r.to_dict() for r in capture.records]
                manifest.categories_present.add(category)
                result.counts[category] = capture.count
                result.skipped_properties[category] = capture.skipped_properties
                result.messages.extend(capture.messages)

            payload['manifest'] = manifest.to_dict()
            try:
                write_text_atomic(bundle_path, json.dumps(payload, indent=2, ensure_ascii=False))
            except OSError as e:
                raise FatalSnapshotError(f"Cannot write bundle {bundle_path}", details=str(e))

        if progress_callback:
            progress_callback("Snapshot complete!", 1.0)
        logger.info(result.summary())
        return result

    def load(self, path, options, require_manifest=False) -> Snapshot:
        return SnapshotReader.load(path, categories=options.requested_categories())


@dataclass
class GuardedSwapResult:
    """Snapshot taken before a schema swap and the per-material transfers"""
    snapshot: SnapshotResult
    new_schema: str
    transfers: Dict[str, TransferResult] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def transferred(self) -> int:
        return sum(t.transferred for t in self.transfers.values())

    @property
    def failed(self) -> int:
        return sum(t.failed for t in self.transfers.values()) + len(self.errors)


class SnapshotService:
    """
    Snapshot/restore facade for one host.

    Usage:
        service = SnapshotService(host, event_bus=get_snapshot_event_bus())
        result = service.create_snapshot(Scope.subtree(avatar), SnapshotOptions(location=path))
        summary = service.restore(result.folder)
    """

    def __init__(
        self,
        host: CorpusHost,
        provider: Optional[SnapshotProvider] = None,
        event_bus: Optional['SnapshotEventBus'] = None,
        remapper: Optional[PropertyRemapper] = None,
    ):
        self._host = host
        self._provider = provider or FolderSnapshotProvider()
        self._event_bus = event_bus
        self._remapper = remapper or get_property_remapper()

    @property
    def provider(self) -> SnapshotProvider:
        return self._provider

    # ==================== SNAPSHOT ====================

    def create_snapshot(
        self,
        scope: Scope,
        options: Optional[SnapshotOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SnapshotResult:
        """
        Capture a scope with the configured provider.

        Raises:
            FatalSnapshotError: Nothing usable was written
        """
        options = options or SnapshotOptions()
        bus = self._event_bus

        def report(message: str, fraction: float):
            if progress_callback:
                progress_callback(message, fraction)
            if bus is not None:
                bus.emit_snapshot_progress(message, fraction)

        if bus is not None:
            bus.emit_snapshot_started(scope.kind.value, target_identity(self._host, scope))
        try:
            result = self._provider.create(self._host, scope, options, report)
        except SnapshotError as e:
            logger.error(f"Snapshot failed: {e}")
            if bus is not None:
                bus.emit_snapshot_failed(str(e))
            raise

        if bus is not None:
            bus.emit_snapshot_created(str(result.folder), result.counts)
        return result

    # ==================== RESTORE ====================

    def restore(
        self,
        path: Path,
        options: Optional[SnapshotOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
        require_manifest: bool = False,
    ) -> RestoreSummary:
        """
        Restore the categories selected by options from a snapshot.

        Raises:
            InvalidSnapshotError: Path is not a snapshot
            SnapshotLockedError: A backup or restore of the same target is running
            FatalSnapshotError: Manifest required but unreadable
        """
        path = Path(path)
        options = options or SnapshotOptions()
        bus = self._event_bus
        if bus is not None:
            bus.emit_restore_started(str(path))
        try:
            snapshot = self._provider.load(path, options, require_manifest=require_manifest)
            with SnapshotLock.for_target(restore_target(snapshot)):
                engine = RestoreEngine(self._host, self._remapper, options)
                summary = engine.restore(
                    snapshot,
                    progress_callback,
                    self._emit_restore_state if bus is not None else None,
                )
        except SnapshotError as e:
            logger.error(f"Restore failed: {e}")
            if bus is not None:
                bus.emit_restore_failed(str(e))
            raise

        summary.source = str(path)
        if bus is not None:
            bus.emit_restore_completed(str(path), summary.states())
        return summary

    def _emit_restore_state(self, category: str, state):
        self._event_bus.emit_restore_progress(category, state.value)

    # ==================== QUERIES ====================

    def list_snapshots(self, location: Optional[Path] = None) -> List[Path]:
        """Snapshots under a location (default location if none), newest first"""
        if location is None:
            location = SnapshotOptions().resolve_location()
        return self._provider.list(Path(location))

    def get_snapshot_info(self, path: Path) -> Dict[str, Any]:
        return self._provider.info(Path(path))

    # ==================== GUARDED SWAP ====================

    def guarded_schema_swap(
        self,
        scope: Scope,
        new_schema: str,
        options: Optional[SnapshotOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> GuardedSwapResult:
        """
        Snapshot a scope, then move every material in it to a new schema.

        Values are carried across through the remapper. The snapshot is
        written first; if it fails, nothing is swapped.

        Raises:
            PropertyError: Target schema unknown to the host
            FatalSnapshotError: Snapshot could not be written
        """
        if not self._host.has_schema(new_schema):
            raise PropertyError(f"Schema not available: {new_schema}")

        snapshot = self.create_snapshot(scope, options, progress_callback)
        result = GuardedSwapResult(snapshot=snapshot, new_schema=new_schema)

        for item in resolve_entities(self._host, EntityKind.MATERIAL, scope):
            key = item.identity or repr(item.handle)
            if self._host.get_schema_name(item.handle) == new_schema:
                continue
            try:
                result.transfers[key] = self._remapper.swap_schema(self._host, item.handle, new_schema)
            except Exception as e:
                logger.warning(f"Schema swap failed for {key}: {e}")
                result.errors.append(f"{key}: {e}")

        logger.info(
            f"Swapped {len(result.transfers)} materials to {new_schema}, "
            f"snapshot at {snapshot.folder}"
        )
        return result


__all__ = [
    'SnapshotProvider',
    'FolderSnapshotProvider',
    'BundleSnapshotProvider',
    'SnapshotService',
    'GuardedSwapResult',
    'restore_target',
]
