"""
SnapshotWriter - Write a scoped snapshot folder

Handles:
- Timestamped folder creation (label_YYYY-MM-DD_HH-MM-SS, _1 on collision)
- One JSON file per requested category, written via temp file + rename
- assets.csv after the category files, manifest.json last
- Per-category failure isolation (a failed category is left out of the
  manifest, the others are still written)
- Progress reporting and the advisory lock on the target identity
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import Config, SnapshotOptions
from ..core.exceptions import CategoryIOError, FatalSnapshotError
from ..core.host import CorpusHost
from ..core.records import Manifest
from ..core.scope import Scope, ScopeKind
from ..core.serializers import SERIALIZERS, CategoryCapture
from ..utils.decorators import timed_info
from ..utils.locking import SnapshotLock
from ..utils.path_utils import sanitize_label, unique_path, write_text_atomic
from .asset_manifest import Hasher, md5_hex, write_asset_manifest

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


@dataclass
class SnapshotResult:
    """Outcome of one snapshot run"""
    folder: Path
    manifest: Manifest
    counts: Dict[str, int] = field(default_factory=dict)
    skipped_properties: Dict[str, int] = field(default_factory=dict)
    failed_categories: Dict[str, str] = field(default_factory=dict)
    messages: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when every requested category was written"""
        return not self.failed_categories

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped_properties.values())

    def summary(self) -> str:
        parts = [f"{count} {category}" for category, count in self.counts.items()]
        return f"Snapshot created at: {self.folder} ({', '.join(parts) or 'empty'})"


def target_identity(host: CorpusHost, scope: Scope) -> str:
    if scope.kind is ScopeKind.ENTIRE_CORPUS:
        return Config.ALL_ASSETS_TARGET
    return host.node_path(scope.root)


class SnapshotWriter:
    """
    Writes snapshot folders for one host.

    Usage:
        writer = SnapshotWriter(host, SnapshotOptions(location=path, label='pre-swap'))
        result = writer.write(Scope.subtree(avatar), progress_callback=print)
    """

    def __init__(
        self,
        host: CorpusHost,
        options: Optional[SnapshotOptions] = None,
        hasher: Hasher = md5_hex,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._host = host
        self._options = options or SnapshotOptions()
        self._hasher = hasher
        self._clock = clock

    @property
    def options(self) -> SnapshotOptions:
        return self._options

    def folder_name(self, when: datetime) -> str:
        timestamp = when.strftime(Config.TIMESTAMP_FORMAT)
        label = sanitize_label(self._options.label)
        return f"{label}_{timestamp}" if label else timestamp

    @timed_info
    def write(self, scope: Scope, progress_callback: Optional[ProgressCallback] = None) -> SnapshotResult:
        """
        Capture the scope and write a snapshot folder.

        Args:
            scope: What to capture
            progress_callback: Optional callback(message, fraction)

        Returns:
            SnapshotResult

        Raises:
            FatalSnapshotError: Location or folder cannot be created, or the
                manifest cannot be written
            SnapshotLockedError: A backup or restore of the same target is running
        """
        location = self._options.resolve_location()
        try:
            location.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalSnapshotError(f"Cannot create snapshot location: {location}", details=str(e))

        with SnapshotLock.for_target(target_identity(self._host, scope)):
            return self._write_locked(location, scope, progress_callback)

    def _write_locked(
        self,
        location: Path,
        scope: Scope,
        progress_callback: Optional[ProgressCallback],
    ) -> SnapshotResult:
        def report(message: str, fraction: float):
            if progress_callback:
                progress_callback(message, min(1.0, fraction))

        started = self._clock()
        folder = self.create_folder(location, started)
        manifest = self.build_manifest(scope, started, folder)
        result = SnapshotResult(folder=folder, manifest=manifest)

        categories = self._options.requested_categories()
        # One step per category plus the manifest
        total_steps = len(categories) + 1
        report("Starting snapshot...", 0.0)

        for index, category in enumerate(categories):
            report(f"Capturing {category}...", index / total_steps)
            try:
                count = self._write_category(folder, category, scope, result)
            except Exception as e:
                error = e if isinstance(e, CategoryIOError) else CategoryIOError(
                    f"Failed to write {category}", category=category, details=str(e)
                )
                logger.error(f"{error}")
                result.failed_categories[category] = str(error)
                result.messages.append(str(error))
                continue

            manifest.categories_present.add(category)
            result.counts[category] = count
            report(f"Saved {count} {category}", (index + 1) / total_steps)

        report("Writing manifest...", len(categories) / total_steps)
        try:
            write_text_atomic(folder / Config.MANIFEST_FILE, _to_json(manifest.to_dict()))
        except OSError as e:
            raise FatalSnapshotError(f"Cannot write manifest in {folder}", details=str(e))

        report("Snapshot complete!", 1.0)
        logger.info(result.summary())
        return result

    def create_folder(self, location: Path, started: datetime) -> Path:
        """
        Create the timestamped snapshot folder (_1, _2 ... on collision).

        Raises:
            FatalSnapshotError: Folder cannot be created
        """
        while True:
            folder = unique_path(location, self.folder_name(started))
            try:
                folder.mkdir(parents=True)
                return folder
            except FileExistsError:
                # Taken by a concurrent run between the check and mkdir
                continue
            except OSError as e:
                raise FatalSnapshotError(f"Cannot create snapshot folder: {folder}", details=str(e))

    def build_manifest(self, scope: Scope, started: datetime, location: Path) -> Manifest:
        """Manifest for a run started at `started`, stored at `location`"""
        return Manifest(
            format_version=Config.FORMAT_VERSION,
            timestamp=started.isoformat(timespec='seconds'),
            scope_kind=scope.kind.value,
            target_identity=target_identity(self._host, scope),
            host_environment_info=self._host.environment_info(),
            label=self._options.label,
            location=str(location),
            include_material_properties=self._options.include_material_properties,
            include_behavior_data=self._options.include_behavior_data,
            created_by=Config.APP_NAME,
            notes=self._options.notes,
        )

    def _write_category(self, folder: Path, category: str, scope: Scope, result: SnapshotResult) -> int:
        path = folder / Config.category_file(category)

        if category == 'assets':
            return write_asset_manifest(self._host, scope, path, self._hasher)

        capture: CategoryCapture = SERIALIZERS[category](self._host, self._options).capture(scope)
        payload = {Config.CATEGORY_KEYS[category]: [r.to_dict() for r in capture.records]}
        write_text_atomic(path, _to_json(payload))

        result.skipped_properties[category] = capture.skipped_properties
        result.messages.extend(capture.messages)
        if capture.skipped_properties:
            logger.debug(f"{category}: {capture.skipped_properties} properties skipped")
        return capture.count


def _to_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


__all__ = ['SnapshotWriter', 'SnapshotResult', 'ProgressCallback', 'target_identity']
