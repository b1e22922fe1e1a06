"""
RestoreEngine - Selectively apply a loaded snapshot to a live corpus

Pattern: One restore routine per category, each isolated from the others.

Per category the state moves PENDING -> IN_PROGRESS -> DONE or
PARTIALLY_FAILED. A category whose file could not be read is FAILED; a
category the engine cannot apply is UNSUPPORTED. Every record is attempted
even after failures. Entities are found by identity and never created:
a record whose entity is gone is skipped with a warning.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..config import SnapshotOptions
from ..core.host import (
    CorpusHost,
    EntityKind,
    NODE_ACTIVE,
    NODE_POSITION,
    NODE_ROTATION,
    NODE_SCALE,
)
from ..core.records import (
    BehaviorRecord,
    MaterialRecord,
    NodeRecord,
    Snapshot,
    TextureSettingsRecord,
)
from ..core.remapper import PropertyRemapper, TransferResult, get_property_remapper
from ..utils.decorators import timed_info

logger = logging.getLogger(__name__)

# Category name -> Snapshot attribute, in restore order
RESTORABLE_CATEGORIES = {
    'materials': 'materials',
    'behaviors': 'behaviors',
    'textures': 'textures',
    'hierarchy': 'nodes',
}

TOPOLOGY = 'topology'


class CategoryState(enum.Enum):
    """Lifecycle of one category during a restore"""
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    DONE = "Done"
    PARTIALLY_FAILED = "PartiallyFailed"
    UNSUPPORTED = "Unsupported"
    FAILED = "Failed"


@dataclass
class CategoryResult:
    """
    Tallies for one category.

    restored / skipped count records, transferred / failed count property
    writes (failed also counts records that could not be applied at all).
    """
    category: str
    state: CategoryState = CategoryState.PENDING
    restored: int = 0
    skipped: int = 0
    failed: int = 0
    transferred: int = 0
    properties_skipped: int = 0
    messages: List[str] = field(default_factory=list)

    def add_transfer(self, transfer: TransferResult):
        self.transferred += transfer.transferred
        self.failed += transfer.failed
        self.properties_skipped += transfer.skipped
        self.messages.extend(transfer.failed_properties)

    def skip(self, message: str):
        self.skipped += 1
        self.messages.append(message)
        logger.warning(message)

    def finish(self):
        if self.state is CategoryState.IN_PROGRESS:
            self.state = CategoryState.PARTIALLY_FAILED if self.failed else CategoryState.DONE


@dataclass
class RestoreSummary:
    """Outcome of a restore run, keyed by category"""
    source: str = ""
    categories: Dict[str, CategoryResult] = field(default_factory=dict)

    def __getitem__(self, category: str) -> CategoryResult:
        return self.categories[category]

    def __contains__(self, category: str) -> bool:
        return category in self.categories

    @property
    def success(self) -> bool:
        return not any(
            r.state in (CategoryState.FAILED, CategoryState.PARTIALLY_FAILED)
            for r in self.categories.values()
        )

    def states(self) -> Dict[str, str]:
        return {name: r.state.value for name, r in self.categories.items()}


ProgressCallback = Callable[[str, float], None]
StateCallback = Callable[[str, CategoryState], None]


class RestoreEngine:
    """
    Applies snapshot records to a host.

    Usage:
        engine = RestoreEngine(host, options=SnapshotOptions(behaviors=False))
        summary = engine.restore(SnapshotReader.load(folder))
        summary['materials'].state
    """

    def __init__(
        self,
        host: CorpusHost,
        remapper: Optional[PropertyRemapper] = None,
        options: Optional[SnapshotOptions] = None,
    ):
        self._host = host
        self._remapper = remapper or get_property_remapper()
        self._options = options or SnapshotOptions()

    @timed_info
    def restore(
        self,
        snapshot: Snapshot,
        progress_callback: Optional[ProgressCallback] = None,
        state_callback: Optional[StateCallback] = None,
    ) -> RestoreSummary:
        """
        Restore the selected categories of a snapshot.

        Args:
            snapshot: Loaded snapshot
            progress_callback: Optional callback(message, fraction)
            state_callback: Optional callback(category, state) on every change

        Returns:
            RestoreSummary
        """
        summary = RestoreSummary(
            source=snapshot.manifest.location if snapshot.manifest else ""
        )
        requested = [
            c for c in self._options.requested_categories() if c in RESTORABLE_CATEGORIES
        ]
        present = [
            c for c in requested
            if getattr(snapshot, RESTORABLE_CATEGORIES[c]) is not None
            or c in snapshot.failed_categories
        ]

        for category in present:
            summary.categories[category] = CategoryResult(category)

        def set_state(result: CategoryResult, state: CategoryState):
            result.state = state
            if state_callback:
                state_callback(result.category, state)

        total = max(len(present), 1)
        for index, category in enumerate(present):
            result = summary.categories[category]
            if progress_callback:
                progress_callback(f"Restoring {category}...", index / total)

            if category in snapshot.failed_categories:
                result.messages.append(snapshot.failed_categories[category])
                set_state(result, CategoryState.FAILED)
                continue

            set_state(result, CategoryState.IN_PROGRESS)
            records = getattr(snapshot, RESTORABLE_CATEGORIES[category])
            self._restore_records(category, records, result, snapshot)
            result.finish()
            set_state(result, result.state)
            logger.info(
                f"Restored {category}: {result.state.value} "
                f"({result.restored} restored, {result.skipped} skipped, "
                f"{result.failed} failed, {result.transferred} properties)"
            )

        if 'hierarchy' in summary.categories and summary['hierarchy'].state is not CategoryState.FAILED:
            topology = CategoryResult(TOPOLOGY, state=CategoryState.UNSUPPORTED)
            topology.messages.append("Nodes are never re-created or re-parented")
            summary.categories[TOPOLOGY] = topology
            if state_callback:
                state_callback(TOPOLOGY, topology.state)

        if progress_callback:
            progress_callback("Restore complete!", 1.0)
        return summary

    def _restore_records(self, category: str, records: List, result: CategoryResult, snapshot: Snapshot):
        """Apply every record of a category; one failing record never stops the rest"""
        if category == 'behaviors' and records and not any(r.properties for r in records):
            result.state = CategoryState.UNSUPPORTED
            result.messages.append("Snapshot carries no behavior property data")
            return

        restore_one = getattr(self, f"_restore_{category}")
        for record in records:
            try:
                restore_one(record, result, snapshot)
            except Exception as e:
                # Host lookups may raise anything; count it and move on
                result.failed += 1
                message = f"{category}: {_record_label(record)} failed: {e}"
                result.messages.append(message)
                logger.warning(message)

    def _set_properties(self, handle, values: Dict[str, object], label: str, result: CategoryResult):
        for name, value in values.items():
            try:
                self._host.set_property(handle, name, value)
            except Exception as e:
                result.failed += 1
                result.messages.append(f"{label}.{name}: {e}")
                continue
            result.transferred += 1

    # ==================== MATERIALS ====================

    def _restore_materials(self, record: MaterialRecord, result: CategoryResult, snapshot: Snapshot):
        if not record.is_restorable:
            result.skip(f"Material without asset path ({record.shader_name}) is capture-only")
            return

        handle = self._host.resolve_by_identity(EntityKind.MATERIAL, record.asset_path)
        if handle is None:
            result.skip(f"Material not found: {record.asset_path}")
            return

        current = self._host.get_schema_name(handle)
        if record.shader_name and current != record.shader_name and self._host.has_schema(record.shader_name):
            try:
                self._host.set_schema(handle, record.shader_name)
            except Exception as e:
                result.failed += 1
                result.messages.append(f"{record.asset_path}: cannot restore shader ({e})")

        include_properties = snapshot.manifest.include_material_properties if snapshot.manifest else True
        if include_properties and record.properties:
            live_schema = self._host.get_schema_name(handle)
            remap = live_schema != record.shader_name
            if remap:
                logger.debug(f"{record.asset_path}: remapping {record.shader_name} -> {live_schema}")
            result.add_transfer(
                self._remapper.transfer_entries(self._host, handle, record.properties, remap=remap)
            )
        result.restored += 1

    # ==================== BEHAVIORS ====================

    def _restore_behaviors(self, record: BehaviorRecord, result: CategoryResult, snapshot: Snapshot):
        owner = self._host.find_node(record.owner_path) if record.owner_path else None
        if owner is None:
            result.skip(f"Owner node not found: {record.owner_path}")
            return

        behavior = next(
            (b for b in self._host.attached(owner, EntityKind.BEHAVIOR)
             if self._host.get_schema_name(b) == record.behavior_type_name),
            None,
        )
        if behavior is None:
            result.skip(f"{record.behavior_type_name} not found on {record.owner_path}")
            return

        result.add_transfer(
            self._remapper.transfer_entries(self._host, behavior, record.properties, remap=False)
        )
        result.restored += 1

    # ==================== TEXTURES ====================

    def _restore_textures(self, record: TextureSettingsRecord, result: CategoryResult, snapshot: Snapshot):
        handle = self._host.resolve_by_identity(EntityKind.TEXTURE, record.asset_path)
        if handle is None:
            result.skip(f"Texture not found: {record.asset_path}")
            return

        self._set_properties(handle, record.settings(), record.asset_path, result)
        result.restored += 1

    # ==================== HIERARCHY ====================

    def _restore_hierarchy(self, record: NodeRecord, result: CategoryResult, snapshot: Snapshot):
        node = self._host.find_node(record.path)
        if node is None:
            result.skip(f"Node not found, not re-created: {record.path}")
            return

        values = {
            NODE_POSITION: tuple(record.local_position),
            NODE_ROTATION: tuple(record.local_rotation),
            NODE_SCALE: tuple(record.local_scale),
            NODE_ACTIVE: record.is_active,
        }
        self._set_properties(node, values, record.path, result)
        result.restored += 1


def _record_label(record) -> str:
    for attr in ('asset_path', 'path', 'owner_path'):
        value = getattr(record, attr, None)
        if value:
            return value
    return type(record).__name__


__all__ = [
    'RestoreEngine',
    'RestoreSummary',
    'CategoryResult',
    'CategoryState',
    'TOPOLOGY',
]
