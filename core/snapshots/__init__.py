"""Snapshot timeline: recording, storage, restoration and bulk resolution."""

from core.snapshots.bulk import BulkResolver
from core.snapshots.events import SnapshotEvent, SnapshotEventBus, SnapshotEventKind
from core.snapshots.recorder import FileMutation, MutationRecorder, current_message_id, current_session_id
from core.snapshots.restore import RestorationEngine
from core.snapshots.store import ChatSnapshotCollection, SnapshotStore
from core.snapshots.types import (
    FileRestoreResult,
    RestoreReport,
    RestoreTarget,
    Snapshot,
    SnapshotInput,
    SnapshotOperation,
    SnapshotStats,
    SnapshotStatus,
    TimelineGroup,
)

__all__ = [
    "BulkResolver",
    "ChatSnapshotCollection",
    "FileMutation",
    "FileRestoreResult",
    "MutationRecorder",
    "RestorationEngine",
    "RestoreReport",
    "RestoreTarget",
    "Snapshot",
    "SnapshotEvent",
    "SnapshotEventBus",
    "SnapshotEventKind",
    "SnapshotInput",
    "SnapshotOperation",
    "SnapshotStats",
    "SnapshotStatus",
    "SnapshotStore",
    "TimelineGroup",
    "current_message_id",
    "current_session_id",
]
