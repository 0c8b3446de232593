"""Snapshot data model.

A Snapshot is one file's before/after content for one tool-driven mutation.
Every field except ``status`` is fixed at creation; status changes produce a
new Snapshot via ``with_status``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum

from core.errors import InvalidSnapshotError


class SnapshotOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SnapshotStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVERTED = "reverted"
    FAILED = "failed"


class RestoreTarget(str, Enum):
    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class SnapshotInput:
    """Before/after pair for one file, as produced by a tool executor."""

    file_path: str
    operation: SnapshotOperation
    prev_state: str
    next_state: str


@dataclass(frozen=True)
class Snapshot:
    id: str
    session_id: str
    message_id: str
    file_path: str
    operation: SnapshotOperation
    prev_state: str
    next_state: str
    timestamp: float
    status: SnapshotStatus = SnapshotStatus.PENDING

    def with_status(self, status: SnapshotStatus) -> Snapshot:
        return replace(self, status=SnapshotStatus(status))

    @property
    def is_pending(self) -> bool:
        return self.status == SnapshotStatus.PENDING


@dataclass(frozen=True)
class TimelineGroup:
    """All snapshots produced by one authoring message, in timestamp order."""

    message_id: str
    snapshots: tuple[Snapshot, ...]
    timestamp: float

    @property
    def file_paths(self) -> list[str]:
        seen: dict[str, None] = {}
        for snap in self.snapshots:
            seen.setdefault(snap.file_path, None)
        return list(seen)

    @property
    def pending(self) -> list[Snapshot]:
        return [s for s in self.snapshots if s.is_pending]


@dataclass(frozen=True)
class SnapshotStats:
    total: int = 0
    pending: int = 0
    accepted: int = 0
    reverted: int = 0
    failed: int = 0
    pending_messages: int = 0

    def badge(self) -> str:
        changes = "change" if self.pending == 1 else "changes"
        messages = "message" if self.pending_messages == 1 else "messages"
        return f"{self.pending} pending {changes} across {self.pending_messages} {messages}"


@dataclass
class FileRestoreResult:
    file_path: str
    snapshot_id: str
    succeeded: bool
    error: str | None = None
    skipped: bool = False


@dataclass
class RestoreReport:
    """Per-file outcome of a restore, reject or bulk reject."""

    session_id: str
    target: RestoreTarget
    message_id: str | None = None
    results: list[FileRestoreResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[FileRestoreResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def failed(self) -> list[FileRestoreResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        total = len(self.results)
        done = len(self.succeeded)
        if total == 0:
            return "No files to restore"
        if done == total:
            return f"{done} of {total} files restored"
        failures = "; ".join(
            f"{os.path.basename(r.file_path)} failed: {r.error}" for r in self.failed
        )
        return f"{done} of {total} files restored; {failures}"


def validate_snapshot_input(snapshot_input: SnapshotInput) -> SnapshotInput:
    """Check the create/delete invariants and normalize the operation enum."""
    try:
        operation = SnapshotOperation(snapshot_input.operation)
    except ValueError as e:
        raise InvalidSnapshotError(f"Unknown operation: {snapshot_input.operation!r}") from e

    if not snapshot_input.file_path or not os.path.isabs(snapshot_input.file_path):
        raise InvalidSnapshotError(f"file_path must be absolute: {snapshot_input.file_path!r}")
    if not isinstance(snapshot_input.prev_state, str) or not isinstance(snapshot_input.next_state, str):
        raise InvalidSnapshotError("prev_state and next_state must be strings")
    if operation == SnapshotOperation.CREATE and snapshot_input.prev_state != "":
        raise InvalidSnapshotError(f"create snapshot for {snapshot_input.file_path} must have empty prev_state")
    if operation == SnapshotOperation.DELETE and snapshot_input.next_state != "":
        raise InvalidSnapshotError(f"delete snapshot for {snapshot_input.file_path} must have empty next_state")

    if operation is snapshot_input.operation:
        return snapshot_input
    return replace(snapshot_input, operation=operation)
