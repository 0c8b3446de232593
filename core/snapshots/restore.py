"""Restoration engine: move a message group's files to a before/after boundary.

Each file is restored independently. A failure on one file is recorded in the
report and marks that snapshot ``failed``; the rest of the batch still runs.
Only structurally invalid requests (unknown session/group) raise.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from core.errors import FileIOError
from core.filesystem.backend import FileSystemBackend
from core.snapshots.events import SnapshotEvent, SnapshotEventKind
from core.snapshots.store import SnapshotStore
from core.snapshots.types import (
    FileRestoreResult,
    RestoreReport,
    RestoreTarget,
    Snapshot,
    SnapshotOperation,
    SnapshotStatus,
)

logger = logging.getLogger(__name__)

# Statuses a snapshot may be in for each restore direction. Anything else is a
# reported skip: "after" on a never-reverted snapshot does not rewrite state.
_ELIGIBLE = {
    RestoreTarget.BEFORE: {SnapshotStatus.PENDING, SnapshotStatus.ACCEPTED, SnapshotStatus.FAILED},
    RestoreTarget.AFTER: {SnapshotStatus.REVERTED, SnapshotStatus.FAILED},
}

_STATUS_ON_SUCCESS = {
    RestoreTarget.BEFORE: SnapshotStatus.REVERTED,
    RestoreTarget.AFTER: SnapshotStatus.PENDING,
}


class RestorationEngine:
    def __init__(
        self,
        store: SnapshotStore,
        backend: FileSystemBackend,
        *,
        create_missing_dirs: bool = False,
    ) -> None:
        self.store = store
        self.backend = backend
        self.create_missing_dirs = create_missing_dirs

    def restore_to_state(
        self,
        session_id: str,
        message_id: str,
        target: RestoreTarget | str,
    ) -> RestoreReport:
        """Restore every file of one message group. Raises GroupNotFoundError."""
        target = RestoreTarget(target)
        with self.store.session_lock(session_id):
            group = self.store.group_for(session_id, message_id)
            return self.apply(session_id, group.snapshots, target, message_id=message_id)

    def accept_message(self, session_id: str, message_id: str) -> list[Snapshot]:
        """Acknowledge the pending snapshots of one message. No disk I/O."""
        with self.store.session_lock(session_id):
            group = self.store.group_for(session_id, message_id)
            return self.store.set_status(session_id, [s.id for s in group.pending], SnapshotStatus.ACCEPTED)

    def reject_message(self, session_id: str, message_id: str) -> RestoreReport:
        """Restore the pending snapshots of one message to ``before``."""
        with self.store.session_lock(session_id):
            group = self.store.group_for(session_id, message_id)
            return self.apply(session_id, group.pending, RestoreTarget.BEFORE, message_id=message_id)

    def apply(
        self,
        session_id: str,
        snapshots: Iterable[Snapshot],
        target: RestoreTarget,
        *,
        message_id: str | None = None,
    ) -> RestoreReport:
        """Restore ``snapshots`` toward ``target`` and update their statuses.

        Snapshots are applied in timestamp order, so a file touched several times
        ends on the target value of its last snapshot.
        """
        target = RestoreTarget(target)
        ordered = sorted(snapshots, key=lambda s: s.timestamp)

        with self.store.session_lock(session_id):
            report = RestoreReport(
                session_id=session_id,
                target=target,
                message_id=message_id,
                results=[self._restore_one(s, target) for s in ordered],
            )

            restored_ids = [r.snapshot_id for r in report.results if r.succeeded and not r.skipped]
            failed_ids = [r.snapshot_id for r in report.failed]
            self.store.set_status(session_id, restored_ids, _STATUS_ON_SUCCESS[target])
            self.store.set_status(session_id, failed_ids, SnapshotStatus.FAILED)
            stats = self.store.stats_for(session_id)

        logger.info(
            "Restore %s for session %s (message=%s): %s",
            target.value, session_id, message_id or "*", report.summary(),
        )
        self.store.events.emit(
            SnapshotEvent(SnapshotEventKind.RESTORED, session_id, stats, tuple(ordered), report=report)
        )
        return report

    def _restore_one(self, snapshot: Snapshot, target: RestoreTarget) -> FileRestoreResult:
        if snapshot.status not in _ELIGIBLE[target]:
            logger.debug(
                "Skipping %s restore of %s: status is %s",
                target.value, snapshot.file_path, snapshot.status.value,
            )
            return FileRestoreResult(snapshot.file_path, snapshot.id, succeeded=True, skipped=True)

        if target == RestoreTarget.BEFORE:
            should_exist = snapshot.operation != SnapshotOperation.CREATE
            content = snapshot.prev_state
        else:
            should_exist = snapshot.operation != SnapshotOperation.DELETE
            content = snapshot.next_state

        try:
            if should_exist:
                self._write(snapshot.file_path, content)
            else:
                self._remove(snapshot.file_path)
        except FileIOError as e:
            logger.warning("Failed to restore %s to %s: %s", snapshot.file_path, target.value, e.reason)
            return FileRestoreResult(snapshot.file_path, snapshot.id, succeeded=False, error=e.reason)
        return FileRestoreResult(snapshot.file_path, snapshot.id, succeeded=True)

    def _write(self, path: str, content: str) -> None:
        try:
            result = self.backend.write_file(path, content, create_parents=self.create_missing_dirs)
        except OSError as e:
            raise FileIOError(path, str(e)) from e
        if not result.success:
            raise FileIOError(path, result.error or "write failed")

    def _remove(self, path: str) -> None:
        # Target state is "absent"; a file that is already gone satisfies it.
        if not self.backend.file_exists(path):
            return
        try:
            result = self.backend.delete_file(path)
        except OSError as e:
            raise FileIOError(path, str(e)) from e
        if not result.success:
            raise FileIOError(path, result.error or "delete failed")
