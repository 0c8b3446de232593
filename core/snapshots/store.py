"""Snapshot store and timeline.

Append-only, session-partitioned home for all snapshots. Each session's
snapshots live in a ChatSnapshotCollection that is loaded lazily from the
repository, written through on every mutation, and serialized by its own
re-entrant lock. Different sessions never contend.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable, Iterable

from core.errors import GroupNotFoundError
from core.snapshots.events import SnapshotEvent, SnapshotEventBus, SnapshotEventKind
from core.snapshots.types import (
    Snapshot,
    SnapshotInput,
    SnapshotOperation,
    SnapshotStats,
    SnapshotStatus,
    TimelineGroup,
    validate_snapshot_input,
)
from storage.contracts import SnapshotRepo
from storage.models import SnapshotRow

logger = logging.getLogger(__name__)

# Minimum spacing between consecutive timestamps handed out by one store.
_TIMESTAMP_EPSILON = 1e-6


class ChatSnapshotCollection:
    """Ordered snapshots of one session plus a memoized grouping by message."""

    def __init__(self, session_id: str, snapshots: Iterable[Snapshot] = ()) -> None:
        self.session_id = session_id
        self._snapshots: list[Snapshot] = sorted(snapshots, key=lambda s: s.timestamp)
        self._timeline: list[TimelineGroup] | None = None

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def snapshots(self) -> tuple[Snapshot, ...]:
        return tuple(self._snapshots)

    def append(self, snapshot: Snapshot) -> None:
        self._snapshots.append(snapshot)
        self._timeline = None

    def replace(self, updated: dict[str, Snapshot]) -> None:
        if not updated:
            return
        self._snapshots = [updated.get(s.id, s) for s in self._snapshots]
        self._timeline = None

    def remove_older_than(self, cutoff: float) -> int:
        kept = [s for s in self._snapshots if s.timestamp >= cutoff]
        removed = len(self._snapshots) - len(kept)
        if removed:
            self._snapshots = kept
            self._timeline = None
        return removed

    def timeline(self) -> list[TimelineGroup]:
        if self._timeline is None:
            self._timeline = self._build_timeline()
        return list(self._timeline)

    def group(self, message_id: str) -> TimelineGroup | None:
        for group in self.timeline():
            if group.message_id == message_id:
                return group
        return None

    def stats(self) -> SnapshotStats:
        counts = {status: 0 for status in SnapshotStatus}
        pending_messages: set[str] = set()
        for snap in self._snapshots:
            counts[snap.status] += 1
            if snap.is_pending:
                pending_messages.add(snap.message_id)
        return SnapshotStats(
            total=len(self._snapshots),
            pending=counts[SnapshotStatus.PENDING],
            accepted=counts[SnapshotStatus.ACCEPTED],
            reverted=counts[SnapshotStatus.REVERTED],
            failed=counts[SnapshotStatus.FAILED],
            pending_messages=len(pending_messages),
        )

    def _build_timeline(self) -> list[TimelineGroup]:
        grouped: dict[str, list[Snapshot]] = {}
        for snap in self._snapshots:
            grouped.setdefault(snap.message_id, []).append(snap)
        groups = []
        for message_id, snaps in grouped.items():
            snaps.sort(key=lambda s: s.timestamp)
            groups.append(TimelineGroup(message_id=message_id, snapshots=tuple(snaps), timestamp=snaps[0].timestamp))
        groups.sort(key=lambda g: g.timestamp)
        return groups


class SnapshotStore:
    """Process-scoped snapshot service. Pass the handle explicitly; there is no global instance."""

    def __init__(
        self,
        repo: SnapshotRepo,
        events: SnapshotEventBus | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repo
        self.events = events or SnapshotEventBus()
        self._clock = clock
        self._guard = threading.Lock()
        self._session_locks: dict[str, threading.RLock] = {}
        self._collections: dict[str, ChatSnapshotCollection] = {}
        self._last_timestamp = 0.0

    # ── Locking ──

    def session_lock(self, session_id: str) -> threading.RLock:
        """Re-entrant lock serializing every mutation of one session."""
        with self._guard:
            lock = self._session_locks.get(session_id)
            if lock is None:
                # @@@reentrant-session-lock - restore holds it while calling set_status.
                lock = threading.RLock()
                self._session_locks[session_id] = lock
            return lock

    # ── Writes ──

    def record(self, session_id: str, message_id: str, snapshot_input: SnapshotInput) -> Snapshot:
        """Construct and append a pending snapshot. Raises InvalidSnapshotError."""
        validated = validate_snapshot_input(snapshot_input)
        with self.session_lock(session_id):
            collection = self._collection(session_id, create=True)
            snapshot = Snapshot(
                id=str(uuid.uuid4()),
                session_id=session_id,
                message_id=message_id,
                file_path=validated.file_path,
                operation=validated.operation,
                prev_state=validated.prev_state,
                next_state=validated.next_state,
                timestamp=self._next_timestamp(),
            )
            self._repo.save(_to_row(snapshot))
            collection.append(snapshot)
            stats = collection.stats()

        logger.info(
            "Recorded %s snapshot %s for %s (session=%s, message=%s)",
            snapshot.operation.value, snapshot.id, snapshot.file_path, session_id, message_id,
        )
        self.events.emit(SnapshotEvent(SnapshotEventKind.RECORDED, session_id, stats, (snapshot,)))
        return snapshot

    def set_status(self, session_id: str, snapshot_ids: Iterable[str], status: SnapshotStatus) -> list[Snapshot]:
        """Move the given snapshots to ``status``. Unknown ids are ignored; unchanged ones are not rewritten."""
        status = SnapshotStatus(status)
        wanted = set(snapshot_ids)
        with self.session_lock(session_id):
            collection = self._collection(session_id)
            if collection is None or not wanted:
                return []
            updated = {
                s.id: s.with_status(status)
                for s in collection.snapshots
                if s.id in wanted and s.status != status
            }
            if not updated:
                return []
            self._repo.update_status(list(updated), status.value)
            collection.replace(updated)
            stats = collection.stats()
            changed = [s for s in collection.snapshots if s.id in updated]

        logger.info("Marked %d snapshot(s) %s in session %s", len(changed), status.value, session_id)
        self.events.emit(SnapshotEvent(SnapshotEventKind.STATUS_CHANGED, session_id, stats, tuple(changed)))
        return changed

    def clear_session(self, session_id: str) -> int:
        """Discard the whole collection of a session. Returns the number of snapshots removed."""
        with self.session_lock(session_id):
            removed = self._repo.delete_session(session_id)
            with self._guard:
                self._collections.pop(session_id, None)
        logger.info("Cleared %d snapshot(s) for session %s", removed, session_id)
        self.events.emit(SnapshotEvent(SnapshotEventKind.CLEARED, session_id, SnapshotStats()))
        return removed

    def clear_all(self) -> int:
        session_ids = set(self.sessions())
        with self._guard:
            session_ids.update(self._collections)
        removed = 0
        for session_id in session_ids:
            removed += self.clear_session(session_id)
        removed += self._repo.delete_all()
        return removed

    def prune_older_than(self, max_age_seconds: float) -> int:
        """Drop snapshots older than ``max_age_seconds`` in every session."""
        cutoff = self._clock() - max_age_seconds
        with self._guard:
            cached = list(self._collections.items())
        for session_id, collection in cached:
            with self.session_lock(session_id):
                collection.remove_older_than(cutoff)
                if not len(collection):
                    with self._guard:
                        self._collections.pop(session_id, None)
        removed = self._repo.delete_older_than(cutoff)
        if removed:
            logger.info("Pruned %d snapshot(s) older than %.0fs", removed, max_age_seconds)
        return removed

    def close(self) -> None:
        self._repo.close()

    # ── Reads ──

    def has_session(self, session_id: str) -> bool:
        with self.session_lock(session_id):
            return self._collection(session_id) is not None

    def sessions(self) -> list[str]:
        return self._repo.list_session_ids()

    def snapshots_for(self, session_id: str) -> list[Snapshot]:
        with self.session_lock(session_id):
            collection = self._collection(session_id)
            return list(collection.snapshots) if collection else []

    def pending_for(self, session_id: str) -> list[Snapshot]:
        """All pending snapshots across all messages, in timestamp order."""
        return [s for s in self.snapshots_for(session_id) if s.is_pending]

    def pending_for_message(self, session_id: str, message_id: str) -> list[Snapshot]:
        return [s for s in self.snapshots_for(session_id) if s.is_pending and s.message_id == message_id]

    def timeline_for(self, session_id: str) -> list[TimelineGroup]:
        """Groups by message, ordered by each group's earliest timestamp."""
        with self.session_lock(session_id):
            collection = self._collection(session_id)
            return collection.timeline() if collection else []

    def group_for(self, session_id: str, message_id: str) -> TimelineGroup:
        with self.session_lock(session_id):
            collection = self._collection(session_id)
            group = collection.group(message_id) if collection else None
        if group is None:
            raise GroupNotFoundError(session_id, message_id)
        return group

    def stats_for(self, session_id: str) -> SnapshotStats:
        with self.session_lock(session_id):
            collection = self._collection(session_id)
            return collection.stats() if collection else SnapshotStats()

    # ── Internals ──

    def _collection(self, session_id: str, create: bool = False) -> ChatSnapshotCollection | None:
        """Return the cached collection, loading it from the repo on first use. Caller holds the session lock."""
        with self._guard:
            collection = self._collections.get(session_id)
        if collection is not None:
            return collection

        rows = self._repo.list_for_session(session_id)
        if not rows and not create:
            return None
        collection = ChatSnapshotCollection(session_id, (_from_row(r) for r in rows))
        with self._guard:
            self._collections[session_id] = collection
            if rows:
                self._last_timestamp = max(self._last_timestamp, rows[-1].timestamp)
        return collection

    def _next_timestamp(self) -> float:
        with self._guard:
            ts = max(self._clock(), self._last_timestamp + _TIMESTAMP_EPSILON)
            self._last_timestamp = ts
            return ts


def _to_row(snapshot: Snapshot) -> SnapshotRow:
    return SnapshotRow(
        id=snapshot.id,
        session_id=snapshot.session_id,
        message_id=snapshot.message_id,
        timestamp=snapshot.timestamp,
        operation=snapshot.operation.value,
        file_path=snapshot.file_path,
        prev_state=snapshot.prev_state,
        next_state=snapshot.next_state,
        status=snapshot.status.value,
    )


def _from_row(row: SnapshotRow) -> Snapshot:
    return Snapshot(
        id=row.id,
        session_id=row.session_id,
        message_id=row.message_id,
        file_path=row.file_path,
        operation=SnapshotOperation(row.operation),
        prev_state=row.prev_state,
        next_state=row.next_state,
        timestamp=row.timestamp,
        status=SnapshotStatus(row.status),
    )
