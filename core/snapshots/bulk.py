"""Accept-all / reject-all over the pending snapshots of a session."""

from __future__ import annotations

import logging

from core.errors import SessionNotFoundError
from core.snapshots.restore import RestorationEngine
from core.snapshots.types import RestoreReport, RestoreTarget, Snapshot, SnapshotStatus

logger = logging.getLogger(__name__)


class BulkResolver:
    def __init__(self, engine: RestorationEngine) -> None:
        self.engine = engine
        self.store = engine.store

    def accept_all(self, session_id: str) -> list[Snapshot]:
        """Mark every pending snapshot accepted. Pure acknowledgment, no disk I/O."""
        with self.store.session_lock(session_id):
            self._require_session(session_id)
            pending = self.store.pending_for(session_id)
            accepted = self.store.set_status(session_id, [s.id for s in pending], SnapshotStatus.ACCEPTED)
        logger.info("Accepted %d pending snapshot(s) in session %s", len(accepted), session_id)
        return accepted

    def reject_all(self, session_id: str) -> RestoreReport:
        """Restore every pending snapshot to ``before`` in timestamp order."""
        with self.store.session_lock(session_id):
            self._require_session(session_id)
            pending = self.store.pending_for(session_id)
            return self.engine.apply(session_id, pending, RestoreTarget.BEFORE)

    def _require_session(self, session_id: str) -> None:
        if not self.store.has_session(session_id):
            raise SessionNotFoundError(session_id)
