"""In-memory snapshot repository. Lives for the process lifetime only."""

from __future__ import annotations

import threading
from dataclasses import replace

from storage.models import SnapshotRow


class InMemorySnapshotRepo:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, SnapshotRow] = {}

    def save(self, row: SnapshotRow) -> None:
        with self._lock:
            self._rows[row.id] = replace(row)

    def close(self) -> None:
        return None

    def list_for_session(self, session_id: str) -> list[SnapshotRow]:
        with self._lock:
            rows = [replace(r) for r in self._rows.values() if r.session_id == session_id]
        return sorted(rows, key=lambda r: r.timestamp)

    def list_session_ids(self) -> list[str]:
        with self._lock:
            first_seen: dict[str, float] = {}
            for row in self._rows.values():
                ts = first_seen.get(row.session_id)
                if ts is None or row.timestamp < ts:
                    first_seen[row.session_id] = row.timestamp
        return sorted(first_seen, key=first_seen.__getitem__)

    def update_status(self, snapshot_ids: list[str], status: str) -> None:
        with self._lock:
            for snapshot_id in snapshot_ids:
                row = self._rows.get(snapshot_id)
                if row is not None:
                    row.status = status

    def delete_session(self, session_id: str) -> int:
        return self._delete_where(lambda r: r.session_id == session_id)

    def delete_all(self) -> int:
        return self._delete_where(lambda r: True)

    def delete_older_than(self, cutoff: float) -> int:
        return self._delete_where(lambda r: r.timestamp < cutoff)

    def _delete_where(self, predicate) -> int:
        with self._lock:
            doomed = [key for key, row in self._rows.items() if predicate(row)]
            for key in doomed:
                del self._rows[key]
        return len(doomed)
