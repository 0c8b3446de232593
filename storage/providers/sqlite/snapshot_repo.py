"""SQLite repository for file_snapshots persistence."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from storage.models import SnapshotRow


class SQLiteSnapshotRepo:
    """Repository boundary for file_snapshots table.

    prev_state/next_state are NOT NULL and stored verbatim, so the empty
    strings of create/delete snapshots survive a reload unchanged.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        if db_path is None:
            db_path = Path.home() / ".rewind" / "rewind.db"
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_table()

    def save(self, row: SnapshotRow) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO file_snapshots
                (id, session_id, message_id, timestamp, operation,
                 file_path, prev_state, next_state, status)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    row.id,
                    row.session_id,
                    row.message_id,
                    row.timestamp,
                    row.operation,
                    row.file_path,
                    row.prev_state,
                    row.next_state,
                    row.status,
                ),
            )
            conn.commit()

    def close(self) -> None:
        """Compatibility no-op for protocol parity."""
        return None

    def list_for_session(self, session_id: str) -> list[SnapshotRow]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """
                SELECT * FROM file_snapshots
                WHERE session_id = ?
                ORDER BY timestamp ASC
                """,
                (session_id,),
            )
            rows = cursor.fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    def list_session_ids(self) -> list[str]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                """
                SELECT session_id, MIN(timestamp) AS first_ts FROM file_snapshots
                GROUP BY session_id
                ORDER BY first_ts ASC
                """
            )
            return [row[0] for row in cursor.fetchall()]

    def update_status(self, snapshot_ids: list[str], status: str) -> None:
        if not snapshot_ids:
            return
        placeholders = ",".join("?" * len(snapshot_ids))
        with sqlite3.connect(self.db_path) as conn:
            # @@@param_sql - snapshot ids come from runtime state; keep IN-clause parameterized.
            conn.execute(
                f"""
                UPDATE file_snapshots
                SET status = ?
                WHERE id IN ({placeholders})
                """,
                [status, *snapshot_ids],
            )
            conn.commit()

    def delete_session(self, session_id: str) -> int:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM file_snapshots WHERE session_id = ?",
                (session_id,),
            )
            conn.commit()
            return int(cursor.rowcount)

    def delete_all(self) -> int:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM file_snapshots")
            conn.commit()
            return int(cursor.rowcount)

    def delete_older_than(self, cutoff: float) -> int:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM file_snapshots WHERE timestamp < ?",
                (cutoff,),
            )
            conn.commit()
            return int(cursor.rowcount)

    def _ensure_table(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS file_snapshots (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    message_id TEXT NOT NULL,
                    timestamp REAL NOT NULL,
                    operation TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    prev_state TEXT NOT NULL,
                    next_state TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending'
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_file_snapshots_session
                ON file_snapshots(session_id, timestamp)
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_file_snapshots_message
                ON file_snapshots(session_id, message_id)
                """
            )
            conn.commit()

    def _row_to_snapshot(self, row: sqlite3.Row) -> SnapshotRow:
        return SnapshotRow(
            id=row["id"],
            session_id=row["session_id"],
            message_id=row["message_id"],
            timestamp=row["timestamp"],
            operation=row["operation"],
            file_path=row["file_path"],
            prev_state=row["prev_state"],
            next_state=row["next_state"],
            status=row["status"],
        )
