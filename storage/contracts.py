"""Repository protocols implemented by every storage provider."""

from __future__ import annotations

from typing import Protocol

from storage.models import SnapshotRow


class SnapshotRepo(Protocol):
    def save(self, row: SnapshotRow) -> None: ...

    def list_for_session(self, session_id: str) -> list[SnapshotRow]: ...

    def list_session_ids(self) -> list[str]: ...

    def update_status(self, snapshot_ids: list[str], status: str) -> None: ...

    def delete_session(self, session_id: str) -> int: ...

    def delete_all(self) -> int: ...

    def delete_older_than(self, cutoff: float) -> int: ...

    def close(self) -> None: ...
