"""Storage container with provider selection."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from .contracts import SnapshotRepo

StorageStrategy = Literal["sqlite", "memory"]


class StorageContainer:
    """Composition root for storage repos."""

    _SUPPORTED_STRATEGIES = {"sqlite", "memory"}

    def __init__(
        self,
        main_db_path: str | Path | None = None,
        strategy: StorageStrategy = "sqlite",
    ) -> None:
        if strategy not in self._SUPPORTED_STRATEGIES:
            raise ValueError(
                f"Unsupported storage strategy: {strategy}. "
                f"Supported strategies: {', '.join(sorted(self._SUPPORTED_STRATEGIES))}"
            )
        root = Path.home() / ".rewind"
        self._main_db = Path(main_db_path) if main_db_path else root / "rewind.db"
        self._strategy: StorageStrategy = strategy
        self._memory_repo: SnapshotRepo | None = None

    @property
    def strategy(self) -> StorageStrategy:
        return self._strategy

    @property
    def main_db_path(self) -> Path:
        return self._main_db

    def snapshot_repo(self) -> SnapshotRepo:
        if self._strategy == "memory":
            # @@@shared-memory-repo - every caller must see the same rows, so build once.
            if self._memory_repo is None:
                from storage.providers.memory.snapshot_repo import InMemorySnapshotRepo
                self._memory_repo = InMemorySnapshotRepo()
            return self._memory_repo
        from storage.providers.sqlite.snapshot_repo import SQLiteSnapshotRepo
        return SQLiteSnapshotRepo(db_path=self._main_db)

    def purge_session(self, session_id: str) -> int:
        """Delete all persisted snapshots for a session."""
        repo = self.snapshot_repo()
        try:
            return repo.delete_session(session_id)
        finally:
            repo.close()
