"""SQLite storage provider implementations."""

from .snapshot_repo import SQLiteSnapshotRepo

__all__ = ["SQLiteSnapshotRepo"]
