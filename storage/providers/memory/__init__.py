"""In-process storage provider implementations."""

from .snapshot_repo import InMemorySnapshotRepo

__all__ = ["InMemorySnapshotRepo"]
