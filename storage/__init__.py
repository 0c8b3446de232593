from .container import StorageContainer
from .contracts import SnapshotRepo

__all__ = [
    "StorageContainer",
    "SnapshotRepo",
]
