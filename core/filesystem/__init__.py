"""File system primitives used by tool executors and restoration."""

from core.filesystem.backend import FileSystemBackend
from core.filesystem.local_backend import LocalBackend

__all__ = ["FileSystemBackend", "LocalBackend"]
