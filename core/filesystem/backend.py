"""FileSystem backend abstraction.

Separates raw I/O primitives (read/write/delete keyed by absolute path) from
policy (workspace confinement, approval, snapshot recording).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class FileReadResult:
    """Raw file content from backend."""

    content: str
    size: int = 0


@dataclass
class FileWriteResult:
    """Result of a write, delete or mkdir operation."""

    success: bool
    error: str | None = None


@dataclass
class DirEntry:
    """Single directory entry."""

    name: str
    is_dir: bool
    size: int = 0
    children_count: int | None = None  # only for directories


@dataclass
class DirListResult:
    """Result of listing a directory."""

    entries: list[DirEntry] = field(default_factory=list)
    error: str | None = None


class FileSystemBackend(ABC):
    """Abstract backend for filesystem I/O.

    Implementations:
    - LocalBackend: direct local filesystem access
    """

    @abstractmethod
    def read_file(self, path: str) -> FileReadResult:
        """Read raw file content.

        Args:
            path: Absolute file path

        Returns:
            FileReadResult with content string

        Raises:
            OSError: If file cannot be read
        """
        ...

    @abstractmethod
    def write_file(self, path: str, content: str, create_parents: bool = True) -> FileWriteResult:
        """Write content to file.

        Parent directories are created only when ``create_parents`` is set; a
        missing parent is otherwise a failure. The write must be flushed to
        durable storage before success is reported.
        """
        ...

    @abstractmethod
    def delete_file(self, path: str) -> FileWriteResult:
        """Delete a file. Deleting a missing file is a failure."""
        ...

    @abstractmethod
    def create_directory(self, path: str) -> FileWriteResult:
        """Create a directory (and parents). Existing directories are fine."""
        ...

    @abstractmethod
    def file_exists(self, path: str) -> bool:
        """Check if file exists."""
        ...

    @abstractmethod
    def file_mtime(self, path: str) -> float | None:
        """Get file modification time, or None if not available."""
        ...

    @abstractmethod
    def file_size(self, path: str) -> int | None:
        """Get file size in bytes, or None if not available."""
        ...

    @abstractmethod
    def is_dir(self, path: str) -> bool:
        """Check if path is a directory."""
        ...

    @abstractmethod
    def list_dir(self, path: str) -> DirListResult:
        """List directory contents."""
        ...

    def read_text_or_none(self, path: str) -> str | None:
        """Return file content, or None when the file is absent."""
        if not self.file_exists(path) or self.is_dir(path):
            return None
        return self.read_file(path).content
