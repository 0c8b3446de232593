"""Local filesystem backend - direct local I/O."""

from __future__ import annotations

import os
from pathlib import Path

from core.filesystem.backend import (
    DirEntry,
    DirListResult,
    FileReadResult,
    FileSystemBackend,
    FileWriteResult,
)


class LocalBackend(FileSystemBackend):
    """Backend that operates directly on the local filesystem."""

    def read_file(self, path: str) -> FileReadResult:
        p = Path(path)
        # newline="" keeps \r\n intact so restores are byte-faithful
        with open(p, encoding="utf-8", newline="") as f:
            content = f.read()
        return FileReadResult(content=content, size=p.stat().st_size)

    def write_file(self, path: str, content: str, create_parents: bool = True) -> FileWriteResult:
        try:
            p = Path(path)
            if create_parents:
                p.parent.mkdir(parents=True, exist_ok=True)
            with open(p, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            return FileWriteResult(success=True)
        except OSError as e:
            return FileWriteResult(success=False, error=str(e))

    def delete_file(self, path: str) -> FileWriteResult:
        try:
            Path(path).unlink()
            return FileWriteResult(success=True)
        except OSError as e:
            return FileWriteResult(success=False, error=str(e))

    def create_directory(self, path: str) -> FileWriteResult:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
            return FileWriteResult(success=True)
        except OSError as e:
            return FileWriteResult(success=False, error=str(e))

    def file_exists(self, path: str) -> bool:
        return Path(path).exists()

    def file_mtime(self, path: str) -> float | None:
        try:
            return Path(path).stat().st_mtime
        except OSError:
            return None

    def file_size(self, path: str) -> int | None:
        try:
            return Path(path).stat().st_size
        except OSError:
            return None

    def is_dir(self, path: str) -> bool:
        return Path(path).is_dir()

    def list_dir(self, path: str) -> DirListResult:
        p = Path(path)
        try:
            entries = []
            for item in sorted(p.iterdir()):
                if item.is_file():
                    entries.append(DirEntry(
                        name=item.name,
                        is_dir=False,
                        size=item.stat().st_size,
                    ))
                elif item.is_dir():
                    count = sum(1 for _ in item.iterdir())
                    entries.append(DirEntry(
                        name=item.name,
                        is_dir=True,
                        children_count=count,
                    ))
            return DirListResult(entries=entries)
        except OSError as e:
            return DirListResult(error=str(e))
