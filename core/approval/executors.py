"""
Tool executors.

Every executor is ``async (ToolContext, args) -> ToolResult``. File mutations
are reported as FileMutation tuples; the gateway forwards them to the
recorder. Executors raise ToolExecutionError on failure.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from core.errors import ToolExecutionError
from core.filesystem.backend import FileSystemBackend
from core.snapshots.recorder import FileMutation
from core.snapshots.types import SnapshotOperation

logger = logging.getLogger(__name__)

# Applied in this order; "\\\\" last so an escaped backslash is not re-read.
_ESCAPE_SEQUENCES = (
    ("\\n", "\n"),
    ("\\t", "\t"),
    ("\\r", "\r"),
    ('\\"', '"'),
    ("\\'", "'"),
    ("\\\\", "\\"),
)

_SKIP_DIRS = {".git", "node_modules", "__pycache__", ".venv", ".rewind"}


@dataclass
class ToolContext:
    """Everything an executor may touch."""

    backend: FileSystemBackend
    workspace_root: Path
    unescape_sequences: bool = True
    max_file_size: int = 10 * 1024 * 1024
    command_timeout: float = 120.0
    max_output_chars: int = 50_000
    max_search_results: int = 100

    def resolve(self, path: str) -> Path:
        """Resolve ``path`` against the workspace root and confine it there."""
        if not path:
            raise ToolExecutionError("Path is required")
        root = self.workspace_root.resolve()
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = root / candidate
        resolved = candidate.resolve()
        try:
            resolved.relative_to(root)
        except ValueError:
            raise ToolExecutionError(f"Path outside workspace: {path} (workspace: {root})") from None
        return resolved


@dataclass
class ToolResult:
    message: str
    mutations: list[FileMutation] = field(default_factory=list)


def unescape_content(content: str) -> str:
    for escaped, actual in _ESCAPE_SEQUENCES:
        content = content.replace(escaped, actual)
    return content


async def read_file(ctx: ToolContext, args: dict[str, Any]) -> ToolResult:
    path = ctx.resolve(args.get("file_path", ""))
    if ctx.backend.is_dir(str(path)):
        raise ToolExecutionError(f"Not a file: {path}")
    if not ctx.backend.file_exists(str(path)):
        raise ToolExecutionError(f"File not found: {path}")
    try:
        return ToolResult(ctx.backend.read_file(str(path)).content)
    except (OSError, UnicodeDecodeError) as e:
        raise ToolExecutionError(f"Failed to read file: {e}") from e


def _write_capturing(backend: FileSystemBackend, path: str, content: str) -> tuple[str | None, str]:
    try:
        prev_state = backend.read_text_or_none(path)
    except (OSError, UnicodeDecodeError) as e:
        raise ToolExecutionError(f"Failed to read current content of {path}: {e}") from e

    result = backend.write_file(path, content)
    if not result.success:
        raise ToolExecutionError(f"Failed to write file: {result.error}")

    # next_state is what the write path actually produced, not what was requested
    try:
        next_state = backend.read_file(path).content
    except (OSError, UnicodeDecodeError) as e:
        raise ToolExecutionError(f"Wrote {path} but could not read it back: {e}") from e
    return prev_state, next_state


def _delete_capturing(backend: FileSystemBackend, path: str) -> str:
    try:
        prev_state = backend.read_file(path).content
    except (OSError, UnicodeDecodeError) as e:
        raise ToolExecutionError(f"Failed to read {path} before delete: {e}") from e

    result = backend.delete_file(path)
    if not result.success:
        raise ToolExecutionError(f"Failed to delete file: {result.error}")
    return prev_state


async def write_file(ctx: ToolContext, args: dict[str, Any]) -> ToolResult:
    """Write a file, capturing the content on disk before and after."""
    path = str(ctx.resolve(args.get("file_path", "")))
    content = args.get("content", "")
    if not isinstance(content, str):
        raise ToolExecutionError("content must be a string")
    if ctx.backend.is_dir(path):
        raise ToolExecutionError(f"Cannot write to a directory: {path}")
    if ctx.unescape_sequences:
        content = unescape_content(content)
    if len(content.encode("utf-8")) > ctx.max_file_size:
        raise ToolExecutionError(f"Content exceeds max file size ({ctx.max_file_size} bytes)")

    prev_state, next_state = await asyncio.to_thread(_write_capturing, ctx.backend, path, content)

    operation = SnapshotOperation.CREATE if prev_state is None else SnapshotOperation.UPDATE
    verb = "Created" if operation == SnapshotOperation.CREATE else "Updated"
    mutation = FileMutation(path, operation, prev_state or "", next_state)
    return ToolResult(f"{verb} {path} ({len(next_state)} chars)", [mutation])


async def delete_file(ctx: ToolContext, args: dict[str, Any]) -> ToolResult:
    path = str(ctx.resolve(args.get("file_path", "")))
    if ctx.backend.is_dir(path):
        raise ToolExecutionError(f"Not a file: {path}")
    if not ctx.backend.file_exists(path):
        raise ToolExecutionError(f"File not found: {path}")
    prev_state = await asyncio.to_thread(_delete_capturing, ctx.backend, path)
    return ToolResult(f"Deleted {path}", [FileMutation(path, SnapshotOperation.DELETE, prev_state, "")])


async def list_directory(ctx: ToolContext, args: dict[str, Any]) -> ToolResult:
    path = ctx.resolve(args.get("dir_path") or str(ctx.workspace_root))
    if not ctx.backend.is_dir(str(path)):
        raise ToolExecutionError(f"Not a directory: {path}")
    listing = ctx.backend.list_dir(str(path))
    if listing.error:
        raise ToolExecutionError(f"Failed to list directory: {listing.error}")
    if not listing.entries:
        return ToolResult(f"{path}: empty directory")

    items = []
    for entry in listing.entries:
        if entry.is_dir:
            count = f" ({entry.children_count} items)" if entry.children_count is not None else ""
            items.append(f"\t{entry.name}/{count}")
        else:
            items.append(f"\t{entry.name} ({entry.size} bytes)")
    return ToolResult(f"{path}/\n" + "\n".join(items))


async def create_directory(ctx: ToolContext, args: dict[str, Any]) -> ToolResult:
    path = ctx.resolve(args.get("dir_path", ""))
    result = ctx.backend.create_directory(str(path))
    if not result.success:
        raise ToolExecutionError(f"Failed to create directory: {result.error}")
    return ToolResult(f"Created directory {path}")


def _walk_files(root: Path):
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
        for name in sorted(filenames):
            yield Path(dirpath) / name


async def search_files(ctx: ToolContext, args: dict[str, Any]) -> ToolResult:
    """Case-insensitive substring match on file names and contents."""
    query = args.get("query", "")
    if not query:
        raise ToolExecutionError("query is required")
    root = ctx.resolve(args.get("directory") or str(ctx.workspace_root))
    if not root.is_dir():
        raise ToolExecutionError(f"Not a directory: {root}")

    needle = query.lower()
    matches: list[dict[str, Any]] = []
    for file in _walk_files(root):
        if len(matches) >= ctx.max_search_results:
            break
        rel = str(file.relative_to(root))
        if needle in file.name.lower():
            matches.append({"path": rel, "match": "name"})
            continue
        try:
            if file.stat().st_size > ctx.max_file_size:
                continue
            text = file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        for lineno, line in enumerate(text.splitlines(), start=1):
            if needle in line.lower():
                matches.append({"path": rel, "match": "content", "line": lineno, "text": line.strip()[:200]})
                break

    return ToolResult(json.dumps({"query": query, "directory": str(root), "results": matches}, indent=2))


async def get_project_info(ctx: ToolContext, args: dict[str, Any]) -> ToolResult:
    root = ctx.workspace_root.resolve()
    info: dict[str, Any] = {"name": root.name, "path": str(root), "isOpen": True}
    if args.get("include_stats"):
        file_count = 0
        total_size = 0
        for file in _walk_files(root):
            try:
                total_size += file.stat().st_size
            except OSError:
                continue
            file_count += 1
        info["stats"] = {"files": file_count, "total_bytes": total_size}
    return ToolResult(json.dumps(info, indent=2))


async def run_command(ctx: ToolContext, args: dict[str, Any]) -> ToolResult:
    command = args.get("command", "")
    if not command:
        raise ToolExecutionError("command is required")
    timeout = float(args.get("timeout") or ctx.command_timeout)

    proc = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(ctx.workspace_root),
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise ToolExecutionError(f"Command timed out after {timeout}s: {command}") from None

    output = stdout.decode("utf-8", errors="replace")
    errors = stderr.decode("utf-8", errors="replace")
    if errors:
        output = f"{output}\n[stderr]\n{errors}" if output else f"[stderr]\n{errors}"
    if len(output) > ctx.max_output_chars:
        output = output[: ctx.max_output_chars] + f"\n... (truncated, {len(output)} chars total)"
    logger.info("Command exited with %s: %s", proc.returncode, command)
    return ToolResult(f"Exit code: {proc.returncode}\n{output}".rstrip())
