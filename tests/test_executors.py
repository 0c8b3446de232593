"""Tests for tool executors."""

import json
import sys
import threading

import pytest

from core.approval import executors
from core.approval.executors import ToolContext, unescape_content
from core.errors import ToolExecutionError
from core.filesystem.backend import FileReadResult
from core.filesystem.local_backend import LocalBackend
from core.snapshots.types import SnapshotOperation


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "ws"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def ctx(workspace):
    return ToolContext(backend=LocalBackend(), workspace_root=workspace)


class TrailingNewlineBackend(LocalBackend):
    """Write path that appends a newline, like an editor on save."""

    def write_file(self, path, content, create_parents=True):
        if not content.endswith("\n"):
            content += "\n"
        return super().write_file(path, content, create_parents=create_parents)


class ThreadRecordingBackend(LocalBackend):
    """Local backend that remembers which threads performed mutations."""

    def __init__(self):
        self.threads = []

    def write_file(self, path, content, create_parents=True):
        self.threads.append(threading.get_ident())
        return super().write_file(path, content, create_parents=create_parents)

    def delete_file(self, path):
        self.threads.append(threading.get_ident())
        return super().delete_file(path)


def test_unescape_content():
    assert unescape_content(r"a\nb\tc") == "a\nb\tc"
    assert unescape_content(r"say \"hi\" and \'bye\'") == "say \"hi\" and 'bye'"
    assert unescape_content(r"back\\slash") == "back\\slash"


class TestWriteFile:
    @pytest.mark.asyncio
    async def test_create_then_update(self, ctx, workspace):
        created = await executors.write_file(ctx, {"file_path": "a.txt", "content": "one"})
        updated = await executors.write_file(ctx, {"file_path": "a.txt", "content": "two"})

        (c,) = created.mutations
        (u,) = updated.mutations
        assert (c.operation, c.prev_state, c.next_state) == (SnapshotOperation.CREATE, "", "one")
        assert (u.operation, u.prev_state, u.next_state) == (SnapshotOperation.UPDATE, "one", "two")
        assert c.file_path == str(workspace / "a.txt")

    @pytest.mark.asyncio
    async def test_next_state_is_content_actually_written(self, workspace):
        ctx = ToolContext(backend=TrailingNewlineBackend(), workspace_root=workspace)

        result = await executors.write_file(ctx, {"file_path": "a.txt", "content": "body"})

        assert result.mutations[0].next_state == "body\n"

    @pytest.mark.asyncio
    async def test_escape_sequences_are_normalized(self, ctx, workspace):
        await executors.write_file(ctx, {"file_path": "a.txt", "content": r"line1\nline2"})
        assert (workspace / "a.txt").read_text() == "line1\nline2"

    @pytest.mark.asyncio
    async def test_unescape_can_be_disabled(self, workspace):
        ctx = ToolContext(backend=LocalBackend(), workspace_root=workspace, unescape_sequences=False)
        await executors.write_file(ctx, {"file_path": "a.txt", "content": r"keep\n"})
        assert (workspace / "a.txt").read_text() == "keep\\n"

    @pytest.mark.asyncio
    async def test_creates_parent_directories(self, ctx, workspace):
        await executors.write_file(ctx, {"file_path": "nested/dir/a.txt", "content": "x"})
        assert (workspace / "nested" / "dir" / "a.txt").read_text() == "x"

    @pytest.mark.asyncio
    async def test_path_escape_rejected(self, ctx, tmp_path):
        with pytest.raises(ToolExecutionError, match="outside workspace"):
            await executors.write_file(ctx, {"file_path": "../escape.txt", "content": "x"})
        with pytest.raises(ToolExecutionError, match="outside workspace"):
            await executors.write_file(ctx, {"file_path": str(tmp_path / "abs.txt"), "content": "x"})
        assert not (tmp_path / "escape.txt").exists()

    @pytest.mark.asyncio
    async def test_max_file_size(self, workspace):
        ctx = ToolContext(backend=LocalBackend(), workspace_root=workspace, max_file_size=4)
        with pytest.raises(ToolExecutionError, match="max file size"):
            await executors.write_file(ctx, {"file_path": "a.txt", "content": "too long"})

    @pytest.mark.asyncio
    async def test_read_back_failure_is_an_error(self, workspace):
        class NoReadBack(LocalBackend):
            def read_file(self, path) -> FileReadResult:
                raise OSError("disk vanished")

        ctx = ToolContext(backend=NoReadBack(), workspace_root=workspace)
        with pytest.raises(ToolExecutionError, match="could not read it back"):
            await executors.write_file(ctx, {"file_path": "a.txt", "content": "x"})


class TestDeleteFile:
    @pytest.mark.asyncio
    async def test_delete_records_previous_content(self, ctx, workspace):
        (workspace / "a.txt").write_text("old")

        result = await executors.delete_file(ctx, {"file_path": "a.txt"})

        (m,) = result.mutations
        assert (m.operation, m.prev_state, m.next_state) == (SnapshotOperation.DELETE, "old", "")
        assert not (workspace / "a.txt").exists()

    @pytest.mark.asyncio
    async def test_delete_missing_file_fails(self, ctx):
        with pytest.raises(ToolExecutionError, match="File not found"):
            await executors.delete_file(ctx, {"file_path": "ghost.txt"})

    @pytest.mark.asyncio
    async def test_mutations_run_off_the_event_loop_thread(self, workspace):
        backend = ThreadRecordingBackend()
        ctx = ToolContext(backend=backend, workspace_root=workspace)

        await executors.write_file(ctx, {"file_path": "a.txt", "content": "x"})
        await executors.delete_file(ctx, {"file_path": "a.txt"})

        assert len(backend.threads) == 2
        assert threading.get_ident() not in backend.threads
        assert not (workspace / "a.txt").exists()


class TestReadOnlyTools:
    @pytest.mark.asyncio
    async def test_list_directory(self, ctx, workspace):
        (workspace / "a.txt").write_text("abc")
        (workspace / "sub").mkdir()

        result = await executors.list_directory(ctx, {})

        assert "a.txt (3 bytes)" in result.message
        assert "sub/ (0 items)" in result.message
        assert result.mutations == []

    @pytest.mark.asyncio
    async def test_create_directory(self, ctx, workspace):
        result = await executors.create_directory(ctx, {"dir_path": "x/y"})
        assert (workspace / "x" / "y").is_dir()
        assert result.mutations == []

    @pytest.mark.asyncio
    async def test_search_files_by_name_and_content(self, ctx, workspace):
        (workspace / "needle.py").write_text("nothing")
        (workspace / "other.txt").write_text("line\nhas a Needle here\n")
        (workspace / "plain.txt").write_text("no match")

        result = await executors.search_files(ctx, {"query": "needle"})
        found = {r["path"]: r for r in json.loads(result.message)["results"]}

        assert found["needle.py"]["match"] == "name"
        assert found["other.txt"]["match"] == "content"
        assert found["other.txt"]["line"] == 2
        assert "plain.txt" not in found

    @pytest.mark.asyncio
    async def test_search_respects_max_results(self, workspace):
        for i in range(5):
            (workspace / f"hit{i}.txt").write_text("x")
        ctx = ToolContext(backend=LocalBackend(), workspace_root=workspace, max_search_results=2)

        result = await executors.search_files(ctx, {"query": "hit"})

        assert len(json.loads(result.message)["results"]) == 2

    @pytest.mark.asyncio
    async def test_project_info_with_stats(self, ctx, workspace):
        (workspace / "a.txt").write_text("1234")

        info = json.loads((await executors.get_project_info(ctx, {"include_stats": True})).message)

        assert info["name"] == "ws"
        assert info["stats"] == {"files": 1, "total_bytes": 4}


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell")
class TestRunCommand:
    @pytest.mark.asyncio
    async def test_runs_in_workspace(self, ctx, workspace):
        result = await executors.run_command(ctx, {"command": "pwd"})
        assert result.message.startswith("Exit code: 0")
        assert str(workspace) in result.message

    @pytest.mark.asyncio
    async def test_timeout(self, ctx):
        with pytest.raises(ToolExecutionError, match="timed out"):
            await executors.run_command(ctx, {"command": "sleep 5", "timeout": 0.1})

    @pytest.mark.asyncio
    async def test_output_truncated(self, workspace):
        ctx = ToolContext(backend=LocalBackend(), workspace_root=workspace, max_output_chars=10)
        result = await executors.run_command(ctx, {"command": "printf '%050d' 0"})
        assert "truncated" in result.message
