"""Tests for the approval gateway state machine."""

import asyncio

import pytest

from core.approval.executors import ToolContext, ToolResult
from core.approval.gateway import VALID_TRANSITIONS, ApprovalGateway, InvocationState
from core.approval.registry import ToolCategory, ToolSpec, build_default_registry
from core.errors import DuplicateInvocationError, UnknownInvocationError
from core.snapshots.types import SnapshotOperation


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "ws"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def gateway(workspace, recorder, backend):
    context = ToolContext(backend=backend, workspace_root=workspace)
    return ApprovalGateway(build_default_registry(), recorder, context)


def test_terminal_states_have_no_exits():
    for state in (InvocationState.COMPLETED, InvocationState.CANCELLED, InvocationState.FAILED):
        assert VALID_TRANSITIONS[state] == []


@pytest.mark.asyncio
async def test_safe_write_executes_immediately_and_records(gateway, workspace, store):
    inv = await gateway.propose("call-1", "write_file", {"file_path": "a.txt", "content": "hi"}, session_id="s1", message_id="m1")

    assert inv.state == InvocationState.COMPLETED
    assert (workspace / "a.txt").read_text() == "hi"
    (snap,) = store.pending_for("s1")
    assert snap.operation == SnapshotOperation.CREATE
    assert snap.prev_state == ""
    assert snap.next_state == "hi"
    assert inv.snapshots == [snap]


@pytest.mark.asyncio
async def test_read_produces_no_snapshot(gateway, workspace, store):
    (workspace / "a.txt").write_text("content")

    inv = await gateway.propose("call-1", "read_file", {"file_path": "a.txt"}, session_id="s1", message_id="m1")

    assert inv.state == InvocationState.COMPLETED
    assert inv.message == "content"
    assert store.snapshots_for("s1") == []


@pytest.mark.asyncio
async def test_delete_waits_for_approval(gateway, workspace, store):
    target = workspace / "doomed.txt"
    target.write_text("bye")

    inv = await gateway.propose("call-1", "delete_file", {"file_path": "doomed.txt"}, session_id="s1", message_id="m1")

    assert inv.state == InvocationState.AWAITING_APPROVAL
    assert target.exists()
    assert gateway.awaiting_approval() == [inv]

    await gateway.approve("call-1")

    assert inv.state == InvocationState.COMPLETED
    assert not target.exists()
    (snap,) = store.pending_for("s1")
    assert (snap.operation, snap.prev_state, snap.next_state) == (SnapshotOperation.DELETE, "bye", "")


@pytest.mark.asyncio
async def test_duplicate_approve_executes_once(workspace, recorder, backend, store):
    calls = []

    async def counting(ctx, args):
        calls.append(args)
        await asyncio.sleep(0.01)
        return ToolResult("done")

    registry = build_default_registry()
    registry.register(ToolSpec(
        name="guarded",
        display_name="Guarded",
        description="test tool",
        category=ToolCategory.PROJECT,
        executor=counting,
        requires_confirmation=True,
    ))
    gateway = ApprovalGateway(registry, recorder, ToolContext(backend=backend, workspace_root=workspace))
    await gateway.propose("call-1", "guarded", {}, session_id="s1", message_id="m1")

    await asyncio.gather(gateway.approve("call-1"), gateway.approve("call-1"))
    await gateway.approve("call-1")

    assert len(calls) == 1
    assert gateway.get("call-1").state == InvocationState.COMPLETED


@pytest.mark.asyncio
async def test_cancel_is_terminal_and_writes_nothing(gateway, workspace, store):
    (workspace / "keep.txt").write_text("safe")
    await gateway.propose("call-1", "delete_file", {"file_path": "keep.txt"}, session_id="s1", message_id="m1")

    inv = await gateway.cancel("call-1")
    await gateway.approve("call-1")

    assert inv.state == InvocationState.CANCELLED
    assert (workspace / "keep.txt").exists()
    assert store.snapshots_for("s1") == []


@pytest.mark.asyncio
async def test_cancel_after_completion_is_noop(gateway):
    await gateway.propose("call-1", "get_project_info", {}, session_id="s1", message_id="m1")

    inv = await gateway.cancel("call-1")

    assert inv.state == InvocationState.COMPLETED


@pytest.mark.asyncio
async def test_executor_error_fails_invocation(gateway, store):
    inv = await gateway.propose("call-1", "read_file", {"file_path": "missing.txt"}, session_id="s1", message_id="m1")

    assert inv.state == InvocationState.FAILED
    assert "File not found" in inv.error
    assert inv.message.startswith("Error:")
    assert store.snapshots_for("s1") == []


@pytest.mark.asyncio
async def test_unknown_and_disabled_tools_fail(gateway):
    unknown = await gateway.propose("call-1", "format_disk", {}, session_id="s1", message_id="m1")
    gateway.registry.set_enabled("run_command", False)
    disabled = await gateway.propose("call-2", "run_command", {"command": "echo hi"}, session_id="s1", message_id="m1")

    assert unknown.state == InvocationState.FAILED
    assert "Unknown tool" in unknown.error
    assert disabled.state == InvocationState.FAILED
    assert "disabled" in disabled.error


@pytest.mark.asyncio
async def test_wait_timeout_synthesizes_cancel(gateway, workspace):
    (workspace / "x.txt").write_text("x")
    await gateway.propose("call-1", "delete_file", {"file_path": "x.txt"}, session_id="s1", message_id="m1")

    inv = await gateway.wait("call-1", timeout=0.01)

    assert inv.state == InvocationState.CANCELLED
    assert "timed out" in inv.message
    assert (workspace / "x.txt").exists()


@pytest.mark.asyncio
async def test_wait_returns_after_external_approve(gateway, workspace):
    (workspace / "x.txt").write_text("x")
    await gateway.propose("call-1", "delete_file", {"file_path": "x.txt"}, session_id="s1", message_id="m1")

    waiter = asyncio.create_task(gateway.wait("call-1", timeout=5))
    await asyncio.sleep(0)
    await gateway.approve("call-1")
    inv = await waiter

    assert inv.state == InvocationState.COMPLETED


@pytest.mark.asyncio
async def test_duplicate_invocation_id_rejected(gateway):
    await gateway.propose("call-1", "get_project_info", {}, session_id="s1", message_id="m1")

    with pytest.raises(DuplicateInvocationError):
        await gateway.propose("call-1", "get_project_info", {}, session_id="s1", message_id="m1")


@pytest.mark.asyncio
async def test_unknown_invocation_id(gateway):
    with pytest.raises(UnknownInvocationError):
        await gateway.approve("nope")
    with pytest.raises(UnknownInvocationError):
        await gateway.wait("nope")


@pytest.mark.asyncio
async def test_snapshot_order_follows_execution_order(gateway, workspace, store):
    (workspace / "first.txt").write_text("1")
    await gateway.propose("call-1", "delete_file", {"file_path": "first.txt"}, session_id="s1", message_id="m1")
    await gateway.propose("call-2", "write_file", {"file_path": "second.txt", "content": "2"}, session_id="s1", message_id="m1")
    await gateway.approve("call-1")

    paths = [s.file_path for s in store.pending_for("s1")]
    assert paths == [str(workspace / "second.txt"), str(workspace / "first.txt")]


@pytest.mark.asyncio
async def test_state_change_callbacks(gateway):
    seen = []
    unsubscribe = gateway.on_state_changed(lambda inv, old, new: seen.append((old, new)))

    await gateway.propose("call-1", "get_project_info", {}, session_id="s1", message_id="m1")
    unsubscribe()
    await gateway.propose("call-2", "get_project_info", {}, session_id="s1", message_id="m1")

    assert seen == [
        (InvocationState.PROPOSED, InvocationState.EXECUTING),
        (InvocationState.EXECUTING, InvocationState.COMPLETED),
    ]


@pytest.mark.asyncio
async def test_run_combines_propose_and_wait(gateway, workspace):
    inv = await gateway.run("call-1", "write_file", {"file_path": "r.txt", "content": "x"}, session_id="s1", message_id="m1")

    assert inv.is_terminal
    assert (workspace / "r.txt").read_text() == "x"


@pytest.mark.asyncio
async def test_write_without_session_fails_before_touching_disk(gateway, workspace, store):
    inv = await gateway.run("call-1", "write_file", {"file_path": "f.txt", "content": "x"})

    assert inv.state == InvocationState.FAILED
    assert "No active session/message" in inv.message
    assert not (workspace / "f.txt").exists()
    assert store.sessions() == []


@pytest.mark.asyncio
async def test_missing_message_id_fails_even_when_confirmation_needed(gateway, workspace):
    target = workspace / "keep.txt"
    target.write_text("keep")

    inv = await gateway.propose("call-1", "delete_file", {"file_path": "keep.txt"}, session_id="s1")

    assert inv.state == InvocationState.FAILED
    assert gateway.awaiting_approval() == []
    assert target.read_text() == "keep"
