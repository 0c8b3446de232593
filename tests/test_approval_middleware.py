"""Tests for ApprovalMiddleware (LangChain adapter)."""

from types import SimpleNamespace

import pytest
from langchain_core.messages import ToolMessage

from core.approval.executors import ToolContext
from core.approval.gateway import ApprovalGateway
from core.approval.middleware import ApprovalMiddleware
from core.approval.registry import build_default_registry
from core.snapshots.recorder import current_message_id, current_session_id


class FakeModelRequest:
    def __init__(self, tools=None):
        self.tools = tools

    def override(self, **changes):
        return FakeModelRequest(changes.get("tools", self.tools))


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "ws"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def middleware(workspace, recorder, backend):
    gateway = ApprovalGateway(build_default_registry(), recorder, ToolContext(backend=backend, workspace_root=workspace))
    return ApprovalMiddleware(gateway, timeout_seconds=0.05)


def _enter_turn(session="s1", message="m1"):
    # each asyncio test runs in its own task context, so no reset is needed
    current_session_id.set(session)
    current_message_id.set(message)


def _request(name, args, call_id="call-1"):
    return SimpleNamespace(tool_call={"name": name, "args": args, "id": call_id})


@pytest.mark.asyncio
async def test_registered_tool_routed_through_gateway(middleware, workspace, store):
    _enter_turn()

    async def handler(request):
        raise AssertionError("should not reach the next handler")

    result = await middleware.awrap_tool_call(_request("write_file", {"file_path": "a.txt", "content": "hi"}), handler)

    assert isinstance(result, ToolMessage)
    assert result.tool_call_id == "call-1"
    assert "Created" in result.content
    assert (workspace / "a.txt").read_text() == "hi"
    assert [s.message_id for s in store.pending_for("s1")] == ["m1"]


@pytest.mark.asyncio
async def test_unregistered_tool_passes_through(middleware):
    _enter_turn()

    async def handler(request):
        return "from next handler"

    assert await middleware.awrap_tool_call(_request("web_search", {"q": "x"}), handler) == "from next handler"


@pytest.mark.asyncio
async def test_unapproved_tool_returns_error_message(middleware, workspace):
    _enter_turn()
    (workspace / "a.txt").write_text("keep")

    async def handler(request):
        raise AssertionError("unreachable")

    result = await middleware.awrap_tool_call(_request("delete_file", {"file_path": "a.txt"}), handler)

    assert result.status == "error"
    assert "not approved" in result.content
    assert (workspace / "a.txt").exists()


@pytest.mark.asyncio
async def test_failed_tool_returns_error_message(middleware):
    _enter_turn()

    async def handler(request):
        raise AssertionError("unreachable")

    result = await middleware.awrap_tool_call(_request("read_file", {"file_path": "missing.txt"}), handler)

    assert result.status == "error"
    assert result.content.startswith("Error:")


@pytest.mark.asyncio
async def test_model_call_gets_tool_schemas(middleware):
    captured = {}

    async def handler(request):
        captured["tools"] = request.tools
        return "response"

    assert await middleware.awrap_model_call(FakeModelRequest(tools=[{"existing": True}]), handler) == "response"
    names = [t["function"]["name"] for t in captured["tools"][1:]]
    assert captured["tools"][0] == {"existing": True}
    assert "write_file" in names and "delete_file" in names


def test_sync_model_call_gets_tool_schemas(middleware):
    request = FakeModelRequest()
    result = middleware.wrap_model_call(request, lambda r: r.tools)
    assert len(result) == len(middleware.gateway.registry)


@pytest.mark.asyncio
async def test_tool_call_outside_a_turn_is_an_error_without_io(middleware, workspace, store):
    async def handler(request):
        raise AssertionError("unreachable")

    result = await middleware.awrap_tool_call(_request("write_file", {"file_path": "a.txt", "content": "hi"}), handler)

    assert result.status == "error"
    assert "No active session/message" in result.content
    assert not (workspace / "a.txt").exists()
    assert store.sessions() == []
