"""
Approval Middleware - routes agent tool calls through the approval gateway.

Registered tools are proposed to the gateway under the tool call id and the
middleware waits for a terminal state; tools the registry does not know pass
through to the next handler. Session and message ids come from the
recorder's context variables.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from langchain.agents.middleware.types import (
    AgentMiddleware,
    ModelRequest,
    ModelResponse,
    ToolCallRequest,
)
from langchain_core.messages import ToolMessage

from core.approval.gateway import ApprovalGateway, Invocation, InvocationState


class ApprovalMiddleware(AgentMiddleware):
    def __init__(self, gateway: ApprovalGateway, *, timeout_seconds: float | None = None):
        super().__init__()
        self.gateway = gateway
        self.timeout_seconds = timeout_seconds

    def wrap_model_call(
        self,
        request: ModelRequest,
        handler: Callable[[ModelRequest], ModelResponse],
    ) -> ModelResponse:
        """注入工具定义"""
        tools = list(request.tools or [])
        tools.extend(self.gateway.registry.tool_schemas())
        return handler(request.override(tools=tools))

    async def awrap_model_call(
        self,
        request: ModelRequest,
        handler: Callable[[ModelRequest], Awaitable[ModelResponse]],
    ) -> ModelResponse:
        """异步：注入工具定义"""
        tools = list(request.tools or [])
        tools.extend(self.gateway.registry.tool_schemas())
        return await handler(request.override(tools=tools))

    async def awrap_tool_call(
        self,
        request: ToolCallRequest,
        handler: Callable[[ToolCallRequest], Awaitable[Any]],
    ) -> Any:
        """异步：拦截已注册工具，经审批后执行"""
        tool_call = request.tool_call
        tool_name = tool_call.get("name", "")
        if tool_name not in self.gateway.registry:
            return await handler(request)

        tool_call_id = tool_call.get("id", "")
        invocation = await self.gateway.run(
            tool_call_id,
            tool_name,
            tool_call.get("args", {}),
            timeout=self.timeout_seconds,
        )
        return self._to_tool_message(invocation, tool_call_id)

    @staticmethod
    def _to_tool_message(invocation: Invocation, tool_call_id: str) -> ToolMessage:
        if invocation.state == InvocationState.COMPLETED:
            return ToolMessage(content=invocation.message, tool_call_id=tool_call_id)
        if invocation.state == InvocationState.CANCELLED:
            return ToolMessage(
                content=f"Tool call {invocation.tool_name} was not approved: {invocation.message}",
                tool_call_id=tool_call_id,
                status="error",
            )
        return ToolMessage(content=invocation.message, tool_call_id=tool_call_id, status="error")


__all__ = ["ApprovalMiddleware"]
