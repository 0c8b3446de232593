"""Approval gateway: tool registry, executors and the invocation state machine."""

from core.approval.executors import ToolContext, ToolResult
from core.approval.gateway import VALID_TRANSITIONS, ApprovalGateway, Invocation, InvocationState
from core.approval.middleware import ApprovalMiddleware
from core.approval.registry import DangerLevel, ToolCategory, ToolRegistry, ToolSpec, build_default_registry

__all__ = [
    "VALID_TRANSITIONS",
    "ApprovalGateway",
    "ApprovalMiddleware",
    "DangerLevel",
    "Invocation",
    "InvocationState",
    "ToolCategory",
    "ToolContext",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
    "build_default_registry",
]
