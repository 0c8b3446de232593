"""
Tool registry for the approval gateway.

Each tool is a tagged entry: executor plus danger metadata. The gateway looks
tools up by name instead of branching on tool names.

Danger levels:
- SAFE: read-only, runs without confirmation
- CAUTION: mutates the workspace, tracked by snapshots and reversible
- DANGEROUS: destructive, confirmation required by default
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from core.errors import UnknownToolError

if TYPE_CHECKING:
    from core.approval.executors import ToolContext, ToolResult

logger = logging.getLogger(__name__)

ToolExecutor = Callable[["ToolContext", dict[str, Any]], Awaitable["ToolResult"]]


class DangerLevel(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    DANGEROUS = "dangerous"


class ToolCategory(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SEARCH = "search"
    PROJECT = "project"


@dataclass(frozen=True)
class ToolSpec:
    """Definition of one tool available to the agent."""

    name: str
    display_name: str
    description: str
    category: ToolCategory
    executor: ToolExecutor
    requires_confirmation: bool = False
    danger_level: DangerLevel = DangerLevel.SAFE
    enabled: bool = True
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def schema(self) -> dict[str, Any]:
        """OpenAI-style function schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    def __init__(self, specs: Iterable[ToolSpec] = ()) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for spec in specs:
            self.register(spec)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, spec: ToolSpec) -> None:
        """Register (or replace) a tool."""
        if spec.name in self._tools:
            logger.debug("Replacing tool definition %s", spec.name)
        self._tools[spec.name] = spec

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def require(self, name: str) -> ToolSpec:
        spec = self._tools.get(name)
        if spec is None:
            raise UnknownToolError(f"Unknown tool: {name}")
        return spec

    def names(self) -> list[str]:
        return list(self._tools)

    def enabled_tools(self) -> list[ToolSpec]:
        return [s for s in self._tools.values() if s.enabled]

    def by_category(self, category: ToolCategory | str) -> list[ToolSpec]:
        category = ToolCategory(category)
        return [s for s in self._tools.values() if s.category == category]

    def requiring_confirmation(self) -> list[str]:
        return [s.name for s in self._tools.values() if s.requires_confirmation]

    def set_enabled(self, name: str, enabled: bool) -> None:
        self._tools[name] = replace(self.require(name), enabled=enabled)

    def apply_policies(self, policies: Mapping[str, Any]) -> None:
        """Override confirmation/danger/enabled flags from configuration.

        ``policies`` maps tool name to an object or dict with optional
        ``requires_confirmation``, ``danger_level`` and ``enabled`` fields.
        Unknown tool names are logged and ignored.
        """
        for name, policy in policies.items():
            spec = self._tools.get(name)
            if spec is None:
                logger.warning("Ignoring policy for unknown tool %s", name)
                continue
            values = policy if isinstance(policy, Mapping) else policy.model_dump()
            changes: dict[str, Any] = {}
            if values.get("requires_confirmation") is not None:
                changes["requires_confirmation"] = bool(values["requires_confirmation"])
            if values.get("danger_level") is not None:
                changes["danger_level"] = DangerLevel(values["danger_level"])
            if values.get("enabled") is not None:
                changes["enabled"] = bool(values["enabled"])
            if changes:
                self._tools[name] = replace(spec, **changes)

    def tool_schemas(self) -> list[dict[str, Any]]:
        return [s.schema() for s in self.enabled_tools()]


def _path_param(name: str, description: str) -> dict[str, Any]:
    return {name: {"type": "string", "description": description}}


def build_default_registry() -> ToolRegistry:
    """The built-in tool table."""
    from core.approval import executors

    return ToolRegistry([
        ToolSpec(
            name="read_file",
            display_name="Read File",
            description="Read the contents of a file. Relative paths resolve against the workspace root.",
            category=ToolCategory.FILE,
            executor=executors.read_file,
            danger_level=DangerLevel.SAFE,
            parameters={
                "type": "object",
                "properties": _path_param("file_path", "Path of the file to read"),
                "required": ["file_path"],
            },
        ),
        ToolSpec(
            name="write_file",
            display_name="Write File",
            description="Create or overwrite a file with the given content. Changes are tracked and can be reverted.",
            category=ToolCategory.FILE,
            executor=executors.write_file,
            danger_level=DangerLevel.CAUTION,
            parameters={
                "type": "object",
                "properties": {
                    **_path_param("file_path", "Path of the file to write"),
                    "content": {"type": "string", "description": "Full file content"},
                },
                "required": ["file_path", "content"],
            },
        ),
        ToolSpec(
            name="list_directory",
            display_name="List Directory",
            description="List the entries of a directory.",
            category=ToolCategory.DIRECTORY,
            executor=executors.list_directory,
            danger_level=DangerLevel.SAFE,
            parameters={
                "type": "object",
                "properties": _path_param("dir_path", "Directory to list (defaults to the workspace root)"),
            },
        ),
        ToolSpec(
            name="create_directory",
            display_name="Create Directory",
            description="Create a directory, including missing parents.",
            category=ToolCategory.DIRECTORY,
            executor=executors.create_directory,
            danger_level=DangerLevel.CAUTION,
            parameters={
                "type": "object",
                "properties": _path_param("dir_path", "Directory to create"),
                "required": ["dir_path"],
            },
        ),
        ToolSpec(
            name="delete_file",
            display_name="Delete File",
            description="Delete a file. Requires user confirmation.",
            category=ToolCategory.FILE,
            executor=executors.delete_file,
            requires_confirmation=True,
            danger_level=DangerLevel.DANGEROUS,
            parameters={
                "type": "object",
                "properties": _path_param("file_path", "Path of the file to delete"),
                "required": ["file_path"],
            },
        ),
        ToolSpec(
            name="search_files",
            display_name="Search Files",
            description="Find files whose name or content contains the query string.",
            category=ToolCategory.SEARCH,
            executor=executors.search_files,
            danger_level=DangerLevel.SAFE,
            parameters={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Substring to search for"},
                    **_path_param("directory", "Directory to search (defaults to the workspace root)"),
                },
                "required": ["query"],
            },
        ),
        ToolSpec(
            name="get_project_info",
            display_name="Get Project Info",
            description="Describe the current workspace, optionally with file statistics.",
            category=ToolCategory.PROJECT,
            executor=executors.get_project_info,
            danger_level=DangerLevel.SAFE,
            parameters={
                "type": "object",
                "properties": {
                    "include_stats": {"type": "boolean", "description": "Include file and size counts"},
                },
            },
        ),
        ToolSpec(
            name="run_command",
            display_name="Run Command",
            description="Run a shell command in the workspace root and return its output.",
            category=ToolCategory.PROJECT,
            executor=executors.run_command,
            danger_level=DangerLevel.CAUTION,
            parameters={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Shell command to run"},
                    "timeout": {"type": "number", "description": "Timeout in seconds (optional)"},
                },
                "required": ["command"],
            },
        ),
    ])
