"""Tests for the tool registry and its default table."""

import pytest

from config.schema import ToolPolicy
from core.approval.registry import DangerLevel, ToolCategory, build_default_registry
from core.errors import UnknownToolError


@pytest.fixture
def registry():
    return build_default_registry()


def test_default_table(registry):
    expected = {
        "read_file": (False, DangerLevel.SAFE),
        "write_file": (False, DangerLevel.CAUTION),
        "list_directory": (False, DangerLevel.SAFE),
        "create_directory": (False, DangerLevel.CAUTION),
        "delete_file": (True, DangerLevel.DANGEROUS),
        "search_files": (False, DangerLevel.SAFE),
        "get_project_info": (False, DangerLevel.SAFE),
        "run_command": (False, DangerLevel.CAUTION),
    }
    actual = {name: (registry.require(name).requires_confirmation, registry.require(name).danger_level)
              for name in registry.names()}
    assert actual == expected
    assert registry.requiring_confirmation() == ["delete_file"]


def test_require_unknown(registry):
    assert registry.get("nope") is None
    with pytest.raises(UnknownToolError):
        registry.require("nope")


def test_by_category(registry):
    assert {s.name for s in registry.by_category(ToolCategory.DIRECTORY)} == {"list_directory", "create_directory"}
    assert {s.name for s in registry.by_category("search")} == {"search_files"}


def test_set_enabled_filters_schemas(registry):
    registry.set_enabled("run_command", False)

    names = [schema["function"]["name"] for schema in registry.tool_schemas()]
    assert "run_command" not in names
    assert len(names) == len(registry) - 1
    assert all(schema["type"] == "function" for schema in registry.tool_schemas())


def test_apply_policies(registry):
    registry.apply_policies({
        "write_file": ToolPolicy(requires_confirmation=True, danger_level="dangerous"),
        "run_command": {"enabled": False},
        "not_a_tool": {"enabled": False},
    })

    write = registry.require("write_file")
    assert write.requires_confirmation is True
    assert write.danger_level == DangerLevel.DANGEROUS
    assert registry.require("run_command").enabled is False
    assert registry.require("delete_file").requires_confirmation is True
