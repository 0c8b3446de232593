"""Configuration schema for rewind-gate using Pydantic.

Nested config groups:
- storage: where snapshots are persisted
- snapshots: retention and restore behavior
- approval: gateway timeout and per-tool policy overrides
- write / command / search: executor limits
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

# ============================================================================
# Storage Configuration
# ============================================================================


class StorageConfig(BaseModel):
    """Snapshot persistence."""

    strategy: Literal["sqlite", "memory"] | None = Field(
        None, description="Storage strategy (falls back to REWIND_STORAGE_STRATEGY, then sqlite)"
    )
    db_path: str | None = Field(None, description="SQLite path (falls back to REWIND_DB_PATH, then ~/.rewind/rewind.db)")


# ============================================================================
# Snapshot Configuration
# ============================================================================


class SnapshotsConfig(BaseModel):
    retention_days: float = Field(7, gt=0, description="Snapshots older than this are pruned")
    prune_on_start: bool = Field(True, description="Prune expired snapshots when the runtime starts")
    restore_creates_parents: bool = Field(
        False, description="Create missing parent directories when restoring (off: a missing directory fails the file)"
    )


# ============================================================================
# Approval Configuration
# ============================================================================


class ToolPolicy(BaseModel):
    """Per-tool override of the built-in tool table. Unset fields keep the default."""

    requires_confirmation: bool | None = None
    danger_level: Literal["safe", "caution", "dangerous"] | None = None
    enabled: bool | None = None


class ApprovalConfig(BaseModel):
    timeout_seconds: float | None = Field(
        None, gt=0, description="Cancel invocations still awaiting approval after this long (None = wait forever)"
    )
    tools: dict[str, ToolPolicy] = Field(default_factory=dict, description="Tool policy overrides by name")


# ============================================================================
# Executor Configuration
# ============================================================================


class WriteConfig(BaseModel):
    unescape_sequences: bool = Field(True, description=r"Turn literal \n, \t, \r, \", \' and \\ into characters")
    max_file_size: int = Field(10 * 1024 * 1024, gt=0, description="Maximum file size in bytes")


class CommandConfig(BaseModel):
    default_timeout: float = Field(120.0, gt=0, description="Command timeout in seconds")
    max_output_chars: int = Field(50_000, gt=0, description="Truncate command output beyond this")


class SearchConfig(BaseModel):
    max_results: int = Field(100, gt=0, description="Maximum search results")


# ============================================================================
# Root Settings
# ============================================================================


class RewindSettings(BaseModel):
    storage: StorageConfig = Field(default_factory=StorageConfig)
    snapshots: SnapshotsConfig = Field(default_factory=SnapshotsConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    write: WriteConfig = Field(default_factory=WriteConfig)
    command: CommandConfig = Field(default_factory=CommandConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("WARNING", description="Root log level for the CLI")
    workspace_root: str | None = Field(None, description="Workspace root directory (default: current directory)")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("workspace_root")
    @classmethod
    def validate_workspace_root(cls, v: str | None) -> str | None:
        """Validate workspace_root exists."""
        if v is None:
            return v
        path = Path(v).expanduser().resolve()
        if not path.exists():
            raise ValueError(f"Workspace root does not exist: {path}")
        if not path.is_dir():
            raise ValueError(f"Workspace root is not a directory: {path}")
        return str(path)

    def resolved_workspace(self) -> Path:
        return Path(self.workspace_root) if self.workspace_root else Path.cwd().resolve()
