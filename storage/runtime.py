"""Runtime wiring helpers for storage strategy selection."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from storage.container import StorageContainer, StorageStrategy


def build_storage_container(
    *,
    main_db_path: str | Path | None = None,
    strategy: str | None = None,
    env: Mapping[str, str] | None = None,
) -> StorageContainer:
    """Build a runtime storage container from config/environment.

    Explicit arguments win over REWIND_STORAGE_STRATEGY / REWIND_DB_PATH.
    """
    env_map = env if env is not None else os.environ
    raw_strategy = strategy if strategy is not None else env_map.get("REWIND_STORAGE_STRATEGY")
    resolved_strategy = _resolve_strategy(raw_strategy)
    db_path = main_db_path if main_db_path is not None else env_map.get("REWIND_DB_PATH") or None
    return StorageContainer(main_db_path=db_path, strategy=resolved_strategy)


def _resolve_strategy(raw: str | None) -> StorageStrategy:
    value = (raw or "sqlite").strip().lower()
    if value in {"", "sqlite"}:
        return "sqlite"
    if value == "memory":
        return "memory"
    raise RuntimeError(
        f"Invalid REWIND_STORAGE_STRATEGY value: {raw!r}. "
        "Supported values: sqlite, memory."
    )
