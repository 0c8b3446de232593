"""Three-tier runtime configuration loader.

Configuration priority (highest to lowest):
1. CLI overrides
2. Project config (.rewind/runtime.json or runtime.yaml in workspace)
3. User config (~/.rewind/runtime.json or runtime.yaml)
4. System defaults (config/defaults/runtime.json)
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from config.schema import RewindSettings

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".rewind"
_CONFIG_FILENAMES = ("runtime.json", "runtime.yaml", "runtime.yml")


class ConfigLoader:
    def __init__(self, workspace_root: str | Path | None = None, home: str | Path | None = None):
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else None
        self.home = Path(home) if home else Path.home()
        self._system_defaults_dir = Path(__file__).parent / "defaults"

    def load(self, cli_overrides: dict[str, Any] | None = None) -> RewindSettings:
        """Load runtime configuration with three-tier merge."""
        final_config = self._deep_merge(
            self._load_system_defaults(),
            self._load_user_config(),
            self._load_project_config(),
        )
        if cli_overrides:
            final_config = self._deep_merge(final_config, cli_overrides)

        if self.workspace_root and not final_config.get("workspace_root"):
            final_config["workspace_root"] = str(self.workspace_root)

        final_config = self._expand_env_vars(final_config)
        final_config = self._remove_none_values(final_config)
        return RewindSettings(**final_config)

    # ── Internal helpers ──

    def _load_system_defaults(self) -> dict[str, Any]:
        return self._load_file(self._system_defaults_dir / "runtime.json")

    def _load_user_config(self) -> dict[str, Any]:
        """Load user config from ~/.rewind/."""
        return self._load_first(self.home / CONFIG_DIR_NAME)

    def _load_project_config(self) -> dict[str, Any]:
        """Load project config from <workspace>/.rewind/."""
        if not self.workspace_root:
            return {}
        return self._load_first(self.workspace_root / CONFIG_DIR_NAME)

    def _load_first(self, directory: Path) -> dict[str, Any]:
        for name in _CONFIG_FILENAMES:
            path = directory / name
            if path.exists():
                return self._load_file(path)
        return {}

    @staticmethod
    def _load_file(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) if path.suffix in (".yaml", ".yml") else json.load(f)
        except (json.JSONDecodeError, yaml.YAMLError, OSError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config %s: top level must be a mapping", path)
            return {}
        return data

    def _deep_merge(self, *dicts: dict[str, Any]) -> dict[str, Any]:
        """Deep merge multiple dictionaries. Later dicts override earlier ones."""
        result: dict[str, Any] = {}
        for d in dicts:
            for key, value in d.items():
                if key not in result:
                    result[key] = value
                elif value is None:
                    continue
                elif isinstance(value, dict) and isinstance(result[key], dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = value
        return result

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR} and ~ in string values."""
        if isinstance(obj, dict):
            return {k: self._expand_env_vars(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(v) for v in obj]
        if isinstance(obj, str):
            return os.path.expandvars(os.path.expanduser(obj))
        return obj

    def _remove_none_values(self, obj: Any) -> Any:
        """Recursively remove None values to allow Pydantic defaults."""
        if isinstance(obj, dict):
            return {k: self._remove_none_values(v) for k, v in obj.items() if v is not None}
        if isinstance(obj, list):
            return [self._remove_none_values(v) for v in obj if v is not None]
        return obj


def load_config(
    workspace_root: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> RewindSettings:
    """Convenience function to load runtime configuration."""
    return ConfigLoader(workspace_root=workspace_root).load(cli_overrides=cli_overrides)
