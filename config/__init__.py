"""Configuration management for rewind-gate."""

from .loader import ConfigLoader, load_config
from .schema import RewindSettings

__all__ = ["ConfigLoader", "RewindSettings", "load_config"]
