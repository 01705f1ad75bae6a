"""Configuration management for termprobe.

Loads and validates YAML-based configuration with Pydantic models.
Supports ``TERMPROBE_`` environment variable overrides.
"""

from termprobe.config.settings import (
    HarnessConfig,
    LoggingConfig,
    PoolConfig,
    Settings,
    load_settings,
)

__all__ = ["HarnessConfig", "LoggingConfig", "PoolConfig", "Settings", "load_settings"]
