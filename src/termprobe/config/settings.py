"""Configuration management for termprobe.

Loads settings from a YAML configuration file with ``TERMPROBE_``
environment variable overrides (nested with ``__``, e.g.
``TERMPROBE_HARNESS__TIMEOUT=10``).
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/termprobe.yaml")


class HarnessConfig(BaseModel):
    width: int = Field(default=80, gt=0, description="Terminal columns")
    height: int = Field(default=24, gt=0, description="Terminal rows")
    timeout: float = Field(default=5.0, gt=0, description="Default wait timeout in seconds")
    poll_interval: float = Field(default=0.1, gt=0, description="Sleep between wait iterations")
    buffer_size: int = Field(default=4096, gt=0, description="Maximum bytes per PTY read")
    key_settle_delay: float = Field(
        default=0.05, ge=0, description="Pause after each key before refreshing"
    )


class PoolConfig(BaseModel):
    max_terminals: int = Field(default=16, gt=0)
    acquire_timeout: float = Field(default=30.0, gt=0)
    default_width: int = Field(default=80, gt=0)
    default_height: int = Field(default=24, gt=0)
    poll_interval: float = Field(default=0.05, gt=0)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for termprobe.

    Loads from YAML file and supports environment variable overrides.
    """

    model_config = {
        "env_prefix": "TERMPROBE_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    harness: HarnessConfig = Field(default_factory=HarnessConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment variables win over values passed in from the YAML file
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + environment variables.

    Priority: env vars > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    return Settings(**yaml_data)
