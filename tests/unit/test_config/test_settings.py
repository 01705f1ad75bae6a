"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from termprobe.config.settings import (
    HarnessConfig,
    LoggingConfig,
    PoolConfig,
    Settings,
    load_settings,
)


class TestSettings:
    """Test configuration models and loading."""

    def test_default_settings(self) -> None:
        """Default Settings should be valid."""
        settings = Settings()
        assert settings.harness.width == 80
        assert settings.harness.height == 24
        assert settings.pool.max_terminals == 16
        assert settings.logging.level == "INFO"

    def test_harness_config_defaults(self) -> None:
        config = HarnessConfig()
        assert config.timeout == 5.0
        assert config.poll_interval == 0.1
        assert config.buffer_size == 4096
        assert config.key_settle_delay == 0.05

    def test_pool_config_defaults(self) -> None:
        config = PoolConfig()
        assert config.acquire_timeout == 30.0
        assert (config.default_width, config.default_height) == (80, 24)

    def test_logging_config_defaults(self) -> None:
        config = LoggingConfig()
        assert config.file is None
        assert "%(message)s" in config.format

    @pytest.mark.parametrize(
        "field,value",
        [("width", 0), ("height", -1), ("timeout", 0), ("poll_interval", -0.5)],
    )
    def test_invalid_harness_values(self, field: str, value: float) -> None:
        with pytest.raises(ValidationError):
            HarnessConfig(**{field: value})

    def test_invalid_pool_capacity(self) -> None:
        with pytest.raises(ValidationError):
            PoolConfig(max_terminals=0)


class TestLoadSettings:
    def test_missing_file(self, tmp_path: Path) -> None:
        """load_settings with missing file should return defaults."""
        settings = load_settings(tmp_path / "nonexistent.yaml")
        assert settings.harness.timeout == 5.0

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "termprobe.yaml"
        path.write_text(
            "harness:\n"
            "  width: 120\n"
            "  timeout: 2.5\n"
            "pool:\n"
            "  max_terminals: 4\n"
            "logging:\n"
            "  level: DEBUG\n"
        )
        settings = load_settings(path)
        assert settings.harness.width == 120
        assert settings.harness.height == 24
        assert settings.harness.timeout == 2.5
        assert settings.pool.max_terminals == 4
        assert settings.logging.level == "DEBUG"

    def test_empty_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path).harness.width == 80

    def test_invalid_yaml_values(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("harness:\n  width: 0\n")
        with pytest.raises(ValidationError):
            load_settings(path)

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TERMPROBE_HARNESS__TIMEOUT", "9.5")
        assert Settings().harness.timeout == 9.5

    def test_env_beats_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "termprobe.yaml"
        path.write_text("harness:\n  timeout: 2.0\n  width: 100\n")
        monkeypatch.setenv("TERMPROBE_HARNESS__TIMEOUT", "7.0")
        settings = load_settings(path)
        assert settings.harness.timeout == 7.0
        assert settings.harness.width == 100

    def test_shipped_config_matches_defaults(self) -> None:
        path = Path(__file__).resolve().parents[3] / "config" / "termprobe.yaml"
        assert load_settings(path).model_dump() == Settings().model_dump()
