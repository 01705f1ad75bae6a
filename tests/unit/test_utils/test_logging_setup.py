"""Tests for logging setup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from termprobe.config.settings import LoggingConfig
from termprobe.utils.logging import setup_logging


@pytest.fixture(autouse=True)
def restore_logger() -> Iterator[None]:
    logger = logging.getLogger("termprobe")
    level = logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)


class TestSetupLogging:
    def test_defaults(self) -> None:
        logger = setup_logging()
        assert logger.name == "termprobe"
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1

    def test_level_from_config(self) -> None:
        logger = setup_logging(LoggingConfig(level="debug"))
        assert logger.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self) -> None:
        logger = setup_logging(LoggingConfig(level="chatty"))
        assert logger.level == logging.INFO

    def test_repeated_setup_replaces_handlers(self) -> None:
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path: Path) -> None:
        log_file = tmp_path / "termprobe.log"
        logger = setup_logging(LoggingConfig(level="INFO", file=str(log_file)))
        assert len(logger.handlers) == 2
        logging.getLogger("termprobe.harness").info("hello from the harness")
        for handler in logger.handlers:
            handler.flush()
        assert "hello from the harness" in log_file.read_text()
