"""Tests for the command-line interface."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterator
from unittest.mock import patch

import pytest

from termprobe.cli import _parse_size, main, parse_args


@pytest.fixture(autouse=True)
def no_logging_setup() -> Iterator[None]:
    with patch("termprobe.utils.logging.setup_logging"):
        yield


class TestParseArgs:
    def test_run_command(self) -> None:
        args = parse_args(["run", "--wait-for", "Ready", "--size", "100x30", "--", "htop", "-d", "5"])
        assert args.command == "run"
        assert args.wait_for == "Ready"
        assert args.size == (100, 30)
        assert args.argv[-3:] == ["htop", "-d", "5"]

    def test_parse_command(self) -> None:
        args = parse_args(["-v", "parse", "capture.bin"])
        assert args.verbose
        assert args.command == "parse"
        assert args.file == Path("capture.bin")
        assert args.size is None

    def test_no_command(self) -> None:
        assert parse_args([]).command is None

    @pytest.mark.parametrize("value,expected", [("80x24", (80, 24)), ("120X40", (120, 40))])
    def test_parse_size(self, value: str, expected: tuple[int, int]) -> None:
        assert _parse_size(value) == expected

    @pytest.mark.parametrize("value", ["80", "ax24", "0x24", "80x-1", ""])
    def test_parse_size_rejects(self, value: str) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            _parse_size(value)


class TestParse:
    def test_prints_screen_and_graphics(
        self, tmp_path: Path, sixel_sequence: bytes, capsys: pytest.CaptureFixture[str]
    ) -> None:
        capture = tmp_path / "capture.bin"
        capture.write_bytes(b"Title\r\n\x1b[3;5H" + sixel_sequence)
        main(["parse", str(capture), "--size", "40x10"])
        out = capsys.readouterr().out
        lines = out.splitlines()
        assert lines[0] == "Title"
        assert "Cursor: row=2, col=4" in out
        assert "Graphics regions: 1" in out
        assert "Sixel at (2, 4) bounds=(2, 4, 13, 9) size=(100, 50)" in out

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["parse", str(tmp_path / "missing.bin")])
        assert exc_info.value.code == 1


class TestRun:
    def test_run_prints_screen(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["run", "--timeout", "2", "--", "echo", "hello from cli"])
        assert "hello from cli" in capsys.readouterr().out

    def test_wait_for_text(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["run", "--wait-for", "Ready", "--", "sh", "-c", "echo Ready; sleep 5"])
        assert "Ready" in capsys.readouterr().out

    def test_wait_for_timeout_exits_nonzero(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["run", "--wait-for", "never", "--timeout", "0.3", "--", "sleep", "5"])
        assert exc_info.value.code == 1

    def test_missing_command(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["run"])
        assert exc_info.value.code == 2

    def test_unknown_program(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["run", "--", "definitely-not-a-real-program-xyz"])
        assert exc_info.value.code == 1
