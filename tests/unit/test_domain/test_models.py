"""Tests for core domain models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from termprobe.domain.models import (
    Command,
    GraphicsProtocol,
    GraphicsRegion,
    KeyCode,
    KeyEvent,
    Modifiers,
    MouseButton,
    MouseEvent,
    ScrollDirection,
    WaitResult,
)


def _region(bounds: tuple[int, int, int, int]) -> GraphicsRegion:
    return GraphicsRegion(
        protocol=GraphicsProtocol.SIXEL,
        position=(bounds[0], bounds[1]),
        bounds=bounds,
    )


class TestGraphicsProtocol:
    def test_display_names(self) -> None:
        assert str(GraphicsProtocol.SIXEL) == "Sixel"
        assert GraphicsProtocol.KITTY.display_name == "Kitty"
        assert GraphicsProtocol.ITERM2.display_name == "iTerm2"

    def test_escape_prefixes(self) -> None:
        assert GraphicsProtocol.SIXEL.escape_prefix == "\x1bPq"
        assert GraphicsProtocol.KITTY.escape_prefix == "\x1b_G"
        assert GraphicsProtocol.ITERM2.escape_prefix == "\x1b]1337;File="


class TestGraphicsRegion:
    def test_within_area(self) -> None:
        assert _region((5, 5, 10, 4)).is_within((5, 5, 10, 4))
        assert _region((6, 6, 2, 2)).is_within((5, 5, 10, 10))

    def test_not_within_when_extending_past_edge(self) -> None:
        assert not _region((5, 5, 11, 4)).is_within((5, 5, 10, 4))
        assert not _region((4, 5, 2, 2)).is_within((5, 5, 10, 10))

    def test_zero_sized_region_at_corner(self) -> None:
        assert _region((0, 0, 0, 0)).is_within((0, 0, 1, 1))

    def test_overlaps(self) -> None:
        region = _region((5, 5, 4, 4))
        assert region.overlaps((8, 8, 10, 10))
        assert not region.overlaps((9, 0, 10, 10))
        assert not region.overlaps((0, 9, 10, 10))

    def test_is_frozen(self) -> None:
        region = _region((0, 0, 1, 1))
        with pytest.raises(ValidationError):
            region.position = (3, 3)  # type: ignore[misc]


class TestKeys:
    def test_key_name_resolves(self) -> None:
        assert KeyEvent(code="enter").code is KeyCode.ENTER
        assert KeyEvent(code="F5").code is KeyCode.F5

    def test_single_character_stays_character(self) -> None:
        event = KeyEvent(code="a")
        assert event.code == "a"
        assert event.is_char

    def test_uppercase_letter_is_not_a_function_key(self) -> None:
        assert KeyEvent(code="F").code == "F"

    def test_aliases(self) -> None:
        assert KeyCode.from_name("PgUp") is KeyCode.PAGE_UP
        assert KeyCode.from_name("escape") is KeyCode.ESC
        assert KeyCode.from_name("page_down") is KeyCode.PAGE_DOWN

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown key name"):
            KeyCode.from_name("Hyper")

    def test_function_keys(self) -> None:
        assert KeyCode.function(12) is KeyCode.F12
        assert KeyCode.F3.function_number == 3
        assert KeyCode.ENTER.function_number is None
        with pytest.raises(ValueError):
            KeyCode.function(13)

    def test_modifier_names(self) -> None:
        assert Modifiers.from_names(["ctrl", "Shift"]) == Modifiers.CTRL | Modifiers.SHIFT
        assert Modifiers.from_names([]) == Modifiers.NONE
        with pytest.raises(ValueError, match="Unknown modifier"):
            Modifiers.from_names(["hyper"])


class TestMouseEvent:
    def test_press_and_release(self) -> None:
        press = MouseEvent.press(3, 4, MouseButton.RIGHT)
        assert (press.x, press.y, press.button_code, press.is_press) == (3, 4, 2, True)
        release = MouseEvent.release(3, 4, MouseButton.RIGHT)
        assert not release.is_press

    def test_scroll_and_motion(self) -> None:
        assert MouseEvent.scroll(0, 0, ScrollDirection.DOWN).button_code == 65
        assert MouseEvent.motion(1, 1, MouseButton.LEFT).button_code == 32

    def test_negative_coordinates_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MouseEvent.press(-1, 0, MouseButton.LEFT)


class TestCommand:
    def test_parse_string(self) -> None:
        command = Command.parse("sh -c 'echo hi'")
        assert command.program == "sh"
        assert command.args == ("-c", "echo hi")
        assert command.argv == ["sh", "-c", "echo hi"]

    def test_parse_list_with_env(self) -> None:
        command = Command.parse(["env"], env={"A": "1"}, cwd="/tmp")
        assert command.env == {"A": "1"}
        assert command.cwd == "/tmp"

    def test_parse_passes_command_through(self) -> None:
        command = Command(program="ls")
        assert Command.parse(command) is command

    def test_str_is_shell_quoted(self) -> None:
        assert str(Command.parse(["echo", "a b"])) == "echo 'a b'"

    @pytest.mark.parametrize("value", ["", "   ", []])
    def test_empty_rejected(self, value: object) -> None:
        with pytest.raises(ValueError):
            Command.parse(value)  # type: ignore[arg-type]


class TestWaitResult:
    def test_ok(self) -> None:
        result = WaitResult.ok()
        assert not result.is_timeout
        assert result.timeout_ms is None

    def test_condition(self) -> None:
        result = WaitResult.condition(2)
        assert result.kind == "condition"
        assert result.index == 2

    def test_timed_out(self) -> None:
        result = WaitResult.timed_out(0.2)
        assert result.is_timeout
        assert result.timeout_ms == 200
