"""Tests for the multi-protocol graphics capture."""

from __future__ import annotations

import pytest

from termprobe.domain.models import GraphicsProtocol
from termprobe.errors import BoundsViolationError, HarnessAssertionError
from termprobe.graphics.capture import GraphicsCapture
from termprobe.screen.state import ScreenState


@pytest.fixture
def mixed_screen(
    screen: ScreenState,
    sixel_sequence: bytes,
    kitty_sequence: bytes,
    iterm2_sequence: bytes,
) -> ScreenState:
    """Sixel at (2,2), Kitty at (10,40), iTerm2 at (20,70)."""
    screen.feed(b"\x1b[3;3H" + sixel_sequence)
    screen.feed(b"\x1b[11;41H" + kitty_sequence)
    screen.feed(b"\x1b[21;71H" + iterm2_sequence)
    return screen


class TestGraphicsCapture:
    def test_empty(self, screen: ScreenState) -> None:
        capture = GraphicsCapture.from_screen_state(screen)
        assert capture.is_empty()
        assert len(capture) == 0
        capture.assert_all_within((0, 0, 1, 1))

    def test_snapshot_of_all_protocols(self, mixed_screen: ScreenState) -> None:
        capture = GraphicsCapture.from_screen_state(mixed_screen)
        assert len(capture) == 3
        assert [r.protocol for r in capture] == [
            GraphicsProtocol.SIXEL,
            GraphicsProtocol.KITTY,
            GraphicsProtocol.ITERM2,
        ]
        assert repr(capture) == "GraphicsCapture(3 region(s))"

    def test_snapshot_does_not_follow_screen(self, mixed_screen: ScreenState, sixel_sequence: bytes) -> None:
        capture = GraphicsCapture.from_screen_state(mixed_screen)
        mixed_screen.feed(sixel_sequence)
        assert len(capture) == 3

    def test_area_filters(self, mixed_screen: ScreenState) -> None:
        capture = GraphicsCapture.from_screen_state(mixed_screen)
        inside = capture.regions_in_area((0, 0, 20, 15))
        assert [r.protocol for r in inside] == [GraphicsProtocol.SIXEL]
        assert len(capture.regions_outside_area((0, 0, 20, 15))) == 2
        overlapping = capture.regions_overlapping((12, 45, 2, 2))
        assert [r.protocol for r in overlapping] == [GraphicsProtocol.KITTY]

    def test_protocol_filters(self, mixed_screen: ScreenState) -> None:
        capture = GraphicsCapture.from_screen_state(mixed_screen)
        assert capture.count_by_protocol(GraphicsProtocol.KITTY) == 1
        assert capture.by_protocol(GraphicsProtocol.ITERM2)[0].position == (20, 70)

    def test_assert_all_within_passes(self, mixed_screen: ScreenState) -> None:
        GraphicsCapture.from_screen_state(mixed_screen).assert_all_within((0, 0, 100, 40))

    def test_assert_all_within_reports_offenders(self, mixed_screen: ScreenState) -> None:
        capture = GraphicsCapture.from_screen_state(mixed_screen)
        with pytest.raises(BoundsViolationError) as exc_info:
            capture.assert_all_within((0, 0, 20, 15))
        message = str(exc_info.value)
        assert "Found 2 graphics region(s)" in message
        assert "Kitty at (10, 40)" in message
        assert "iTerm2 at (20, 70)" in message
        assert len(exc_info.value.regions) == 2

    def test_assert_protocol_exists(self, mixed_screen: ScreenState, screen: ScreenState) -> None:
        GraphicsCapture.from_screen_state(mixed_screen).assert_protocol_exists(GraphicsProtocol.SIXEL)
        empty = GraphicsCapture()
        with pytest.raises(HarnessAssertionError, match="No Kitty graphics found"):
            empty.assert_protocol_exists(GraphicsProtocol.KITTY)

    def test_differs_from(self, screen: ScreenState, sixel_sequence: bytes) -> None:
        before = GraphicsCapture.from_screen_state(screen)
        assert not before.differs_from(GraphicsCapture.from_screen_state(screen))
        screen.feed(sixel_sequence)
        after = GraphicsCapture.from_screen_state(screen)
        assert after.differs_from(before)
