"""Tests for the exception hierarchy."""

from __future__ import annotations

from termprobe.domain.models import GraphicsProtocol, GraphicsRegion
from termprobe.errors import (
    AcquireTimeoutError,
    BoundsViolationError,
    ChannelIOError,
    InvalidDimensionsError,
    NoProcessRunningError,
    ProcessExitedError,
    TermProbeError,
    TermTimeoutError,
    UnknownTerminalError,
    WaitTimeoutError,
)


class TestMessages:
    def test_invalid_dimensions(self) -> None:
        error = InvalidDimensionsError(0, 24)
        assert str(error) == "Invalid terminal dimensions: width=0, height=24"

    def test_wait_timeout(self) -> None:
        error = WaitTimeoutError(1.5, "text 'Ready'", elapsed=1.51, iterations=15)
        assert str(error) == "Timeout waiting for text 'Ready' after 1500ms"
        assert error.timeout_ms == 1500
        assert error.iterations == 15

    def test_acquire_timeout(self) -> None:
        error = AcquireTimeoutError(0.3)
        assert "300ms" in str(error)
        assert isinstance(error, TermTimeoutError)

    def test_unknown_terminal(self) -> None:
        assert str(UnknownTerminalError(7)) == "Terminal ID 7 not found in pool"

    def test_default_messages(self) -> None:
        assert str(NoProcessRunningError()) == "No process is running"
        assert str(ProcessExitedError()) == "Child process has exited"

    def test_channel_io_keeps_errno(self) -> None:
        assert ChannelIOError("boom", errno=5).errno == 5

    def test_bounds_violation_lists_regions(self) -> None:
        region = GraphicsRegion(
            protocol=GraphicsProtocol.SIXEL, position=(20, 1), bounds=(20, 1, 4, 4)
        )
        error = BoundsViolationError((0, 0, 10, 10), [region])
        assert str(error) == (
            "Found 1 graphics region(s) outside area (0, 0, 10, 10): [Sixel at (20, 1)]"
        )
        assert error.regions == [region]


class TestHierarchy:
    def test_everything_is_a_termprobe_error(self) -> None:
        for error in (
            InvalidDimensionsError(0, 0),
            NoProcessRunningError(),
            ProcessExitedError(),
            WaitTimeoutError(1.0),
            AcquireTimeoutError(1.0),
            UnknownTerminalError(1),
            BoundsViolationError((0, 0, 1, 1)),
        ):
            assert isinstance(error, TermProbeError)
