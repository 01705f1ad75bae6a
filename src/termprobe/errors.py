"""Exception hierarchy for termprobe.

Every expected failure surfaces as a subclass of :class:`TermProbeError`.
Interrupted system calls and "no data yet" conditions are absorbed in the
process channel and never reach callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from termprobe.domain.models import GraphicsRegion


class TermProbeError(Exception):
    """Base class for all termprobe errors."""


# ---------------------------------------------------------------------------
# Process channel
# ---------------------------------------------------------------------------


class SpawnFailedError(TermProbeError):
    """Raised when a child process cannot be started in the PTY."""


class ChannelIOError(TermProbeError):
    """Raised when reading from or writing to the PTY fails."""

    def __init__(self, message: str, errno: int | None = None) -> None:
        super().__init__(message)
        self.errno = errno


class InvalidDimensionsError(TermProbeError):
    """Raised for a zero-sized terminal."""

    def __init__(self, width: int, height: int) -> None:
        super().__init__(
            f"Invalid terminal dimensions: width={width}, height={height}"
        )
        self.width = width
        self.height = height


class NoProcessRunningError(TermProbeError):
    """Raised when an operation needs a child process and none is attached."""

    def __init__(self, message: str = "No process is running") -> None:
        super().__init__(message)


class ProcessAlreadyRunningError(TermProbeError):
    """Raised when spawning while a previous child is still running."""

    def __init__(self, message: str = "Process is already running") -> None:
        super().__init__(message)


class ProcessExitedError(TermProbeError):
    """Raised when the child exits while the caller still expects output.

    Not an I/O error: a command that finishes right after printing is a
    normal test flow, so waits re-check their condition once before raising
    this. ``screen`` and ``cursor`` hold the last known state when available.
    """

    def __init__(
        self,
        message: str = "Child process has exited",
        exit_status: int | None = None,
        screen: str | None = None,
        cursor: tuple[int, int] | None = None,
    ) -> None:
        super().__init__(message)
        self.exit_status = exit_status
        self.screen = screen
        self.cursor = cursor


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


class TermTimeoutError(TermProbeError):
    """Base class for timeouts. ``timeout`` is the configured duration in seconds."""

    def __init__(self, message: str, timeout: float) -> None:
        super().__init__(message)
        self.timeout = timeout

    @property
    def timeout_ms(self) -> int:
        return int(round(self.timeout * 1000))


class WaitTimeoutError(TermTimeoutError):
    """Raised when a wait condition is not met before the timeout."""

    def __init__(
        self,
        timeout: float,
        description: str = "condition",
        elapsed: float | None = None,
        iterations: int = 0,
        cursor: tuple[int, int] | None = None,
        screen: str | None = None,
    ) -> None:
        super().__init__(
            f"Timeout waiting for {description} after {int(round(timeout * 1000))}ms",
            timeout,
        )
        self.description = description
        self.elapsed = elapsed
        self.iterations = iterations
        self.cursor = cursor
        self.screen = screen


class HarnessAssertionError(TermProbeError):
    """Raised for failed harness-level checks and unparsable input."""

    def __init__(self, message: str, screen: str | None = None) -> None:
        super().__init__(message)
        self.screen = screen


# ---------------------------------------------------------------------------
# Graphics
# ---------------------------------------------------------------------------


class BoundsViolationError(TermProbeError):
    """Raised when graphics regions fall outside an expected area."""

    def __init__(
        self,
        area: tuple[int, int, int, int],
        regions: Iterable[GraphicsRegion] = (),
        message: str | None = None,
    ) -> None:
        self.area = area
        self.regions = list(regions)
        if message is None:
            details = ", ".join(
                f"{r.protocol.display_name} at {r.position}" for r in self.regions
            )
            message = (
                f"Found {len(self.regions)} graphics region(s) outside area "
                f"{area}: [{details}]"
            )
        super().__init__(message)


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


class AcquireTimeoutError(TermTimeoutError):
    """Raised when no pooled terminal frees up before the acquire timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(
            f"Timeout acquiring terminal from pool after {int(round(timeout * 1000))}ms",
            timeout,
        )


class UnknownTerminalError(TermProbeError):
    """Raised when releasing a terminal id the pool does not know."""

    def __init__(self, terminal_id: object) -> None:
        super().__init__(f"Terminal ID {terminal_id} not found in pool")
        self.terminal_id = terminal_id
