"""termprobe -- testing toolkit for terminal user interfaces.

Runs a program inside a pseudo-terminal, interprets everything it writes
(text, cursor movement, colors, and Sixel/Kitty/iTerm2 inline images) into
an in-memory screen, and lets tests type keys, click the mouse, wait for
output and assert on what is shown.
"""

from termprobe.domain.models import (
    Command,
    GraphicsProtocol,
    GraphicsRegion,
    KeyCode,
    Modifiers,
    MouseButton,
    MouseEvent,
    ScrollDirection,
    WaitResult,
)
from termprobe.errors import (
    BoundsViolationError,
    ProcessExitedError,
    TermProbeError,
    WaitTimeoutError,
)
from termprobe.graphics import GraphicsCapture, SixelCapture
from termprobe.harness import AsyncTuiTestHarness, TuiTestHarness
from termprobe.parallel import TerminalGuard, TerminalPool, TestContext
from termprobe.screen import ScreenState

__version__ = "0.1.0"

__all__ = [
    "AsyncTuiTestHarness",
    "BoundsViolationError",
    "Command",
    "GraphicsCapture",
    "GraphicsProtocol",
    "GraphicsRegion",
    "KeyCode",
    "Modifiers",
    "MouseButton",
    "MouseEvent",
    "ProcessExitedError",
    "ScreenState",
    "ScrollDirection",
    "SixelCapture",
    "TermProbeError",
    "TerminalGuard",
    "TerminalPool",
    "TestContext",
    "TuiTestHarness",
    "WaitResult",
    "WaitTimeoutError",
]
