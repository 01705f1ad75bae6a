"""Synchronous test harness.

:class:`TuiTestHarness` runs one program in a pseudo-terminal, feeds its
output into a :class:`~termprobe.screen.ScreenState`, and gives tests a
small vocabulary: send keys and mouse events, wait for something to show
up on screen, then inspect the screen or its graphics.

Typical use::

    with TuiTestHarness(80, 24) as harness:
        harness.spawn(["my-tui", "--demo"])
        harness.wait_for_text("Ready")
        harness.send_key("Down")
        harness.send_key_with_modifiers("c", Modifiers.CTRL)
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Callable, Mapping, Sequence

from termprobe.config.settings import HarnessConfig
from termprobe.domain.models import (
    Area,
    Command,
    GraphicsRegion,
    KeyCode,
    KeyEvent,
    Modifiers,
    MouseButton,
    MouseEvent,
    ScrollDirection,
)
from termprobe.errors import BoundsViolationError, ProcessExitedError, WaitTimeoutError
from termprobe.graphics import GraphicsCapture, SixelCapture
from termprobe.keyboard.codes import encode_key_event, encode_mouse_event, parse_key
from termprobe.process.channel import READ_BUDGET, ProcessChannel
from termprobe.screen.state import ScreenState

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_BUFFER_SIZE = 4096
KEY_SETTLE_DELAY = 0.05
DRAIN_TIMEOUT = 0.01
DEFAULT_PREVIEW_AREA: Area = (5, 40, 35, 15)

Predicate = Callable[[ScreenState], bool]


class TuiTestHarness:
    """Drives a terminal program and tracks what its screen shows.

    Args:
        width: Terminal width in columns.
        height: Terminal height in rows.
        timeout: Default timeout for waits, in seconds.
        poll_interval: Sleep between wait iterations, in seconds.
        buffer_size: Maximum bytes per PTY read.
        key_settle_delay: Pause after each key or mouse event.

    Raises:
        InvalidDimensionsError: If either dimension is zero.
    """

    def __init__(
        self,
        width: int = 80,
        height: int = 24,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        key_settle_delay: float = KEY_SETTLE_DELAY,
    ) -> None:
        self._state = ScreenState(width, height)
        self._channel = ProcessChannel(width, height, buffer_size)
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._buffer_size = buffer_size
        self._key_settle_delay = key_settle_delay
        self._last_wait_iterations = 0

    @classmethod
    def from_config(cls, config: HarnessConfig) -> TuiTestHarness:
        return cls(
            width=config.width,
            height=config.height,
            timeout=config.timeout,
            poll_interval=config.poll_interval,
            buffer_size=config.buffer_size,
            key_settle_delay=config.key_settle_delay,
        )

    @staticmethod
    def builder() -> HarnessBuilder:
        return HarnessBuilder()

    def with_timeout(self, timeout: float) -> TuiTestHarness:
        self._timeout = timeout
        return self

    def with_poll_interval(self, interval: float) -> TuiTestHarness:
        self._poll_interval = interval
        return self

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    @property
    def state(self) -> ScreenState:
        return self._state

    @property
    def channel(self) -> ProcessChannel:
        return self._channel

    @property
    def last_wait_iterations(self) -> int:
        """Number of sleeps the most recent wait performed before finishing."""
        return self._last_wait_iterations

    # ------------------------------------------------------------------
    # Process lifecycle
    # ------------------------------------------------------------------

    def spawn(
        self,
        command: Command | str | Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> int:
        """Start ``command`` in the terminal and return its pid.

        Raises:
            ProcessAlreadyRunningError: If the current child is still running.
            SpawnFailedError: If the program cannot be started.
        """
        return self._channel.spawn(Command.parse(command, env=env, cwd=cwd))

    def is_running(self) -> bool:
        return self._channel.is_running()

    def wait_exit(self) -> int | None:
        """Block until the child exits, then pick up its remaining output.

        Raises:
            NoProcessRunningError: If nothing was spawned.
        """
        status = self._channel.wait()
        self._drain()
        return status

    def kill(self) -> None:
        self._channel.kill()

    def close(self) -> None:
        self._channel.close()

    def __enter__(self) -> TuiTestHarness:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def send_text(self, text: str) -> None:
        """Write ``text`` verbatim, then refresh the screen."""
        self._channel.write_all(text)
        self._refresh()

    def send_key(self, key: KeyCode | str) -> None:
        """Send one key: a :class:`KeyCode`, a character, or a key name."""
        self._send_input(encode_key_event(KeyEvent(code=parse_key(key))))

    def send_key_with_modifiers(self, key: KeyCode | str, modifiers: Modifiers) -> None:
        event = KeyEvent(code=parse_key(key), modifiers=modifiers)
        self._send_input(encode_key_event(event))

    def send_keys(self, text: str) -> None:
        """Type ``text`` one character at a time."""
        for char in text:
            self.send_key(char)

    def type_text(self, text: str) -> None:
        self.send_keys(text)

    def send_mouse_event(self, event: MouseEvent) -> None:
        self._send_input(encode_mouse_event(event))

    def mouse_click(self, x: int, y: int, button: MouseButton = MouseButton.LEFT) -> None:
        self.send_mouse_event(MouseEvent.press(x, y, button))
        self.send_mouse_event(MouseEvent.release(x, y, button))

    def mouse_drag(
        self,
        start_x: int,
        start_y: int,
        end_x: int,
        end_y: int,
        button: MouseButton = MouseButton.LEFT,
    ) -> None:
        self.send_mouse_event(MouseEvent.press(start_x, start_y, button))
        self.send_mouse_event(MouseEvent.motion(end_x, end_y, button))
        self.send_mouse_event(MouseEvent.release(end_x, end_y, button))

    def mouse_scroll(self, x: int, y: int, direction: ScrollDirection) -> None:
        self.send_mouse_event(MouseEvent.scroll(x, y, direction))

    def _send_input(self, data: bytes) -> None:
        self._channel.write_all(data)
        time.sleep(self._key_settle_delay)
        self._refresh()

    def _refresh(self) -> None:
        # Exit is reported by the next wait or update_state, not by input
        try:
            self.update_state()
        except ProcessExitedError:
            logger.debug("Child exited; deferring report to the next wait")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def update_state(self, max_duration: float | None = None) -> None:
        """Feed currently available output into the screen.

        Draining stops after ``max_duration`` seconds (default: the poll
        interval) even if the child keeps writing.

        Raises:
            ProcessExitedError: If the child had exited before this call
                started draining (its final output is still applied).
        """
        if not self._channel.has_process:
            return
        exited = not self._channel.is_running()
        # Output written just before exit can lag behind the exit itself
        self._drain(READ_BUDGET if exited else DRAIN_TIMEOUT, max_duration)
        if exited:
            raise ProcessExitedError(
                exit_status=self._channel.exit_status,
                screen=self._state.contents(),
                cursor=self._state.cursor_position(),
            )

    def _drain(self, timeout: float = READ_BUDGET, max_duration: float | None = None) -> None:
        window = self._poll_interval if max_duration is None else max_duration
        deadline = time.monotonic() + window
        while True:
            data = self._channel.read(self._buffer_size, timeout=timeout)
            if not data:
                break
            self._state.feed(data)
            if time.monotonic() >= deadline:
                logger.debug("Drain window of %.3fs used up; output still pending", window)
                break

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def wait_for(
        self,
        predicate: Predicate,
        description: str = "condition",
        timeout: float | None = None,
    ) -> None:
        """Poll until ``predicate(state)`` holds.

        Each iteration refreshes the screen, evaluates the predicate, and
        sleeps ``poll_interval``. If the child exits, the predicate gets one
        last chance against the final screen.

        Raises:
            WaitTimeoutError: If the predicate never held within the timeout.
            ProcessExitedError: If the child exited and the predicate does
                not hold on its final screen.
        """
        timeout = self._timeout if timeout is None else timeout
        start = time.monotonic()
        iterations = 0
        deadline = start + timeout
        while True:
            try:
                remaining = max(deadline - time.monotonic(), 0.0)
                self.update_state(min(self._poll_interval, remaining))
            except ProcessExitedError as e:
                self._last_wait_iterations = iterations
                if predicate(self._state):
                    return
                elapsed = time.monotonic() - start
                self.print_diagnostics(
                    f"Process exited while waiting for: {description}", elapsed, iterations
                )
                raise ProcessExitedError(
                    f"Process exited while waiting for {description}",
                    exit_status=e.exit_status,
                    screen=self._state.contents(),
                    cursor=self._state.cursor_position(),
                ) from e

            if predicate(self._state):
                self._last_wait_iterations = iterations
                return

            elapsed = time.monotonic() - start
            if elapsed >= timeout:
                self._last_wait_iterations = iterations
                self.print_diagnostics(
                    f"Timeout waiting for: {description}", elapsed, iterations
                )
                logger.warning(
                    "Timed out waiting for %s after %.2fs (%d iterations)",
                    description, elapsed, iterations,
                )
                raise WaitTimeoutError(
                    timeout,
                    description,
                    elapsed=elapsed,
                    iterations=iterations,
                    cursor=self._state.cursor_position(),
                    screen=self._state.contents(),
                )

            iterations += 1
            time.sleep(self._poll_interval)

    def wait_for_text(self, text: str) -> None:
        self.wait_for_text_timeout(text, self._timeout)

    def wait_for_text_timeout(self, text: str, timeout: float) -> None:
        self.wait_for(lambda state: state.contains(text), f"text '{text}'", timeout)

    def wait_for_cursor(self, pos: tuple[int, int]) -> None:
        self.wait_for_cursor_timeout(pos, self._timeout)

    def wait_for_cursor_timeout(self, pos: tuple[int, int], timeout: float) -> None:
        target = tuple(pos)
        self.wait_for(
            lambda state: state.cursor_position() == target,
            f"cursor at (row={target[0]}, col={target[1]})",
            timeout,
        )

    def print_diagnostics(self, headline: str, elapsed: float, iterations: int) -> None:
        """Write the wait failure block (cursor and full screen) to stderr."""
        row, col = self._state.cursor_position()
        lines = [
            "",
            f"=== {headline} ===",
            f"Waited: {elapsed:.3f}s ({iterations} iterations)",
            f"Cursor position: row={row}, col={col}",
            "Current screen state:",
            self._state.debug_contents(),
            "=" * 42,
            "",
        ]
        print("\n".join(lines), file=sys.stderr)

    # ------------------------------------------------------------------
    # Screen queries
    # ------------------------------------------------------------------

    def screen_contents(self) -> str:
        return self._state.contents()

    def cursor_position(self) -> tuple[int, int]:
        return self._state.cursor_position()

    def resize(self, width: int, height: int) -> None:
        """Resize the terminal. The screen model starts over blank.

        Raises:
            InvalidDimensionsError: If either dimension is zero.
        """
        self._channel.resize(width, height)
        self._state = ScreenState(width, height)

    # ------------------------------------------------------------------
    # Graphics
    # ------------------------------------------------------------------

    def graphics(self) -> GraphicsCapture:
        return GraphicsCapture.from_screen_state(self._state)

    def sixel_regions(self) -> list[GraphicsRegion]:
        return self._state.sixel_regions()

    def sixel_count(self) -> int:
        return len(self._state.sixel_regions())

    def sixel_at(self, row: int, col: int) -> GraphicsRegion | None:
        """The first Sixel anchored at (row, col), if any."""
        for region in self._state.sixel_regions():
            if region.position == (row, col):
                return region
        return None

    def assert_sixel_within_bounds(self, area: Area) -> None:
        """Raises BoundsViolationError if any Sixel lies outside ``area``."""
        SixelCapture.from_screen_state(self._state).assert_all_within(area)

    def has_sixel_in_area(self, area: Area) -> bool:
        return any(region.is_within(area) for region in self._state.sixel_regions())

    def assert_preview_has_sixel(self) -> None:
        """Check the default preview pane, rows 5-19 and columns 40-74."""
        self.assert_preview_has_sixel_in(DEFAULT_PREVIEW_AREA)

    def assert_preview_has_sixel_in(self, area: Area) -> None:
        """Check that at least one Sixel is drawn entirely inside ``area``.

        Raises:
            BoundsViolationError: If none is; the message lists the bounds of
                every Sixel seen so far.
        """
        if self.has_sixel_in_area(area):
            return
        regions = self._state.sixel_regions()
        raise BoundsViolationError(
            area,
            regions,
            f"No Sixel graphics found in preview area {area}. "
            f"Current Sixel count: {len(regions)}. "
            f"Regions: {[r.bounds for r in regions]}",
        )


class HarnessBuilder:
    """Fluent construction of a :class:`TuiTestHarness`."""

    def __init__(self) -> None:
        self._width = 80
        self._height = 24
        self._timeout = DEFAULT_TIMEOUT
        self._poll_interval = DEFAULT_POLL_INTERVAL
        self._buffer_size = DEFAULT_BUFFER_SIZE
        self._key_settle_delay = KEY_SETTLE_DELAY

    def with_size(self, width: int, height: int) -> HarnessBuilder:
        self._width = width
        self._height = height
        return self

    def with_timeout(self, timeout: float) -> HarnessBuilder:
        self._timeout = timeout
        return self

    def with_poll_interval(self, interval: float) -> HarnessBuilder:
        self._poll_interval = interval
        return self

    def with_buffer_size(self, size: int) -> HarnessBuilder:
        self._buffer_size = size
        return self

    def with_key_settle_delay(self, delay: float) -> HarnessBuilder:
        self._key_settle_delay = delay
        return self

    def build(self) -> TuiTestHarness:
        """Create the harness.

        Raises:
            InvalidDimensionsError: If either dimension is zero.
        """
        return TuiTestHarness(
            self._width,
            self._height,
            timeout=self._timeout,
            poll_interval=self._poll_interval,
            buffer_size=self._buffer_size,
            key_settle_delay=self._key_settle_delay,
        )
