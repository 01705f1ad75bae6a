"""Asyncio adapter for :class:`~termprobe.harness.harness.TuiTestHarness`.

The harness itself is blocking. :class:`AsyncTuiTestHarness` runs every
harness call in the event loop's default executor while holding a
``threading.Lock``; clones made with :meth:`AsyncTuiTestHarness.clone`
share that lock, so concurrent coroutines talking to the same terminal
are serialised.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Sequence, TypeVar

from termprobe.domain.models import (
    Command,
    KeyCode,
    Modifiers,
    MouseButton,
    MouseEvent,
    ScrollDirection,
    WaitResult,
)
from termprobe.errors import ProcessExitedError, WaitTimeoutError
from termprobe.harness.harness import TuiTestHarness
from termprobe.screen.state import ScreenState

logger = logging.getLogger(__name__)

ASYNC_TIMEOUT = 5.0
ASYNC_POLL_INTERVAL = 0.05

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Wait conditions
# ---------------------------------------------------------------------------


class WaitCondition(ABC):
    """A named predicate over the screen state."""

    @abstractmethod
    def __call__(self, state: ScreenState) -> bool:
        """Return True when the condition holds."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description used in timeout diagnostics."""


class TextCondition(WaitCondition):
    def __init__(self, text: str) -> None:
        self.text = text

    def __call__(self, state: ScreenState) -> bool:
        return state.contains(self.text)

    @property
    def description(self) -> str:
        return f"text '{self.text}'"


class CursorCondition(WaitCondition):
    def __init__(self, position: tuple[int, int]) -> None:
        self.position = tuple(position)

    def __call__(self, state: ScreenState) -> bool:
        return state.cursor_position() == self.position

    @property
    def description(self) -> str:
        return f"cursor at (row={self.position[0]}, col={self.position[1]})"


class PredicateCondition(WaitCondition):
    def __init__(
        self, predicate: Callable[[ScreenState], bool], description: str = "condition"
    ) -> None:
        self._predicate = predicate
        self._description = description

    def __call__(self, state: ScreenState) -> bool:
        return bool(self._predicate(state))

    @property
    def description(self) -> str:
        return self._description


def as_condition(condition: WaitCondition | Callable[[ScreenState], bool]) -> WaitCondition:
    """Wrap a plain callable in a :class:`PredicateCondition`."""
    if isinstance(condition, WaitCondition):
        return condition
    return PredicateCondition(condition)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class AsyncTuiTestHarness:
    """Coroutine front-end for a shared :class:`TuiTestHarness`.

    Args:
        harness: The harness to drive.
        lock: Lock guarding the harness. Pass an existing lock only to share
            it with another adapter; :meth:`clone` does this for you.
    """

    def __init__(self, harness: TuiTestHarness, lock: threading.Lock | None = None) -> None:
        self._harness = harness
        self._lock = lock if lock is not None else threading.Lock()

    @classmethod
    async def create(cls, width: int = 80, height: int = 24) -> AsyncTuiTestHarness:
        """Build a harness off the event loop and wrap it.

        Raises:
            InvalidDimensionsError: If either dimension is zero.
        """
        loop = asyncio.get_running_loop()
        harness = await loop.run_in_executor(None, TuiTestHarness, width, height)
        return cls(harness)

    @classmethod
    def from_harness(cls, harness: TuiTestHarness) -> AsyncTuiTestHarness:
        return cls(harness)

    def clone(self) -> AsyncTuiTestHarness:
        """Another handle on the same harness and lock."""
        return AsyncTuiTestHarness(self._harness, self._lock)

    @property
    def harness(self) -> TuiTestHarness:
        """The wrapped harness. Use only when no coroutine is driving it."""
        return self._harness

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``func(*args, **kwargs)`` in the executor under the harness lock."""
        loop = asyncio.get_running_loop()
        call = functools.partial(self._locked, func, *args, **kwargs)
        return await loop.run_in_executor(None, call)

    def _locked(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with self._lock:
            return func(*args, **kwargs)

    # ------------------------------------------------------------------
    # Mirrors of the blocking API
    # ------------------------------------------------------------------

    async def spawn(self, command: Command | str | Sequence[str]) -> int:
        return await self.run(self._harness.spawn, command)

    async def send_text(self, text: str) -> None:
        await self.run(self._harness.send_text, text)

    async def type_text(self, text: str) -> None:
        await self.run(self._harness.type_text, text)

    async def send_key(self, key: KeyCode | str) -> None:
        await self.run(self._harness.send_key, key)

    async def send_key_with_modifiers(self, key: KeyCode | str, modifiers: Modifiers) -> None:
        await self.run(self._harness.send_key_with_modifiers, key, modifiers)

    async def send_mouse_event(self, event: MouseEvent) -> None:
        await self.run(self._harness.send_mouse_event, event)

    async def mouse_click(self, x: int, y: int, button: MouseButton = MouseButton.LEFT) -> None:
        await self.run(self._harness.mouse_click, x, y, button)

    async def mouse_drag(
        self,
        start_x: int,
        start_y: int,
        end_x: int,
        end_y: int,
        button: MouseButton = MouseButton.LEFT,
    ) -> None:
        await self.run(self._harness.mouse_drag, start_x, start_y, end_x, end_y, button)

    async def mouse_scroll(self, x: int, y: int, direction: ScrollDirection) -> None:
        await self.run(self._harness.mouse_scroll, x, y, direction)

    async def update_state(self) -> None:
        await self.run(self._harness.update_state)

    async def screen_contents(self) -> str:
        return await self.run(self._harness.screen_contents)

    async def cursor_position(self) -> tuple[int, int]:
        return await self.run(self._harness.cursor_position)

    async def resize(self, width: int, height: int) -> None:
        await self.run(self._harness.resize, width, height)

    async def is_running(self) -> bool:
        return await self.run(self._harness.is_running)

    async def kill(self) -> None:
        await self.run(self._harness.kill)

    async def close(self) -> None:
        await self.run(self._harness.close)

    async def wait_for_text(self, text: str, timeout: float = ASYNC_TIMEOUT) -> None:
        await self.wait_for_async(TextCondition(text)).timeout(timeout).execute()

    # ------------------------------------------------------------------
    # Waits
    # ------------------------------------------------------------------

    def wait_for_async(
        self, condition: WaitCondition | Callable[[ScreenState], bool]
    ) -> AsyncWaitBuilder:
        return AsyncWaitBuilder(self, as_condition(condition))

    def wait_for_any_async(self) -> AsyncWaitAnyBuilder:
        return AsyncWaitAnyBuilder(self)

    def _poll(
        self, conditions: Sequence[WaitCondition]
    ) -> tuple[int | None, ProcessExitedError | None]:
        """Refresh, then return the index of the first holding condition.

        Runs on an executor thread with the lock held.
        """
        exited = None
        try:
            self._harness.update_state()
        except ProcessExitedError as e:
            exited = e
        state = self._harness.state
        for index, condition in enumerate(conditions):
            if condition(state):
                return index, exited
        return None, exited

    def _exited_error(
        self, cause: ProcessExitedError, description: str, elapsed: float, iterations: int
    ) -> ProcessExitedError:
        self._harness.print_diagnostics(
            f"Process exited while waiting for: {description}", elapsed, iterations
        )
        return ProcessExitedError(
            f"Process exited while waiting for {description}",
            exit_status=cause.exit_status,
            screen=self._harness.screen_contents(),
            cursor=self._harness.cursor_position(),
        )


class AsyncWaitBuilder:
    """Configures and runs a single-condition wait. Defaults: 5 s / 50 ms."""

    def __init__(self, adapter: AsyncTuiTestHarness, condition: WaitCondition) -> None:
        self._adapter = adapter
        self._condition = condition
        self._timeout = ASYNC_TIMEOUT
        self._poll_interval = ASYNC_POLL_INTERVAL

    def timeout(self, timeout: float) -> AsyncWaitBuilder:
        self._timeout = timeout
        return self

    def poll_interval(self, interval: float) -> AsyncWaitBuilder:
        self._poll_interval = interval
        return self

    async def execute(self) -> None:
        """Poll until the condition holds.

        Raises:
            WaitTimeoutError: If the timeout elapses first.
            ProcessExitedError: If the child exits and the condition does not
                hold on its final screen.
        """
        adapter = self._adapter
        description = self._condition.description
        start = time.monotonic()
        iterations = 0
        while True:
            index, exited = await adapter.run(adapter._poll, [self._condition])
            if index is not None:
                return
            elapsed = time.monotonic() - start
            if exited is not None:
                raise await adapter.run(
                    adapter._exited_error, exited, description, elapsed, iterations
                )
            if elapsed >= self._timeout:
                harness = adapter.harness
                await adapter.run(
                    harness.print_diagnostics,
                    f"Timeout waiting for: {description}",
                    elapsed,
                    iterations,
                )
                screen, cursor = await adapter.run(
                    lambda: (harness.screen_contents(), harness.cursor_position())
                )
                logger.warning("Timed out waiting for %s after %.2fs", description, elapsed)
                raise WaitTimeoutError(
                    self._timeout,
                    description,
                    elapsed=elapsed,
                    iterations=iterations,
                    cursor=cursor,
                    screen=screen,
                )
            iterations += 1
            await asyncio.sleep(self._poll_interval)


class AsyncWaitAnyBuilder:
    """Waits until the first of several conditions holds."""

    def __init__(self, adapter: AsyncTuiTestHarness) -> None:
        self._adapter = adapter
        self._conditions: list[WaitCondition] = []
        self._timeout = ASYNC_TIMEOUT
        self._poll_interval = ASYNC_POLL_INTERVAL

    def add_condition(
        self, condition: WaitCondition | Callable[[ScreenState], bool]
    ) -> AsyncWaitAnyBuilder:
        self._conditions.append(as_condition(condition))
        return self

    def timeout(self, timeout: float) -> AsyncWaitAnyBuilder:
        self._timeout = timeout
        return self

    def poll_interval(self, interval: float) -> AsyncWaitAnyBuilder:
        self._poll_interval = interval
        return self

    async def execute(self) -> WaitResult:
        """Return ``WaitResult.condition(i)`` for the first holding condition.

        Conditions are checked in the order they were added. A timeout is a
        result, not an error.

        Raises:
            ValueError: If no condition was added.
            ProcessExitedError: If the child exits and no condition holds on
                its final screen.
        """
        if not self._conditions:
            raise ValueError("wait_for_any_async needs at least one condition")
        adapter = self._adapter
        start = time.monotonic()
        iterations = 0
        while True:
            index, exited = await adapter.run(adapter._poll, self._conditions)
            if index is not None:
                return WaitResult.condition(index)
            elapsed = time.monotonic() - start
            if exited is not None:
                description = " or ".join(c.description for c in self._conditions)
                raise await adapter.run(
                    adapter._exited_error, exited, description, elapsed, iterations
                )
            if elapsed >= self._timeout:
                logger.info("No condition met within %.2fs", self._timeout)
                return WaitResult.timed_out(self._timeout)
            iterations += 1
            await asyncio.sleep(self._poll_interval)
