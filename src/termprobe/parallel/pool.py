"""Bounded pool of reusable terminals for parallel tests.

The pool hands out :class:`IsolatedTerminal` handles, each backed by its
own :class:`~termprobe.process.ProcessChannel`. A released terminal is
reused by the next caller that asks for the same size. At most
``max_terminals`` channels ever exist; when all are in use, ``acquire``
polls until one is released or the acquire timeout passes.

The pool is safe to share between threads. Terminals handed out are not:
each one belongs to the caller that acquired it until it is released.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator

from pydantic import BaseModel, ConfigDict

from termprobe.config.settings import PoolConfig
from termprobe.errors import AcquireTimeoutError, UnknownTerminalError
from termprobe.process.channel import ProcessChannel

logger = logging.getLogger(__name__)


class TerminalId(BaseModel):
    """Opaque identifier of a pooled terminal."""

    model_config = ConfigDict(frozen=True)

    value: int

    def __str__(self) -> str:
        return f"TerminalId({self.value})"


class PoolStats(BaseModel):
    """Point-in-time view of pool usage."""

    model_config = ConfigDict(frozen=True)

    total: int
    in_use: int
    available: int
    max_capacity: int

    def summary(self) -> str:
        return (
            f"Pool Stats: {self.in_use}/{self.total} in use, "
            f"{self.available} available (max: {self.max_capacity})"
        )


class PooledTerminal:
    """Pool bookkeeping for one channel."""

    def __init__(self, terminal_id: TerminalId, width: int, height: int) -> None:
        self.id = terminal_id
        self.channel = ProcessChannel(width, height)
        self.width = width
        self.height = height
        self.in_use = False
        self.last_acquired: float | None = None

    def acquire(self) -> None:
        self.in_use = True
        self.last_acquired = time.monotonic()

    def release(self) -> None:
        self.in_use = False

    def is_available(self) -> bool:
        return not self.in_use

    def matches(self, width: int, height: int) -> bool:
        return self.width == width and self.height == height

    def __repr__(self) -> str:
        return (
            f"PooledTerminal(id={self.id}, size={self.width}x{self.height}, "
            f"in_use={self.in_use})"
        )


class IsolatedTerminal:
    """A terminal checked out of the pool."""

    def __init__(self, terminal_id: TerminalId, channel: ProcessChannel) -> None:
        self._id = terminal_id
        self._channel = channel

    @property
    def id(self) -> TerminalId:
        return self._id

    @property
    def channel(self) -> ProcessChannel:
        return self._channel

    def size(self) -> tuple[int, int]:
        return self._channel.size()

    def __repr__(self) -> str:
        width, height = self.size()
        return f"IsolatedTerminal(id={self._id}, size={width}x{height})"


class TerminalPool:
    """Thread-safe, capacity-bounded terminal pool.

    Args:
        config: Pool limits and default terminal size.
    """

    def __init__(self, config: PoolConfig | None = None) -> None:
        self._config = config or PoolConfig()
        # Reentrant: a collected TerminalGuard may release from inside acquire
        self._lock = threading.RLock()
        self._terminals: dict[TerminalId, PooledTerminal] = {}
        self._next_id = 0

    @property
    def config(self) -> PoolConfig:
        return self._config

    def acquire(self, width: int | None = None, height: int | None = None) -> IsolatedTerminal:
        """Check out a terminal of the given size (pool defaults when omitted).

        A free terminal of matching size is preferred; otherwise a new one is
        created while under capacity; otherwise the call polls until one is
        released.

        Raises:
            AcquireTimeoutError: If nothing frees up within ``acquire_timeout``.
            InvalidDimensionsError: If either dimension is zero.
        """
        width = self._config.default_width if width is None else width
        height = self._config.default_height if height is None else height
        start = time.monotonic()
        while True:
            with self._lock:
                terminal = self._try_acquire(width, height)
            if terminal is not None:
                return terminal
            if time.monotonic() - start >= self._config.acquire_timeout:
                logger.warning(
                    "Pool exhausted: no %dx%d terminal within %.2fs",
                    width, height, self._config.acquire_timeout,
                )
                raise AcquireTimeoutError(self._config.acquire_timeout)
            time.sleep(self._config.poll_interval)

    def _try_acquire(self, width: int, height: int) -> IsolatedTerminal | None:
        for pooled in self._terminals.values():
            if pooled.is_available() and pooled.matches(width, height):
                pooled.acquire()
                logger.debug("Reusing %s", pooled.id)
                return IsolatedTerminal(pooled.id, pooled.channel)

        if len(self._terminals) < self._config.max_terminals:
            terminal_id = TerminalId(value=self._next_id)
            pooled = PooledTerminal(terminal_id, width, height)
            self._next_id += 1
            pooled.acquire()
            self._terminals[terminal_id] = pooled
            logger.info("Created %s (%dx%d)", terminal_id, width, height)
            return IsolatedTerminal(terminal_id, pooled.channel)

        return None

    def release(self, terminal: IsolatedTerminal) -> None:
        """Return a terminal to the pool. A still-running child is killed.

        Raises:
            UnknownTerminalError: If the terminal does not belong to this pool.
        """
        with self._lock:
            pooled = self._terminals.get(terminal.id)
            if pooled is None:
                raise UnknownTerminalError(terminal.id)
        # Still marked in use, so nobody else can pick it up mid-kill
        if pooled.channel.is_running():
            pooled.channel.kill()
        with self._lock:
            pooled.release()
        logger.debug("Released %s", terminal.id)

    def stats(self) -> PoolStats:
        with self._lock:
            total = len(self._terminals)
            in_use = sum(1 for t in self._terminals.values() if t.in_use)
        return PoolStats(
            total=total,
            in_use=in_use,
            available=total - in_use,
            max_capacity=self._config.max_terminals,
        )

    def clear(self) -> None:
        """Close and forget every terminal, including checked-out ones."""
        with self._lock:
            terminals = list(self._terminals.values())
            self._terminals.clear()
        for pooled in terminals:
            pooled.channel.close()
        logger.info("Cleared pool (%d terminal(s) closed)", len(terminals))

    @contextmanager
    def terminal(
        self, width: int | None = None, height: int | None = None
    ) -> Iterator[IsolatedTerminal]:
        """Acquire a terminal for the duration of a ``with`` block."""
        terminal = self.acquire(width, height)
        try:
            yield terminal
        finally:
            self.release(terminal)


class TerminalGuard:
    """Holds one pooled terminal and returns it exactly once.

    Release happens on :meth:`release`, on leaving a ``with`` block, or when
    the guard is garbage collected, whichever comes first.
    """

    def __init__(
        self, pool: TerminalPool, width: int | None = None, height: int | None = None
    ) -> None:
        self._pool = pool
        self._terminal: IsolatedTerminal | None = None
        self._terminal = pool.acquire(width, height)

    @property
    def terminal(self) -> IsolatedTerminal:
        if self._terminal is None:
            raise RuntimeError("Terminal has already been released")
        return self._terminal

    @property
    def released(self) -> bool:
        return self._terminal is None

    def release(self) -> None:
        """Return the terminal to the pool. Later calls do nothing.

        Raises:
            UnknownTerminalError: If the pool no longer knows the terminal.
        """
        terminal, self._terminal = self._terminal, None
        if terminal is not None:
            self._pool.release(terminal)

    def __enter__(self) -> TerminalGuard:
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()

    def __del__(self) -> None:
        terminal = getattr(self, "_terminal", None)
        if terminal is None:
            return
        self._terminal = None
        try:
            self._pool.release(terminal)
        except Exception as e:
            logger.debug("Ignoring error releasing %s during collection: %s", terminal.id, e)
