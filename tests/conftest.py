"""Shared test fixtures for the termprobe test suite.

Provides common fixtures used across unit tests: screen states, sample
graphics escape sequences, harnesses running real programs under a PTY,
and small terminal pools.
"""

from __future__ import annotations

import time
from typing import Callable, Iterator

import pytest

from termprobe.config.settings import PoolConfig
from termprobe.harness.harness import TuiTestHarness
from termprobe.parallel.pool import TerminalPool
from termprobe.process.channel import ProcessChannel
from termprobe.screen.state import ScreenState


# ---------------------------------------------------------------------------
# Screen Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def screen() -> ScreenState:
    """A blank 80x24 screen."""
    return ScreenState(80, 24)


@pytest.fixture
def small_screen() -> ScreenState:
    """A blank 10x5 screen for edge-of-screen tests."""
    return ScreenState(10, 5)


# ---------------------------------------------------------------------------
# Graphics Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sixel_sequence() -> bytes:
    """A Sixel image declaring 100x50 pixels via raster attributes."""
    return b'\x1bPq"1;1;100;50#0;2;0;0;0#0~~@@vv@@~~$-\x1b\\'


@pytest.fixture
def kitty_sequence() -> bytes:
    """A Kitty graphics command declaring an 80x48 pixel image."""
    return b"\x1b_Ga=T,f=100,w=80,h=48;iVBORw0KGgo=\x1b\\"


@pytest.fixture
def iterm2_sequence() -> bytes:
    """An iTerm2 inline image declared as 20x10 cells."""
    return b"\x1b]1337;File=name=aW1n;width=20;height=10;inline=1:iVBORw0KGgo=\x07"


# ---------------------------------------------------------------------------
# Process Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def channel() -> Iterator[ProcessChannel]:
    """An 80x24 PTY channel, closed after the test."""
    ch = ProcessChannel(80, 24)
    yield ch
    ch.close()


@pytest.fixture
def harness() -> Iterator[TuiTestHarness]:
    """An 80x24 harness with a fast poll interval, closed after the test."""
    h = TuiTestHarness.builder().with_size(80, 24).with_poll_interval(0.05).build()
    yield h
    h.close()


def _read_until(channel: ProcessChannel, needle: bytes, timeout: float = 5.0) -> bytes:
    output = b""
    deadline = time.monotonic() + timeout
    while needle not in output and time.monotonic() < deadline:
        output += channel.read(timeout=0.05)
    return output


@pytest.fixture
def read_until() -> Callable[..., bytes]:
    """Accumulate channel output until a needle shows up or a timeout passes."""
    return _read_until


# ---------------------------------------------------------------------------
# Pool Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def pool_config() -> PoolConfig:
    """A two-terminal pool that gives up quickly."""
    return PoolConfig(max_terminals=2, acquire_timeout=0.3, poll_interval=0.01)


@pytest.fixture
def pool(pool_config: PoolConfig) -> Iterator[TerminalPool]:
    p = TerminalPool(pool_config)
    yield p
    p.clear()
