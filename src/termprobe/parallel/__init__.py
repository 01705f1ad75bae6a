"""Parallel test support for termprobe.

Public API:
    TerminalPool -- capacity-bounded, thread-safe pool of PTY channels
    TerminalGuard -- scoped checkout that always returns its terminal
    TestContext -- port allocator and metadata shared across tests
"""

from termprobe.config.settings import PoolConfig
from termprobe.parallel.context import TestContext
from termprobe.parallel.pool import (
    IsolatedTerminal,
    PooledTerminal,
    PoolStats,
    TerminalGuard,
    TerminalId,
    TerminalPool,
)

__all__ = [
    "IsolatedTerminal",
    "PoolConfig",
    "PoolStats",
    "PooledTerminal",
    "TerminalGuard",
    "TerminalId",
    "TerminalPool",
    "TestContext",
]
