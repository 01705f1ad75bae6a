"""Test harnesses for termprobe.

Public API:
    TuiTestHarness -- blocking harness: spawn, send input, wait, inspect
    HarnessBuilder -- fluent construction of a TuiTestHarness
    AsyncTuiTestHarness -- asyncio adapter over a shared TuiTestHarness
    WaitCondition and friends -- conditions for the async waits
"""

from termprobe.harness.async_harness import (
    AsyncTuiTestHarness,
    AsyncWaitAnyBuilder,
    AsyncWaitBuilder,
    CursorCondition,
    PredicateCondition,
    TextCondition,
    WaitCondition,
)
from termprobe.harness.harness import KEY_SETTLE_DELAY, HarnessBuilder, TuiTestHarness

__all__ = [
    "AsyncTuiTestHarness",
    "AsyncWaitAnyBuilder",
    "AsyncWaitBuilder",
    "CursorCondition",
    "HarnessBuilder",
    "KEY_SETTLE_DELAY",
    "PredicateCondition",
    "TextCondition",
    "TuiTestHarness",
    "WaitCondition",
]
