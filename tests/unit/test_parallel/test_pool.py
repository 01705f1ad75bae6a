"""Tests for the terminal pool and terminal guard."""

from __future__ import annotations

import gc
import threading
import time
from unittest.mock import patch

import pytest

from termprobe.config.settings import PoolConfig
from termprobe.errors import AcquireTimeoutError, UnknownTerminalError
from termprobe.parallel.pool import (
    IsolatedTerminal,
    PooledTerminal,
    PoolStats,
    TerminalGuard,
    TerminalId,
    TerminalPool,
)
from termprobe.process.channel import ProcessChannel


class TestModels:
    def test_terminal_id(self) -> None:
        assert str(TerminalId(value=3)) == "TerminalId(3)"
        assert TerminalId(value=3) == TerminalId(value=3)
        assert len({TerminalId(value=1), TerminalId(value=1)}) == 1

    def test_stats_summary(self) -> None:
        stats = PoolStats(total=2, in_use=1, available=1, max_capacity=2)
        assert stats.summary() == "Pool Stats: 1/2 in use, 1 available (max: 2)"


class TestAcquireRelease:
    def test_default_size(self, pool: TerminalPool) -> None:
        terminal = pool.acquire()
        assert terminal.size() == (80, 24)
        assert isinstance(terminal.channel, ProcessChannel)

    def test_stats(self, pool: TerminalPool) -> None:
        assert pool.stats().total == 0
        first = pool.acquire()
        pool.acquire()
        pool.release(first)
        stats = pool.stats()
        assert (stats.total, stats.in_use, stats.available, stats.max_capacity) == (2, 1, 1, 2)
        assert stats.summary() == "Pool Stats: 1/2 in use, 1 available (max: 2)"

    def test_capacity_exhausted(self, pool: TerminalPool) -> None:
        pool.acquire()
        pool.acquire()
        start = time.monotonic()
        with pytest.raises(AcquireTimeoutError) as exc_info:
            pool.acquire()
        assert exc_info.value.timeout == 0.3
        assert time.monotonic() - start >= 0.3

    def test_release_unblocks_waiter(self, pool: TerminalPool) -> None:
        pool.acquire()
        held = pool.acquire()
        timer = threading.Timer(0.1, pool.release, args=(held,))
        timer.start()
        try:
            terminal = pool.acquire()
        finally:
            timer.join()
        assert terminal.id == held.id

    def test_reuse_same_size(self, pool: TerminalPool) -> None:
        first = pool.acquire(80, 24)
        pool.release(first)
        second = pool.acquire(80, 24)
        assert second.id == first.id
        assert pool.stats().total == 1

    def test_different_size_gets_new_terminal(self, pool: TerminalPool) -> None:
        first = pool.acquire(80, 24)
        pool.release(first)
        second = pool.acquire(100, 30)
        assert second.id != first.id
        assert second.size() == (100, 30)

    def test_release_unknown(self, pool: TerminalPool) -> None:
        stranger = IsolatedTerminal(TerminalId(value=99), ProcessChannel())
        try:
            with pytest.raises(UnknownTerminalError):
                pool.release(stranger)
        finally:
            stranger.channel.close()

    def test_release_kills_running_child(self, pool: TerminalPool) -> None:
        terminal = pool.acquire()
        terminal.channel.spawn(["sleep", "30"])
        pool.release(terminal)
        assert not terminal.channel.is_running()

    def test_slow_kill_does_not_block_other_callers(self, pool: TerminalPool, read_until) -> None:
        terminal = pool.acquire()
        terminal.channel.spawn(["sh", "-c", "trap '' TERM; echo armed; exec sleep 30"])
        read_until(terminal.channel, b"armed")
        releaser = threading.Thread(target=pool.release, args=(terminal,))
        releaser.start()
        try:
            time.sleep(0.1)
            start = time.monotonic()
            stats = pool.stats()
            assert time.monotonic() - start < 0.2
            assert stats.in_use == 1
        finally:
            releaser.join(timeout=5.0)
        assert not releaser.is_alive()
        assert pool.stats().in_use == 0
        assert not terminal.channel.is_running()

    def test_reused_channel_runs_new_child(self, pool: TerminalPool, read_until) -> None:
        terminal = pool.acquire()
        terminal.channel.spawn(["sleep", "30"])
        pool.release(terminal)
        again = pool.acquire()
        again.channel.spawn(["echo", "second life"])
        assert b"second life" in read_until(again.channel, b"second life")

    def test_terminal_context_manager(self, pool: TerminalPool) -> None:
        with pool.terminal(60, 20) as terminal:
            assert terminal.size() == (60, 20)
            assert pool.stats().in_use == 1
        assert pool.stats().in_use == 0

    def test_clear(self, pool: TerminalPool) -> None:
        terminal = pool.acquire()
        pool.clear()
        assert pool.stats().total == 0
        assert terminal.channel.closed

    def test_threads_never_exceed_capacity(self) -> None:
        pool = TerminalPool(PoolConfig(max_terminals=2, acquire_timeout=5.0, poll_interval=0.01))
        errors: list[Exception] = []

        def worker() -> None:
            try:
                with pool.terminal():
                    assert pool.stats().in_use <= 2
                    time.sleep(0.02)
            except Exception as e:  # collected for the main thread
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        try:
            assert errors == []
            assert pool.stats().total <= 2
        finally:
            pool.clear()


class TestTerminalGuard:
    def test_context_manager(self, pool: TerminalPool) -> None:
        with TerminalGuard(pool) as guard:
            assert guard.terminal.size() == (80, 24)
            assert pool.stats().in_use == 1
        assert guard.released
        assert pool.stats().in_use == 0

    def test_release_is_idempotent(self, pool: TerminalPool) -> None:
        guard = TerminalGuard(pool, 40, 10)
        guard.release()
        guard.release()
        assert pool.stats().in_use == 0

    def test_terminal_after_release(self, pool: TerminalPool) -> None:
        guard = TerminalGuard(pool)
        guard.release()
        with pytest.raises(RuntimeError):
            _ = guard.terminal

    def test_released_on_collection(self, pool: TerminalPool) -> None:
        guard = TerminalGuard(pool)
        assert pool.stats().in_use == 1
        del guard
        gc.collect()
        assert pool.stats().in_use == 0

    def test_collected_during_acquire(self, pool: TerminalPool) -> None:
        gc.disable()
        try:
            guard = TerminalGuard(pool, 40, 10)
            guard.cycle = guard
            del guard

            original_init = PooledTerminal.__init__

            def collecting_init(self, *args, **kwargs):
                gc.collect()
                original_init(self, *args, **kwargs)

            acquired: list[IsolatedTerminal] = []
            with patch.object(PooledTerminal, "__init__", collecting_init):
                worker = threading.Thread(
                    target=lambda: acquired.append(pool.acquire(40, 10)), daemon=True
                )
                worker.start()
                worker.join(timeout=5.0)
        finally:
            gc.enable()
        assert not worker.is_alive()
        assert len(acquired) == 1
        assert pool.stats().in_use == 1

    def test_acquire_timeout_propagates(self, pool: TerminalPool) -> None:
        pool.acquire()
        pool.acquire()
        with pytest.raises(AcquireTimeoutError):
            TerminalGuard(pool)
