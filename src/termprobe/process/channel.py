"""Child process attached to a pseudo-terminal.

A :class:`ProcessChannel` owns one PTY pair for its whole life and runs at
most one child on it at a time. The parent keeps both ends open, so a
channel can host a new child after the previous one exits, which is what
lets the terminal pool hand the same channel to several tests.

Reads are always bounded: :meth:`ProcessChannel.read` waits on ``select``
for at most ``READ_BUDGET`` seconds and reports "nothing yet" as ``b""``.
"""

from __future__ import annotations

import errno
import fcntl
import logging
import os
import pty
import select
import shutil
import signal
import struct
import termios
import time
from typing import Sequence

from termprobe.domain.models import Command
from termprobe.errors import (
    ChannelIOError,
    InvalidDimensionsError,
    NoProcessRunningError,
    ProcessAlreadyRunningError,
    SpawnFailedError,
    WaitTimeoutError,
)

logger = logging.getLogger(__name__)

READ_BUDGET = 0.1
EXIT_POLL_INTERVAL = 0.01
KILL_GRACE_PERIOD = 0.5
DEFAULT_BUFFER_SIZE = 8192

_NO_DATA_ERRNOS = frozenset({errno.EINTR, errno.EAGAIN, errno.EWOULDBLOCK, errno.EIO})


class ProcessChannel:
    """A PTY pair plus (at most) one child process.

    Args:
        width: Terminal width in columns.
        height: Terminal height in rows.
        buffer_size: Default maximum number of bytes per read.

    Raises:
        InvalidDimensionsError: If either dimension is zero.
        ChannelIOError: If the PTY pair cannot be opened.
    """

    def __init__(
        self,
        width: int = 80,
        height: int = 24,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        if width <= 0 or height <= 0:
            raise InvalidDimensionsError(width, height)
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise ChannelIOError(f"Failed to open PTY: {e}", e.errno) from e
        self._master_fd: int | None = master_fd
        self._slave_fd: int | None = slave_fd
        self._width = width
        self._height = height
        self._buffer_size = buffer_size
        self._pid: int | None = None
        self._reaped = False
        self._exit_status: int | None = None
        self._set_window_size(width, height)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def pid(self) -> int | None:
        return self._pid

    @property
    def has_process(self) -> bool:
        """True once a child has been spawned on this channel."""
        return self._pid is not None

    @property
    def exit_status(self) -> int | None:
        """Exit code of the last reaped child (negative signal number if killed)."""
        return self._exit_status

    @property
    def closed(self) -> bool:
        return self._master_fd is None

    def size(self) -> tuple[int, int]:
        """Return (width, height)."""
        return (self._width, self._height)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def spawn(
        self,
        command: Command | str | Sequence[str],
        timeout: float = 5.0,
    ) -> int:
        """Start ``command`` with the PTY slave as its controlling terminal.

        Args:
            command: A :class:`Command`, a shell-like string, or an argv list.
            timeout: Seconds to wait for the child to reach ``exec``.

        Returns:
            The child's pid.

        Raises:
            ProcessAlreadyRunningError: If the previous child is still running.
            SpawnFailedError: If the program cannot be found or executed.
        """
        master_fd, slave_fd = self._require_open()
        if self.is_running():
            raise ProcessAlreadyRunningError()

        cmd = Command.parse(command)
        program = self._resolve_program(cmd)
        self._discard_pending()

        env = os.environ.copy()
        env.update(cmd.env)
        env["TERM"] = "xterm-256color"
        env["COLUMNS"] = str(self._width)
        env["LINES"] = str(self._height)

        # The child reports exec failures through this pipe; a clean exec
        # closes it (O_CLOEXEC) and the parent reads EOF.
        err_read, err_write = os.pipe2(os.O_CLOEXEC)
        try:
            pid = os.fork()
        except OSError as e:
            os.close(err_read)
            os.close(err_write)
            raise SpawnFailedError(f"Failed to fork for {cmd}: {e}") from e

        if pid == 0:
            # Child process
            try:
                os.close(err_read)
                os.close(master_fd)
                os.setsid()
                try:
                    fcntl.ioctl(slave_fd, termios.TIOCSCTTY, 0)
                except OSError:
                    pass
                os.dup2(slave_fd, 0)
                os.dup2(slave_fd, 1)
                os.dup2(slave_fd, 2)
                if slave_fd > 2:
                    os.close(slave_fd)
                if cmd.cwd is not None:
                    os.chdir(cmd.cwd)
                os.execve(program, cmd.argv, env)
            except Exception as e:
                os.write(err_write, f"{type(e).__name__}: {e}".encode("utf-8", "replace"))
            finally:
                os._exit(127)

        # Parent process
        os.close(err_write)
        try:
            failure = self._read_exec_status(err_read, timeout)
        finally:
            os.close(err_read)

        self._pid = pid
        self._reaped = False
        self._exit_status = None

        if failure is not None:
            # A child stuck before exec would never exit on its own
            try:
                os.kill(pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            self._reap(block=True)
            raise SpawnFailedError(f"Failed to spawn {cmd}: {failure}")

        logger.info(
            "Spawned %s (pid=%d, %dx%d)", cmd, pid, self._width, self._height
        )
        return pid

    def is_running(self) -> bool:
        """Return True while the child has not exited. Reaps it if it has."""
        if self._pid is None or self._reaped:
            return False
        return not self._reap(block=False)

    def kill(self) -> None:
        """Terminate the child: SIGTERM, then SIGKILL after a grace period.

        Raises:
            NoProcessRunningError: If no child was ever spawned.
        """
        if self._pid is None:
            raise NoProcessRunningError()
        if self._reaped:
            return
        pid = self._pid
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            pass
        deadline = time.monotonic() + KILL_GRACE_PERIOD
        while time.monotonic() < deadline:
            if self._reap(block=False):
                logger.info("Killed child pid=%d", pid)
                return
            time.sleep(EXIT_POLL_INTERVAL)
        try:
            os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        self._reap(block=True)
        logger.warning("Child pid=%d ignored SIGTERM and was killed", pid)

    def wait(self) -> int | None:
        """Block until the child exits and return its exit status.

        Raises:
            NoProcessRunningError: If no child was ever spawned.
        """
        if self._pid is None:
            raise NoProcessRunningError()
        self._reap(block=True)
        return self._exit_status

    def wait_timeout(self, timeout: float) -> int | None:
        """Like :meth:`wait`, polling every 10 ms up to ``timeout`` seconds.

        Raises:
            NoProcessRunningError: If no child was ever spawned.
            WaitTimeoutError: If the child is still running at the deadline.
        """
        if self._pid is None:
            raise NoProcessRunningError()
        start = time.monotonic()
        iterations = 0
        while self.is_running():
            elapsed = time.monotonic() - start
            if elapsed >= timeout:
                raise WaitTimeoutError(
                    timeout, "process exit", elapsed=elapsed, iterations=iterations
                )
            iterations += 1
            time.sleep(EXIT_POLL_INTERVAL)
        return self._exit_status

    def close(self) -> None:
        """Kill any running child and close the PTY. Safe to call twice."""
        if self._pid is not None and not self._reaped:
            try:
                self.kill()
            except OSError as e:
                logger.debug("Error killing child on close: %s", e)
        for fd in (self._master_fd, self._slave_fd):
            if fd is not None:
                try:
                    os.close(fd)
                except OSError:
                    pass
        self._master_fd = None
        self._slave_fd = None

    def __enter__(self) -> ProcessChannel:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    def read(self, size: int | None = None, timeout: float = READ_BUDGET) -> bytes:
        """Read up to ``size`` bytes, waiting at most ``timeout`` seconds.

        Returns ``b""`` when nothing arrived within the budget.

        Raises:
            ChannelIOError: On unexpected read errors or a closed channel.
        """
        master_fd, _ = self._require_open()
        try:
            ready, _, _ = select.select([master_fd], [], [], timeout)
        except InterruptedError:
            return b""
        if not ready:
            return b""
        try:
            return os.read(master_fd, size or self._buffer_size)
        except OSError as e:
            if e.errno in _NO_DATA_ERRNOS:
                return b""
            raise ChannelIOError(f"Failed to read from PTY: {e}", e.errno) from e

    def read_timeout(self, timeout: float, size: int | None = None) -> bytes:
        """Read until at least one byte arrives.

        Raises:
            WaitTimeoutError: If nothing arrives within ``timeout`` seconds.
        """
        start = time.monotonic()
        iterations = 0
        while True:
            remaining = timeout - (time.monotonic() - start)
            if remaining <= 0:
                raise WaitTimeoutError(
                    timeout,
                    "output from the child",
                    elapsed=time.monotonic() - start,
                    iterations=iterations,
                )
            data = self.read(size, timeout=min(remaining, READ_BUDGET))
            if data:
                return data
            iterations += 1

    def read_all(self) -> bytes:
        """Drain everything currently readable."""
        chunks = []
        while True:
            data = self.read()
            if not data:
                break
            chunks.append(data)
        return b"".join(chunks)

    def write(self, data: bytes | str) -> int:
        """Write once; returns the number of bytes written.

        Raises:
            ChannelIOError: If the write fails.
        """
        master_fd, _ = self._require_open()
        if isinstance(data, str):
            data = data.encode("utf-8")
        while True:
            try:
                return os.write(master_fd, data)
            except (InterruptedError, BlockingIOError):
                select.select([], [master_fd], [], READ_BUDGET)
            except OSError as e:
                raise ChannelIOError(f"Failed to write to PTY: {e}", e.errno) from e

    def write_all(self, data: bytes | str) -> None:
        """Write every byte of ``data``.

        Raises:
            ChannelIOError: If a write fails.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        view = memoryview(data)
        while view:
            written = self.write(bytes(view))
            view = view[written:]

    def resize(self, width: int, height: int) -> None:
        """Change the window size; the kernel signals the child with SIGWINCH.

        Raises:
            InvalidDimensionsError: If either dimension is zero.
        """
        if width <= 0 or height <= 0:
            raise InvalidDimensionsError(width, height)
        self._require_open()
        self._set_window_size(width, height)
        self._width = width
        self._height = height
        logger.debug("Resized PTY to %dx%d", width, height)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_open(self) -> tuple[int, int]:
        if self._master_fd is None or self._slave_fd is None:
            raise ChannelIOError("Channel is closed", errno.EBADF)
        return self._master_fd, self._slave_fd

    def _set_window_size(self, width: int, height: int) -> None:
        master_fd, _ = self._require_open()
        winsize = struct.pack("HHHH", height, width, 0, 0)
        try:
            fcntl.ioctl(master_fd, termios.TIOCSWINSZ, winsize)
        except OSError as e:
            raise ChannelIOError(f"Failed to set window size: {e}", e.errno) from e

    @staticmethod
    def _resolve_program(cmd: Command) -> str:
        program = cmd.program
        if os.sep in program:
            if cmd.cwd is not None and not os.path.isabs(program):
                program = os.path.join(cmd.cwd, program)
            if os.access(program, os.X_OK) and not os.path.isdir(program):
                return program
            raise SpawnFailedError(f"Command not executable: {cmd.program}")
        resolved = shutil.which(program)
        if resolved is None:
            raise SpawnFailedError(f"Command not found: {cmd.program}")
        return resolved

    @staticmethod
    def _read_exec_status(fd: int, timeout: float) -> str | None:
        """Return the child's exec error message, or None when exec succeeded."""
        ready, _, _ = select.select([fd], [], [], timeout)
        if not ready:
            return f"child did not exec within {timeout}s"
        message = os.read(fd, 4096)
        return message.decode("utf-8", "replace") if message else None

    def _discard_pending(self) -> None:
        # Leftover output from a previous child must not leak into the next one
        while self.read(timeout=0):
            pass

    def _reap(self, block: bool) -> bool:
        """Collect the child's exit status. Returns True once it has exited."""
        if self._pid is None:
            return True
        if self._reaped:
            return True
        try:
            pid, status = os.waitpid(self._pid, 0 if block else os.WNOHANG)
        except ChildProcessError:
            self._reaped = True
            return True
        if pid == 0:
            return False
        self._reaped = True
        self._exit_status = os.waitstatus_to_exitcode(status)
        logger.debug("Child pid=%d exited with status %s", pid, self._exit_status)
        return True
