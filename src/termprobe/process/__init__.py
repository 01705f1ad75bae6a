"""Process management for termprobe.

Public API:
    ProcessChannel -- a PTY pair with at most one child process
"""

from termprobe.process.channel import READ_BUDGET, ProcessChannel

__all__ = ["READ_BUDGET", "ProcessChannel"]
