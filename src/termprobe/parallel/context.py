"""Shared per-run resources for tests executing in parallel."""

from __future__ import annotations

import threading

PORT_RANGE_START = 20000
PORT_RANGE_END = 60000


class TestContext:
    """Thread-safe port allocator plus a string metadata store.

    Ports are handed out sequentially from 20000 and wrap back to 20000
    after 60000. Nothing checks whether a port is actually free.
    """

    __test__ = False  # not a pytest test class

    def __init__(self) -> None:
        self._port_lock = threading.Lock()
        self._next_port = PORT_RANGE_START
        self._metadata_lock = threading.Lock()
        self._metadata: dict[str, str] = {}

    def allocate_port(self) -> int:
        with self._port_lock:
            port = self._next_port
            self._next_port += 1
            if self._next_port > PORT_RANGE_END:
                self._next_port = PORT_RANGE_START
            return port

    def set_metadata(self, key: str, value: str) -> None:
        with self._metadata_lock:
            self._metadata[key] = value

    def get_metadata(self, key: str) -> str | None:
        with self._metadata_lock:
            return self._metadata.get(key)

    def remove_metadata(self, key: str) -> None:
        with self._metadata_lock:
            self._metadata.pop(key, None)

    def clear_metadata(self) -> None:
        with self._metadata_lock:
            self._metadata.clear()

    def copy(self) -> TestContext:
        """Independent context starting from this one's port and metadata."""
        other = TestContext()
        with self._port_lock:
            other._next_port = self._next_port
        with self._metadata_lock:
            other._metadata = dict(self._metadata)
        return other
