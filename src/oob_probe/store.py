"""Bounded in-memory stores for captured traffic and listener errors."""

import threading
from collections import deque
from datetime import datetime, timezone
from typing import NamedTuple


class LogWindow(NamedTuple):
    """Result of a windowed LogStore read."""

    data: bytes
    next: int
    total: int
    truncated: bool


class LogStore:
    """Size-bounded append-only byte log addressed by logical offsets.

    Offsets count every byte ever appended. Once the buffer exceeds
    ``max_size`` the oldest bytes are evicted and ``base_offset`` advances, so a
    reader holding an old offset can tell that it missed data. ``max_size == 0``
    disables eviction.
    """

    def __init__(self, max_size: int = 0) -> None:
        if max_size < 0:
            raise ValueError("max_size cannot be negative")
        self._max_size = max_size
        self._buf = bytearray()
        self._base_offset = 0
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def base_offset(self) -> int:
        with self._lock:
            return self._base_offset

    @property
    def total(self) -> int:
        with self._lock:
            return self._base_offset + len(self._buf)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buf)

    def append(self, chunk: bytes) -> None:
        """Append a chunk, evicting from the front to stay within ``max_size``.

        A chunk larger than ``max_size`` keeps only its trailing ``max_size``
        bytes: the most recent traffic wins.
        """
        if not chunk:
            return

        with self._lock:
            if self._max_size > 0 and len(chunk) > self._max_size:
                chunk = chunk[-self._max_size :]

            if self._max_size > 0:
                over = len(self._buf) + len(chunk) - self._max_size
                if over > 0:
                    del self._buf[:over]
                    self._base_offset += over

            self._buf += chunk

    def read(self, offset: int = 0, limit: int = 0) -> LogWindow:
        """Copy out a window of the log.

        Args:
            offset: Logical offset to start from. Offsets that were already
                evicted are clamped to ``base_offset`` and flagged as truncated.
            limit: Maximum bytes to return; ``<= 0`` reads to the end.

        Returns:
            LogWindow whose ``next`` is the offset to pass to the following call.
        """
        truncated = False
        with self._lock:
            total = self._base_offset + len(self._buf)
            if offset < self._base_offset:
                offset = self._base_offset
                truncated = True

            start = offset - self._base_offset
            if start < 0 or start > len(self._buf):
                return LogWindow(b"", offset, total, truncated)

            if limit <= 0:
                limit = len(self._buf) - start
            end = min(start + limit, len(self._buf))

            data = bytes(self._buf[start:end])
            return LogWindow(data, self._base_offset + end, total, truncated)


class ErrorEntry(NamedTuple):
    time: str
    message: str


class ErrorLog:
    """Thread-safe bounded queue of error messages; the oldest entry is evicted first."""

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._entries: deque[ErrorEntry] = deque(maxlen=capacity)
        self._dropped = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    @property
    def dropped(self) -> int:
        """Number of entries evicted because the log was full."""
        with self._lock:
            return self._dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, message: str, time: str | None = None) -> None:
        entry = ErrorEntry(time or utc_timestamp(), message)
        with self._lock:
            if len(self._entries) == self._entries.maxlen:
                self._dropped += 1
            self._entries.append(entry)

    def extend(self, entries: list[ErrorEntry]) -> None:
        for entry in entries:
            self.append(entry.message, entry.time)

    def entries(self) -> list[ErrorEntry]:
        with self._lock:
            return list(self._entries)

    def messages(self) -> list[str]:
        with self._lock:
            return [entry.message for entry in self._entries]


def utc_timestamp() -> str:
    """Current time as an RFC3339 string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
