"""Availability cache for uploader candidates.

Maps a candidate string to ``(available, timestamp)``.  Positive entries
live for a long TTL because re-verifying may spawn a process and an
installation rarely disappears; negative entries live briefly because a
busy system can produce a false negative.  Expired entries are purged
lazily on read, and in bulk by :meth:`AvailabilityCache.purge_expired`.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class AvailabilityCache:
    """Thread-safe TTL cache of candidate availability.

    Parameters
    ----------
    positive_ttl:
        Seconds a positive result stays valid.
    negative_ttl:
        Seconds a negative result stays valid.
    clock:
        Monotonic time source.  Injectable for tests.
    """

    __slots__ = ("_clock", "_entries", "_lock", "negative_ttl", "positive_ttl")

    def __init__(
        self,
        positive_ttl: float,
        negative_ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.positive_ttl = positive_ttl
        self.negative_ttl = negative_ttl
        self._clock = clock
        self._entries: dict[str, tuple[bool, float]] = {}
        self._lock = threading.Lock()

    def configure(self, positive_ttl: float, negative_ttl: float) -> None:
        with self._lock:
            self.positive_ttl = positive_ttl
            self.negative_ttl = negative_ttl

    def _ttl(self, available: bool) -> float:
        return self.positive_ttl if available else self.negative_ttl

    def get(self, candidate: str) -> bool | None:
        """Return the cached verdict for *candidate*, or ``None``."""
        with self._lock:
            entry = self._entries.get(candidate)
            if entry is None:
                return None
            available, stamp = entry
            if self._clock() - stamp > self._ttl(available):
                del self._entries[candidate]
                return None
            return available

    def set(self, candidate: str, available: bool) -> None:
        with self._lock:
            self._entries[candidate] = (available, self._clock())

    def purge_expired(self) -> int:
        """Drop every expired entry.  Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, (available, stamp) in self._entries.items()
                if now - stamp > self._ttl(available)
            ]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, candidate: object) -> bool:
        return isinstance(candidate, str) and self.get(candidate) is not None
