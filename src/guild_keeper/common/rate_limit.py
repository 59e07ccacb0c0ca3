"""
Expiring-entry rate limiter.

:class:`ExpiringEntrySet` admits a key once and then refuses it until the
configured timeout has passed since it was first admitted. Expired entries are
swept lazily at the start of every check, so no background task is needed;
the cost of a check grows linearly with the number of live entries.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)

DEFAULT_TIMEOUT = 20


class ExpiringEntrySet(Generic[K]):
    """Tracks keys seen within the last ``timeout`` seconds."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout < 0:
            raise ValueError("timeout cannot be negative")
        self.timeout = timeout
        self._clock = clock
        self._entries: dict[K, float] = {}
        self._lock = threading.Lock()

    def is_permitted(self, key: K) -> bool:
        """
        Return ``True`` if ``key`` may pass, recording it when it does.

        A timeout of zero disables limiting entirely.
        """

        if self.timeout == 0:
            return True

        with self._lock:
            now = self._clock()
            # Sweep before the membership test so a just-expired key is re-admitted.
            expired = [k for k, seen in self._entries.items() if now - seen >= self.timeout]
            for k in expired:
                del self._entries[k]

            if key in self._entries:
                return False
            self._entries[key] = now
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"ExpiringEntrySet(timeout={self.timeout!r}, entries={len(self)})"


__all__ = ["ExpiringEntrySet", "DEFAULT_TIMEOUT"]
