"""
Cached state entries.

A :class:`StateEntry` wraps one consumer's state object for one guild together
with the hash of the configuration it was built from and the time it was last
validated. Data objects that hold resources opt into cleanup by subclassing
:class:`Disposable`; the cache disposes them when they are superseded.
"""

from __future__ import annotations

import abc
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Hashable


class Disposable(abc.ABC):
    """Capability for cached data objects that must release resources."""

    @abc.abstractmethod
    def dispose(self) -> None:
        """Release resources. Called once, after a replacement is installed."""


def token_hash(token: Any) -> int:
    """
    Return a change-detection hash for a configuration token.

    JSON-shaped tokens (dicts and lists parsed from guild configuration) are
    hashed through a canonical JSON encoding. Anything else must be hashable.
    """

    if isinstance(token, (dict, list)):
        canonical = json.dumps(token, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256(canonical.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big", signed=True)
    return hash(token)


@dataclass(eq=False)
class StateEntry:
    """One consumer's state object for one guild."""

    guild_id: int
    consumer_type: Hashable
    data: Any
    config_hash: int
    last_checked: float = field(repr=False)

    def is_stale(self, current_hash: int, now: float, ttl: float) -> bool:
        """
        Return ``True`` if the entry must be rebuilt.

        An entry is stale once ``ttl`` seconds have passed since it was last
        validated, or as soon as the configuration hash changes. Every check
        that finds the entry within its TTL renews the validation time, even
        when the hash then turns out to differ.
        """

        if now - self.last_checked > ttl:
            return True
        self.last_checked = now
        return current_hash != self.config_hash

    def dispose(self) -> None:
        if isinstance(self.data, Disposable):
            self.data.dispose()


__all__ = ["Disposable", "StateEntry", "token_hash"]
