"""Guild state cache: per-guild, per-consumer configuration-derived objects."""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import time
from collections import defaultdict
from typing import Any, Awaitable, Callable, Hashable, Union

from guild_keeper.common.entity_name import EntityList
from guild_keeper.config import cache as cache_cfg
from guild_keeper.errors import ConfigLoadError

from .entry import StateEntry, token_hash

logger = logging.getLogger(__name__)

MODERATORS_CONSUMER = "Moderators"

StateFactory = Callable[[Any], Union[Any, Awaitable[Any]]]


class GuildStateCache:
    """
    Holds at most one state object per (guild, consumer type).

    Rebuilds for the same key are serialized by a per-key lock so the
    staleness check, factory call, install and disposal of the old object
    never interleave. The entry map itself is guarded by a coarse lock so
    readers always see either the old or the fully built new entry.
    """

    def __init__(
        self,
        ttl: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        hasher: Callable[[Any], int] = token_hash,
    ) -> None:
        self._ttl = cache_cfg.STATE_TTL_SECONDS if ttl is None else ttl
        self._clock = clock
        self._hasher = hasher
        self._entries: dict[int, dict[Hashable, StateEntry]] = {}
        self._storage_lock = threading.Lock()
        # One lock per key; never removed so queued waiters always share it.
        self._key_locks: defaultdict[tuple[int, Hashable], asyncio.Lock] = defaultdict(asyncio.Lock)
        self._closed = False

    @property
    def ttl(self) -> float:
        return self._ttl

    # ------------------------------------------------------------------ #
    # WRITE helpers
    # ------------------------------------------------------------------ #

    async def get_or_create(
        self,
        guild_id: int,
        consumer_type: Hashable,
        config_token: Any,
        factory: StateFactory,
    ) -> Any:
        """
        Return the state object for ``(guild_id, consumer_type)``.

        The object is (re)built with ``factory(config_token)`` when none is
        cached or the cached one is stale. A failing factory raises
        :class:`ConfigLoadError` and leaves the previous object in place.
        """

        self._ensure_open()
        new_hash = self._hasher(config_token)

        async with self._key_locks[(guild_id, consumer_type)]:
            current = self._lookup(guild_id, consumer_type)
            if current is not None and not current.is_stale(new_hash, self._clock(), self._ttl):
                return current.data

            data = await self._build(guild_id, consumer_type, config_token, factory)
            entry = StateEntry(guild_id, consumer_type, data, new_hash, self._clock())

            with self._storage_lock:
                closed = self._closed
                if closed:
                    previous = None
                else:
                    previous = self._entries.setdefault(guild_id, {}).get(consumer_type)
                    self._entries[guild_id][consumer_type] = entry

            if closed:
                # Shut down while the factory ran; nothing may be installed now.
                self._dispose(entry)
                raise RuntimeError("Guild state cache is closed.")

            if previous is not None and previous.data is not data:
                self._dispose(previous)

            logger.info(
                "%s state for %s in guild %s",
                "Built" if current is None else "Rebuilt stale",
                consumer_type,
                guild_id,
            )
            return data

    async def _build(
        self,
        guild_id: int,
        consumer_type: Hashable,
        config_token: Any,
        factory: StateFactory,
    ) -> Any:
        try:
            result = factory(config_token)
            if inspect.isawaitable(result):
                result = await result
        except ConfigLoadError as exc:
            logger.warning(
                "%s rejected configuration for guild %s: %s", consumer_type, guild_id, exc
            )
            raise
        except Exception as exc:
            logger.exception(
                "Unhandled exception from %s while creating state for guild %s",
                consumer_type,
                guild_id,
            )
            raise ConfigLoadError(f"{consumer_type} failed to load configuration: {exc}") from exc
        return result

    # ------------------------------------------------------------------ #
    # READ helpers
    # ------------------------------------------------------------------ #

    def _lookup(self, guild_id: int, consumer_type: Hashable) -> StateEntry | None:
        with self._storage_lock:
            return self._entries.get(guild_id, {}).get(consumer_type)

    def get(self, guild_id: int, consumer_type: Hashable) -> Any | None:
        """Return the installed state object without any staleness check."""

        entry = self._lookup(guild_id, consumer_type)
        return entry.data if entry is not None else None

    def get_moderators(self, guild_id: int) -> EntityList:
        """Return the guild's moderator list, empty if none is loaded."""

        mods = self.get(guild_id, MODERATORS_CONSUMER)
        return mods if isinstance(mods, EntityList) else EntityList()

    def guild_ids(self) -> list[int]:
        with self._storage_lock:
            return list(self._entries)

    # ------------------------------------------------------------------ #
    # MAINTENANCE
    # ------------------------------------------------------------------ #

    async def remove_guild(self, guild_id: int) -> int:
        """Drop and dispose every state object held for ``guild_id``."""

        with self._storage_lock:
            consumers = list(self._entries.get(guild_id, {}))

        removed = 0
        for consumer_type in consumers:
            async with self._key_locks[(guild_id, consumer_type)]:
                with self._storage_lock:
                    entry = self._entries.get(guild_id, {}).pop(consumer_type, None)
                if entry is not None:
                    self._dispose(entry)
                    removed += 1

        with self._storage_lock:
            if not self._entries.get(guild_id):
                self._entries.pop(guild_id, None)

        logger.info("Removed %d state object(s) for guild %s", removed, guild_id)
        return removed

    def close(self) -> None:
        """Dispose everything. Later ``get_or_create`` calls raise ``RuntimeError``."""

        with self._storage_lock:
            self._closed = True
            entries = [e for per_guild in self._entries.values() for e in per_guild.values()]
            self._entries.clear()

        for entry in entries:
            self._dispose(entry)
        logger.info("Guild state cache closed; disposed %d state object(s)", len(entries))

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Guild state cache is closed.")

    @staticmethod
    def _dispose(entry: StateEntry) -> None:
        try:
            entry.dispose()
        except Exception:
            logger.exception(
                "Failed to dispose %s state for guild %s", entry.consumer_type, entry.guild_id
            )


__all__ = ["GuildStateCache", "StateFactory", "MODERATORS_CONSUMER"]
