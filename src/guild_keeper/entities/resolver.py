"""
Dual-source entity resolver.

The live client only knows entities that are currently visible; the persisted
store remembers everyone the bot has ever observed but can lag behind. The
resolver asks the live source first for exact lookups and merges both sources
for name searches, keeping one record per id and ordering the results by how
recently each was observed.

Nothing is cached here. Store errors propagate to the caller untouched.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Iterable, Protocol, Sequence

from .live import LiveSource
from .model import EntityKind, Provenance, ResolvedEntity
from .query import parse_channel_search, parse_user_search

logger = logging.getLogger(__name__)


class PersistedStore(Protocol):
    async def get_user(self, guild_id: int, user_id: int) -> ResolvedEntity | None: ...

    async def find_users(
        self, guild_id: int, name: str, discriminator: str | None = None
    ) -> Sequence[ResolvedEntity]: ...

    async def get_channel(self, guild_id: int, channel_id: int) -> ResolvedEntity | None: ...

    async def find_channels(self, guild_id: int, name: str) -> Sequence[ResolvedEntity]: ...


def _recency_key(entity: ResolvedEntity) -> tuple[float, bool]:
    return entity.observed_at, entity.provenance is Provenance.LIVE


def merge_results(*sources: Iterable[ResolvedEntity]) -> list[ResolvedEntity]:
    """
    Deduplicate by id and sort newest first.

    When two records share an id the more recently observed one wins; on a
    timestamp tie the live record wins.
    """

    best: dict[int, ResolvedEntity] = {}
    for source in sources:
        for entity in source:
            current = best.get(entity.id)
            if current is None or _recency_key(entity) > _recency_key(current):
                best[entity.id] = entity
    return sorted(best.values(), key=_recency_key, reverse=True)


class EntityResolver:
    """Resolves users and channels against the live client and the store."""

    def __init__(self, live: LiveSource, store: PersistedStore) -> None:
        self._live = live
        self._store = store

    # ------------------------------------------------------------------ #
    # Exact lookups
    # ------------------------------------------------------------------ #

    async def query_exact(
        self, guild_id: int, entity_id: int, kind: EntityKind = EntityKind.USER
    ) -> ResolvedEntity | None:
        """Return the entity with ``entity_id``, live data first, else ``None``."""

        if kind is EntityKind.USER:
            live = self._live.get_user(guild_id, entity_id)
            if live is not None:
                return live
            return await self._store.get_user(guild_id, entity_id)

        live = self._live.get_channel(guild_id, entity_id)
        if live is not None:
            return live
        return await self._store.get_channel(guild_id, entity_id)

    async def query_user(self, guild_id: int, user_id: int) -> ResolvedEntity | None:
        return await self.query_exact(guild_id, user_id, EntityKind.USER)

    async def query_channel(self, guild_id: int, channel_id: int) -> ResolvedEntity | None:
        return await self.query_exact(guild_id, channel_id, EntityKind.CHANNEL)

    # ------------------------------------------------------------------ #
    # Searches
    # ------------------------------------------------------------------ #

    async def query_search(
        self, guild_id: int, text: str, kind: EntityKind = EntityKind.USER
    ) -> AsyncIterator[ResolvedEntity]:
        """
        Yield entities matching ``text``, most recently observed first.

        Mentions and numeric ids are tried as exact lookups first; a hit ends
        the search. Otherwise names and aliases from both sources are matched
        case-insensitively and merged.
        """

        terms = parse_user_search(text) if kind is EntityKind.USER else parse_channel_search(text)

        if terms.entity_id is not None:
            hit = await self.query_exact(guild_id, terms.entity_id, kind)
            if hit is not None:
                yield hit
                return

        if not terms.name:
            return

        for entity in await self._search_by_name(guild_id, terms.name, terms.discriminator, kind):
            yield entity

    def search_users(self, guild_id: int, text: str) -> AsyncIterator[ResolvedEntity]:
        return self.query_search(guild_id, text, EntityKind.USER)

    def search_channels(self, guild_id: int, text: str) -> AsyncIterator[ResolvedEntity]:
        return self.query_search(guild_id, text, EntityKind.CHANNEL)

    async def _search_by_name(
        self, guild_id: int, name: str, discriminator: str | None, kind: EntityKind
    ) -> list[ResolvedEntity]:
        if kind is EntityKind.USER:
            live = [
                e
                for e in self._live.iter_users(guild_id)
                if e.matches_name(name, discriminator)
            ]
            stored = await self._store.find_users(guild_id, name, discriminator)
        else:
            live = [e for e in self._live.iter_channels(guild_id) if e.matches_name(name)]
            stored = await self._store.find_channels(guild_id, name)

        results = merge_results(live, stored)
        logger.debug(
            "Search %r in guild %s: %d live, %d stored, %d merged",
            name,
            guild_id,
            len(live),
            len(stored),
            len(results),
        )
        return results


__all__ = ["EntityResolver", "PersistedStore", "merge_results"]
