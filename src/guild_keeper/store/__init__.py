"""
Persisted entity store
======================

SQLite-backed history of users and channels the bot has observed. It outlives
guild membership and channel deletion, which is what lets the resolver find
entities the live client no longer knows about.

Construct one :class:`EntityStore` at startup and pass it to whoever needs it::

    store = EntityStore.open()
    resolver = EntityResolver(live_source, store)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Optional

from . import db as _db
from .repositories import ChannelCacheRepo, MemberRow, UserCacheRepo

logger = logging.getLogger(__name__)


class EntityStore:
    """Groups the entity repositories over one connection and lock."""

    def __init__(self, conn: sqlite3.Connection, lock: asyncio.Lock | None = None) -> None:
        self.conn = conn
        self._lock = lock or asyncio.Lock()
        self.users = UserCacheRepo(conn, self._lock)
        self.channels = ChannelCacheRepo(conn, self._lock)

    @classmethod
    def open(cls, path: Optional[str] = None) -> "EntityStore":
        """Connect to ``path`` (configured path by default) and apply the schema."""
        conn = _db.connect(path)
        _db.migrate(conn)
        logger.info("Entity store ready at %s", path or _db.db_path())
        return cls(conn)

    # Resolver-facing lookups ------------------------------------------------

    async def get_user(self, guild_id: int, user_id: int):
        return await self.users.get_guild_user(guild_id, user_id)

    async def find_users(self, guild_id: int, name: str, discriminator: str | None = None):
        return await self.users.find_guild_users(guild_id, name, discriminator)

    async def get_channel(self, guild_id: int, channel_id: int):
        return await self.channels.get_channel(guild_id, channel_id)

    async def find_channels(self, guild_id: int, name: str):
        return await self.channels.find_channels(guild_id, name)

    def close(self) -> None:
        try:
            _db.wal_checkpoint_truncate(self.conn)
        except sqlite3.Error:
            logger.warning("WAL checkpoint failed on close", exc_info=True)
        self.conn.close()


__all__ = ["EntityStore", "UserCacheRepo", "ChannelCacheRepo", "MemberRow"]
