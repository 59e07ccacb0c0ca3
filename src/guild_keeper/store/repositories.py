"""
Repositories (SQL-only)
=======================
- Pure upserts and selects over the entity history tables.
- Every call takes the shared lock and runs the blocking sqlite work in a
  worker thread; ``sqlite3.Error`` surfaces as :class:`LookupFailure`.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence, TypeVar
import asyncio
import sqlite3
import time

from guild_keeper.entities.model import EntityKind, Provenance, ResolvedEntity
from guild_keeper.errors import LookupFailure

from .db import transaction

T = TypeVar("T")

# (user_id, username, discriminator, global_name, avatar_url, nickname)
MemberRow = tuple[int, str, Optional[str], Optional[str], Optional[str], Optional[str]]


class _Repo:
    def __init__(self, conn: sqlite3.Connection, lock: asyncio.Lock):
        self.conn = conn
        self._lock = lock

    async def _call(self, fn: Callable[[], T], what: str) -> T:
        async with self._lock:
            try:
                return await asyncio.to_thread(fn)  # blocking sqlite call
            except sqlite3.Error as exc:
                raise LookupFailure(f"{what} failed: {exc}") from exc


def _user_entity(row: sqlite3.Row) -> ResolvedEntity:
    return ResolvedEntity(
        id=int(row["user_id"]),
        guild_id=int(row["guild_id"]),
        kind=EntityKind.USER,
        name=row["username"],
        provenance=Provenance.STORE,
        observed_at=float(row["observed"]),
        aliases=tuple(a for a in (row["global_name"], row["nickname"]) if a),
        discriminator=row["discriminator"],
    )


def _channel_entity(row: sqlite3.Row) -> ResolvedEntity:
    return ResolvedEntity(
        id=int(row["channel_id"]),
        guild_id=int(row["guild_id"]),
        kind=EntityKind.CHANNEL,
        name=row["name"],
        provenance=Provenance.STORE,
        observed_at=float(row["last_update"]),
    )


_USER_SELECT = """
    SELECT u.user_id, gu.guild_id, u.username, u.discriminator, u.global_name,
           gu.nickname, MAX(u.last_update, gu.last_update) AS observed
    FROM cache_guild_users gu
    JOIN cache_users u ON u.user_id = gu.user_id
"""

_UPSERT_USER = """
    INSERT INTO cache_users (user_id, username, discriminator, global_name, avatar_url, last_update)
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT(user_id) DO UPDATE SET
      username=excluded.username,
      discriminator=excluded.discriminator,
      global_name=excluded.global_name,
      avatar_url=excluded.avatar_url,
      last_update=excluded.last_update
"""

_UPSERT_GUILD_USER = """
    INSERT INTO cache_guild_users (user_id, guild_id, nickname, first_seen, last_update)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT(user_id, guild_id) DO UPDATE SET
      nickname=excluded.nickname,
      last_update=excluded.last_update
"""

_UPSERT_CHANNEL = """
    INSERT INTO cache_channels (channel_id, guild_id, name, last_update)
    VALUES (?, ?, ?, ?)
    ON CONFLICT(channel_id) DO UPDATE SET
      guild_id=excluded.guild_id,
      name=excluded.name,
      last_update=excluded.last_update
"""


class UserCacheRepo(_Repo):
    """Historical record of users and their per-guild nicknames."""

    async def upsert_user(
        self,
        user_id: int,
        username: str,
        discriminator: str | None = None,
        global_name: str | None = None,
        avatar_url: str | None = None,
        ts: float | None = None,
    ) -> None:
        """
        Insert or refresh the global profile row for ``user_id``.

        :param ts: Observation time; defaults to now.
        """
        stamp = time.time() if ts is None else ts

        def _run():
            with transaction(self.conn):
                self.conn.execute(
                    _UPSERT_USER,
                    (user_id, username, discriminator, global_name, avatar_url, stamp),
                )

        await self._call(_run, "upsert_user")

    async def upsert_guild_user(
        self,
        guild_id: int,
        user_id: int,
        nickname: str | None = None,
        ts: float | None = None,
    ) -> None:
        """
        Insert or refresh the guild membership row. ``first_seen`` is kept
        from the first insert.

        The user row must already exist (see :meth:`upsert_user`).
        """
        stamp = time.time() if ts is None else ts

        def _run():
            with transaction(self.conn):
                self.conn.execute(_UPSERT_GUILD_USER, (user_id, guild_id, nickname, stamp, stamp))

        await self._call(_run, "upsert_guild_user")

    async def upsert_members(
        self, guild_id: int, rows: Sequence[MemberRow], ts: float | None = None
    ) -> int:
        """Bulk refresh of a guild's members in one transaction; returns row count.

        A failure part-way leaves neither user nor membership rows behind.
        """
        if not rows:
            return 0
        stamp = time.time() if ts is None else ts
        user_rows = [(uid, name, disc, gname, avatar, stamp) for uid, name, disc, gname, avatar, _ in rows]
        member_rows = [(uid, guild_id, nick, stamp, stamp) for uid, _, _, _, _, nick in rows]

        def _run() -> int:
            with transaction(self.conn):
                self.conn.executemany(_UPSERT_USER, user_rows)
                self.conn.executemany(_UPSERT_GUILD_USER, member_rows)
            return len(rows)

        return await self._call(_run, "upsert_members")

    async def get_guild_user(self, guild_id: int, user_id: int) -> Optional[ResolvedEntity]:
        """Return the stored record for ``user_id`` in ``guild_id`` or ``None``."""
        sql = _USER_SELECT + " WHERE gu.guild_id=? AND gu.user_id=?"

        def _query() -> Optional[ResolvedEntity]:
            row = self.conn.execute(sql, (guild_id, user_id)).fetchone()
            return _user_entity(row) if row else None

        return await self._call(_query, "get_guild_user")

    async def find_guild_users(
        self, guild_id: int, name: str, discriminator: str | None = None
    ) -> list[ResolvedEntity]:
        """
        Return users in ``guild_id`` whose username, global name or nickname
        equals ``name`` (case-insensitive), most recently observed first.
        """
        sql = _USER_SELECT + """
            WHERE gu.guild_id=?
              AND (casefold(u.username)=? OR casefold(u.global_name)=? OR casefold(gu.nickname)=?)
        """
        folded = name.casefold()
        params: list = [guild_id, folded, folded, folded]
        if discriminator is not None:
            sql += " AND u.discriminator=?"
            params.append(discriminator)
        sql += " ORDER BY observed DESC"

        def _query() -> list[ResolvedEntity]:
            return [_user_entity(r) for r in self.conn.execute(sql, params).fetchall()]

        return await self._call(_query, "find_guild_users")


class ChannelCacheRepo(_Repo):
    """Historical record of channel names, including deleted channels."""

    async def upsert_channel(
        self, guild_id: int, channel_id: int, name: str, ts: float | None = None
    ) -> None:
        stamp = time.time() if ts is None else ts

        def _run():
            with transaction(self.conn):
                self.conn.execute(_UPSERT_CHANNEL, (channel_id, guild_id, name, stamp))

        await self._call(_run, "upsert_channel")

    async def upsert_channels(
        self, guild_id: int, rows: Sequence[tuple[int, str]], ts: float | None = None
    ) -> int:
        """Bulk refresh of ``(channel_id, name)`` pairs; returns row count."""
        if not rows:
            return 0
        stamp = time.time() if ts is None else ts
        params = [(cid, guild_id, name, stamp) for cid, name in rows]

        def _run() -> int:
            with transaction(self.conn):
                self.conn.executemany(_UPSERT_CHANNEL, params)
            return len(params)

        return await self._call(_run, "upsert_channels")

    async def get_channel(self, guild_id: int, channel_id: int) -> Optional[ResolvedEntity]:
        sql = "SELECT channel_id, guild_id, name, last_update FROM cache_channels WHERE guild_id=? AND channel_id=?"

        def _query() -> Optional[ResolvedEntity]:
            row = self.conn.execute(sql, (guild_id, channel_id)).fetchone()
            return _channel_entity(row) if row else None

        return await self._call(_query, "get_channel")

    async def find_channels(self, guild_id: int, name: str) -> list[ResolvedEntity]:
        """Return channels named ``name`` (case-insensitive), newest first."""
        sql = """
            SELECT channel_id, guild_id, name, last_update FROM cache_channels
            WHERE guild_id=? AND casefold(name)=?
            ORDER BY last_update DESC
        """

        def _query() -> list[ResolvedEntity]:
            rows = self.conn.execute(sql, (guild_id, name.casefold())).fetchall()
            return [_channel_entity(r) for r in rows]

        return await self._call(_query, "find_channels")


__all__ = ["UserCacheRepo", "ChannelCacheRepo", "MemberRow"]
