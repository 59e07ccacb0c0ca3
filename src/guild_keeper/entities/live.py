"""
Live lookup source backed by the discord.py client cache.

The live source is authoritative for entities the gateway currently knows
about, but forgets anyone who left a guild and any channel that was deleted.
:class:`LiveSource` is the read-only contract the resolver consumes;
:class:`DiscordLiveSource` implements it over a :class:`discord.Client`.
All calls are synchronous and never touch the network.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Iterable, Protocol

import discord

from .model import EntityKind, Provenance, ResolvedEntity


class LiveSource(Protocol):
    def get_user(self, guild_id: int, user_id: int) -> ResolvedEntity | None: ...

    def iter_users(self, guild_id: int) -> Iterable[ResolvedEntity]: ...

    def get_channel(self, guild_id: int, channel_id: int) -> ResolvedEntity | None: ...

    def iter_channels(self, guild_id: int) -> Iterable[ResolvedEntity]: ...


def _discriminator(user: Any) -> str | None:
    disc = getattr(user, "discriminator", None)
    # Migrated accounts report "0"; only legacy four-digit tags are meaningful.
    if not disc or disc in ("0", "0000"):
        return None
    return str(disc)


def member_to_entity(member: Any, guild_id: int, observed_at: float) -> ResolvedEntity:
    aliases = tuple(
        a for a in (getattr(member, "global_name", None), getattr(member, "nick", None)) if a
    )
    return ResolvedEntity(
        id=member.id,
        guild_id=guild_id,
        kind=EntityKind.USER,
        name=member.name,
        provenance=Provenance.LIVE,
        observed_at=observed_at,
        aliases=aliases,
        discriminator=_discriminator(member),
    )


def channel_to_entity(channel: Any, guild_id: int, observed_at: float) -> ResolvedEntity:
    return ResolvedEntity(
        id=channel.id,
        guild_id=guild_id,
        kind=EntityKind.CHANNEL,
        name=channel.name,
        provenance=Provenance.LIVE,
        observed_at=observed_at,
    )


class DiscordLiveSource:
    """Adapts a :class:`discord.Client`'s cached guilds to :class:`LiveSource`."""

    def __init__(self, client: discord.Client, *, clock: Callable[[], float] = time.time) -> None:
        self._client = client
        self._clock = clock

    def _guild(self, guild_id: int) -> discord.Guild | None:
        return self._client.get_guild(guild_id)

    def get_user(self, guild_id: int, user_id: int) -> ResolvedEntity | None:
        guild = self._guild(guild_id)
        if guild is None:
            return None
        member = guild.get_member(user_id)
        if member is None:
            return None
        return member_to_entity(member, guild_id, self._clock())

    def iter_users(self, guild_id: int) -> Iterable[ResolvedEntity]:
        guild = self._guild(guild_id)
        if guild is None:
            return []
        now = self._clock()
        return [member_to_entity(m, guild_id, now) for m in guild.members]

    def get_channel(self, guild_id: int, channel_id: int) -> ResolvedEntity | None:
        guild = self._guild(guild_id)
        if guild is None:
            return None
        channel = guild.get_channel(channel_id)
        if channel is None:
            return None
        return channel_to_entity(channel, guild_id, self._clock())

    def iter_channels(self, guild_id: int) -> Iterable[ResolvedEntity]:
        guild = self._guild(guild_id)
        if guild is None:
            return []
        now = self._clock()
        return [channel_to_entity(c, guild_id, now) for c in guild.channels]


__all__ = ["LiveSource", "DiscordLiveSource", "member_to_entity", "channel_to_entity"]
