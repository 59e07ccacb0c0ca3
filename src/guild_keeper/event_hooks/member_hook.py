"""
Keep the persisted entity store in step with what the gateway reports.

Every handler here is best-effort: a store failure is logged and swallowed so
a database hiccup never takes down event dispatch.
"""

from __future__ import annotations

import logging
from typing import Any

import discord

from guild_keeper.errors import LookupFailure
from guild_keeper.store import EntityStore, MemberRow

logger = logging.getLogger(__name__)


def _avatar_url(user: Any) -> str | None:
    avatar = getattr(user, "avatar", None)
    return str(avatar.url) if avatar is not None else None


def _discriminator(user: Any) -> str | None:
    disc = getattr(user, "discriminator", None)
    return None if not disc or disc in ("0", "0000") else str(disc)


def member_row(member: discord.Member) -> MemberRow:
    return (
        member.id,
        member.name,
        _discriminator(member),
        getattr(member, "global_name", None),
        _avatar_url(member),
        getattr(member, "nick", None),
    )


async def handle_user_update(store: EntityStore, user: discord.User) -> None:
    """Refresh the global profile row of ``user``."""

    try:
        await store.users.upsert_user(
            user.id,
            user.name,
            _discriminator(user),
            getattr(user, "global_name", None),
            _avatar_url(user),
        )
    except LookupFailure:
        logger.exception("Failed to record user update for %s", user.id)


async def handle_member_update(store: EntityStore, member: discord.Member) -> None:
    """Refresh both the user row and the guild membership row of ``member``."""

    try:
        # User row first; the membership row references it.
        await store.users.upsert_user(
            member.id,
            member.name,
            _discriminator(member),
            getattr(member, "global_name", None),
            _avatar_url(member),
        )
        await store.users.upsert_guild_user(member.guild.id, member.id, getattr(member, "nick", None))
    except LookupFailure:
        logger.exception(
            "Failed to record member update for %s in guild %s", member.id, member.guild.id
        )


async def handle_channel_update(store: EntityStore, channel: discord.abc.GuildChannel) -> None:
    try:
        await store.channels.upsert_channel(channel.guild.id, channel.id, channel.name)
    except LookupFailure:
        logger.exception("Failed to record channel %s in guild %s", channel.id, channel.guild.id)


async def refresh_guild(store: EntityStore, guild: discord.Guild) -> tuple[int, int]:
    """Bulk-record every member and channel currently visible in ``guild``."""

    members = [member_row(m) for m in guild.members]
    channels = [(c.id, c.name) for c in guild.channels]
    try:
        n_members = await store.users.upsert_members(guild.id, members)
        n_channels = await store.channels.upsert_channels(guild.id, channels)
    except LookupFailure:
        logger.exception("Failed to refresh entity store for guild %s", guild.id)
        return 0, 0

    logger.info(
        "Recorded %d member(s) and %d channel(s) for guild %s", n_members, n_channels, guild.id
    )
    return n_members, n_channels
