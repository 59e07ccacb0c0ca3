"""Guild lifecycle: load state when a guild appears, drop it when it leaves."""

from __future__ import annotations

import logging
from typing import Iterable

import discord

from guild_keeper.errors import ConfigLoadError
from guild_keeper.state import GuildModule, GuildStateCache
from guild_keeper.store import EntityStore

from . import member_hook

logger = logging.getLogger(__name__)


async def refresh_state(guild: discord.Guild, modules: Iterable[GuildModule]) -> bool:
    """
    Build or refresh every module's state for ``guild``.

    A module with bad configuration keeps its previous state and does not
    prevent the remaining modules from loading.
    """

    ok = True
    for module in modules:
        try:
            await module.get_guild_state(guild.id)
        except ConfigLoadError as exc:
            ok = False
            logger.warning(
                "%s failed to read configuration for %s (%s): %s",
                module.name,
                guild.name,
                guild.id,
                exc,
            )
    if ok:
        logger.info("Configuration refreshed for '%s'.", guild.name)
    return ok


async def handle_available(
    guild: discord.Guild, *, store: EntityStore, modules: Iterable[GuildModule]
) -> None:
    await member_hook.refresh_guild(store, guild)
    await refresh_state(guild, modules)


async def handle_remove(guild: discord.Guild, *, state_cache: GuildStateCache) -> None:
    removed = await state_cache.remove_guild(guild.id)
    logger.info("Left guild %s; dropped %d cached state object(s)", guild.id, removed)
