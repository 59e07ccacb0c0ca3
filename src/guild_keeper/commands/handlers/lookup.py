from __future__ import annotations

import datetime
import logging
from typing import Any

import discord
from discord import app_commands
from discord.ext import commands

from .. import CommandContext, register_cog
from guild_keeper.common.rate_limit import ExpiringEntrySet
from guild_keeper.entities import EntityKind, EntityResolver, Provenance, ResolvedEntity
from guild_keeper.errors import ConfigLoadError, LookupFailure

logger = logging.getLogger(__name__)

MAX_RESULTS = 5

# ----------------------------- Lookup Helpers ----------------------------- #


def format_entity(entity: ResolvedEntity) -> str:
    """Render one resolver result as a single line of Discord markdown."""

    if entity.kind is EntityKind.USER:
        mention = f"<@{entity.id}>"
        label = entity.name if entity.discriminator is None else f"{entity.name}#{entity.discriminator}"
    else:
        mention = f"<#{entity.id}>"
        label = f"#{entity.name}"

    aliases = [a for a in entity.aliases if a != entity.name]
    alias_txt = f" (aka {', '.join(aliases)})" if aliases else ""

    if entity.provenance is Provenance.LIVE:
        seen = "present now"
    else:
        when = datetime.datetime.fromtimestamp(entity.observed_at, tz=datetime.timezone.utc)
        seen = f"last seen {when:%Y-%m-%d %H:%M} UTC"
    return f"{mention} {discord.utils.escape_markdown(label)}{alias_txt} `{entity.id}` - {seen}"


async def run_lookup(
    resolver: EntityResolver, guild_id: int, query: str, kind: EntityKind
) -> str:
    """Resolve ``query`` in ``guild_id`` and return the reply text."""

    results: list[ResolvedEntity] = []
    async for entity in resolver.query_search(guild_id, query, kind):
        results.append(entity)
        if len(results) >= MAX_RESULTS:
            break

    if not results:
        return f"No {kind.value} found matching `{discord.utils.escape_markdown(query)}`."
    return "\n".join(format_entity(e) for e in results)


# ----------------------------- Command Definitions ----------------------------- #


@register_cog
class Lookup(commands.Cog):
    """
    Moderator-only slash commands resolving users and channels.

    Results combine members currently in the server with historical records,
    so departed users and deleted channels can still be found.
    """

    def __init__(self, bot: commands.Bot, context: CommandContext):
        self.bot = bot
        self.context = context
        self._limiter: ExpiringEntrySet[int] = ExpiringEntrySet(context.rate_limit_timeout)

    async def _is_moderator(self, guild_id: int, member: Any) -> bool:
        try:
            return await self.context.moderators.is_moderator(guild_id, member)
        except ConfigLoadError:
            # Rejected edit; the last good list stays authoritative.
            return self.context.state_cache.get_moderators(guild_id).matches_member(member)

    async def _respond(self, interaction: discord.Interaction, query: str, kind: EntityKind) -> None:
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message("Use this command in a server.", ephemeral=True)
            return

        if not await self._is_moderator(guild.id, interaction.user):
            await interaction.response.send_message("This command is for moderators.", ephemeral=True)
            return

        if not self._limiter.is_permitted(interaction.user.id):
            await interaction.response.send_message(
                "You're doing that too often. Try again shortly.", ephemeral=True
            )
            return

        try:
            reply = await run_lookup(self.context.resolver, guild.id, query, kind)
        except LookupFailure:
            logger.exception("Lookup for %r in guild %s failed", query, guild.id)
            reply = "The lookup failed; try again later."
        await interaction.response.send_message(reply, ephemeral=True)

    @app_commands.command(name="whois", description="Find a user by mention, ID or name.")
    @app_commands.describe(query="Mention, user ID, username, nickname or name#1234.")
    async def whois(self, interaction: discord.Interaction, query: str) -> None:
        await self._respond(interaction, query, EntityKind.USER)

    @app_commands.command(name="channelinfo", description="Find a channel by mention, ID or name.")
    @app_commands.describe(query="Channel mention, ID or name.")
    async def channelinfo(self, interaction: discord.Interaction, query: str) -> None:
        await self._respond(interaction, query, EntityKind.CHANNEL)
