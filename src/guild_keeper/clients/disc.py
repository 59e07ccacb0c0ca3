"""Discord bot bootstrap utilities."""

from __future__ import annotations

import logging

import discord
from discord.ext import commands as discord_commands

from guild_keeper import commands as gk_commands
from guild_keeper.config import core
from guild_keeper.entities import DiscordLiveSource, EntityResolver
from guild_keeper.event_hooks import guild_hook, member_hook
from guild_keeper.state import GuildConfigSource, GuildModule, GuildStateCache, Moderators
from guild_keeper.store import EntityStore

logger = logging.getLogger(__name__)

# --- Intents --------------------------------------------------------------- #
intents = discord.Intents.all()


class GKBot(discord_commands.Bot):
    """
    Bot owning the state cache, entity store and resolver.

    Every collaborator is created here (or injected) and handed to whoever
    needs it; nothing is reached through module-level globals.
    """

    def __init__(
        self,
        *,
        store: EntityStore | None = None,
        state_cache: GuildStateCache | None = None,
        config_source: GuildConfigSource | None = None,
    ) -> None:
        super().__init__(
            command_prefix=discord_commands.when_mentioned,
            intents=intents,
            chunk_guilds_at_startup=core.CHUNK_GUILDS_AT_STARTUP,
        )
        self.store = store or EntityStore.open()
        self.state_cache = state_cache or GuildStateCache()
        self.config_source = config_source or GuildConfigSource()
        self.resolver = EntityResolver(DiscordLiveSource(self), self.store)
        self.moderators = Moderators(self.state_cache, self.config_source)
        self.modules: list[GuildModule] = [self.moderators]

    async def setup_hook(self) -> None:
        """Register slash commands and synchronise with Discord."""

        await gk_commands.setup(self)

        try:
            synced = await self.tree.sync()
            logger.info("Synced %d application command(s)", len(synced))
        except Exception:
            logger.exception("Failed to sync application commands")

    async def close(self) -> None:
        self.state_cache.close()
        await super().close()
        self.store.close()

    # --- Events ------------------------------------------------------------ #

    async def on_ready(self) -> None:
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

    async def on_guild_available(self, guild: discord.Guild) -> None:
        await guild_hook.handle_available(guild, store=self.store, modules=self.modules)

    async def on_guild_join(self, guild: discord.Guild) -> None:
        await guild_hook.handle_available(guild, store=self.store, modules=self.modules)

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        await guild_hook.handle_remove(guild, state_cache=self.state_cache)

    async def on_member_join(self, member: discord.Member) -> None:
        await member_hook.handle_member_update(self.store, member)

    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        await member_hook.handle_member_update(self.store, after)

    async def on_user_update(self, before: discord.User, after: discord.User) -> None:
        await member_hook.handle_user_update(self.store, after)

    async def on_guild_channel_create(self, channel: discord.abc.GuildChannel) -> None:
        await member_hook.handle_channel_update(self.store, channel)

    async def on_guild_channel_update(
        self, before: discord.abc.GuildChannel, after: discord.abc.GuildChannel
    ) -> None:
        await member_hook.handle_channel_update(self.store, after)


def run() -> None:
    """Start the Discord bot using configuration from the environment."""

    if not core.DISCORD_API_TOKEN:
        logger.error("No DISCORD_API_TOKEN configured. Cannot run client.")
        return

    bot = GKBot()
    try:
        bot.run(core.DISCORD_API_TOKEN, log_handler=None)
    except discord.LoginFailure as exc:
        logger.error("Login failed: %s", exc)
