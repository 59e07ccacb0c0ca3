"""
Slash command cogs and the collaborators they are built with.

Handler modules under ``commands/handlers`` declare cogs with
:func:`register_cog`. A registered cog is constructed as
``cog_cls(bot, context)``, where ``context`` is a :class:`CommandContext`
carrying the resolver, guild state and rate-limit settings, so cogs never
reach into bot attributes for their dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from pkgutil import iter_modules
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type

from discord.ext import commands as commands_ext

from guild_keeper.config import cache as cache_cfg

if TYPE_CHECKING:  # pragma: no cover - type-checking only
    from guild_keeper.entities import EntityResolver
    from guild_keeper.state import GuildStateCache, Moderators

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandContext:
    resolver: "EntityResolver"
    state_cache: "GuildStateCache"
    moderators: "Moderators"
    rate_limit_timeout: float = cache_cfg.RATE_LIMIT_TIMEOUT

    @classmethod
    def from_bot(cls, bot: Any) -> "CommandContext":
        """Collect the collaborators a :class:`~guild_keeper.clients.disc.GKBot` owns."""
        return cls(
            resolver=bot.resolver,
            state_cache=bot.state_cache,
            moderators=bot.moderators,
            rate_limit_timeout=cache_cfg.RATE_LIMIT_TIMEOUT,
        )


_COGS: Dict[str, Type[commands_ext.Cog]] = {}


def register_cog(cls: Optional[Type[commands_ext.Cog]] = None):
    """
    Decorator registering a Cog class for :func:`setup`.

    Cog names must be unique; registering a second class under an existing
    name is an error rather than a silent replacement.
    """

    def _register(cog_cls: Type[commands_ext.Cog]):
        if not issubclass(cog_cls, commands_ext.Cog):
            raise TypeError("register_cog expects a discord.ext.commands.Cog subclass")
        name = cog_cls.__cog_name__
        existing = _COGS.get(name)
        if existing is not None and existing is not cog_cls:
            raise ValueError(f"Cog name {name!r} already registered by {existing.__module__}")
        _COGS[name] = cog_cls
        return cog_cls

    if cls is None:
        return _register
    return _register(cls)


def registered_cogs() -> List[Type[commands_ext.Cog]]:
    return list(_COGS.values())


async def setup(bot: commands_ext.Bot, context: CommandContext | None = None) -> List[str]:
    """
    Attach every registered cog to ``bot`` and return the names added.

    Call from ``setup_hook``; cogs already attached are left alone.
    """

    ctx = context or CommandContext.from_bot(bot)
    added: List[str] = []
    for name, cog_cls in _COGS.items():
        if bot.get_cog(name):
            continue
        await bot.add_cog(cog_cls(bot, ctx))
        added.append(name)

    if _COGS:
        logger.info("Attached %d command cog(s): %s", len(added), ", ".join(added) or "-")
    else:
        logger.warning("No command cogs discovered; command tree is empty")
    return added


def _discover_handlers() -> None:
    handlers = Path(__file__).resolve().parent / "handlers"
    for _, modname, _ in iter_modules([str(handlers)]):
        if not modname.startswith("_"):
            import_module(f"{__name__}.handlers.{modname}")
            logger.debug("Loaded command handlers from %s", modname)


_discover_handlers()


__all__ = [
    "CommandContext",
    "register_cog",
    "registered_cogs",
    "setup",
]
