"""
Base class for guild-state consumers.

A module implements a feature and keeps every guild-specific value in the
state object it builds from its configuration section, never on ``self``.
Use :meth:`GuildModule.get_guild_state` to fetch it; the cache takes care of
rebuilding it when the configuration changes or the entry ages out.
"""

from __future__ import annotations

import abc
from functools import partial
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - type-checking only
    from .guild_config import GuildConfigSource
    from .manager import GuildStateCache


class GuildModule(abc.ABC):
    def __init__(self, state_cache: "GuildStateCache", config_source: "GuildConfigSource") -> None:
        self.state_cache = state_cache
        self.config_source = config_source

    @property
    def name(self) -> str:
        """Configuration section name and cache consumer type."""
        return type(self).__name__

    @abc.abstractmethod
    async def create_guild_state(self, guild_id: int, config: Any) -> Any:
        """
        Build this module's state for ``guild_id`` from its config section.

        ``config`` is ``None`` when the guild has no section for the module.
        Raise :class:`~guild_keeper.errors.ConfigLoadError` for malformed input.
        """

    async def get_guild_state(self, guild_id: int) -> Any:
        token = await self.config_source.section(guild_id, self.name)
        return await self.state_cache.get_or_create(
            guild_id, self.name, token, partial(self.create_guild_state, guild_id)
        )


__all__ = ["GuildModule"]
