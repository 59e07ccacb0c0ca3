"""Built-in consumer that turns the ``Moderators`` section into an EntityList."""

from __future__ import annotations

from typing import Any

from guild_keeper.common.entity_name import EntityList
from guild_keeper.errors import ConfigLoadError

from .manager import MODERATORS_CONSUMER
from .module import GuildModule


class Moderators(GuildModule):
    @property
    def name(self) -> str:
        return MODERATORS_CONSUMER

    async def create_guild_state(self, guild_id: int, config: Any) -> EntityList:
        try:
            return EntityList(config)
        except ValueError as exc:
            raise ConfigLoadError(f"Moderators: {exc}") from exc

    async def is_moderator(self, guild_id: int, member: Any) -> bool:
        mods = await self.get_guild_state(guild_id)
        return mods.matches_member(member)


__all__ = ["Moderators"]
