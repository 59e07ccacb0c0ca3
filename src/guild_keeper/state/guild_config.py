"""
Per-guild configuration files.

Each guild is configured by ``<config_dir>/<guild_id>.json``: a JSON object
whose top-level keys are consumer names (``"Moderators"``, module class names)
and whose values are that consumer's configuration section. The section is
the config token handed to :meth:`GuildStateCache.get_or_create`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from guild_keeper.config import core as core_cfg
from guild_keeper.errors import ConfigLoadError

logger = logging.getLogger(__name__)


class GuildConfigSource:
    """Reads guild configuration documents from a directory."""

    def __init__(self, config_dir: str | Path | None = None) -> None:
        self._dir = Path(config_dir if config_dir is not None else core_cfg.GUILD_CONFIG_DIR)

    def path_for(self, guild_id: int) -> Path:
        return self._dir / f"{guild_id}.json"

    def _read(self, guild_id: int) -> dict[str, Any]:
        path = self.path_for(guild_id)
        if not path.is_file():
            return {}
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigLoadError(f"Cannot read configuration for guild {guild_id}: {exc}") from exc
        if not isinstance(doc, dict):
            raise ConfigLoadError(f"Configuration for guild {guild_id} is not a JSON object.")
        return doc

    async def load(self, guild_id: int) -> dict[str, Any]:
        """Return the guild's configuration; an absent file is an empty config."""

        return await asyncio.to_thread(self._read, guild_id)

    async def section(self, guild_id: int, name: str) -> Any:
        """Return the ``name`` section of the guild's configuration, or ``None``."""

        return (await self.load(guild_id)).get(name)


__all__ = ["GuildConfigSource"]
