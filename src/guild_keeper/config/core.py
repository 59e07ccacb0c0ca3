import os
from pathlib import Path

_DEFAULT_GUILD_CONFIG_DIR = Path("config") / "guilds"


class Core:
    def __init__(self, config: dict | None = None) -> None:
        cfg = (config or {}).get("guildkeeper", {})
        discord_cfg = cfg.get("discord", {})

        token_env = str(discord_cfg.get("token_env", "DISCORD_API_TOKEN"))
        self.DISCORD_API_TOKEN: str | None = os.getenv(token_env)

        self.GUILD_CONFIG_DIR: str = str(
            cfg.get("guild_config_dir", os.getenv("GUILD_CONFIG_DIR", str(_DEFAULT_GUILD_CONFIG_DIR)))
        )
        self.CHUNK_GUILDS_AT_STARTUP: bool = str(
            discord_cfg.get("chunk_guilds_at_startup", os.getenv("CHUNK_GUILDS_AT_STARTUP", "1"))
        ).lower() in ("1", "true", "yes")
