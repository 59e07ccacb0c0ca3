import os
from pathlib import Path

_DEFAULT_SQLITE_PATH = Path("data") / "entities.db"


class Cache:
    def __init__(self, config: dict | None = None) -> None:
        cache_cfg = (config or {}).get("guildkeeper", {}).get("cache", {})
        self.STATE_TTL_SECONDS: float = float(
            cache_cfg.get("state_ttl_seconds", os.getenv("STATE_TTL_SECONDS", "900"))
        )
        self.RATE_LIMIT_TIMEOUT: int = int(
            cache_cfg.get("rate_limit_timeout", os.getenv("RATE_LIMIT_TIMEOUT", "20"))
        )
        self.SQL_DB_PATH: str = str(cache_cfg.get("sql_db_path", os.getenv("SQL_DB_PATH", str(_DEFAULT_SQLITE_PATH))))
