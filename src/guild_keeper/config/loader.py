from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict

from guild_keeper.errors import SettingsError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(os.getenv("GUILDKEEPER_CONFIG", "config.toml"))

SECTION = "guildkeeper"
# Sub-tables of [guildkeeper] and the keys each may hold.
_TABLES = {
    "discord": {"token_env", "chunk_guilds_at_startup"},
    "cache": {"state_ttl_seconds", "rate_limit_timeout", "sql_db_path"},
}
_SCALARS = {"guild_config_dir"}
_NUMERIC = {"state_ttl_seconds", "rate_limit_timeout"}


def _validate(section: Any, source: Path) -> None:
    if not isinstance(section, dict):
        raise SettingsError(f"{source}: [{SECTION}] must be a table")

    for key, value in section.items():
        if key in _SCALARS:
            continue
        allowed = _TABLES.get(key)
        if allowed is None:
            logger.warning("%s: ignoring unknown setting %s.%s", source, SECTION, key)
            continue
        if not isinstance(value, dict):
            raise SettingsError(f"{source}: [{SECTION}.{key}] must be a table")
        for sub, sub_value in value.items():
            if sub not in allowed:
                logger.warning("%s: ignoring unknown setting %s.%s.%s", source, SECTION, key, sub)
            elif sub in _NUMERIC and (
                isinstance(sub_value, bool)
                or not isinstance(sub_value, (int, float))
                or sub_value < 0
            ):
                raise SettingsError(
                    f"{source}: {SECTION}.{key}.{sub} must be a non-negative number"
                )


def load_raw_config(path: str | Path | None = None) -> Dict[str, Any]:
    """
    Load and check the application config (config.toml by default).

    Returns an empty dict when the file is missing so settings fall back to
    environment variables. Malformed TOML, a non-table ``[guildkeeper]``
    section or a negative timing value raises :class:`SettingsError`; unknown
    keys are only logged.
    """
    target = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not target.is_file():
        logger.debug("No config file at %s; using environment only", target)
        return {}

    try:
        with target.open("rb") as handle:
            raw = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise SettingsError(f"{target}: {exc}") from exc

    if SECTION in raw:
        _validate(raw[SECTION], target)
    return raw


__all__ = ["load_raw_config", "DEFAULT_CONFIG_PATH", "SECTION"]
