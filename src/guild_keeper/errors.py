"""Exception hierarchy shared by the state cache, resolver and store."""

from __future__ import annotations


class GuildKeeperError(Exception):
    """Base class for errors raised by this package."""


class ConfigLoadError(GuildKeeperError):
    """A consumer rejected the configuration it was asked to build state from.

    The previously cached state for the affected guild, if any, stays in use.
    """


class LookupFailure(GuildKeeperError):
    """The persisted entity store could not be queried or written."""


class SettingsError(GuildKeeperError):
    """The application config file is malformed."""


__all__ = ["GuildKeeperError", "ConfigLoadError", "LookupFailure", "SettingsError"]
