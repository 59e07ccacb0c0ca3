"""
Guild state package.

Modules
=======

``manager``
    Defines :class:`~guild_keeper.state.manager.GuildStateCache`, which owns
    every cached per-guild state object and is the only place they are
    disposed.
``entry``
    :class:`StateEntry`, the :class:`Disposable` capability and
    :func:`token_hash` used for change detection.
``guild_config``
    Reads per-guild JSON configuration documents.
``module``
    :class:`GuildModule`, the base class for state consumers.
``moderators``
    Built-in consumer backing :meth:`GuildStateCache.get_moderators`.
"""

from .entry import Disposable, StateEntry, token_hash
from .guild_config import GuildConfigSource
from .manager import GuildStateCache
from .moderators import Moderators
from .module import GuildModule

__all__ = [
    "Disposable",
    "GuildConfigSource",
    "GuildModule",
    "GuildStateCache",
    "Moderators",
    "StateEntry",
    "token_hash",
]
