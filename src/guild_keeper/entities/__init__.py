"""
Entity resolution package.

Modules
=======

``model``
    :class:`ResolvedEntity` plus the :class:`EntityKind` and
    :class:`Provenance` enums.
``live``
    The :class:`LiveSource` contract and its discord.py implementation.
``query``
    Parsing of free-form search text (mentions, ids, ``name#1234``).
``resolver``
    :class:`EntityResolver`, which merges live and persisted records.
"""

from .live import DiscordLiveSource, LiveSource
from .model import EntityKind, Provenance, ResolvedEntity
from .resolver import EntityResolver, PersistedStore

__all__ = [
    "DiscordLiveSource",
    "EntityKind",
    "EntityResolver",
    "LiveSource",
    "PersistedStore",
    "Provenance",
    "ResolvedEntity",
]
