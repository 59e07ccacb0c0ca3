"""
Search text normalization for entity lookups.

Moderators refer to users and channels in many shapes: a mention copied from
the client (``<@!1234>``, ``<#1234>``), a raw snowflake, a handle with a legacy
discriminator (``name#0420``) or a plain name with a stray ``@``/``#`` prefix.
These helpers reduce that text to a :class:`SearchTerms` that the resolver can
act on.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

_USER_MENTION_RE = re.compile(r"^<@!?(?P<id>\d+)>$")
_CHANNEL_MENTION_RE = re.compile(r"^<#(?P<id>\d+)>$")
_DISCRIMINATOR_RE = re.compile(r"^(?P<name>.+)#(?P<disc>\d{4})$")


@dataclass(frozen=True)
class SearchTerms:
    """Parsed search: a candidate id and/or a name (plus optional discriminator)."""

    entity_id: int | None
    name: str | None
    discriminator: str | None = None


def parse_user_search(text: str) -> SearchTerms:
    text = text.strip()
    match = _USER_MENTION_RE.match(text)
    if match:
        return SearchTerms(int(match.group("id")), None)

    entity_id = int(text) if text.isdigit() else None

    name, disc = text, None
    split = _DISCRIMINATOR_RE.match(text)
    if split:
        name, disc = split.group("name"), split.group("disc")
    if name.startswith("@"):
        name = name[1:]
    return SearchTerms(entity_id, name or None, disc)


def parse_channel_search(text: str) -> SearchTerms:
    text = text.strip()
    match = _CHANNEL_MENTION_RE.match(text)
    if match:
        return SearchTerms(int(match.group("id")), None)

    entity_id = int(text) if text.isdigit() else None
    name = text[1:] if text.startswith("#") else text
    return SearchTerms(entity_id, name or None)


__all__ = ["SearchTerms", "parse_user_search", "parse_channel_search"]
