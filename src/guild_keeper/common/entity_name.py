"""
Configuration notation for Discord roles, channels and users.

Guild configuration refers to entities with a short prefixed string:

* ``&`` for a role, ``#`` for a channel and ``@`` for a user.
* The body is a snowflake id (``@1234``), a name (``&Moderators``) or both,
  separated by ``::`` (``#1234::general``).

:class:`EntityName` parses one such string and :class:`EntityList` holds an
ordered collection of them, for example the guild's moderator list.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Iterator, Sequence


class EntityType(Enum):
    ROLE = "&"
    CHANNEL = "#"
    USER = "@"


_PREFIXES = {t.value: t for t in EntityType}


class EntityName:
    """An entity's type along with its id, name, or both."""

    __slots__ = ("type", "_id", "name")

    def __init__(self, text: str, expected_type: EntityType | None = None) -> None:
        if text is None or not str(text).strip():
            raise ValueError("Specified name is blank.")
        text = str(text).strip()

        etype = _PREFIXES.get(text[0]) if len(text) >= 2 else None
        if etype is None:
            raise ValueError(f"Entity type unable to be inferred from {text!r}.")
        if expected_type is not None and etype is not expected_type:
            raise ValueError(
                f"{text!r} resolved to {etype.name.lower()}, expected {expected_type.name.lower()}."
            )
        self.type = etype

        body = text[1:]
        ident: int | None = None
        name: str | None
        head, sep, tail = body.partition("::")
        if sep:
            if head.isdigit():
                ident, name = int(head), tail
            else:
                # Not an id after all; the whole body is a name.
                name = body
        elif body.isdigit():
            ident, name = int(body), None
        else:
            name = body

        self._id = ident
        self.name = name

    @property
    def id(self) -> int | None:
        return self._id

    @id.setter
    def id(self, value: int) -> None:
        # An id may be learned once; configured ids are never overwritten.
        if self._id is None:
            self._id = value

    def __str__(self) -> str:
        prefix = self.type.value
        if self._id is not None and self.name is not None:
            return f"{prefix}{self._id}::{self.name}"
        if self._id is not None:
            return f"{prefix}{self._id}"
        return f"{prefix}{self.name}"

    def __repr__(self) -> str:
        return f"EntityName({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntityName):
            return NotImplemented
        return (self.type, self._id, self.name) == (other.type, other._id, other.name)

    def __hash__(self) -> int:
        return hash((self.type, self._id, self.name))

    def matches(self, entity_id: int, entity_name: str | None, *, keep_id: bool = False) -> bool:
        """Return ``True`` if this name refers to the given entity."""

        if self._id is not None:
            return self._id == entity_id
        if self.name is None or entity_name is None:
            return False
        if self.name.casefold() != entity_name.casefold():
            return False
        if keep_id:
            self.id = entity_id
        return True


class EntityList(Sequence[EntityName]):
    """Read-only list of :class:`EntityName` values parsed from configuration."""

    def __init__(self, values: Iterable[Any] | None = None) -> None:
        if values is None:
            self._items: tuple[EntityName, ...] = ()
            return
        if isinstance(values, (str, bytes, dict)) or not isinstance(values, (list, tuple)):
            raise ValueError("Entity list input must be an array of strings.")

        items = []
        for raw in values:
            if not isinstance(raw, str):
                raise ValueError(f"Entity list contains a non-string value: {raw!r}")
            if not raw.strip():
                continue
            items.append(EntityName(raw))
        self._items = tuple(items)

    def __getitem__(self, index):  # type: ignore[override]
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[EntityName]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"EntityList({[str(i) for i in self._items]!r})"

    @property
    def roles(self) -> list[EntityName]:
        return [n for n in self._items if n.type is EntityType.ROLE]

    @property
    def channels(self) -> list[EntityName]:
        return [n for n in self._items if n.type is EntityType.CHANNEL]

    @property
    def users(self) -> list[EntityName]:
        return [n for n in self._items if n.type is EntityType.USER]

    def is_empty(self) -> bool:
        return not self._items

    def matches_member(self, member: Any, *, keep_id: bool = False) -> bool:
        """
        Return ``True`` if ``member`` is listed directly or holds a listed role.

        ``member`` is anything shaped like :class:`discord.Member`: it needs
        ``id`` and ``name`` plus an optional ``roles`` iterable.
        """

        for entry in self.users:
            if entry.matches(member.id, getattr(member, "name", None), keep_id=keep_id):
                return True

        member_roles = list(getattr(member, "roles", []) or [])
        for entry in self.roles:
            for role in member_roles:
                if entry.matches(role.id, getattr(role, "name", None), keep_id=keep_id):
                    return True
        return False

    def matches_channel(self, channel: Any, *, keep_id: bool = False) -> bool:
        """Return ``True`` if ``channel`` is listed."""

        return any(
            entry.matches(channel.id, getattr(channel, "name", None), keep_id=keep_id)
            for entry in self.channels
        )


__all__ = ["EntityType", "EntityName", "EntityList"]
