"""Value types returned by the entity resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class EntityKind(str, Enum):
    USER = "user"
    CHANNEL = "channel"


class Provenance(str, Enum):
    LIVE = "live"
    STORE = "store"


@dataclass(frozen=True)
class ResolvedEntity:
    """One user or channel as known to either the live client or the store."""

    id: int
    guild_id: int
    kind: EntityKind
    name: str
    provenance: Provenance
    observed_at: float
    aliases: tuple[str, ...] = field(default_factory=tuple)
    discriminator: str | None = None

    def names(self) -> tuple[str, ...]:
        """Return the primary name followed by every alias, without blanks."""

        return tuple(n for n in (self.name, *self.aliases) if n)

    def matches_name(self, name: str, discriminator: str | None = None) -> bool:
        """Case-insensitive exact match against the name and aliases."""

        if discriminator is not None and self.discriminator != discriminator:
            return False
        wanted = name.casefold()
        return any(n.casefold() == wanted for n in self.names())


__all__ = ["EntityKind", "Provenance", "ResolvedEntity"]
