"""Small helpers shared by consumers of the guild state cache."""

from .entity_name import EntityList, EntityName, EntityType
from .rate_limit import ExpiringEntrySet

__all__ = ["EntityList", "EntityName", "EntityType", "ExpiringEntrySet"]
