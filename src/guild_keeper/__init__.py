"""Guild-scoped state caching, entity resolution and rate limiting."""
