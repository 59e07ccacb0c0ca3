"""Discord event handlers that feed the entity store and guild state."""
