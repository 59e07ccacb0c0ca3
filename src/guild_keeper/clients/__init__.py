"""Discord client bootstrap."""
