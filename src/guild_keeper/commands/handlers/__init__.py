"""Slash command cogs; every module here is imported by the registry."""
