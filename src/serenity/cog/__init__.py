"""Py-Cord cogs wiring the cache service into Discord events and commands."""
