"""Services built on top of the caches and shared by the cogs."""
