"""
Serenity - Discord bot entity caching core

Serenity keeps per-guild and per-user records in bounded in-memory caches so
command handlers and event listeners do not hit the database on every lookup.

Core Components:

- **Cache**: Capacity-bounded, time-aware cache with LRU-by-timestamp eviction,
  a periodic stale sweep and read-through get-or-create against a backing store
- **Repositories**: SQLite backing stores for guilds (with prefixes) and users
- **Services**: A single cache service owning every cache instance, plus the
  command prefix resolver built on top of it
- **Cogs**: Lifecycle listener, prefix management and cache debug commands

Usage:
    from serenity.main import main
    main()  # Starts the bot
"""
