"""SQLite backing stores fronted by the entity caches."""
from serenity.repositories.guild_repo import GuildRepository
from serenity.repositories.user_repo import UserRepository

__all__ = [
    "GuildRepository",
    "UserRepository",
]
