"""
Per-guild command prefix resolution.

Each guild's prefixes are compiled into one case-insensitive regular
expression and kept in the ``prefixes`` cache of :class:`CacheService`.
The pattern is derived state: every prefix change is written through the
guild cache first and then the compiled pattern is dropped so the next
message recompiles it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Tuple

import discord
from discord.ext import commands

from serenity.cache.errors import StoreUnavailable
from serenity.datatypes.guild import SerenityGuild
from serenity.services.cache_service import CacheService
from serenity.util.logger import get_logger

logger = get_logger("prefix_resolver")

MAX_PREFIX_LENGTH = 16

# Matches nothing; used for guilds with every prefix removed
_NEVER = re.compile(r"(?!)")


class PrefixError(ValueError):
    """Raised when a prefix cannot be added or removed."""


@dataclass(frozen=True, slots=True)
class GuildPrefixes:
    """Compiled prefix pattern for one guild, as stored in the prefix cache."""

    id: int
    prefixes: Tuple[str, ...]
    pattern: Pattern[str]


def compile_prefixes(prefixes: Iterable[str]) -> Pattern[str]:
    """
    Compile prefixes into a single anchored, case-insensitive pattern.

    Longer prefixes are tried first so ``s!!`` wins over ``s!``. Whitespace
    after the prefix is part of the match.

    Args:
        prefixes: Raw prefixes, empty strings are skipped

    Returns:
        Compiled pattern; matches nothing when no prefix remains
    """
    unique = sorted({prefix for prefix in prefixes if prefix}, key=lambda p: (-len(p), p))
    if not unique:
        return _NEVER
    return re.compile(r"|".join(re.escape(prefix) + r"\s*" for prefix in unique), re.IGNORECASE)


class PrefixResolver:
    """Resolves and edits guild prefixes through :class:`CacheService`."""

    def __init__(self, service: CacheService) -> None:
        self.service = service

    async def prefixes_for(self, guild_id: int) -> Tuple[str, ...]:
        guild = await self.service.guilds.get_or_create(guild_id)
        return guild.prefixes

    async def pattern_for(self, guild_id: int) -> Pattern[str]:
        """
        Return the compiled pattern for a guild, compiling it on a cache miss.

        Raises:
            StoreUnavailable: If the guild has to be loaded and the store fails
        """
        cached = self.service.prefixes.get(guild_id)
        if cached is not None:
            return cached.pattern

        guild = await self.service.guilds.get_or_create(guild_id)
        entry = GuildPrefixes(id=guild_id, prefixes=guild.prefixes, pattern=compile_prefixes(guild.prefixes))
        self.service.prefixes.put(guild_id, entry)
        return entry.pattern

    async def match(self, guild_id: int, content: str) -> Optional[str]:
        """Return the prefix text ``content`` starts with (trailing spaces included), or None."""
        pattern = await self.pattern_for(guild_id)
        found = pattern.match(content)
        return found.group(0) if found else None

    async def add_prefix(self, guild_id: int, prefix: str) -> SerenityGuild:
        """
        Add a prefix to a guild.

        Edits of the same guild are applied one after another, each on top of
        the previous result.

        Raises:
            PrefixError: If the prefix is blank, too long or already configured
            StoreUnavailable: If the write-through fails
        """
        prefix = self._normalise(prefix)

        def add(guild: SerenityGuild) -> SerenityGuild:
            if any(existing.lower() == prefix.lower() for existing in guild.prefixes):
                raise PrefixError(f"`{prefix}` is already a prefix here.")
            return guild.with_prefix(prefix)

        updated = await self.service.guilds.modify(guild_id, add)
        self.invalidate(guild_id)
        logger.info("[PREFIX RESOLVER] Added prefix %r to guild %s", prefix, guild_id)
        return updated

    async def remove_prefix(self, guild_id: int, prefix: str) -> SerenityGuild:
        """
        Remove a prefix from a guild.

        Raises:
            PrefixError: If the prefix is not configured
            StoreUnavailable: If the write-through fails
        """
        prefix = self._normalise(prefix)

        def remove(guild: SerenityGuild) -> SerenityGuild:
            existing = next((p for p in guild.prefixes if p.lower() == prefix.lower()), None)
            if existing is None:
                raise PrefixError(f"`{prefix}` is not a prefix here.")
            return guild.without_prefix(existing)

        updated = await self.service.guilds.modify(guild_id, remove)
        self.invalidate(guild_id)
        logger.info("[PREFIX RESOLVER] Removed prefix %r from guild %s", prefix, guild_id)
        return updated

    def invalidate(self, guild_id: int) -> None:
        self.service.prefixes.pop(guild_id)

    async def command_prefix(self, bot: commands.Bot, message: discord.Message) -> List[str]:
        """
        ``command_prefix`` callable for :class:`commands.Bot`.

        Mentions always work. When the guild's prefixes cannot be loaded the
        bot still answers to mentions.

        Raises:
            commands.NoPrivateMessage: For direct messages
        """
        if message.guild is None:
            raise commands.NoPrivateMessage()

        try:
            matched = await self.match(message.guild.id, message.content)
        except StoreUnavailable as exc:
            logger.warning("[PREFIX RESOLVER] Falling back to mentions for guild %s: %s", message.guild.id, exc)
            matched = None

        if matched is None:
            return commands.when_mentioned(bot, message)
        return commands.when_mentioned_or(matched)(bot, message)

    @staticmethod
    def _normalise(prefix: str) -> str:
        prefix = prefix.strip()
        if not prefix:
            raise PrefixError("Prefixes cannot be blank.")
        if len(prefix) > MAX_PREFIX_LENGTH:
            raise PrefixError(f"Prefixes can be at most {MAX_PREFIX_LENGTH} characters long.")
        return prefix
