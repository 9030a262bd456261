"""Event listener Cog for Serenity.

Handles bot lifecycle events (on_ready, on_guild_join, on_guild_remove) and
keeps the guild cache in step with the guilds the bot is actually in.
Store failures are logged here and never raised back into the gateway.
"""

import discord
from discord.ext import commands

from serenity.cache.errors import CacheError
from serenity.services.cache_service import CacheService
from serenity.services.prefix_resolver import PrefixResolver
from serenity.util.logger import get_logger

logger = get_logger("events_listener")


class EventsListenerCog(commands.Cog):
    """Handles Discord bot lifecycle events."""

    def __init__(self, bot: commands.Bot, service: CacheService, resolver: PrefixResolver) -> None:
        self.bot = bot
        self.service = service
        self.resolver = resolver
        logger.info("[EVENTS LISTENER] Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self) -> None:
        if not self.bot.user:
            logger.warning("[EVENTS LISTENER] Bot partially connected, user info not yet available.")
            return

        logger.info(
            "Bot connected as %s (ID: %s) in %d guilds",
            self.bot.user,
            self.bot.user.id,
            len(self.bot.guilds),
        )

    @commands.Cog.listener(name="on_guild_join")
    async def on_guild_join(self, guild: discord.Guild) -> None:
        """Create (or load) the guild record for a newly joined guild."""
        logger.debug("[EVENTS LISTENER] Bot joined guild: %s (ID: %s)", guild.name, guild.id)

        try:
            record = await self.service.guilds.get_or_create(guild.id)
        except CacheError as exc:
            logger.error("[EVENTS LISTENER] Could not initialise guild '%s' (ID: %s): %s", guild.name, guild.id, exc)
            return

        logger.info(
            "[EVENTS LISTENER] Initialised guild '%s' with prefixes %s",
            guild.name,
            ", ".join(record.prefixes) or "(none)",
        )

    @commands.Cog.listener(name="on_guild_remove")
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        """Delete the guild record when the bot leaves a server."""
        logger.debug("[EVENTS LISTENER] Bot removed from guild: %s (ID: %s)", guild.name, guild.id)

        self.resolver.invalidate(guild.id)
        try:
            await self.service.guilds.delete(guild.id)
        except CacheError as exc:
            logger.error("[EVENTS LISTENER] Failed to clean up guild '%s' (ID: %s): %s", guild.name, guild.id, exc)
            return

        logger.info("[EVENTS LISTENER] Cleaned up data for guild '%s' (ID: %s)", guild.name, guild.id)


def setup(bot: commands.Bot, service: CacheService, resolver: PrefixResolver) -> None:
    """Register the EventsListenerCog with the bot."""
    bot.add_cog(EventsListenerCog(bot, service, resolver))
