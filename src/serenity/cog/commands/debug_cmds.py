"""
Debug commands cog for Serenity.
"""

import datetime

import discord
from discord.ext import commands

from serenity.services.cache_service import CacheService
from serenity.util.logger import get_logger

logger = get_logger("debug_commands")


class DebugCog(commands.Cog):
    """Cog for debug commands."""

    debug = discord.SlashCommandGroup("debug", "Debug commands for bot administration")

    def __init__(self, bot: commands.Bot, service: CacheService):
        self.bot = bot
        self.service = service

    @debug.command(name="test", description="Verify the bot is responsive")
    async def test(self, application_context: discord.ApplicationContext) -> None:
        await application_context.respond(
            f"Bot is online at {datetime.datetime.now():%H:%M:%S}, lagging behind by {self.bot.latency * 1000:.2f} ms!",
            ephemeral=True,
        )

    @debug.command(name="cache_stats", description="Show hit, miss and eviction counters for every cache")
    async def cache_stats(self, application_context: discord.ApplicationContext) -> None:
        """Show the per-cache counters and sizes."""
        lines = []
        for name, stats in self.service.statistics().items():
            lines.append(
                f"**{name}**: {stats['size']} cached, "
                f"{stats['hits']} hits / {stats['misses']} misses ({stats['hit_ratio'] * 100:.1f}%), "
                f"{stats['evictions']} evicted, {stats['swept']} swept in {stats['sweeps']} sweeps"
            )

        logger.debug("[DEBUG CMDS] cache_stats requested by %s", application_context.user)
        await application_context.respond("\n".join(lines) or "No caches registered.", ephemeral=True)


# Setup function to register the cog with the bot
def setup(bot: commands.Bot, service: CacheService) -> None:
    """Register the debug cog and command group with the bot."""
    bot.add_cog(DebugCog(bot, service))
