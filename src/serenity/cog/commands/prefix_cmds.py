"""
Prefix cog: view and edit the text-command prefixes of a guild.

Exposes the ``/prefix`` group (``list``, ``add``, ``remove``). Editing needs
the Manage Server permission. Responses are ephemeral.
"""

import discord
from discord.ext import commands

from serenity.cache.errors import CacheError
from serenity.services.prefix_resolver import PrefixError, PrefixResolver
from serenity.util.logger import get_logger

logger = get_logger("prefix_commands")

STORE_DOWN_MESSAGE = "Settings are temporarily unavailable, please try again later."


class PrefixCog(commands.Cog):
    """Guild prefix management."""

    prefix = discord.SlashCommandGroup("prefix", "Manage the text command prefixes for this server")

    def __init__(self, bot: commands.Bot, resolver: PrefixResolver) -> None:
        self.bot = bot
        self.resolver = resolver
        logger.info("[PREFIX CMDS] Prefix cog loaded")

    async def _ensure_guild_context(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return False
        return True

    def _has_manage_permission(self, ctx: discord.ApplicationContext) -> bool:
        if not isinstance(ctx.user, discord.Member):
            return False
        return ctx.user.guild_permissions.manage_guild

    async def _check_permissions(self, ctx: discord.ApplicationContext) -> bool:
        if not await self._ensure_guild_context(ctx):
            return False
        if not self._has_manage_permission(ctx):
            await ctx.respond("You need Manage Server permission.", ephemeral=True)
            return False
        return True

    @prefix.command(name="list", description="Show the prefixes this server answers to")
    async def prefix_list(self, ctx: discord.ApplicationContext) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        try:
            prefixes = await self.resolver.prefixes_for(ctx.guild_id)
        except CacheError as exc:
            logger.warning("[PREFIX CMDS] list failed for guild %s: %s", ctx.guild_id, exc)
            await ctx.respond(STORE_DOWN_MESSAGE, ephemeral=True)
            return

        if prefixes:
            body = "\n".join(f"`{prefix}`" for prefix in prefixes)
        else:
            body = "No prefixes configured, mention the bot instead."
        await ctx.respond(f"Configured prefixes:\n{body}", ephemeral=True)

    @prefix.command(name="add", description="Add a text command prefix")
    @discord.option("prefix", str, description="Prefix to add")
    async def prefix_add(self, ctx: discord.ApplicationContext, prefix: str) -> None:
        if not await self._check_permissions(ctx):
            return

        try:
            guild = await self.resolver.add_prefix(ctx.guild_id, prefix)
        except PrefixError as exc:
            await ctx.respond(str(exc), ephemeral=True)
            return
        except CacheError as exc:
            logger.warning("[PREFIX CMDS] add failed for guild %s: %s", ctx.guild_id, exc)
            await ctx.respond(STORE_DOWN_MESSAGE, ephemeral=True)
            return

        await ctx.respond(
            f"Added `{prefix.strip()}`. Prefixes: {', '.join(f'`{p}`' for p in guild.prefixes)}",
            ephemeral=True,
        )

    @prefix.command(name="remove", description="Remove a text command prefix")
    @discord.option("prefix", str, description="Prefix to remove")
    async def prefix_remove(self, ctx: discord.ApplicationContext, prefix: str) -> None:
        if not await self._check_permissions(ctx):
            return

        try:
            await self.resolver.remove_prefix(ctx.guild_id, prefix)
        except PrefixError as exc:
            await ctx.respond(str(exc), ephemeral=True)
            return
        except CacheError as exc:
            logger.warning("[PREFIX CMDS] remove failed for guild %s: %s", ctx.guild_id, exc)
            await ctx.respond(STORE_DOWN_MESSAGE, ephemeral=True)
            return

        await ctx.respond(f"Removed `{prefix.strip()}`.", ephemeral=True)


def setup(bot: commands.Bot, resolver: PrefixResolver) -> None:
    bot.add_cog(PrefixCog(bot, resolver))
