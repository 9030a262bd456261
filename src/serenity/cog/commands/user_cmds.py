"""
Profile cog: let members view, change and delete their stored preferences.

Exposes the ``/profile`` group (``show``, ``pronouns``, ``timezone``,
``forget``). Every lookup goes through the user cache; ``forget`` removes the
record from the database and the cache. Responses are ephemeral.
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import discord
from discord.ext import commands

from serenity.cache.errors import CacheError
from serenity.datatypes.user import SerenityUser
from serenity.services.cache_service import CacheService
from serenity.util.logger import get_logger

logger = get_logger("user_commands")

STORE_DOWN_MESSAGE = "Your profile is temporarily unavailable, please try again later."
MAX_PRONOUNS_LENGTH = 32


def describe(user: SerenityUser) -> str:
    return "\n".join(
        (
            f"**Pronouns:** {user.pronouns}",
            f"**Timezone:** {user.timezone}",
            f"**Locale:** {user.locale}",
            f"**Member since:** {discord.utils.format_dt(user.created_at, style='D')}",
        )
    )


class UserCog(commands.Cog):
    """Per-user profile commands."""

    profile = discord.SlashCommandGroup("profile", "View or change what the bot stores about you")

    def __init__(self, bot: commands.Bot, service: CacheService) -> None:
        self.bot = bot
        self.service = service
        logger.info("[USER CMDS] User cog loaded")

    @profile.command(name="show", description="Show your stored preferences")
    async def profile_show(self, ctx: discord.ApplicationContext) -> None:
        try:
            user = await self.service.users.get_or_create(ctx.user.id)
        except CacheError as exc:
            logger.warning("[USER CMDS] show failed for user %s: %s", ctx.user.id, exc)
            await ctx.respond(STORE_DOWN_MESSAGE, ephemeral=True)
            return

        await ctx.respond(describe(user), ephemeral=True)

    @profile.command(name="pronouns", description="Set the pronouns the bot uses for you")
    @discord.option("pronouns", str, description="For example they/them")
    async def profile_pronouns(self, ctx: discord.ApplicationContext, pronouns: str) -> None:
        pronouns = pronouns.strip()
        if not pronouns or len(pronouns) > MAX_PRONOUNS_LENGTH:
            await ctx.respond(f"Pronouns must be 1 to {MAX_PRONOUNS_LENGTH} characters.", ephemeral=True)
            return

        await self._change(ctx, pronouns=pronouns)

    @profile.command(name="timezone", description="Set your timezone")
    @discord.option("timezone", str, description="IANA name such as Europe/Berlin")
    async def profile_timezone(self, ctx: discord.ApplicationContext, timezone: str) -> None:
        timezone = timezone.strip()
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            await ctx.respond(f"`{timezone}` is not a known timezone.", ephemeral=True)
            return

        await self._change(ctx, timezone=timezone)

    @profile.command(name="forget", description="Delete everything the bot stores about you")
    @discord.option("confirm", bool, description="Set to True to confirm, this cannot be undone")
    async def profile_forget(self, ctx: discord.ApplicationContext, confirm: bool) -> None:
        if not confirm:
            await ctx.respond("Nothing was deleted.", ephemeral=True)
            return

        try:
            await self.service.users.delete(ctx.user.id)
        except CacheError as exc:
            logger.warning("[USER CMDS] forget failed for user %s: %s", ctx.user.id, exc)
            await ctx.respond(STORE_DOWN_MESSAGE, ephemeral=True)
            return

        logger.info("[USER CMDS] Deleted data of user %s", ctx.user.id)
        await ctx.respond("Your data has been deleted.", ephemeral=True)

    async def _change(self, ctx: discord.ApplicationContext, **changes: str) -> None:
        try:
            user = await self.service.users.modify(ctx.user.id, lambda current: current.with_changes(**changes))
        except CacheError as exc:
            logger.warning("[USER CMDS] update failed for user %s: %s", ctx.user.id, exc)
            await ctx.respond(STORE_DOWN_MESSAGE, ephemeral=True)
            return

        await ctx.respond(f"Saved.\n{describe(user)}", ephemeral=True)


def setup(bot: commands.Bot, service: CacheService) -> None:
    bot.add_cog(UserCog(bot, service))
