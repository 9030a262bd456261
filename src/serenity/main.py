"""
Serenity Discord Bot
====================

Entry point: opens the SQLite database, builds the entity caches, wires the
cogs into a Py-Cord ``commands.Bot`` and runs it until interrupted. On the
way out the cache sweepers are drained before the database is closed.
"""

import asyncio
import os
import sys
from pathlib import Path

import discord
from discord.ext import commands
from dotenv import load_dotenv

from serenity.configuration.app_configuration import CONFIG_PATH, AppConfig
from serenity.database.db_connection import ConnectionManager
from serenity.database.db_schema import SchemaManager
from serenity.repositories.guild_repo import GuildRepository
from serenity.repositories.user_repo import UserRepository
from serenity.services.cache_service import CacheService
from serenity.services.prefix_resolver import PrefixResolver
from serenity.util.logger import get_logger, handle_exception

logger = get_logger("main")


def resolve_base_dir() -> Path:
    """Determine the project directory.

    ``SERENITY_HOME`` wins when set; otherwise the checkout root that holds
    ``src/serenity``.
    """
    if env_home := os.getenv("SERENITY_HOME"):
        return Path(env_home).resolve()
    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()


def load_environment() -> str:
    """Load ``.env`` and return the Discord bot token.

    Raises:
        SystemExit: If ``DISCORD_BOT_TOKEN`` is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Guild and message intents; message content is needed for text prefixes."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.messages = True
    intents.message_content = True
    return intents


def load_cogs(bot: commands.Bot, service: CacheService, resolver: PrefixResolver) -> None:
    """Register all cogs with the bot."""
    from serenity.cog.commands import debug_cmds, prefix_cmds, user_cmds
    from serenity.cog.listener import events_listener

    events_listener.setup(bot, service, resolver)
    prefix_cmds.setup(bot, resolver)
    user_cmds.setup(bot, service)
    debug_cmds.setup(bot, service)

    logger.info("All cogs loaded successfully.")


def create_bot(service: CacheService) -> commands.Bot:
    """Instantiate the bot with per-guild prefix resolution and register all cogs."""
    resolver = PrefixResolver(service)
    bot = commands.Bot(
        command_prefix=resolver.command_prefix,
        intents=build_intents(),
        help_command=None,
    )
    load_cogs(bot, service, resolver)
    return bot


async def open_database(connections: ConnectionManager, path: Path) -> None:
    await connections.open(path)
    await SchemaManager.initialize_schema(connections.connection)


async def start_bot(bot: commands.Bot, token: str) -> None:
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(
    bot: commands.Bot | None,
    service: CacheService | None,
    connections: ConnectionManager,
) -> None:
    """Close the bot, drain the cache sweepers, then close the database, in that order."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord client: %s", exc)

    if service is not None:
        try:
            await service.shutdown()
        except Exception as exc:
            logger.exception("Error during cache shutdown: %s", exc)

    await connections.close()
    logger.info("Shutdown complete.")


async def async_main(config: AppConfig | None = None) -> int:
    """Bootstrap database, caches and bot, returning an exit code."""
    token = load_environment()
    config = config or AppConfig(BASE_DIR / CONFIG_PATH)

    connections = ConnectionManager()
    try:
        logger.info("Opening database at %s", config.database_path)
        await open_database(connections, config.database_path)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        await connections.close()
        return 1

    service: CacheService | None = None
    bot: commands.Bot | None = None
    exit_code = 0

    try:
        service = CacheService(GuildRepository(connections), UserRepository(connections), config=config)
        await service.start(warm=True)
        bot = create_bot(service)
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, service, connections)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    os.chdir(BASE_DIR)

    logger.info("Starting Serenity…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
