"""
Database schema initialization.

Creates the guild, guild prefix and user tables plus schema version tracking.
"""

import aiosqlite
from serenity.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables and indexes; every statement is idempotent."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if missing.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS serenity_guilds (
                snowflake INTEGER PRIMARY KEY NOT NULL,
                banned INTEGER NOT NULL DEFAULT 0,
                counting_prefix TEXT NOT NULL DEFAULT 'owo',
                created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Ordered by position so prefixes come back in the order they were added
        await db.execute("""
            CREATE TABLE IF NOT EXISTS serenity_guild_prefixes (
                snowflake INTEGER NOT NULL,
                position INTEGER NOT NULL,
                prefix TEXT NOT NULL,
                PRIMARY KEY (snowflake, prefix),
                FOREIGN KEY (snowflake) REFERENCES serenity_guilds(snowflake) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS serenity_users (
                snowflake INTEGER PRIMARY KEY NOT NULL,
                timezone TEXT NOT NULL DEFAULT 'UTC',
                locale TEXT NOT NULL DEFAULT 'en_US',
                emoji_server_snowflake INTEGER NOT NULL DEFAULT 0,
                pronouns TEXT NOT NULL DEFAULT 'they/them',
                banned INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_guild_prefixes_guild ON serenity_guild_prefixes(snowflake, position)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
