"""
Backing store for guild records.

Owns the ``serenity_guilds`` table and its ``serenity_guild_prefixes``
child table; a guild's prefixes are always read and written together with
the guild row.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import aiosqlite

from serenity.cache.errors import EntityMissing
from serenity.database.db_connection import ConnectionManager
from serenity.datatypes.guild import SerenityGuild
from serenity.repositories.store_errors import parse_timestamp, translate_store_errors
from serenity.util.logger import get_logger

logger = get_logger("guild_repo")


class GuildRepository:
    """CRUD for guilds and their prefixes; implements ``BackingStore[int, SerenityGuild]``."""

    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections

    async def fetch(self, guild_id: int) -> Optional[SerenityGuild]:
        """Fetch a single guild with its prefixes, or None."""
        async with translate_store_errors("fetch guild", guild_id):
            async with self._connections.read() as conn:
                async with conn.execute(
                    "SELECT snowflake, banned, counting_prefix, created_at FROM serenity_guilds WHERE snowflake = ?",
                    (int(guild_id),),
                ) as cursor:
                    row = await cursor.fetchone()

                if row is None:
                    return None

                prefixes = await self._fetch_prefixes(conn, guild_id)

        return self._from_row(row, prefixes)

    async def fetch_all(self) -> List[SerenityGuild]:
        """Fetch every guild, used to warm the cache at startup."""
        async with translate_store_errors("fetch all guilds", "*"):
            async with self._connections.read() as conn:
                async with conn.execute(
                    "SELECT snowflake, banned, counting_prefix, created_at FROM serenity_guilds ORDER BY snowflake"
                ) as cursor:
                    rows = await cursor.fetchall()

                async with conn.execute(
                    "SELECT snowflake, prefix FROM serenity_guild_prefixes ORDER BY snowflake, position"
                ) as cursor:
                    prefix_rows = await cursor.fetchall()

        prefixes: Dict[int, List[str]] = {}
        for snowflake, prefix in prefix_rows:
            prefixes.setdefault(snowflake, []).append(prefix)

        return [self._from_row(row, prefixes.get(row[0], [])) for row in rows]

    async def create(self, guild_id: int, defaults: Mapping[str, Any]) -> SerenityGuild:
        """
        Insert a new guild row with its default prefixes.

        Raises:
            DuplicateKey: If the guild already exists
        """
        merged = {**SerenityGuild.default_fields(guild_id), **defaults}

        async with translate_store_errors("create guild", guild_id, duplicate_on_conflict=True):
            async with self._connections.transaction() as conn:
                await conn.execute(
                    "INSERT INTO serenity_guilds (snowflake, banned, counting_prefix) VALUES (?, ?, ?)",
                    (int(guild_id), 1 if merged["banned"] else 0, merged["counting_prefix"]),
                )
                await self._write_prefixes(conn, guild_id, merged["prefixes"])

                async with conn.execute(
                    "SELECT created_at FROM serenity_guilds WHERE snowflake = ?", (int(guild_id),)
                ) as cursor:
                    row = await cursor.fetchone()

        logger.debug("[GUILD REPO] Created guild %s", guild_id)
        return SerenityGuild.from_defaults(guild_id, merged, parse_timestamp(row[0]))

    async def update(self, guild: SerenityGuild) -> SerenityGuild:
        """
        Persist a guild's fields and replace its prefix rows.

        Raises:
            EntityMissing: If the guild row no longer exists
        """
        async with translate_store_errors("update guild", guild.id):
            async with self._connections.transaction() as conn:
                cursor = await conn.execute(
                    "UPDATE serenity_guilds SET banned = ?, counting_prefix = ? WHERE snowflake = ?",
                    (1 if guild.banned else 0, guild.counting_prefix, int(guild.id)),
                )
                if cursor.rowcount == 0:
                    raise EntityMissing(guild.id)
                await self._write_prefixes(conn, guild.id, guild.prefixes)

        return guild

    async def delete(self, guild_id: int) -> None:
        """Delete a guild row (CASCADE removes its prefixes)."""
        async with translate_store_errors("delete guild", guild_id):
            async with self._connections.transaction() as conn:
                await conn.execute("DELETE FROM serenity_guilds WHERE snowflake = ?", (int(guild_id),))

        logger.debug("[GUILD REPO] Deleted guild %s", guild_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _fetch_prefixes(conn: aiosqlite.Connection, guild_id: int) -> List[str]:
        async with conn.execute(
            "SELECT prefix FROM serenity_guild_prefixes WHERE snowflake = ? ORDER BY position",
            (int(guild_id),),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    @staticmethod
    async def _write_prefixes(conn: aiosqlite.Connection, guild_id: int, prefixes: Iterable[str]) -> None:
        await conn.execute("DELETE FROM serenity_guild_prefixes WHERE snowflake = ?", (int(guild_id),))
        await conn.executemany(
            "INSERT INTO serenity_guild_prefixes (snowflake, position, prefix) VALUES (?, ?, ?)",
            [(int(guild_id), position, prefix) for position, prefix in enumerate(prefixes)],
        )

    @staticmethod
    def _from_row(row: aiosqlite.Row, prefixes: Iterable[str]) -> SerenityGuild:
        return SerenityGuild(
            id=row[0],
            banned=bool(row[1]),
            counting_prefix=row[2],
            created_at=parse_timestamp(row[3]),
            prefixes=tuple(prefixes),
        )
