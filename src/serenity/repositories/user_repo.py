"""Backing store for user records (``serenity_users`` table only)."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

import aiosqlite

from serenity.cache.errors import EntityMissing
from serenity.database.db_connection import ConnectionManager
from serenity.datatypes.user import SerenityUser
from serenity.repositories.store_errors import parse_timestamp, translate_store_errors
from serenity.util.logger import get_logger

logger = get_logger("user_repo")

_COLUMNS = "snowflake, locale, timezone, emoji_server_snowflake, pronouns, banned, created_at"


class UserRepository:
    """CRUD for the serenity_users table; implements ``BackingStore[int, SerenityUser]``."""

    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections

    async def fetch(self, user_id: int) -> Optional[SerenityUser]:
        async with translate_store_errors("fetch user", user_id):
            async with self._connections.read() as conn:
                async with conn.execute(
                    f"SELECT {_COLUMNS} FROM serenity_users WHERE snowflake = ?",
                    (int(user_id),),
                ) as cursor:
                    row = await cursor.fetchone()

        return None if row is None else self._from_row(row)

    async def fetch_all(self) -> List[SerenityUser]:
        async with translate_store_errors("fetch all users", "*"):
            async with self._connections.read() as conn:
                async with conn.execute(f"SELECT {_COLUMNS} FROM serenity_users ORDER BY snowflake") as cursor:
                    rows = await cursor.fetchall()

        return [self._from_row(row) for row in rows]

    async def create(self, user_id: int, defaults: Mapping[str, Any]) -> SerenityUser:
        """
        Insert a new user row.

        Raises:
            DuplicateKey: If the user already exists
        """
        merged = {**SerenityUser.default_fields(user_id), **defaults}

        async with translate_store_errors("create user", user_id, duplicate_on_conflict=True):
            async with self._connections.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO serenity_users (
                        snowflake, locale, timezone, emoji_server_snowflake, pronouns, banned
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        int(user_id),
                        merged["locale"],
                        merged["timezone"],
                        int(merged["emoji_server_id"]),
                        merged["pronouns"],
                        1 if merged["banned"] else 0,
                    ),
                )
                async with conn.execute(
                    "SELECT created_at FROM serenity_users WHERE snowflake = ?", (int(user_id),)
                ) as cursor:
                    row = await cursor.fetchone()

        logger.debug("[USER REPO] Created user %s", user_id)
        return SerenityUser.from_defaults(user_id, merged, parse_timestamp(row[0]))

    async def update(self, user: SerenityUser) -> SerenityUser:
        """
        Persist a user's preferences.

        Raises:
            EntityMissing: If the user row no longer exists
        """
        async with translate_store_errors("update user", user.id):
            async with self._connections.transaction() as conn:
                cursor = await conn.execute(
                    """
                    UPDATE serenity_users
                    SET locale = ?, timezone = ?, emoji_server_snowflake = ?, pronouns = ?, banned = ?
                    WHERE snowflake = ?
                    """,
                    (
                        user.locale,
                        user.timezone,
                        int(user.emoji_server_id),
                        user.pronouns,
                        1 if user.banned else 0,
                        int(user.id),
                    ),
                )
                if cursor.rowcount == 0:
                    raise EntityMissing(user.id)

        return user

    async def delete(self, user_id: int) -> None:
        async with translate_store_errors("delete user", user_id):
            async with self._connections.transaction() as conn:
                await conn.execute("DELETE FROM serenity_users WHERE snowflake = ?", (int(user_id),))

        logger.debug("[USER REPO] Deleted user %s", user_id)

    @staticmethod
    def _from_row(row: aiosqlite.Row) -> SerenityUser:
        return SerenityUser(
            id=row[0],
            locale=row[1],
            timezone=row[2],
            emoji_server_id=row[3],
            pronouns=row[4],
            banned=bool(row[5]),
            created_at=parse_timestamp(row[6]),
        )
