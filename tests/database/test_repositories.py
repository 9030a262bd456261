"""Tests for the SQLite guild and user repositories against a temporary database."""

from unittest.mock import patch

import aiosqlite
import pytest
import pytest_asyncio

from serenity.cache.errors import DuplicateKey, EntityMissing, StoreUnavailable
from serenity.database.db_connection import ConnectionManager
from serenity.database.db_schema import SchemaManager
from serenity.datatypes.guild import SerenityGuild
from serenity.datatypes.user import SerenityUser
from serenity.repositories.guild_repo import GuildRepository
from serenity.repositories.user_repo import UserRepository


@pytest_asyncio.fixture
async def connections(tmp_path):
    manager = ConnectionManager()
    await manager.open(tmp_path / "serenity.db")
    await SchemaManager.initialize_schema(manager.connection)
    yield manager
    await manager.close()


@pytest.fixture
def guilds(connections):
    return GuildRepository(connections)


@pytest.fixture
def users(connections):
    return UserRepository(connections)


class TestSchema:
    @pytest.mark.asyncio
    async def test_tables_exist(self, connections):
        async with connections.read() as conn:
            async with conn.execute("SELECT name FROM sqlite_master WHERE type='table'") as cursor:
                names = {row[0] for row in await cursor.fetchall()}

        assert {"serenity_guilds", "serenity_guild_prefixes", "serenity_users", "schema_version"} <= names

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, connections):
        await SchemaManager.initialize_schema(connections.connection)


class TestGuildRepository:
    @pytest.mark.asyncio
    async def test_fetch_missing_returns_none(self, guilds):
        assert await guilds.fetch(1) is None

    @pytest.mark.asyncio
    async def test_create_then_fetch(self, guilds):
        created = await guilds.create(1, SerenityGuild.default_fields(1))

        fetched = await guilds.fetch(1)

        assert created.prefixes == ("s!", "s?")
        assert fetched == created
        assert fetched.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_create_twice_raises_duplicate_key(self, guilds):
        await guilds.create(1, {})

        with pytest.raises(DuplicateKey) as exc_info:
            await guilds.create(1, {})

        assert exc_info.value.key == 1

    @pytest.mark.asyncio
    async def test_update_rewrites_prefixes_in_order(self, guilds):
        guild = await guilds.create(1, {})

        await guilds.update(guild.with_changes(prefixes=("?", "!"), counting_prefix="uwu", banned=True))
        fetched = await guilds.fetch(1)

        assert fetched.prefixes == ("?", "!")
        assert fetched.counting_prefix == "uwu"
        assert fetched.banned is True

    @pytest.mark.asyncio
    async def test_update_missing_row_raises_entity_missing(self, guilds):
        with pytest.raises(EntityMissing):
            await guilds.update(SerenityGuild(id=404))

    @pytest.mark.asyncio
    async def test_delete_cascades_prefixes(self, guilds, connections):
        await guilds.create(1, {})

        await guilds.delete(1)

        assert await guilds.fetch(1) is None
        async with connections.read() as conn:
            async with conn.execute("SELECT COUNT(*) FROM serenity_guild_prefixes") as cursor:
                (count,) = await cursor.fetchone()
        assert count == 0

    @pytest.mark.asyncio
    async def test_fetch_all_groups_prefixes(self, guilds):
        await guilds.create(2, {"prefixes": ("!",)})
        await guilds.create(1, {})

        everything = await guilds.fetch_all()

        assert [g.id for g in everything] == [1, 2]
        assert everything[0].prefixes == ("s!", "s?")
        assert everything[1].prefixes == ("!",)

    @pytest.mark.asyncio
    async def test_database_error_becomes_store_unavailable(self, guilds, connections):
        with patch.object(connections, "read", side_effect=aiosqlite.OperationalError("disk I/O error")):
            with pytest.raises(StoreUnavailable):
                await guilds.fetch(1)


class TestUserRepository:
    @pytest.mark.asyncio
    async def test_create_fetch_update_delete(self, users):
        created = await users.create(7, {"pronouns": "she/her"})
        assert created.pronouns == "she/her"
        assert await users.fetch(7) == created

        updated = await users.update(created.with_changes(locale="fr_FR", emoji_server_id=99))
        fetched = await users.fetch(7)
        assert fetched == updated
        assert fetched.emoji_server_id == 99

        await users.delete(7)
        assert await users.fetch(7) is None

    @pytest.mark.asyncio
    async def test_create_twice_raises_duplicate_key(self, users):
        await users.create(7, {})
        with pytest.raises(DuplicateKey):
            await users.create(7, {})

    @pytest.mark.asyncio
    async def test_update_missing_row_raises_entity_missing(self, users):
        with pytest.raises(EntityMissing):
            await users.update(SerenityUser(id=8))

    @pytest.mark.asyncio
    async def test_fetch_all(self, users):
        await users.create(3, {})
        await users.create(1, {})

        assert [u.id for u in await users.fetch_all()] == [1, 3]
