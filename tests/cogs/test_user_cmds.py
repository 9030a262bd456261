from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from serenity.cache.errors import StoreUnavailable
from serenity.cog.commands import user_cmds
from serenity.database.db_connection import ConnectionManager
from serenity.database.db_schema import SchemaManager
from serenity.datatypes.user import SerenityUser
from serenity.repositories.guild_repo import GuildRepository
from serenity.repositories.user_repo import UserRepository
from serenity.services.cache_service import CacheService


class Ctx:
    def __init__(self, user_id=7):
        self.user = SimpleNamespace(id=user_id)
        self.responses = []

    async def respond(self, *args, **kwargs):
        self.responses.append((args, kwargs))

    @property
    def last(self):
        args, kwargs = self.responses[-1]
        return args[0] if args else kwargs.get("content")


@pytest_asyncio.fixture
async def service(tmp_path):
    connections = ConnectionManager()
    await connections.open(tmp_path / "serenity.db")
    await SchemaManager.initialize_schema(connections.connection)
    yield CacheService(GuildRepository(connections), UserRepository(connections))
    await connections.close()


@pytest.fixture
def cog(service):
    return user_cmds.UserCog(SimpleNamespace(), service)


def callback(name):
    return getattr(user_cmds.UserCog, name).callback


def test_setup_registers_cog():
    captured = {}
    user_cmds.setup(SimpleNamespace(add_cog=lambda cog: captured.setdefault("cog", cog)), SimpleNamespace())

    assert isinstance(captured["cog"], user_cmds.UserCog)


@pytest.mark.asyncio
async def test_show_creates_profile_with_defaults(cog, service):
    ctx = Ctx()

    await callback("profile_show")(cog, ctx)

    assert "**Pronouns:** they/them" in ctx.last
    assert "**Timezone:** UTC" in ctx.last
    assert ctx.responses[-1][1]["ephemeral"] is True
    assert service.users.get(7) is not None


@pytest.mark.asyncio
async def test_set_pronouns_writes_through(cog, service):
    ctx = Ctx()

    await callback("profile_pronouns")(cog, ctx, "  she/her ")

    stored = await service.users.store.fetch(7)
    assert stored.pronouns == "she/her"
    assert service.users.get(7).pronouns == "she/her"
    assert ctx.last.startswith("Saved.")


@pytest.mark.asyncio
@pytest.mark.parametrize("pronouns", ["", "x" * (user_cmds.MAX_PRONOUNS_LENGTH + 1)])
async def test_invalid_pronouns_rejected(cog, service, pronouns):
    ctx = Ctx()

    await callback("profile_pronouns")(cog, ctx, pronouns)

    assert "characters" in ctx.last
    assert await service.users.store.fetch(7) is None


@pytest.mark.asyncio
async def test_set_timezone(monkeypatch, cog, service):
    monkeypatch.setattr(user_cmds, "ZoneInfo", lambda key: None)
    ctx = Ctx()

    await callback("profile_timezone")(cog, ctx, "Europe/Berlin")

    assert (await service.users.store.fetch(7)).timezone == "Europe/Berlin"


@pytest.mark.asyncio
async def test_unknown_timezone_rejected(cog, service):
    ctx = Ctx()

    await callback("profile_timezone")(cog, ctx, "Not/AZone")

    assert ctx.last == "`Not/AZone` is not a known timezone."
    assert await service.users.store.fetch(7) is None


@pytest.mark.asyncio
async def test_forget_deletes_record_and_cache_entry(cog, service):
    await service.users.get_or_create(7)
    ctx = Ctx()

    await callback("profile_forget")(cog, ctx, True)

    assert ctx.last == "Your data has been deleted."
    assert service.users.get(7) is None
    assert await service.users.store.fetch(7) is None


@pytest.mark.asyncio
async def test_forget_without_confirmation_keeps_data(cog, service):
    await service.users.get_or_create(7)
    ctx = Ctx()

    await callback("profile_forget")(cog, ctx, False)

    assert ctx.last == "Nothing was deleted."
    assert service.users.get(7) is not None


@pytest.mark.asyncio
async def test_store_outage_reported():
    users = SimpleNamespace(
        get_or_create=AsyncMock(side_effect=StoreUnavailable("down")),
        modify=AsyncMock(side_effect=StoreUnavailable("down")),
    )
    cog = user_cmds.UserCog(SimpleNamespace(), SimpleNamespace(users=users))

    show_ctx = Ctx()
    await callback("profile_show")(cog, show_ctx)
    change_ctx = Ctx()
    await callback("profile_pronouns")(cog, change_ctx, "he/him")

    assert show_ctx.last == user_cmds.STORE_DOWN_MESSAGE
    assert change_ctx.last == user_cmds.STORE_DOWN_MESSAGE


def test_describe_lists_preferences():
    text = user_cmds.describe(SerenityUser(id=1, pronouns="xe/xem", timezone="Asia/Tokyo"))

    assert "xe/xem" in text and "Asia/Tokyo" in text and "Member since" in text
