"""Cached per-user record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Mapping

from serenity.datatypes.entity_update import apply_changes

DEFAULT_LOCALE = "en_US"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_PRONOUNS = "they/them"

_UPDATABLE: FrozenSet[str] = frozenset({"locale", "timezone", "emoji_server_id", "pronouns", "banned"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class SerenityUser:
    """Persistent per-user preferences."""

    id: int
    locale: str = DEFAULT_LOCALE
    timezone: str = DEFAULT_TIMEZONE
    emoji_server_id: int = 0
    pronouns: str = DEFAULT_PRONOUNS
    banned: bool = False
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def default_fields(cls, user_id: int) -> Dict[str, Any]:
        return {
            "locale": DEFAULT_LOCALE,
            "timezone": DEFAULT_TIMEZONE,
            "emoji_server_id": 0,
            "pronouns": DEFAULT_PRONOUNS,
            "banned": False,
        }

    @classmethod
    def from_defaults(cls, user_id: int, defaults: Mapping[str, Any], created_at: datetime) -> "SerenityUser":
        return cls(
            id=user_id,
            locale=str(defaults.get("locale", DEFAULT_LOCALE)),
            timezone=str(defaults.get("timezone", DEFAULT_TIMEZONE)),
            emoji_server_id=int(defaults.get("emoji_server_id", 0)),
            pronouns=str(defaults.get("pronouns", DEFAULT_PRONOUNS)),
            banned=bool(defaults.get("banned", False)),
            created_at=created_at,
        )

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"

    def with_changes(self, **changes: Any) -> "SerenityUser":
        """Return a copy with the given preference fields replaced."""
        return apply_changes(self, _UPDATABLE, **changes)
