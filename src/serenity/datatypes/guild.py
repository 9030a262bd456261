"""
Cached per-guild record.

A guild row carries the command prefixes the bot answers to in that guild,
the counting-game prefix and a ban flag. Instances are frozen: a change is a
new instance produced by :meth:`SerenityGuild.with_changes` and written back
through the guild cache so the database and the cache never diverge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Mapping, Tuple

from serenity.datatypes.entity_update import apply_changes

DEFAULT_PREFIXES: Tuple[str, ...] = ("s!", "s?")
DEFAULT_COUNTING_PREFIX = "owo"

_UPDATABLE: FrozenSet[str] = frozenset({"prefixes", "counting_prefix", "banned"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class SerenityGuild:
    """Persistent per-guild configuration values."""

    id: int
    prefixes: Tuple[str, ...] = DEFAULT_PREFIXES
    counting_prefix: str = DEFAULT_COUNTING_PREFIX
    banned: bool = False
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def default_fields(cls, guild_id: int) -> Dict[str, Any]:
        """Field values used when a guild is seen for the first time."""
        return {
            "prefixes": DEFAULT_PREFIXES,
            "counting_prefix": DEFAULT_COUNTING_PREFIX,
            "banned": False,
        }

    @classmethod
    def from_defaults(cls, guild_id: int, defaults: Mapping[str, Any], created_at: datetime) -> "SerenityGuild":
        return cls(
            id=guild_id,
            prefixes=tuple(defaults.get("prefixes", DEFAULT_PREFIXES)),
            counting_prefix=str(defaults.get("counting_prefix", DEFAULT_COUNTING_PREFIX)),
            banned=bool(defaults.get("banned", False)),
            created_at=created_at,
        )

    def with_changes(self, **changes: Any) -> "SerenityGuild":
        """Return a copy with ``prefixes``, ``counting_prefix`` or ``banned`` replaced."""
        if "prefixes" in changes:
            changes["prefixes"] = tuple(changes["prefixes"])
        return apply_changes(self, _UPDATABLE, **changes)

    def with_prefix(self, prefix: str) -> "SerenityGuild":
        return self.with_changes(prefixes=(*self.prefixes, prefix))

    def without_prefix(self, prefix: str) -> "SerenityGuild":
        return self.with_changes(prefixes=tuple(p for p in self.prefixes if p != prefix))
