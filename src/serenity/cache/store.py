"""
Backing store contract consumed by the read-through cache.

Implementations are the authoritative, slower data source (the SQLite
repositories in :mod:`serenity.repositories`). All calls are coroutines and
may raise :class:`~serenity.cache.errors.StoreUnavailable`; ``create`` raises
:class:`~serenity.cache.errors.DuplicateKey` when it loses a creation race.
"""

from __future__ import annotations

from typing import Any, Hashable, Mapping, Optional, Protocol, TypeVar

K = TypeVar("K", bound=Hashable, contravariant=True)
E = TypeVar("E")


class BackingStore(Protocol[K, E]):
    """Contract for any durable store fronted by a cache."""

    async def fetch(self, key: K) -> Optional[E]:
        ...

    async def create(self, key: K, defaults: Mapping[str, Any]) -> E:
        ...

    async def update(self, entity: E) -> E:
        ...

    async def delete(self, key: K) -> None:
        ...
