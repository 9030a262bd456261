"""Exceptions raised by the cache layer and its backing stores."""

from __future__ import annotations

from typing import Hashable


class CacheError(Exception):
    """Base error for the cache layer."""


class StoreUnavailable(CacheError):
    """Raised when the backing store cannot serve a request (network/database outage)."""


class StoreTimeout(StoreUnavailable):
    """Raised when a backing store call exceeds the configured timeout."""


class DuplicateKey(CacheError):
    """Raised by ``BackingStore.create`` when another writer created the key first."""

    def __init__(self, key: Hashable) -> None:
        super().__init__(f"Entity {key!r} already exists")
        self.key = key


class EntityMissing(CacheError, LookupError):
    """Raised by ``BackingStore.update`` when the row was deleted upstream."""

    def __init__(self, key: Hashable) -> None:
        super().__init__(f"Entity {key!r} does not exist")
        self.key = key


class CapacityInvariantViolation(CacheError, ValueError):
    """Raised at construction time when the cache is configured with impossible bounds."""
