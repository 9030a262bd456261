"""Cached value contract and the per-key bookkeeping record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Hashable, Protocol, TypeVar


class Entity(Protocol):
    """A domain value with a stable identity."""

    @property
    def id(self) -> Hashable:
        ...


E = TypeVar("E")


@dataclass(slots=True)
class CacheEntry(Generic[E]):
    # Stores the entity + the monotonic time it was last read or written
    entity: E
    last_access: float
    sequence: int

    def touch(self, now: float, sequence: int) -> None:
        # Never rewind: a clock that stalls must not make an entry look older
        if now > self.last_access:
            self.last_access = now
        self.sequence = sequence

    def age(self, now: float) -> float:
        return now - self.last_access
