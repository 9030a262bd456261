"""Validated field updates for frozen entity dataclasses."""

from __future__ import annotations

import dataclasses
from typing import Any, FrozenSet, TypeVar

T = TypeVar("T")


class InvalidFieldUpdate(ValueError):
    """Raised when an update names a field that does not exist or is read-only."""

    def __init__(self, entity: object, field_name: str) -> None:
        super().__init__(f"{type(entity).__name__} has no updatable field {field_name!r}")
        self.field_name = field_name


def apply_changes(entity: T, updatable: FrozenSet[str], **changes: Any) -> T:
    """Return a copy of ``entity`` with ``changes`` applied.

    Raises:
        InvalidFieldUpdate: If any key is not in ``updatable``
    """
    for field_name in changes:
        if field_name not in updatable:
            raise InvalidFieldUpdate(entity, field_name)
    return dataclasses.replace(entity, **changes)  # type: ignore[type-var]
