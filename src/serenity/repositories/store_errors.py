"""Translation of aiosqlite failures into the cache layer's error taxonomy."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Hashable

import aiosqlite

from serenity.cache.errors import DuplicateKey, StoreUnavailable
from serenity.util.logger import get_logger

logger = get_logger("store_errors")


@asynccontextmanager
async def translate_store_errors(
    operation: str, key: Hashable, *, duplicate_on_conflict: bool = False
) -> AsyncIterator[None]:
    """
    Re-raise database errors raised inside the block as cache errors.

    Args:
        operation: Short description used in the message, e.g. ``"create guild"``
        key: Entity key the operation targets
        duplicate_on_conflict: Map ``IntegrityError`` to ``DuplicateKey`` (creation)

    Raises:
        DuplicateKey: On a uniqueness conflict when ``duplicate_on_conflict`` is set
        StoreUnavailable: For every other aiosqlite error
    """
    try:
        yield
    except aiosqlite.IntegrityError as exc:
        if duplicate_on_conflict:
            raise DuplicateKey(key) from exc
        logger.error("[STORE] %s for %s violated a constraint: %s", operation, key, exc)
        raise StoreUnavailable(f"{operation} for {key!r} failed: {exc}") from exc
    except aiosqlite.Error as exc:
        logger.error("[STORE] %s for %s failed: %s", operation, key, exc)
        raise StoreUnavailable(f"{operation} for {key!r} failed: {exc}") from exc


def parse_timestamp(value: object) -> datetime:
    """Parse SQLite's ``CURRENT_TIMESTAMP`` text (UTC) into an aware datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
