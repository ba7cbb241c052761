"""Work deferred until the surrounding database transaction commits.

Callbacks are parked on ``session.info`` and only run once the owner of the
session (``get_db`` or a script) has committed. A rollback discards them.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

_KEY = "after_commit"


def defer_until_commit(
    db: AsyncSession,
    func: Callable[..., Awaitable[Any]],
    *args: Any,
) -> None:
    db.info.setdefault(_KEY, []).append((func, args))


def pending_count(db: AsyncSession) -> int:
    return len(db.info.get(_KEY, ()))


async def run_after_commit(db: AsyncSession) -> None:
    """Run and forget every deferred callback, in the order queued."""
    callbacks = db.info.pop(_KEY, [])
    for func, args in callbacks:
        await func(*args)


def discard_after_commit(db: AsyncSession) -> None:
    db.info.pop(_KEY, None)
