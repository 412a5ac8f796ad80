"""
Per-user wallet guard

PostgreSQL serializes read-check-write on a wallet through ``SELECT ... FOR UPDATE``.
SQLite silently drops ``FOR UPDATE``, so within one process every balance mutation
for a user, and every status change on that user's shipments, also runs under an
``asyncio.Lock`` keyed by that user.

Locks are kept per running event loop: an ``asyncio.Lock`` that has waiters is
bound to the loop it was first contended on.
"""
import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[int, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def _lock_for(user_id: int) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    per_loop = _locks.get(loop)
    if per_loop is None:
        per_loop = {}
        _locks[loop] = per_loop
    lock = per_loop.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        per_loop[user_id] = lock
    return lock


@asynccontextmanager
async def wallet_guard(user_id: int) -> AsyncIterator[None]:
    """Hold the in-process mutex for ``user_id``'s wallet"""
    lock = _lock_for(user_id)
    async with lock:
        yield
