"""Per-reference asyncio locks serializing read-modify-write on one payment."""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


@asynccontextmanager
async def payment_lock(reference: str) -> AsyncIterator[None]:
    lock = _locks.get(reference)
    if lock is None:
        lock = asyncio.Lock()
        _locks[reference] = lock
    async with lock:
        yield
