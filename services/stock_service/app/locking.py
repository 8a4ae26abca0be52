"""Opt-in per-item serialization of stock mutations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Protocol

_LOGGER = logging.getLogger(__name__)


class CommittableSession(Protocol):
    async def commit(self) -> None: ...


class ItemLockRegistry:
    """One ``asyncio.Lock`` per item id.

    When enabled, ``hold`` keeps the locks of every touched item for the whole
    read-validate-write sequence and commits the session before releasing them,
    so a second request for the same item reads the committed balance. Locks are
    process-local and do not coordinate several workers.

    When disabled, ``hold`` is a no-op and the session is committed by the
    request's unit of work as usual.
    """

    def __init__(self, *, enabled: bool = False) -> None:
        self.enabled = enabled
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @property
    def tracked_items(self) -> int:
        """Number of items with a lock currently held or awaited."""

        return len(self._locks)

    def _retain(self, item_id: int) -> asyncio.Lock:
        if item_id not in self._locks:
            self._locks[item_id] = asyncio.Lock()
        self._users[item_id] = self._users.get(item_id, 0) + 1
        return self._locks[item_id]

    def _release(self, item_id: int) -> None:
        # A lock is dropped once no holder or waiter references it.
        self._users[item_id] -= 1
        if not self._users[item_id]:
            del self._users[item_id]
            del self._locks[item_id]

    @asynccontextmanager
    async def hold(self, session: CommittableSession, *item_ids: int) -> AsyncIterator[None]:
        if not self.enabled:
            yield
            return

        # Sorted acquisition keeps two multi-item mutations from deadlocking.
        ordered = sorted(set(item_ids))
        async with AsyncExitStack() as stack:
            for item_id in ordered:
                lock = self._retain(item_id)
                stack.callback(self._release, item_id)
                await stack.enter_async_context(lock)
            _LOGGER.debug("Holding stock locks for items %s", ordered)
            yield
            await session.commit()
