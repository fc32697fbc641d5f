"""Per-user pending follow-up storage and per-user turn locks."""

import asyncio
import contextlib
import copy
import dataclasses
import logging
import os
import threading
import time
from typing import Callable, Protocol

from tools.models import PendingFollowup

logger = logging.getLogger(__name__)

FOLLOWUP_TTL_SECONDS = int(os.getenv("FOLLOWUP_TTL_SECONDS", "1800"))


class FollowupStore(Protocol):
    def get(self, user_id: str) -> PendingFollowup | None: ...

    def set(self, user_id: str, pending: PendingFollowup) -> None: ...

    def update(self, user_id: str, **changes) -> PendingFollowup | None: ...

    def delete(self, user_id: str) -> None: ...


class InMemoryFollowupStore:
    """
    Holds at most one PendingFollowup per user id.

    Records are copied on the way in and out so callers never share a mutable
    record with the store. A record untouched for longer than ``ttl_seconds``
    is dropped on the next read; ``ttl_seconds <= 0`` keeps records forever.
    """

    def __init__(self, ttl_seconds: int = FOLLOWUP_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._pending: dict[str, PendingFollowup] = {}
        self._lock = threading.Lock()

    def _expired(self, pending: PendingFollowup) -> bool:
        if self.ttl_seconds <= 0:
            return False
        last_touch = pending.updated_at or pending.created_at
        return (self._clock() - last_touch) > self.ttl_seconds

    def get(self, user_id: str) -> PendingFollowup | None:
        if not user_id:
            return None
        with self._lock:
            stored = self._pending.get(user_id)
            if stored is None:
                return None
            if self._expired(stored):
                logger.info("Follow-up for user %s expired (missing=%s)", user_id, stored.missing)
                del self._pending[user_id]
                return None
            return copy.deepcopy(stored)

    def set(self, user_id: str, pending: PendingFollowup) -> None:
        if not user_id:
            return
        stored = copy.deepcopy(pending)
        stored.updated_at = self._clock()
        with self._lock:
            self._pending[user_id] = stored

    def update(self, user_id: str, **changes) -> PendingFollowup | None:
        current = self.get(user_id)
        if current is None:
            return None
        updated = dataclasses.replace(current, **changes)
        self.set(user_id, updated)
        return updated

    def delete(self, user_id: str) -> None:
        if not user_id:
            return
        with self._lock:
            self._pending.pop(user_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


class UserLocks:
    """
    One asyncio.Lock per user id; a whole turn runs while holding it.

    A lock lives only while some turn holds it or waits for it, so idle users
    leave nothing behind.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}
        self._guard = threading.Lock()

    @contextlib.asynccontextmanager
    async def hold(self, user_id: str):
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[user_id] = lock
            self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield lock
        finally:
            with self._guard:
                self._holders[user_id] -= 1
                if self._holders[user_id] == 0:
                    del self._holders[user_id]
                    del self._locks[user_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
