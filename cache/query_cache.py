"""
Query result cache — in-memory, keyed by (query name, identity key).

  - Results are fresh for `stale_time` seconds, then refetched on next read.
  - Concurrent reads of the same key share one in-flight fetch.
  - invalidate(name) drops that query for every identity; a fetch that was in
    flight when its key got invalidated still returns, but is not stored.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

# Query names, also used by the invalidation table in agent_02
CURRENT_USER_PROFILE = "currentUserProfile"
FINANCIAL_GOALS      = "financialGoals"
INVESTMENTS          = "investments"
GOAL_ANALYTICS       = "goalAnalytics"
INVESTMENT_ANALYTICS = "investmentAnalytics"
DASHBOARD            = "dashboard"

DEFAULT_STALE_TIME = 30.0  # seconds

QueryKey = tuple[str, Optional[str]]


@dataclass
class _Entry:
    value: Any = None
    fetched_at: Optional[float] = None
    task: Optional[asyncio.Task] = None


class QueryCache:
    def __init__(
        self,
        stale_time: float = DEFAULT_STALE_TIME,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stale_time = stale_time
        self._clock = clock
        self._entries: dict[QueryKey, _Entry] = {}

    def is_fresh(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return (
            entry is not None
            and entry.fetched_at is not None
            and self._clock() - entry.fetched_at < self._stale_time
        )

    def is_pending(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.task is not None and not entry.task.done()

    async def fetch(self, key: QueryKey, fn: Callable[[], Awaitable[Any]]) -> Any:
        entry = self._entries.get(key)
        if entry is not None and entry.task is not None and not entry.task.done():
            logger.debug("Query %s joined in-flight fetch", key)
            return await asyncio.shield(entry.task)
        if self.is_fresh(key):
            logger.debug("Query %s served from cache", key)
            return entry.value

        task = asyncio.ensure_future(fn())
        entry = _Entry(task=task)
        self._entries[key] = entry
        try:
            value = await asyncio.shield(task)
        except Exception:
            if self._entries.get(key) is entry:
                del self._entries[key]
            raise

        if self._entries.get(key) is entry:
            entry.value = value
            entry.fetched_at = self._clock()
            entry.task = None
        return value

    def invalidate(self, *names: str) -> None:
        stale = [k for k in self._entries if k[0] in names]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Invalidated %d cached queries: %s", len(stale), ", ".join(names))

    def __len__(self) -> int:
        return len(self._entries)
