"""
Readiness cache — one ReadinessEntry per identity key.

Constructed once at process start and injected into every ReadinessManager,
so all observers of the same identity share one initialization.
Entries live for the lifetime of the cache; retry() deletes and recreates them.
"""
from __future__ import annotations

import logging
from typing import Optional

from state.readiness import Readiness, ReadinessEntry

logger = logging.getLogger(__name__)


class ReadinessCache:
    def __init__(self) -> None:
        self._entries: dict[str, ReadinessEntry] = {}

    def get(self, key: str) -> Optional[ReadinessEntry]:
        return self._entries.get(key)

    def create(self, key: str) -> ReadinessEntry:
        """Insert a fresh `initializing` entry, replacing any existing one."""
        entry = ReadinessEntry(readiness=Readiness.initializing())
        self._entries[key] = entry
        logger.debug("Readiness entry created for %s", key)
        return entry

    def delete(self, key: str) -> Optional[ReadinessEntry]:
        entry = self._entries.pop(key, None)
        if entry is not None:
            logger.debug("Readiness entry dropped for %s", key)
        return entry

    def is_current(self, key: str, entry: ReadinessEntry) -> bool:
        """False once `entry` has been orphaned by a delete/recreate."""
        return self._entries.get(key) is entry

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
