"""
Agent 1 — Backend Readiness

Turns "build a client, then ensure the backend knows this identity" into an
observable Readiness value: initializing → ready | failed, with retry.

Flow per observe(identity):
  1. Wait for the client (shared per identity by ClientProvider).
       - identity present: bounded wait (3s default) → failed "initialization timed out"
       - build failure: failed with the classified construction error
  2. Anonymous → ready, nothing to initialize.
  3. Identity → ReadinessCache lookup
       - hit:  adopt the entry; if its init is in flight, await that same task
       - miss: create entry, start ONE ensure_initialized() task, await it

Stale results never win:
  - retry() / identity change bump the manager's generation; anything that
    resolves for an older generation is dropped.
  - a late ensure_initialized() whose entry was deleted only updates the
    orphaned entry object, never the cache.
  - after a timeout the state stays failed until retry(), even if the
    client shows up later.

Design:
  - ReadinessManager is the core — testable standalone
  - run() is the LangGraph node wrapper
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from cache.readiness_cache import ReadinessCache
from state.models import Identity
from state.readiness import Readiness, ReadinessEntry
from tools.client_provider import ClientProvider
from tools.replica_errors import GENERIC, TIMEOUT_MESSAGE, ErrorInfo, InitializationTimeout, classify

logger = logging.getLogger(__name__)

INITIALIZATION_TIMEOUT = 3.0  # seconds, client construction wait only

Sleep = Callable[[float], Awaitable[Any]]


class ReadinessManager:
    def __init__(
        self,
        provider: ClientProvider,
        cache: ReadinessCache,
        *,
        timeout: float = INITIALIZATION_TIMEOUT,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._timeout = timeout
        self._sleep = sleep
        self._identity: Optional[Identity] = None
        self._readiness = Readiness.initializing()
        self._generation = 0

    # ── Observable surface ───────────────────────────────────────────────────

    @property
    def readiness(self) -> Readiness:
        return self._readiness

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def client(self) -> Any:
        """The bound client once built (None before / after a failed build)."""
        return self._provider.current(self._identity)

    async def observe(self, identity: Optional[Identity] = None) -> Readiness:
        if identity != self._identity:
            self._identity = identity
            self._generation += 1
            self._readiness = Readiness.initializing()
        generation = self._generation

        readiness = await self._resolve(identity)

        if generation == self._generation:
            if readiness != self._readiness:
                logger.info("Readiness %s → %s (%s)", self._readiness.state.value,
                            readiness.state.value, _who(identity))
            self._readiness = readiness
        else:
            logger.debug("Discarding stale readiness result for %s", _who(identity))
        return self._readiness

    async def retry(self) -> Readiness:
        identity = self._identity
        if identity is not None:
            self._cache.delete(identity.key)
        self._generation += 1
        self._readiness = Readiness.initializing()
        logger.info("Retrying backend initialization (%s)", _who(identity))
        self._provider.refetch(identity)
        return await self.observe(identity)

    # ── Internals ────────────────────────────────────────────────────────────

    async def _resolve(self, identity: Optional[Identity]) -> Readiness:
        try:
            client = await self._await_client(identity)
        except InitializationTimeout as exc:
            logger.warning("Client not ready after %.1fs (%s)", self._timeout, _who(identity))
            return Readiness.failed(ErrorInfo(kind=GENERIC, message=TIMEOUT_MESSAGE, cause=exc))
        except Exception as exc:
            return Readiness.failed(classify(exc))

        if identity is None:
            return Readiness.ready()

        entry = self._cache.get(identity.key)
        if entry is None:
            entry = self._cache.create(identity.key)
            entry.pending = asyncio.ensure_future(self._initialize(entry, client, identity))

        if entry.in_flight:
            await asyncio.shield(entry.pending)
        return entry.readiness

    async def _await_client(self, identity: Optional[Identity]) -> Any:
        task = self._provider.request(identity)
        if identity is None:
            return await asyncio.shield(task)

        if not task.done():
            timer = asyncio.ensure_future(self._sleep(self._timeout))
            try:
                await asyncio.wait({task, timer}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                timer.cancel()
            if not task.done():
                raise InitializationTimeout(f"client not available after {self._timeout}s")
        return task.result()

    async def _initialize(self, entry: ReadinessEntry, client: Any, identity: Identity) -> None:
        """Single writer for `entry`. Never raises."""
        try:
            await client.ensure_initialized()
        except Exception as exc:
            info = classify(exc)
            entry.readiness = Readiness.failed(info)
            logger.warning("Backend initialization failed for %s [%s]: %s",
                           identity.key, info.kind, info.message)
        else:
            entry.readiness = Readiness.ready()
        finally:
            entry.pending = None
        if not self._cache.is_current(identity.key, entry):
            logger.debug("Initialization for %s settled on an orphaned entry", identity.key)


def _who(identity: Optional[Identity]) -> str:
    return identity.key if identity is not None else "anonymous"


async def run(state: dict, manager: ReadinessManager) -> dict:
    """
    LangGraph node — observe readiness for state["identity"], retrying up to
    state["max_retries"] times while failed.
    """
    readiness = await manager.observe(state.get("identity"))
    retries_left = state.get("max_retries", 0)
    while readiness.is_failed and retries_left > 0:
        print(f"  [WARN] Backend not ready: {readiness.error_message} — retrying...", flush=True)
        retries_left -= 1
        readiness = await manager.retry()
    return {**state, "readiness": readiness}
