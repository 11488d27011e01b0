"""
Client provider — memoises client construction per identity.

request(identity) returns the construction task for that identity, starting
one if none exists; every caller for the same identity shares it. A failed
build is retried `retries` times before the task fails with
ClientConstructionError. refetch(identity) throws the old task away and starts
a new build (used by readiness retry).

Admin token side channel:
  When an identity is present and an admin token is configured, a
  fire-and-forget task calls client.initialize_access_control(token) after
  construction. Its outcome is only logged — it never delays or fails the
  client, and never shows up in readiness state.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt

from state.models import Identity
from tools import backend_client
from tools.replica_errors import ClientConstructionError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Optional[Identity]], Awaitable[Any]]


def _key(identity: Optional[Identity]) -> Optional[str]:
    return identity.key if identity is not None else None


class ClientProvider:
    def __init__(
        self,
        factory: ClientFactory = backend_client.build,
        *,
        admin_token: Optional[str] = None,
        retries: int = 1,
    ) -> None:
        self._factory = factory
        self._admin_token = (admin_token or "").strip()
        self._retries = retries
        self._tasks: dict[Optional[str], asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()

    def request(self, identity: Optional[Identity] = None) -> asyncio.Task:
        key = _key(identity)
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._construct(identity))
            self._tasks[key] = task
        return task

    def refetch(self, identity: Optional[Identity] = None) -> asyncio.Task:
        self._tasks.pop(_key(identity), None)
        return self.request(identity)

    def current(self, identity: Optional[Identity] = None) -> Any:
        """The built client, or None while building / after a failed build."""
        task = self._tasks.get(_key(identity))
        if task is None or not task.done() or task.cancelled() or task.exception() is not None:
            return None
        return task.result()

    async def _construct(self, identity: Optional[Identity]) -> Any:
        who = _key(identity) or "anonymous"
        attempts = self._retries + 1

        def _log_retry(retry_state: RetryCallState) -> None:
            logger.warning("Client construction failed for %s (attempt %d/%d): %s",
                           who, retry_state.attempt_number, attempts, retry_state.outcome.exception())

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts), before_sleep=_log_retry, reraise=True,
            ):
                with attempt:
                    client = await self._factory(identity)
        except Exception as exc:
            logger.warning("Client construction failed for %s after %d attempt(s): %s", who, attempts, exc)
            raise ClientConstructionError(str(exc)) from exc

        if identity is not None and self._admin_token:
            self._schedule_access_control(client)
        return client

    # ── Admin token hook ─────────────────────────────────────────────────────

    def _schedule_access_control(self, client: Any) -> None:
        initializer = getattr(client, "initialize_access_control", None)
        if initializer is None:
            return
        task = asyncio.ensure_future(initializer(self._admin_token))
        self._background.add(task)
        task.add_done_callback(self._access_control_done)

    def _access_control_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Optional admin token initialization failed (non-critical): %s", exc)
        elif task.result():
            logger.info("Admin access control initialized")

    async def drain(self) -> None:
        """Wait for outstanding side-channel tasks (tests and shutdown)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
