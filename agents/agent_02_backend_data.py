"""
Agent 2 — Backend Data

BackendService wraps the ready client with a QueryCache:
  - reads are cached per (query, identity) and return NotReady (never raise)
    while the readiness manager is not ready
  - writes raise NotReadyError before readiness, MutationError on failure,
    and on success invalidate every query that depends on them

Invalidation table:
  save profile                 → currentUserProfile
  add / update / delete goal   → financialGoals, goalAnalytics, dashboard
  add investment               → investments, investmentAnalytics, dashboard
  update / delete investment   → investments, investmentAnalytics, goalAnalytics, dashboard
  link / unlink investment     → goalAnalytics, dashboard

Produces: state["dashboard"], state["goals"], state["investments"]
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from agents.agent_01_readiness import ReadinessManager
from cache.query_cache import (
    CURRENT_USER_PROFILE,
    DASHBOARD,
    FINANCIAL_GOALS,
    GOAL_ANALYTICS,
    INVESTMENT_ANALYTICS,
    INVESTMENTS,
    QueryCache,
    QueryKey,
)
from state.models import (
    FinancialDashboard,
    FinancialGoal,
    GoalsAnalytics,
    Investment,
    InvestmentsAnalytics,
    UserProfile,
)
from state.readiness import Readiness
from tools.replica_errors import MutationError, NotReadyError

logger = logging.getLogger(__name__)

PREFETCH_DELAY = 0.5  # seconds before the lower-priority analytics prefetch

_GOAL_WRITES       = (FINANCIAL_GOALS, GOAL_ANALYTICS, DASHBOARD)
_INVESTMENT_ADD    = (INVESTMENTS, INVESTMENT_ANALYTICS, DASHBOARD)
_INVESTMENT_WRITES = (INVESTMENTS, INVESTMENT_ANALYTICS, GOAL_ANALYTICS, DASHBOARD)
_LINK_WRITES       = (GOAL_ANALYTICS, DASHBOARD)

INVALIDATES: dict[str, tuple[str, ...]] = {
    "save profile":      (CURRENT_USER_PROFILE,),
    "add goal":          _GOAL_WRITES,
    "update goal":       _GOAL_WRITES,
    "delete goal":       _GOAL_WRITES,
    "add investment":    _INVESTMENT_ADD,
    "update investment": _INVESTMENT_WRITES,
    "delete investment": _INVESTMENT_WRITES,
    "link investment":   _LINK_WRITES,
    "unlink investment": _LINK_WRITES,
}

_SUCCESS = {
    "save profile":      "Profile saved successfully",
    "add goal":          "Goal added successfully",
    "update goal":       "Goal updated successfully",
    "delete goal":       "Goal deleted successfully",
    "add investment":    "Investment added successfully",
    "update investment": "Investment updated successfully",
    "delete investment": "Investment deleted successfully",
    "link investment":   "Investment linked to goal successfully",
    "unlink investment": "Investment unlinked from goal successfully",
}


@dataclass(frozen=True)
class NotReady:
    """Returned by every read while the backend link is not ready."""
    readiness: Readiness

    @property
    def message(self) -> str:
        return self.readiness.error_message or "Backend connection is still initializing."


class BackendService:
    def __init__(
        self,
        manager: ReadinessManager,
        cache: Optional[QueryCache] = None,
        *,
        prefetch_delay: float = PREFETCH_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._manager = manager
        self._cache = cache if cache is not None else QueryCache()
        self._prefetch_delay = prefetch_delay
        self._sleep = sleep

    @property
    def cache(self) -> QueryCache:
        return self._cache

    def _ready_client(self) -> Any:
        if not self._manager.readiness.is_ready:
            return None
        return self._manager.client

    def _key(self, name: str) -> QueryKey:
        identity = self._manager.identity
        return (name, identity.key if identity is not None else None)

    async def _query(self, name: str, call: Callable[[Any], Awaitable[Any]]) -> Any:
        client = self._ready_client()
        if client is None:
            return NotReady(self._manager.readiness)
        return await self._cache.fetch(self._key(name), lambda: call(client))

    async def _read(self, call: Callable[[Any], Awaitable[Any]]) -> Any:
        """Uncached single-record read; backend errors propagate."""
        client = self._ready_client()
        if client is None:
            return NotReady(self._manager.readiness)
        return await call(client)

    async def _mutate(self, operation: str, call: Callable[[Any], Awaitable[Any]]) -> Any:
        client = self._ready_client()
        if client is None:
            raise NotReadyError(operation)
        try:
            result = await call(client)
        except Exception as exc:
            logger.warning("Failed to %s: %s", operation, exc)
            raise MutationError(operation, str(exc)) from exc
        self._cache.invalidate(*INVALIDATES[operation])
        logger.info(_SUCCESS[operation])
        return result

    # ── Reads ────────────────────────────────────────────────────────────────

    async def get_caller_user_profile(self) -> Union[Optional[UserProfile], NotReady]:
        return await self._query(CURRENT_USER_PROFILE, lambda c: c.get_caller_user_profile())

    async def get_user_financial_goals(self) -> Union[list[FinancialGoal], NotReady]:
        return await self._query(FINANCIAL_GOALS, lambda c: c.get_user_financial_goals())

    async def get_financial_goal(self, goal_id: int) -> Union[FinancialGoal, NotReady]:
        return await self._read(lambda c: c.get_financial_goal(goal_id))

    async def get_user_investments(self) -> Union[list[Investment], NotReady]:
        return await self._query(INVESTMENTS, lambda c: c.get_user_investments())

    async def get_investment(self, investment_id: int) -> Union[Investment, NotReady]:
        return await self._read(lambda c: c.get_investment(investment_id))

    async def get_goal_analytics(self) -> Union[GoalsAnalytics, NotReady]:
        return await self._query(GOAL_ANALYTICS, lambda c: c.get_goal_analytics())

    async def get_investment_analytics(self) -> Union[InvestmentsAnalytics, NotReady]:
        return await self._query(INVESTMENT_ANALYTICS, lambda c: c.get_investment_analytics())

    async def get_dashboard(self) -> Union[FinancialDashboard, NotReady]:
        return await self._query(DASHBOARD, lambda c: c.get_dashboard())

    # ── Writes ───────────────────────────────────────────────────────────────

    async def save_caller_user_profile(self, profile: UserProfile) -> None:
        await self._mutate("save profile", lambda c: c.save_caller_user_profile(profile))

    async def add_financial_goal(self, name: str, target_amount: float, target_date: int, category: str) -> int:
        return await self._mutate(
            "add goal", lambda c: c.add_financial_goal(name, target_amount, target_date, category))

    async def update_financial_goal(
        self, goal_id: int, name: str, target_amount: float, target_date: int, category: str,
    ) -> None:
        await self._mutate(
            "update goal",
            lambda c: c.update_financial_goal(goal_id, name, target_amount, target_date, category))

    async def delete_financial_goal(self, goal_id: int) -> None:
        await self._mutate("delete goal", lambda c: c.delete_financial_goal(goal_id))

    async def add_investment(
        self, category: str, subcategory: str, invested_amount: float,
        current_value: float, date_of_investment: int,
    ) -> int:
        return await self._mutate(
            "add investment",
            lambda c: c.add_investment(category, subcategory, invested_amount, current_value, date_of_investment))

    async def update_investment(
        self, investment_id: int, category: str, subcategory: str,
        invested_amount: float, current_value: float, date_of_investment: int,
    ) -> None:
        await self._mutate(
            "update investment",
            lambda c: c.update_investment(
                investment_id, category, subcategory, invested_amount, current_value, date_of_investment))

    async def delete_investment(self, investment_id: int) -> None:
        await self._mutate("delete investment", lambda c: c.delete_investment(investment_id))

    async def link_investment_to_goal(self, goal_id: int, investment_id: int, amount_allocated: float) -> None:
        await self._mutate(
            "link investment", lambda c: c.link_investment_to_goal(goal_id, investment_id, amount_allocated))

    async def unlink_investment_from_goal(self, goal_id: int, investment_id: int) -> None:
        await self._mutate("unlink investment", lambda c: c.unlink_investment_from_goal(goal_id, investment_id))

    # ── Prefetch ─────────────────────────────────────────────────────────────

    async def prefetch_tab_queries(self) -> None:
        """
        Warm the dashboard + goals queries now, goal analytics a moment later.
        Keys already cached or in flight are skipped. Failures are logged only.
        """
        if self._ready_client() is None:
            return

        tasks = [
            asyncio.ensure_future(fetch())
            for name, fetch in ((DASHBOARD, self.get_dashboard),
                                (FINANCIAL_GOALS, self.get_user_financial_goals))
            if self._needs_fetch(name)
        ]
        await self._sleep(self._prefetch_delay)
        if self._needs_fetch(GOAL_ANALYTICS):
            tasks.append(asyncio.ensure_future(self.get_goal_analytics()))

        for result in await asyncio.gather(*tasks, return_exceptions=True):
            if isinstance(result, Exception):
                logger.warning("Prefetch failed: %s", result)

    def _needs_fetch(self, name: str) -> bool:
        key = self._key(name)
        return not (self._cache.is_fresh(key) or self._cache.is_pending(key))


async def run(state: dict, service: BackendService) -> dict:
    """
    LangGraph node — dashboard + raw goals + raw investments, concurrently.
    Read failures become data_warnings instead of failing the run.
    """
    data_warnings: list[str] = list(state.get("data_warnings") or [])

    dashboard, goals, investments = await asyncio.gather(
        service.get_dashboard(),
        service.get_user_financial_goals(),
        service.get_user_investments(),
        return_exceptions=True,
    )

    out: dict[str, Any] = {}
    for label, value in (("dashboard", dashboard), ("goals", goals), ("investments", investments)):
        if isinstance(value, Exception):
            print(f"  [WARN] {label} fetch failed: {value}", flush=True)
            data_warnings.append(f"Could not load {label}: {value}")
            value = None
        elif isinstance(value, NotReady):
            data_warnings.append(f"Could not load {label}: {value.message}")
            value = None
        out[label] = value

    return {**state, **out, "data_warnings": data_warnings}
