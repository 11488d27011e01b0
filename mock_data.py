"""
In-process mock backend for offline runs (--mock) and tests.

MockBackendClient has the same coroutine surface as tools.backend_client.BackendClient
and computes the aggregates itself, so the whole pipeline can run without
an MCP server. Seed data is relative to "now" so deadlines stay in the future.

Seed portfolio:
  Goals        — Emergency fund (short), House deposit (mid), Retirement (long)
  Investments  — index ETF, FD, gold, provident fund across the last few months
"""
from __future__ import annotations

import time
from typing import Optional

from state.models import (
    FinancialDashboard,
    FinancialGoal,
    GoalCategoryBreakdown,
    GoalProgressSummary,
    GoalsAnalytics,
    Identity,
    Investment,
    InvestmentsAnalytics,
    InvestmentSummary,
    NANOS_PER_MILLI,
    UserProfile,
)
from tools.replica_errors import BackendCallError

_DAY_MS = 86_400_000


def _days_from_now_ns(days: float, now_ms: Optional[float] = None) -> int:
    base = now_ms if now_ms is not None else time.time() * 1000
    return int(base + days * _DAY_MS) * NANOS_PER_MILLI


def mock_goals(now_ms: Optional[float] = None) -> list[FinancialGoal]:
    return [
        FinancialGoal(id=1, name="Emergency fund", target_amount=10_000.0,
                      target_date=_days_from_now_ns(45, now_ms), category="shortTerm"),
        FinancialGoal(id=2, name="House deposit", target_amount=60_000.0,
                      target_date=_days_from_now_ns(900, now_ms), category="midTerm"),
        FinancialGoal(id=3, name="Retirement", target_amount=750_000.0,
                      target_date=_days_from_now_ns(9_000, now_ms), category="longTerm"),
    ]


def mock_investments(now_ms: Optional[float] = None) -> list[Investment]:
    return [
        Investment(id=1, category="equities", subcategory="etf", invested_amount=12_000.0,
                   current_value=13_450.0, date_of_investment=_days_from_now_ns(-95, now_ms)),
        Investment(id=2, category="fixedDeposits", subcategory="fd", invested_amount=5_000.0,
                   current_value=5_120.0, date_of_investment=_days_from_now_ns(-60, now_ms)),
        Investment(id=3, category="commodities", subcategory="gold", invested_amount=2_500.0,
                   current_value=2_380.0, date_of_investment=_days_from_now_ns(-58, now_ms)),
        Investment(id=4, category="retirement", subcategory="providentFund", invested_amount=8_000.0,
                   current_value=8_400.0, date_of_investment=_days_from_now_ns(-20, now_ms)),
    ]


class MockBackendClient:
    """Dictionary-backed backend. Counts ensure_initialized() calls."""

    def __init__(self, identity: Optional[Identity] = None, now_ms: Optional[float] = None):
        self.identity = identity
        self.init_calls = 0
        self.profile: Optional[UserProfile] = None
        self.goals: dict[int, FinancialGoal] = {g.id: g for g in mock_goals(now_ms)}
        self.investments: dict[int, Investment] = {i.id: i for i in mock_investments(now_ms)}
        self.links: dict[tuple[int, int], float] = {}
        self._next_id = 100

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _goal(self, goal_id: int) -> FinancialGoal:
        if goal_id not in self.goals:
            raise BackendCallError("getFinancialGoal", f"Goal {goal_id} not found")
        return self.goals[goal_id]

    def _investment(self, investment_id: int) -> Investment:
        if investment_id not in self.investments:
            raise BackendCallError("getInvestment", f"Investment {investment_id} not found")
        return self.investments[investment_id]

    # ── Session / profile ────────────────────────────────────────────────────

    async def ensure_initialized(self) -> None:
        self.init_calls += 1

    async def get_caller_user_profile(self) -> Optional[UserProfile]:
        return self.profile

    async def save_caller_user_profile(self, profile: UserProfile) -> None:
        self.profile = profile

    # ── Goals ────────────────────────────────────────────────────────────────

    async def get_user_financial_goals(self) -> list[FinancialGoal]:
        return list(self.goals.values())

    async def get_financial_goal(self, goal_id: int) -> FinancialGoal:
        return self._goal(goal_id)

    async def add_financial_goal(self, name, target_amount, target_date, category) -> int:
        goal_id = self._new_id()
        self.goals[goal_id] = FinancialGoal(id=goal_id, name=name, target_amount=target_amount,
                                            target_date=target_date, category=category)
        return goal_id

    async def update_financial_goal(self, goal_id, name, target_amount, target_date, category) -> None:
        self._goal(goal_id)
        self.goals[goal_id] = FinancialGoal(id=goal_id, name=name, target_amount=target_amount,
                                            target_date=target_date, category=category)

    async def delete_financial_goal(self, goal_id: int) -> None:
        self._goal(goal_id)
        del self.goals[goal_id]
        self.links = {k: v for k, v in self.links.items() if k[0] != goal_id}

    # ── Investments ──────────────────────────────────────────────────────────

    async def get_user_investments(self) -> list[Investment]:
        return list(self.investments.values())

    async def get_investment(self, investment_id: int) -> Investment:
        return self._investment(investment_id)

    async def add_investment(self, category, subcategory, invested_amount, current_value, date_of_investment) -> int:
        inv_id = self._new_id()
        self.investments[inv_id] = Investment(
            id=inv_id, category=category, subcategory=subcategory, invested_amount=invested_amount,
            current_value=current_value, date_of_investment=date_of_investment)
        return inv_id

    async def update_investment(self, investment_id, category, subcategory, invested_amount,
                                current_value, date_of_investment) -> None:
        self._investment(investment_id)
        self.investments[investment_id] = Investment(
            id=investment_id, category=category, subcategory=subcategory, invested_amount=invested_amount,
            current_value=current_value, date_of_investment=date_of_investment)

    async def delete_investment(self, investment_id: int) -> None:
        self._investment(investment_id)
        del self.investments[investment_id]
        self.links = {k: v for k, v in self.links.items() if k[1] != investment_id}

    async def link_investment_to_goal(self, goal_id, investment_id, amount_allocated) -> None:
        self._goal(goal_id)
        self._investment(investment_id)
        self.links[(goal_id, investment_id)] = amount_allocated

    async def unlink_investment_from_goal(self, goal_id, investment_id) -> None:
        self.links.pop((goal_id, investment_id), None)

    # ── Aggregates ───────────────────────────────────────────────────────────

    async def get_goal_analytics(self) -> GoalsAnalytics:
        summaries = []
        for g in self.goals.values():
            linked = sum(v for (gid, _), v in self.links.items() if gid == g.id)
            summaries.append(GoalProgressSummary(
                goal_id=g.id, goal_name=g.name, target_amount=g.target_amount,
                target_date=g.target_date, category=g.category, current_amount=linked,
                progress_percentage=min(100.0, linked / g.target_amount * 100) if g.target_amount else 0.0,
            ))
        total = sum(g.target_amount for g in self.goals.values())
        linked_total = sum(self.links.values())
        return GoalsAnalytics(
            all_goals=summaries,
            category_breakdown=GoalCategoryBreakdown(
                short_term_goals=[s for s in summaries if s.category == "shortTerm"],
                mid_term_goals=[s for s in summaries if s.category == "midTerm"],
                long_term_goals=[s for s in summaries if s.category == "longTerm"],
            ),
            total_goal_amount=total,
            total_amount_linked=linked_total,
            overall_progress=linked_total / total * 100 if total else 0.0,
        )

    async def get_investment_analytics(self) -> InvestmentsAnalytics:
        invs = list(self.investments.values())
        invested = sum(i.invested_amount for i in invs)
        current = sum(i.current_value for i in invs)
        return InvestmentsAnalytics(
            all_investments=invs,
            summary=InvestmentSummary(
                total_invested=invested,
                current_portfolio_value=current,
                gain_loss_absolute=current - invested,
                pnl_percentage=(current - invested) / invested * 100 if invested else 0.0,
            ),
        )

    async def get_dashboard(self) -> FinancialDashboard:
        return FinancialDashboard(
            goals_analytics=await self.get_goal_analytics(),
            investments_analytics=await self.get_investment_analytics(),
        )


async def build_mock(identity: Optional[Identity] = None) -> MockBackendClient:
    """Client factory counterpart of tools.backend_client.build."""
    return MockBackendClient(identity)
