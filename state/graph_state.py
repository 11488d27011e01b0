"""
LangGraph state for the dashboard pipeline.
"""
from __future__ import annotations

from typing import Any, Optional
from typing_extensions import TypedDict

from state.models import FinancialDashboard, FinancialGoal, Identity, Investment
from state.readiness import Readiness


class DashboardState(TypedDict, total=False):
    # Input
    identity: Optional[Identity]
    max_retries: int
    now: Optional[float]            # epoch ms; None = wall clock

    # Read failures / NotReady results from Agent 2
    data_warnings: list[str]

    # Agent 1 output
    readiness: Readiness

    # Agent 2 output
    dashboard: Optional[FinancialDashboard]
    goals: Optional[list[FinancialGoal]]
    investments: Optional[list[Investment]]

    # Agent 3 output
    monthly_series: list[Any]       # list[MonthlyInvestmentBucket]
    deadline_insights: Any          # GoalDeadlineInsight

    # Agent 4 output
    report: str
