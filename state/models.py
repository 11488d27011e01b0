"""
Pydantic models for records crossing the backend boundary.

Wire names are camelCase (the backend's), attributes are snake_case.
All dates are int nanoseconds since epoch — see to_nanos() / to_millis().
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

GoalCategory = Literal["shortTerm", "midTerm", "longTerm"]

InvestmentCategory = Literal[
    "fixedDeposits", "commodities", "realEstate", "equities", "bonds", "retirement",
]

# "other" carries free text in Investment.subcategory_label
InvestmentSubcategory = Literal[
    "fd", "etf", "nps", "stocks", "other", "gold",
    "mutualFund", "providentFund", "crypto", "governmentBond",
]

NANOS_PER_MILLI = 1_000_000


def to_millis(nanos: int) -> float:
    """Backend timestamp → epoch ms, keeping the sub-millisecond part."""
    return int(nanos) / NANOS_PER_MILLI


def to_nanos(when: datetime) -> int:
    """datetime → backend timestamp. Naive datetimes are taken as UTC."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return int(when.timestamp() * 1000) * NANOS_PER_MILLI


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Identity(BaseModel):
    """Session identity — only the stable key matters to the client."""
    model_config = ConfigDict(frozen=True)

    key: str


class UserProfile(_Record):
    name: str


class FinancialGoal(_Record):
    id: int
    name: str
    target_amount: float
    target_date: int            # ns
    category: GoalCategory
    user: Optional[str] = None
    created_date: Optional[int] = None


class GoalProgressSummary(_Record):
    goal_id: int
    goal_name: str
    target_amount: float
    target_date: int            # ns
    category: GoalCategory
    current_amount: float = 0.0
    progress_percentage: float = 0.0


class Investment(_Record):
    id: int
    category: InvestmentCategory
    subcategory: InvestmentSubcategory
    subcategory_label: Optional[str] = None
    invested_amount: float
    current_value: float
    date_of_investment: int     # ns
    user: Optional[str] = None
    created_date: Optional[int] = None


class InvestmentSummary(_Record):
    total_invested: float = 0.0
    current_portfolio_value: float = 0.0
    gain_loss_absolute: float = 0.0
    pnl_percentage: float = 0.0


class GoalCategoryBreakdown(_Record):
    short_term_goals: list[GoalProgressSummary] = []
    mid_term_goals: list[GoalProgressSummary] = []
    long_term_goals: list[GoalProgressSummary] = []


class GoalsAnalytics(_Record):
    all_goals: list[GoalProgressSummary] = []
    category_breakdown: GoalCategoryBreakdown = GoalCategoryBreakdown()
    total_goal_amount: float = 0.0
    total_amount_linked: float = 0.0
    overall_progress: float = 0.0


class InvestmentsAnalytics(_Record):
    all_investments: list[Investment] = []
    summary: InvestmentSummary = InvestmentSummary()


class FinancialDashboard(_Record):
    goals_analytics: GoalsAnalytics
    investments_analytics: InvestmentsAnalytics
