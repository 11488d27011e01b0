"""
Dashboard analytics — reshapes raw aggregate results for display.

  monthly_series()     investments → one bucket per calendar month (UTC),
                       invested vs current value, oldest month first
  deadline_insights()  goals → nearest future deadline + next 3 deadlines

Input timestamps are backend nanoseconds; both functions work in epoch
milliseconds (ns // 1_000_000). Months with no investments are not emitted.
deadline_insights() depends on `now`, so results drift day to day.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, Union

import pandas as pd

from state.models import to_millis

MS_PER_DAY = 86_400_000
UPCOMING_LIMIT = 3


@dataclass
class MonthlyInvestmentBucket:
    month: str          # "Jan 2024"
    invested: float
    current: float


@dataclass
class UpcomingGoal:
    goal: object        # GoalProgressSummary or FinancialGoal
    days_remaining: int


@dataclass
class GoalDeadlineInsight:
    nearest_goal: Optional[object] = None
    days_remaining: Optional[int] = None
    upcoming_goals: list[UpcomingGoal] = field(default_factory=list)


# ── Monthly series ────────────────────────────────────────────────────────────

def monthly_series(investments: Iterable) -> list[MonthlyInvestmentBucket]:
    """Group investments by calendar month of date_of_investment."""
    rows = [
        {
            "ms": to_millis(inv.date_of_investment),
            "invested": inv.invested_amount,
            "current": inv.current_value,
        }
        for inv in investments or []
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df["month"] = pd.to_datetime(df["ms"], unit="ms").dt.to_period("M")
    grouped = df.groupby("month", sort=True)[["invested", "current"]].sum()

    return [
        MonthlyInvestmentBucket(
            month=period.strftime("%b %Y"),
            invested=float(sums["invested"]),
            current=float(sums["current"]),
        )
        for period, sums in grouped.sort_index().iterrows()
    ]


# ── Goal deadlines ────────────────────────────────────────────────────────────

def _now_ms(now: Union[None, int, float, datetime]) -> float:
    if now is None:
        return time.time() * 1000
    if isinstance(now, datetime):
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.timestamp() * 1000
    return float(now)


def days_remaining(target_date_ns: int, now_ms: float) -> int:
    """Whole days until the deadline, rounded up. <= 0 means it has passed."""
    return math.ceil((to_millis(target_date_ns) - now_ms) / MS_PER_DAY)


def deadline_insights(
    goals: Sequence,
    now: Union[None, int, float, datetime] = None,
) -> GoalDeadlineInsight:
    """
    Rank goals by days remaining. Past/today deadlines are dropped.

    Args:
        goals: anything with a ns `target_date` (GoalProgressSummary, FinancialGoal)
        now:   epoch ms or a datetime (naive = UTC); defaults to the wall clock
    """
    if not goals:
        return GoalDeadlineInsight()

    now_ms = _now_ms(now)
    scored = [UpcomingGoal(goal=g, days_remaining=days_remaining(g.target_date, now_ms)) for g in goals]
    ranked = sorted(
        (item for item in scored if item.days_remaining > 0),
        key=lambda item: item.days_remaining,
    )
    if not ranked:
        return GoalDeadlineInsight()

    return GoalDeadlineInsight(
        nearest_goal=ranked[0].goal,
        days_remaining=ranked[0].days_remaining,
        upcoming_goals=ranked[:UPCOMING_LIMIT],
    )
