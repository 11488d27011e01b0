"""
Agent 3 — Dashboard Analytics

Reads the dashboard aggregate fetched by Agent 2 and derives:
  - monthly invested vs current series (from investmentsAnalytics.allInvestments)
  - goal deadline insight (from goalsAnalytics.allGoals)

Falls back to the raw goal / investment lists when the dashboard is missing.

Produces: state["monthly_series"], state["deadline_insights"]
"""
from __future__ import annotations

from analysis.dashboard_analytics import deadline_insights, monthly_series


def run(state: dict) -> dict:
    dashboard = state.get("dashboard")
    if dashboard is not None:
        investments = dashboard.investments_analytics.all_investments
        goals = dashboard.goals_analytics.all_goals
    else:
        investments = state.get("investments") or []
        goals = state.get("goals") or []

    series = monthly_series(investments)
    insight = deadline_insights(goals, now=state.get("now"))
    print(f"[Agent 3] {len(series)} month(s) of investments, "
          f"{len(insight.upcoming_goals)} upcoming deadline(s)", flush=True)

    return {**state, "monthly_series": series, "deadline_insights": insight}
