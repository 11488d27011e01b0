"""
Agent 4 — Terminal Report

Renders the pipeline state as plain text:
  1. Connection error block   (when readiness failed — classified message + hint)
  2. Summary                  (goal totals, portfolio value, P&L)
  3. Monthly invested vs current
  4. Upcoming deadlines
  5. Data warnings
"""
from __future__ import annotations

from state.readiness import Readiness
from tools.replica_errors import SERVICE_STOPPED

_RULE = "─" * 60


def _goal_name(goal) -> str:
    return getattr(goal, "goal_name", None) or getattr(goal, "name", "?")


def _connection_error(readiness: Readiness) -> str:
    if readiness.error_kind == SERVICE_STOPPED:
        title = "Service Temporarily Unavailable"
        hint = "The backend is stopped (maintenance or upgrade). Try again in a few moments."
    else:
        title = "Connection Error"
        hint = "Check your connection and run again, or pass --retries to retry automatically."
    return f"{title}\n{_RULE}\n{readiness.error_message}\n\n{hint}"


def _summary(dashboard) -> str:
    goals = dashboard.goals_analytics
    inv = dashboard.investments_analytics.summary
    n_goals = len(goals.all_goals)
    n_inv = len(dashboard.investments_analytics.all_investments)
    return "\n".join([
        "Summary",
        _RULE,
        f"Total goal amount:   ${goals.total_goal_amount:,.0f}  ({n_goals} goal{'s' if n_goals != 1 else ''})",
        f"Overall progress:    {goals.overall_progress:.1f}%",
        f"Portfolio value:     ${inv.current_portfolio_value:,.0f}  ({n_inv} investment{'s' if n_inv != 1 else ''})",
        f"Total invested:      ${inv.total_invested:,.0f}",
        f"Gain / loss:         ${inv.gain_loss_absolute:,.0f}  ({inv.pnl_percentage:+.1f}%)",
    ])


def _monthly(series) -> str:
    lines = ["Monthly investments", _RULE]
    if not series:
        lines.append("No investments yet.")
    for b in series:
        lines.append(f"{b.month:>9}   invested ${b.invested:>12,.0f}   current ${b.current:>12,.0f}")
    return "\n".join(lines)


def _deadlines(insight) -> str:
    lines = ["Upcoming deadlines", _RULE]
    if insight is None or insight.nearest_goal is None:
        lines.append("No upcoming goal deadlines.")
        return "\n".join(lines)
    lines.append(f"Next: {_goal_name(insight.nearest_goal)} in {insight.days_remaining} day(s)")
    for item in insight.upcoming_goals:
        lines.append(f"  {item.days_remaining:>5}d  {_goal_name(item.goal)}")
    return "\n".join(lines)


def render(state: dict) -> str:
    readiness: Readiness = state.get("readiness")
    if readiness is not None and not readiness.is_ready:
        return _connection_error(readiness)

    blocks = []
    if state.get("dashboard") is not None:
        blocks.append(_summary(state["dashboard"]))
    blocks.append(_monthly(state.get("monthly_series") or []))
    blocks.append(_deadlines(state.get("deadline_insights")))
    warnings = state.get("data_warnings") or []
    if warnings:
        blocks.append("\n".join(["Data warnings", _RULE, *(f"  - {w}" for w in warnings)]))
    return "\n\n".join(blocks)


def run(state: dict) -> dict:
    report = render(state)
    print(f"\n{report}\n", flush=True)
    return {**state, "report": report}
