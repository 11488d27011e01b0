from datetime import datetime, timezone

from analysis.dashboard_analytics import MS_PER_DAY, deadline_insights, days_remaining, monthly_series
from state.models import GoalProgressSummary, Investment, to_nanos

NOW_MS = int(datetime(2024, 6, 1, 12, tzinfo=timezone.utc).timestamp() * 1000)


def _inv(when: datetime, invested: float, current: float, inv_id: int = 1) -> Investment:
    return Investment(
        id=inv_id, category="equities", subcategory="etf",
        invested_amount=invested, current_value=current,
        date_of_investment=to_nanos(when),
    )


def _goal(goal_id: int, days: float) -> GoalProgressSummary:
    return GoalProgressSummary(
        goal_id=goal_id, goal_name=f"goal-{goal_id}", target_amount=1000.0,
        target_date=int(NOW_MS + days * MS_PER_DAY) * 1_000_000, category="shortTerm",
    )


# ── monthly_series ───────────────────────────────────────────────────────────

def test_monthly_series_empty():
    assert monthly_series([]) == []
    assert monthly_series(None) == []


def test_monthly_series_sums_within_month():
    buckets = monthly_series([
        _inv(datetime(2024, 1, 15, tzinfo=timezone.utc), 100, 120),
        _inv(datetime(2024, 1, 20, tzinfo=timezone.utc), 50, 40, inv_id=2),
    ])
    assert len(buckets) == 1
    assert buckets[0].month == "Jan 2024"
    assert buckets[0].invested == 150
    assert buckets[0].current == 160


def test_monthly_series_is_chronological_regardless_of_input_order():
    buckets = monthly_series([
        _inv(datetime(2024, 2, 3, tzinfo=timezone.utc), 10, 11),
        _inv(datetime(2024, 1, 9, tzinfo=timezone.utc), 20, 22, inv_id=2),
    ])
    assert [b.month for b in buckets] == ["Jan 2024", "Feb 2024"]


def test_monthly_series_orders_across_year_boundary_without_filling_gaps():
    buckets = monthly_series([
        _inv(datetime(2024, 1, 2, tzinfo=timezone.utc), 1, 1),
        _inv(datetime(2023, 12, 30, tzinfo=timezone.utc), 2, 2, inv_id=2),
        _inv(datetime(2023, 3, 1, tzinfo=timezone.utc), 3, 3, inv_id=3),
    ])
    assert [b.month for b in buckets] == ["Mar 2023", "Dec 2023", "Jan 2024"]


# ── deadline_insights ────────────────────────────────────────────────────────

def test_deadline_insights_empty():
    insight = deadline_insights([], now=NOW_MS)
    assert insight.nearest_goal is None
    assert insight.days_remaining is None
    assert insight.upcoming_goals == []


def test_deadline_insights_ranks_future_goals_and_drops_past():
    far, near, past = _goal(1, 10), _goal(2, 5), _goal(3, -3)
    insight = deadline_insights([far, near, past], now=NOW_MS)

    assert insight.nearest_goal is near
    assert insight.days_remaining == 5
    assert [(u.goal, u.days_remaining) for u in insight.upcoming_goals] == [(near, 5), (far, 10)]


def test_deadline_insights_caps_upcoming_at_three():
    goals = [_goal(i, d) for i, d in enumerate([30, 2, 14, 7, 60])]
    insight = deadline_insights(goals, now=NOW_MS)
    assert [u.days_remaining for u in insight.upcoming_goals] == [2, 7, 14]
    assert insight.upcoming_goals[0].goal is insight.nearest_goal


def test_deadline_insights_all_past():
    insight = deadline_insights([_goal(1, -1), _goal(2, 0)], now=NOW_MS)
    assert insight.nearest_goal is None
    assert insight.days_remaining is None
    assert insight.upcoming_goals == []


def test_days_remaining_rounds_up_partial_days():
    target_ns = int(NOW_MS + 1.5 * MS_PER_DAY) * 1_000_000
    assert days_remaining(target_ns, NOW_MS) == 2
    assert days_remaining(int(NOW_MS + 1) * 1_000_000, NOW_MS) == 1
    assert days_remaining(NOW_MS * 1_000_000, NOW_MS) == 0


def test_deadline_insights_accepts_datetime_now():
    now = datetime.fromtimestamp(NOW_MS / 1000, tz=timezone.utc)
    insight = deadline_insights([_goal(1, 3)], now=now)
    assert insight.days_remaining == 3


def test_sub_millisecond_future_deadline_counts_as_one_day():
    goal = GoalProgressSummary(
        goal_id=7, goal_name="almost-due", target_amount=10.0,
        target_date=NOW_MS * 1_000_000 + 500_000, category="shortTerm",
    )
    assert days_remaining(goal.target_date, NOW_MS) == 1

    insight = deadline_insights([goal], now=NOW_MS)
    assert insight.nearest_goal is goal
    assert insight.days_remaining == 1


def test_naive_datetime_now_is_read_as_utc():
    naive = datetime(2024, 6, 1, 12)
    aware = naive.replace(tzinfo=timezone.utc)
    goals = [_goal(1, 0.25)]
    assert deadline_insights(goals, now=naive) == deadline_insights(goals, now=aware)
    assert deadline_insights(goals, now=naive).days_remaining == 1
