"""Weekly goal helpers."""
from datetime import date, datetime

import pytest

from app.core.errors import InvalidArgument
from app.services.goals import calculate_streak, get_goal_progress, start_of_week, update_goal


def test_start_of_week_is_monday_midnight():
    assert start_of_week(datetime(2026, 10, 18, 23, 59)) == datetime(2026, 10, 12)
    assert start_of_week(datetime(2026, 10, 19, 0, 0)) == datetime(2026, 10, 19)


@pytest.mark.parametrize(
    "days, expected",
    [
        ([], 0),
        ([date(2026, 10, 19)], 1),
        ([date(2026, 10, 18), date(2026, 10, 17)], 2),
        ([date(2026, 10, 19), date(2026, 10, 18), date(2026, 10, 16)], 2),
        ([date(2026, 10, 16)], 0),
    ],
)
def test_calculate_streak(days, expected):
    assert calculate_streak(days, date(2026, 10, 19)) == expected


def test_update_goal_validates(db, make_user):
    user = make_user()
    with pytest.raises(InvalidArgument):
        update_goal(db, user.id, weekly_session_goal=51)
    with pytest.raises(InvalidArgument):
        update_goal(db, user.id, reminder_time="7:30")

    goal = update_goal(db, user.id, weekly_session_goal=4.6, reminder_timezone="  ")
    assert goal.weekly_session_goal == 5
    assert goal.reminder_timezone is None


def test_progress_without_sessions(db, make_user):
    user = make_user()
    progress = get_goal_progress(db, user.id, now=datetime(2026, 10, 21, 12, 0))

    assert progress["weekly_completed"] == 0
    assert progress["streak_days"] == 0
    assert progress["last_completed_at"] is None
    assert progress["week_start"] == datetime(2026, 10, 19)
    assert progress["week_end"] == datetime(2026, 10, 26)
