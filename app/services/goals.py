"""Weekly practice goals and completion streaks. All dates are UTC."""
import re
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidArgument
from app.models.user import UserGoal
from app.models.writing import SessionStatus, WritingSession

STREAK_LOOKBACK_DAYS = 90
STREAK_MAX_SESSIONS = 200
WEEKLY_GOAL_MIN = 1
WEEKLY_GOAL_MAX = 50
REMINDER_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def start_of_week(now: datetime) -> datetime:
    """Monday 00:00 of the week containing `now`."""
    monday = now.date() - timedelta(days=now.weekday())
    return datetime(monday.year, monday.month, monday.day)


def calculate_streak(days: Iterable[date], today: date) -> int:
    """Consecutive practice days ending today, or yesterday if today has none yet."""
    practiced = set(days)
    current = today if today in practiced else today - timedelta(days=1)
    streak = 0
    while current in practiced:
        streak += 1
        current -= timedelta(days=1)
    return streak


def get_or_create_goal(db: Session, user_id: str) -> UserGoal:
    goal = db.query(UserGoal).filter(UserGoal.user_id == user_id).first()
    if goal is None:
        goal = UserGoal(user_id=user_id, weekly_session_goal=settings.default_weekly_goal)
        db.add(goal)
        db.commit()
        db.refresh(goal)
    return goal


def update_goal(
    db: Session,
    user_id: str,
    weekly_session_goal: Optional[float] = None,
    reminder_enabled: bool = False,
    reminder_time: str = "19:00",
    reminder_timezone: Optional[str] = None,
) -> UserGoal:
    if weekly_session_goal is not None and not (WEEKLY_GOAL_MIN <= weekly_session_goal <= WEEKLY_GOAL_MAX):
        raise InvalidArgument(f"weeklySessionGoal must be between {WEEKLY_GOAL_MIN} and {WEEKLY_GOAL_MAX}")
    reminder_time = (reminder_time or "").strip()
    if not REMINDER_TIME_RE.match(reminder_time):
        raise InvalidArgument("reminderTime must be HH:MM")

    goal = get_or_create_goal(db, user_id)
    if weekly_session_goal is not None:
        goal.weekly_session_goal = int(round(weekly_session_goal))
    goal.reminder_enabled = bool(reminder_enabled)
    goal.reminder_time = reminder_time
    goal.reminder_timezone = (reminder_timezone or "").strip() or None
    db.commit()
    db.refresh(goal)
    return goal


def get_goal_progress(db: Session, user_id: str, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.utcnow()
    week_start = start_of_week(now)
    week_end = week_start + timedelta(days=7)

    completed = db.query(WritingSession).filter(
        WritingSession.user_id == user_id,
        WritingSession.status == SessionStatus.COMPLETED,
    )
    weekly_completed = completed.filter(
        WritingSession.created_at >= week_start,
        WritingSession.created_at < week_end,
    ).count()
    recent = (
        completed.filter(WritingSession.created_at >= now - timedelta(days=STREAK_LOOKBACK_DAYS))
        .order_by(WritingSession.created_at.desc())
        .limit(STREAK_MAX_SESSIONS)
        .all()
    )

    return {
        "weekly_completed": weekly_completed,
        "streak_days": calculate_streak((s.created_at.date() for s in recent), now.date()),
        "last_completed_at": recent[0].created_at if recent else None,
        "week_start": week_start,
        "week_end": week_end,
    }
