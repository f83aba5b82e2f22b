from __future__ import annotations

import datetime as dt
import logging
from typing import Optional, Sequence

from studyflow.calendar_days import day_gap, day_key, study_days
from studyflow.metrics import week_bounds_for
from studyflow.models import StreakResult, StreakState, StudySession

logger = logging.getLogger(__name__)


def current_streak(days_desc: Sequence[dt.date], today: dt.date, yesterday: dt.date) -> int:
    """Consecutive study days ending today, or ending yesterday if today has no session yet."""
    if today in days_desc:
        start = today
    elif yesterday in days_desc:
        start = yesterday
    else:
        return 0
    i = days_desc.index(start)
    streak = 1
    while i + 1 < len(days_desc) and day_gap(days_desc[i], days_desc[i + 1]) == 1:
        streak += 1
        i += 1
    return streak


def longest_streak(days_desc: Sequence[dt.date]) -> int:
    if not days_desc:
        return 0
    uniq = sorted(days_desc)
    longest = 0
    run = 1
    for i in range(1, len(uniq)):
        if day_gap(uniq[i], uniq[i - 1]) == 1:
            run += 1
        else:
            longest = max(longest, run)
            run = 1
    return max(longest, run)


def compute_streak(
    sessions: Sequence[StudySession],
    today: Optional[dt.date] = None,
    yesterday: Optional[dt.date] = None,
) -> StreakResult:
    """Return current and longest streak for the session list.

    today/yesterday default to the local calendar; pass them explicitly for
    reproducible results. The longest streak never under-reports a current
    streak that is still open.
    """
    today = day_key(today) or dt.date.today()
    yesterday = day_key(yesterday) or today - dt.timedelta(days=1)
    days = study_days(sessions)
    if not days:
        return StreakResult(current_streak=0, longest_streak=0)
    current = current_streak(days, today, yesterday)
    longest = max(longest_streak(days), current)
    logger.debug("Streak over %d study days: current=%d longest=%d", len(days), current, longest)
    return StreakResult(current_streak=current, longest_streak=longest)


def sessions_in_week(sessions: Sequence[StudySession], week_of: dt.date) -> int:
    start, end = week_bounds_for(week_of)
    count = 0
    for s in sessions:
        d = day_key(s.completed_at)
        if d is not None and start <= d <= end:
            count += 1
    return count


def build_streak_state(
    sessions: Sequence[StudySession],
    weekly_goal: int,
    total_rewards: int = 0,
    today: Optional[dt.date] = None,
) -> StreakState:
    if int(weekly_goal) <= 0:
        raise ValueError("Weekly goal must be a positive number of sessions.")
    today = day_key(today) or dt.date.today()
    streak = compute_streak(sessions, today)
    days = study_days(sessions)
    progress = min(sessions_in_week(sessions, today), int(weekly_goal))
    return StreakState(
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_study_date=days[0] if days else None,
        weekly_goal=int(weekly_goal),
        weekly_progress=progress,
        total_rewards=max(0, int(total_rewards)),
    )


def streak_message(current: int) -> str:
    if current == 0:
        return "Start your study streak today!"
    if current == 1:
        return "Great start! Keep it going tomorrow."
    if current < 7:
        return f"{current} days strong! You're building momentum."
    if current < 30:
        return f"Amazing {current}-day streak! You're on fire!"
    return f"Incredible {current}-day streak! You're unstoppable!"
