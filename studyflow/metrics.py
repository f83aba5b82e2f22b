from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Optional, Sequence

import pandas as pd

from studyflow.calendar_days import to_timestamp
from studyflow.models import (
    AggregationResult,
    DailyTrendPoint,
    Overview,
    PeriodStats,
    Scope,
    StudySession,
    SubtopicStats,
    TopicStats,
)
from studyflow.validation import coerce_sessions

logger = logging.getLogger(__name__)

# Days covered by each time-range filter; None means no cutoff
TIME_RANGES = {"week": 7, "month": 30, "all": None}
TREND_VIEWS = ("daily", "weekly", "monthly")
FRAME_COLUMNS = ["id", "topic", "subtopic", "duration", "completed_at", "day"]


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for non-negative values (2.5 -> 3, 0.25 -> 0.3 at 1 digit)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _avg(total: float, count: int) -> int:
    if not count:
        return 0
    return int(round_half_up(total / count))


def week_bounds_for(date: dt.date) -> tuple[dt.date, dt.date]:
    start = date - dt.timedelta(days=date.weekday())  # Monday
    end = start + dt.timedelta(days=6)
    return start, end


def sessions_frame(sessions: Sequence[StudySession]) -> pd.DataFrame:
    """Build the analysis frame; durations and timestamps are coerced first."""
    rows = [
        {
            "id": s.id,
            "topic": s.topic,
            "subtopic": s.subtopic,
            "duration": s.duration,
            "completed_at": s.completed_at,
        }
        for s in coerce_sessions(sessions)
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS[:-1])
    df["duration"] = df["duration"].astype("int64")
    df["completed_at"] = pd.to_datetime(df["completed_at"])
    df["day"] = df["completed_at"].dt.date
    return df


def _filter_topic(df: pd.DataFrame, topic: Optional[str], subtopic: Optional[str]) -> pd.DataFrame:
    if topic is not None:
        df = df[df["topic"] == topic]
    if subtopic is not None:
        df = df[df["subtopic"] == subtopic]
    return df


def _filter_time_range(df: pd.DataFrame, time_range: str, now: dt.datetime) -> pd.DataFrame:
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range {time_range!r}; expected one of {sorted(TIME_RANGES)}")
    days = TIME_RANGES[time_range]
    if days is None:
        return df
    cutoff = now - dt.timedelta(days=days)
    return df[df["completed_at"] >= cutoff]


def filter_sessions(sessions: Sequence[StudySession], scope: Scope, now: Optional[dt.datetime] = None) -> list[StudySession]:
    """Sessions inside the scope, in their original order."""
    now = to_timestamp(now) or dt.datetime.now()
    df = sessions_frame(sessions)
    df = _filter_time_range(_filter_topic(df, scope.topic, scope.subtopic), scope.time_range, now)
    keep = set(df["id"])
    return [s for s in sessions if s.id in keep]


def _per_day(df: pd.DataFrame) -> dict[dt.date, int]:
    totals = df.groupby("day")["duration"].sum().sort_index()
    return {day: int(minutes) for day, minutes in totals.items()}


def per_day_durations(sessions: Sequence[StudySession]) -> dict[dt.date, int]:
    """Minutes studied per calendar day, ascending by day."""
    return _per_day(sessions_frame(sessions))


def _avg_daily_duration(df: pd.DataFrame) -> int:
    per_day = _per_day(df)
    return _avg(sum(per_day.values()), len(per_day))


def daily_average_duration(sessions: Sequence[StudySession]) -> int:
    """Average minutes per active day (days with at least one session); 0 when there are none."""
    return _avg_daily_duration(sessions_frame(sessions))


def _overview(df: pd.DataFrame) -> Overview:
    total_sessions = int(len(df))
    total_duration = int(df["duration"].sum())
    active_days = int(df["day"].nunique())
    daily_average = 0.0
    if total_sessions:
        daily_average = round_half_up(total_sessions / max(active_days, 1), 1)
    return Overview(
        total_sessions=total_sessions,
        total_duration=total_duration,
        average_duration=_avg(total_duration, total_sessions),
        unique_topics=int(df["topic"].nunique()),
        unique_subtopics=int(df["subtopic"].nunique()),
        daily_average=daily_average,
        avg_daily_duration=_avg_daily_duration(df),
        total_hours=round_half_up(total_duration / 60, 1),
    )


def _bucket(df: pd.DataFrame, label: str, start: dt.datetime, end: dt.datetime) -> PeriodStats:
    part = df[(df["completed_at"] >= start) & (df["completed_at"] < end)]
    count = int(len(part))
    duration = int(part["duration"].sum())
    return PeriodStats(
        label=label,
        start=start,
        sessions=count,
        duration=duration,
        study_days=int(part["day"].nunique()),
        topics=int(part["topic"].nunique()),
        avg_session=_avg(duration, count),
    )


def _weekly(df: pd.DataFrame, now: dt.datetime, weeks: int) -> tuple[PeriodStats, ...]:
    buckets = []
    for i in range(weeks - 1, -1, -1):
        start = now - dt.timedelta(days=7 * (i + 1))
        end = now - dt.timedelta(days=7 * i)
        buckets.append(_bucket(df, f"Week {weeks - i}", start, end))
    return tuple(buckets)


def _month_start(year: int, month: int, offset: int) -> dt.datetime:
    index = year * 12 + (month - 1) + offset
    return dt.datetime(index // 12, index % 12 + 1, 1)


def _monthly(df: pd.DataFrame, now: dt.datetime, months: int) -> tuple[PeriodStats, ...]:
    buckets = []
    for i in range(months - 1, -1, -1):
        start = _month_start(now.year, now.month, -i)
        end = _month_start(now.year, now.month, -i + 1)
        buckets.append(_bucket(df, start.strftime("%b %Y"), start, end))
    return tuple(buckets)


def _daily(df: pd.DataFrame, today: dt.date, days: int) -> tuple[DailyTrendPoint, ...]:
    grouped = df.groupby("day").agg(
        sessions=("duration", "size"),
        duration=("duration", "sum"),
        topics=("topic", "nunique"),
    )
    points = []
    for i in range(days - 1, -1, -1):
        day = today - dt.timedelta(days=i)
        if day in grouped.index:
            row = grouped.loc[day]
            count, duration, topics = int(row["sessions"]), int(row["duration"]), int(row["topics"])
        else:
            count = duration = topics = 0
        points.append(DailyTrendPoint(date=day, sessions=count, duration=duration, topics=topics, avg_session=_avg(duration, count)))
    return tuple(points)


def weekly_rollup(sessions: Sequence[StudySession], now: Optional[dt.datetime] = None, weeks: int = 4) -> tuple[PeriodStats, ...]:
    """Seven-day buckets ending at now, oldest first."""
    return _weekly(sessions_frame(sessions), to_timestamp(now) or dt.datetime.now(), weeks)


def monthly_rollup(sessions: Sequence[StudySession], now: Optional[dt.datetime] = None, months: int = 6) -> tuple[PeriodStats, ...]:
    """Calendar-month buckets up to and including the month of now, oldest first."""
    return _monthly(sessions_frame(sessions), to_timestamp(now) or dt.datetime.now(), months)


def daily_trend(sessions: Sequence[StudySession], today: Optional[dt.date] = None, days: int = 30) -> tuple[DailyTrendPoint, ...]:
    """One entry per day for the window ending today, zero-activity days included."""
    return _daily(sessions_frame(sessions), today or dt.date.today(), days)


def _topic_breakdown(df: pd.DataFrame) -> tuple[TopicStats, ...]:
    if df.empty:
        return ()
    sub = (
        df.groupby(["topic", "subtopic"])["duration"]
        .agg(sessions="size", total="sum")
        .reset_index()
        .sort_values(["total", "subtopic"], ascending=[False, True])
    )
    topics = []
    for topic, group in sub.groupby("topic", sort=True):
        count = int(group["sessions"].sum())
        total = int(group["total"].sum())
        subtopics = tuple(
            SubtopicStats(
                name=row.subtopic,
                sessions=int(row.sessions),
                total_duration=int(row.total),
                average_duration=_avg(int(row.total), int(row.sessions)),
            )
            for row in group.itertuples(index=False)
        )
        topics.append(TopicStats(topic=topic, sessions=count, total_duration=total, average_duration=_avg(total, count), subtopics=subtopics))
    topics.sort(key=lambda t: (-t.total_duration, t.topic))
    return tuple(topics)


def topic_breakdown(sessions: Sequence[StudySession]) -> tuple[TopicStats, ...]:
    """Per-topic then per-subtopic totals, largest total duration first."""
    return _topic_breakdown(sessions_frame(sessions))


def aggregate(sessions: Sequence[StudySession], scope: Scope = Scope(), now: Optional[dt.datetime] = None) -> AggregationResult:
    """Compute every dashboard view for a scope.

    The time range applies to the overview, per-day map and topic breakdown.
    Rollups and the daily trend use only the topic/subtopic filter since
    they carry their own windows.
    """
    now = to_timestamp(now) or dt.datetime.now()
    df = sessions_frame(sessions)
    by_topic = _filter_topic(df, scope.topic, scope.subtopic)
    scoped = _filter_time_range(by_topic, scope.time_range, now)
    logger.debug("Aggregating %d of %d sessions for %s", len(scoped), len(df), scope)
    return AggregationResult(
        scope=scope,
        overview=_overview(scoped),
        per_day=_per_day(scoped),
        weekly=_weekly(by_topic, now, 4),
        monthly=_monthly(by_topic, now, 6),
        daily_trend=_daily(by_topic, now.date(), 30),
        topics=_topic_breakdown(scoped),
    )


def trend_view(
    sessions: Sequence[StudySession],
    view: str = "daily",
    topic: Optional[str] = None,
    subtopic: Optional[str] = None,
    now: Optional[dt.datetime] = None,
):
    """Series for the trends screen: 30 days, 12 weeks or 12 months."""
    if view not in TREND_VIEWS:
        raise ValueError(f"Unknown trend view {view!r}; expected one of {TREND_VIEWS}")
    now = to_timestamp(now) or dt.datetime.now()
    df = _filter_topic(sessions_frame(sessions), topic, subtopic)
    if view == "daily":
        return _daily(df, now.date(), 30)
    if view == "weekly":
        return _weekly(df, now, 12)
    return _monthly(df, now, 12)
