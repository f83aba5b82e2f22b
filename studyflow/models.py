from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class StudySession:
    id: str
    topic: str
    subtopic: str
    duration: int
    completed_at: Optional[dt.datetime]
    notes: str = ""
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class StreakResult:
    current_streak: int
    longest_streak: int


@dataclass(frozen=True)
class StreakState:
    current_streak: int
    longest_streak: int
    last_study_date: Optional[dt.date]
    weekly_goal: int
    weekly_progress: int
    total_rewards: int


@dataclass(frozen=True)
class AchievementTemplate:
    id: str
    title: str
    description: str
    icon: str
    type: str
    threshold: int


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    icon: str
    type: str
    threshold: int
    unlocked_at: dt.datetime

    @classmethod
    def from_template(cls, template: AchievementTemplate, unlocked_at: dt.datetime) -> "Achievement":
        return cls(
            id=template.id,
            title=template.title,
            description=template.description,
            icon=template.icon,
            type=template.type,
            threshold=template.threshold,
            unlocked_at=unlocked_at,
        )


@dataclass(frozen=True)
class AchievementMetrics:
    session_count: int
    current_streak: int
    longest_streak: int
    total_duration_minutes: int
    distinct_topic_count: int


@dataclass(frozen=True)
class Scope:
    """Filter over the session list: time range ('week', 'month', 'all') plus optional topic/subtopic."""
    time_range: str = "all"
    topic: Optional[str] = None
    subtopic: Optional[str] = None


@dataclass(frozen=True)
class PeriodStats:
    label: str
    start: dt.datetime
    sessions: int
    duration: int
    study_days: int = 0
    topics: int = 0
    avg_session: int = 0


@dataclass(frozen=True)
class DailyTrendPoint:
    date: dt.date
    sessions: int
    duration: int
    topics: int
    avg_session: int


@dataclass(frozen=True)
class SubtopicStats:
    name: str
    sessions: int
    total_duration: int
    average_duration: int


@dataclass(frozen=True)
class TopicStats:
    topic: str
    sessions: int
    total_duration: int
    average_duration: int
    subtopics: tuple[SubtopicStats, ...] = ()


@dataclass(frozen=True)
class Overview:
    total_sessions: int
    total_duration: int
    average_duration: int
    unique_topics: int
    unique_subtopics: int
    daily_average: float
    avg_daily_duration: int
    total_hours: float


@dataclass(frozen=True)
class AggregationResult:
    scope: Scope
    overview: Overview
    per_day: dict[dt.date, int] = field(default_factory=dict)
    weekly: tuple[PeriodStats, ...] = ()
    monthly: tuple[PeriodStats, ...] = ()
    daily_trend: tuple[DailyTrendPoint, ...] = ()
    topics: tuple[TopicStats, ...] = ()


@dataclass(frozen=True)
class ProjectionPoint:
    days: int
    total_hours: float


@dataclass(frozen=True)
class ScopeProjection:
    name: str
    avg_daily_duration: int
    projections: tuple[ProjectionPoint, ...]
    subtopics: tuple["ScopeProjection", ...] = ()


@dataclass(frozen=True)
class ProjectionReport:
    overall: ScopeProjection
    topics: tuple[ScopeProjection, ...] = ()
