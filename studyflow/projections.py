from __future__ import annotations

import datetime as dt
from typing import Iterable, Optional, Sequence

from studyflow.metrics import daily_average_duration, filter_sessions, round_half_up
from studyflow.models import ProjectionPoint, ProjectionReport, Scope, ScopeProjection, StudySession

HORIZONS = (150, 180, 210, 250, 300, 365, 400, 500)
OVERALL_NAME = "Total (All Topics)"


def project(avg_daily_duration: float, horizons: Iterable[int] = HORIZONS) -> list[ProjectionPoint]:
    """Hours accumulated over each horizon at the given minutes-per-day pace."""
    avg = max(0.0, float(avg_daily_duration or 0))
    return [ProjectionPoint(days=int(days), total_hours=round_half_up(avg * days / 60, 1)) for days in horizons]


def project_scope(name: str, sessions: Sequence[StudySession], horizons: Iterable[int] = HORIZONS) -> ScopeProjection:
    avg = daily_average_duration(sessions)
    return ScopeProjection(name=name, avg_daily_duration=avg, projections=tuple(project(avg, horizons)))


def project_scopes(
    sessions: Sequence[StudySession],
    scope: Scope = Scope(),
    horizons: Iterable[int] = HORIZONS,
    now: Optional[dt.datetime] = None,
) -> ProjectionReport:
    """Project overall, per topic and per subtopic, each on its own daily average.

    Topics and subtopics without study time are left out of the report.
    """
    horizons = tuple(horizons)
    scoped = filter_sessions(sessions, scope, now)
    topics = []
    for topic in sorted({s.topic for s in scoped}):
        topic_sessions = [s for s in scoped if s.topic == topic]
        subtopics = []
        for subtopic in sorted({s.subtopic for s in topic_sessions}):
            entry = project_scope(subtopic, [s for s in topic_sessions if s.subtopic == subtopic], horizons)
            if entry.avg_daily_duration > 0:
                subtopics.append(entry)
        entry = project_scope(topic, topic_sessions, horizons)
        if entry.avg_daily_duration > 0:
            topics.append(
                ScopeProjection(
                    name=entry.name,
                    avg_daily_duration=entry.avg_daily_duration,
                    projections=entry.projections,
                    subtopics=tuple(subtopics),
                )
            )
    return ProjectionReport(overall=project_scope(OVERALL_NAME, scoped, horizons), topics=tuple(topics))
