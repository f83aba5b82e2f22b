"""
Achievement catalog and unlock rules.

Templates are immutable and passed in explicitly; the engine only returns the
achievements that became unlocked, never revokes old ones, and never
evaluates a template id that is already unlocked.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable, Optional, Sequence

from studyflow.models import Achievement, AchievementMetrics, AchievementTemplate, StreakResult, StudySession
from studyflow.validation import coerce_sessions

logger = logging.getLogger(__name__)

ACHIEVEMENT_CATALOG: tuple[AchievementTemplate, ...] = (
    # Sessions
    AchievementTemplate("first-session", "First Steps", "Complete your first study session", "🎯", "session", 1),
    AchievementTemplate("sessions-10", "Getting Serious", "Complete 10 study sessions", "📚", "session", 10),
    AchievementTemplate("sessions-50", "Dedicated Learner", "Complete 50 study sessions", "🎓", "session", 50),
    AchievementTemplate("sessions-100", "Centurion Scholar", "Complete 100 study sessions", "🏛️", "session", 100),
    # Streaks
    AchievementTemplate("streak-3", "Getting Started", "Study 3 days in a row", "🔥", "streak", 3),
    AchievementTemplate("streak-7", "Week Warrior", "Study 7 days in a row", "⚡", "streak", 7),
    AchievementTemplate("streak-30", "Month Master", "Study 30 days in a row", "💎", "streak", 30),
    AchievementTemplate("streak-100", "Unstoppable", "Study 100 days in a row", "👑", "streak", 100),
    # Duration (minutes)
    AchievementTemplate("duration-600", "Ten Hour Club", "Study for 10 hours in total", "⏱️", "duration", 600),
    AchievementTemplate("duration-3000", "Fifty Hours Deep", "Study for 50 hours in total", "⏳", "duration", 3000),
    AchievementTemplate("duration-6000", "Hundred Hour Hero", "Study for 100 hours in total", "🏆", "duration", 6000),
    # Topics
    AchievementTemplate("topics-3", "Curious Mind", "Study 3 different topics", "🧭", "topic", 3),
    AchievementTemplate("topics-5", "Explorer", "Study 5 different topics", "🗺️", "topic", 5),
    AchievementTemplate("topics-10", "Renaissance Learner", "Study 10 different topics", "🌍", "topic", 10),
)


def collect_metrics(sessions: Sequence[StudySession], streak: StreakResult) -> AchievementMetrics:
    clean = coerce_sessions(sessions)
    return AchievementMetrics(
        session_count=len(clean),
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        total_duration_minutes=sum(s.duration for s in clean),
        distinct_topic_count=len({s.topic for s in clean}),
    )


def is_unlocked(template: AchievementTemplate, metrics: AchievementMetrics) -> bool:
    if template.type == "session":
        return metrics.session_count >= template.threshold
    if template.type == "streak":
        return metrics.current_streak >= template.threshold or metrics.longest_streak >= template.threshold
    if template.type == "duration":
        return metrics.total_duration_minutes >= template.threshold
    if template.type == "topic":
        return metrics.distinct_topic_count >= template.threshold
    logger.warning("Achievement %s has unknown type %r; it will never unlock", template.id, template.type)
    return False


def unlock_achievements(
    metrics: AchievementMetrics,
    catalog: Iterable[AchievementTemplate] = ACHIEVEMENT_CATALOG,
    already_unlocked_ids: Iterable[str] = (),
    now: Optional[dt.datetime] = None,
) -> list[Achievement]:
    """Return achievements newly unlocked by the metrics, stamped with now."""
    now = now or dt.datetime.now()
    seen = set(already_unlocked_ids)
    unlocked = []
    for template in catalog:
        if template.id in seen:
            continue
        if is_unlocked(template, metrics):
            seen.add(template.id)
            unlocked.append(Achievement.from_template(template, now))
            logger.info("Unlocked achievement %s (%s)", template.id, template.title)
    return unlocked


def recent_achievements(achievements: Iterable[Achievement], limit: int = 3) -> list[Achievement]:
    return sorted(achievements, key=lambda a: a.unlocked_at, reverse=True)[:limit]
