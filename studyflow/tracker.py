"""
Host-side flow around the analytics engine.

record_session persists a finished session, recomputes the streak from the
full session list, then unlocks achievements against the fresh streak.
dashboard runs aggregation and projections over the current list.
start_up is called once by the host before anything else.
"""
from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Iterable, Optional

from studyflow import storage
from studyflow.achievements import ACHIEVEMENT_CATALOG, collect_metrics, unlock_achievements
from studyflow.filesync import create_or_sync_on_launch
from studyflow.history import history_totals, search_sessions
from studyflow.logger import setup_logger
from studyflow.metrics import aggregate
from studyflow.models import Achievement, AchievementTemplate, AggregationResult, ProjectionReport, Scope, StreakState, StudySession
from studyflow.projections import project_scopes
from studyflow.streaks import build_streak_state, compute_streak
from studyflow.validation import validate_session_fields

logger = logging.getLogger(__name__)


def start_up(log_dir: Optional[str] = None) -> tuple[str, list[str]]:
    """Configure logging, open the database and pull in the JSON or CSV mirror.

    Returns (mirror_path, import_messages).
    """
    setup_logger(log_dir=log_dir)
    storage.init_db()
    path, msgs = create_or_sync_on_launch()
    for m in msgs:
        logger.warning("Sync on launch: %s", m)
    logger.info("Started with %d sessions; mirror at %s", len(storage.fetch_sessions()), path)
    return path, msgs


class InvalidSessionError(ValueError):
    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


def current_state(today: Optional[dt.date] = None) -> StreakState:
    sessions = storage.fetch_sessions()
    return build_streak_state(sessions, storage.get_weekly_goal(), len(storage.fetch_achievements()), today)


def refresh_achievements(
    now: Optional[dt.datetime] = None,
    catalog: Iterable[AchievementTemplate] = ACHIEVEMENT_CATALOG,
) -> list[Achievement]:
    """Evaluate the catalog against the stored sessions and persist new unlocks."""
    now = now or dt.datetime.now()
    sessions = storage.fetch_sessions()
    streak = compute_streak(sessions, now.date())
    unlocked_ids = [a.id for a in storage.fetch_achievements()]
    new = unlock_achievements(collect_metrics(sessions, streak), catalog, unlocked_ids, now)
    storage.save_achievements(new)
    return new


def record_session(
    *,
    topic: str,
    subtopic: str,
    duration: int,
    completed_at=None,
    notes: str = "",
    tags=None,
    session_id: Optional[str] = None,
    now: Optional[dt.datetime] = None,
    catalog: Iterable[AchievementTemplate] = ACHIEVEMENT_CATALOG,
) -> tuple[StudySession, StreakState, list[Achievement]]:
    """Validate and store a session, then return it with the new streak state and fresh unlocks.

    Raises InvalidSessionError without touching storage when a field is invalid.
    """
    now = now or dt.datetime.now()
    completed_at = completed_at or now
    sanitized, errors, warnings = validate_session_fields(
        topic=topic,
        subtopic=subtopic,
        duration=duration,
        completed_at=completed_at,
        notes=notes,
        tags=tags,
    )
    if errors:
        raise InvalidSessionError(errors)
    for m in warnings:
        logger.warning("Session saved with note: %s", m)

    session = StudySession(id=session_id or uuid.uuid4().hex, **sanitized)
    storage.init_db()
    storage.insert_session(session)

    new = refresh_achievements(now, catalog)
    state = current_state(now.date())
    logger.info(
        "Recorded session %s (%s / %s, %d min): streak %d, %d new achievements",
        session.id, session.topic, session.subtopic, session.duration, state.current_streak, len(new),
    )
    return session, state, new


def remove_session(session_id: str) -> bool:
    """Delete a session. Unlocked achievements stay unlocked."""
    removed = storage.delete_session(session_id)
    if removed:
        logger.info("Deleted session %s", session_id)
    return removed


def session_history(term: str = "", topic: Optional[str] = None, sort_by: str = "date") -> tuple[list[StudySession], dict]:
    matched = search_sessions(storage.fetch_sessions(), term, topic, sort_by)
    return matched, history_totals(matched)


def dashboard(scope: Scope = Scope(), now: Optional[dt.datetime] = None) -> tuple[AggregationResult, ProjectionReport]:
    now = now or dt.datetime.now()
    sessions = storage.fetch_sessions()
    return aggregate(sessions, scope, now), project_scopes(sessions, scope, now=now)
