import datetime as dt
import json
import logging

import pytest

from studyflow import storage
from studyflow.models import AchievementTemplate, Scope
from studyflow.tracker import (
    InvalidSessionError,
    current_state,
    dashboard,
    record_session,
    refresh_achievements,
    remove_session,
    session_history,
    start_up,
)


def _record(day, topic="Math", subtopic="Algebra", duration=30, **kw):
    when = dt.datetime(2024, 1, day, 10)
    return record_session(topic=topic, subtopic=subtopic, duration=duration, completed_at=when, now=when, **kw)


def test_record_session_updates_streak_and_unlocks():
    storage.init_db()
    session, state, new = _record(1)
    assert session.topic == "Math"
    assert state.current_streak == 1
    assert state.weekly_goal == storage.DEFAULT_WEEKLY_GOAL
    assert [a.id for a in new] == ["first-session"]
    assert state.total_rewards == 1

    _record(2)
    _, state, new = _record(3)
    assert state.current_streak == 3
    assert state.longest_streak == 3
    assert "streak-3" in [a.id for a in new]
    assert state.weekly_progress == 3


def test_invalid_session_is_not_stored():
    storage.init_db()
    with pytest.raises(InvalidSessionError) as err:
        record_session(topic="", subtopic="x", duration=-1, completed_at=dt.datetime(2024, 1, 1))
    assert any("Topic is required" in e for e in err.value.errors)
    assert storage.fetch_sessions() == []


def test_long_tag_mentioning_required_is_still_saved():
    storage.init_db()
    session, _, _ = _record(1, tags=["required-reading-for-the-final-exam"])
    assert session.tags == ("required-reading-for-the-final-e",)
    assert [s.id for s in storage.fetch_sessions()] == [session.id]


def test_achievements_survive_deletion():
    storage.init_db()
    session, _, new = _record(1)
    assert new
    assert remove_session(session.id)
    assert storage.fetch_sessions() == []
    assert [a.id for a in storage.fetch_achievements()] == ["first-session"]
    assert current_state(dt.date(2024, 1, 1)).total_rewards == 1


def test_refresh_with_custom_catalog_is_idempotent():
    storage.init_db()
    catalog = (AchievementTemplate("minutes-50", "Warm Up", "50 minutes", "🔥", "duration", 50),)
    _record(1, duration=30, catalog=catalog)
    assert storage.fetch_achievements() == []
    _, _, new = _record(1, duration=20, catalog=catalog)
    assert [a.id for a in new] == ["minutes-50"]
    assert refresh_achievements(dt.datetime(2024, 1, 1, 12), catalog) == []


def test_dashboard_views():
    storage.init_db()
    _record(1, topic="Math", duration=60)
    _record(2, topic="Physics", subtopic="Optics", duration=30)
    result, report = dashboard(Scope("all"), now=dt.datetime(2024, 1, 2, 12))
    assert result.overview.total_sessions == 2
    assert result.overview.avg_daily_duration == 45
    assert [t.topic for t in result.topics] == ["Math", "Physics"]
    assert report.overall.avg_daily_duration == 45
    assert report.overall.projections[0].total_hours == 112.5


def test_start_up_restores_json_mirror(monkeypatch, tmp_path):
    json_path = tmp_path / "sessions.json"
    monkeypatch.setenv("STUDYFLOW_JSON_PATH", str(json_path))
    monkeypatch.setenv("STUDYFLOW_CSV_PATH", str(tmp_path / "sessions.csv"))
    json_path.write_text(json.dumps([
        {"id": "m1", "topic": "Math", "subtopic": "Algebra", "duration": 25,
         "completed_at": "2024-01-01T10:00:00", "notes": "", "tags": ["x"]},
    ]), encoding="utf-8")

    log_dir = tmp_path / "logs"
    pkg_logger = logging.getLogger("studyflow")
    monkeypatch.setattr(pkg_logger, "handlers", [])
    try:
        path, msgs = start_up(log_dir=str(log_dir))
    finally:
        for h in list(pkg_logger.handlers):
            h.close()

    assert path == str(json_path)
    assert msgs == []
    assert [s.id for s in storage.fetch_sessions()] == ["m1"]
    assert "Started with 1 sessions" in (log_dir / "studyflow.log").read_text(encoding="utf-8")


def test_session_history_search_and_totals():
    storage.init_db()
    _record(1, topic="Math", duration=20, notes="quadratics")
    _record(2, topic="Physics", subtopic="Optics", duration=40)
    _record(3, topic="Math", subtopic="Geometry", duration=30)

    matched, totals = session_history(topic="Math")
    assert [s.subtopic for s in matched] == ["Geometry", "Algebra"]
    assert totals == {"total_sessions": 2, "total_minutes": 50, "unique_topics": 1}

    matched, _ = session_history("QUADRATIC")
    assert len(matched) == 1
    with pytest.raises(ValueError):
        session_history(sort_by="mood")
