import datetime as dt

import pytest

from studyflow.history import history_totals, known_subtopics, known_topics, search_sessions


@pytest.fixture
def sessions(make_session):
    return [
        make_session(dt.datetime(2024, 1, 1, 9), "Math", "Algebra", 30, notes="quadratic formula"),
        make_session(dt.datetime(2024, 1, 3, 9), "physics", "Optics", 90),
        make_session(dt.datetime(2024, 1, 2, 9), "Math", "Geometry", 45),
        make_session(None, "Art", "Sketching", 10),
    ]


def test_search_matches_topic_subtopic_and_notes(sessions):
    assert [s.id for s in search_sessions(sessions, "QUADRATIC")] == ["s1"]
    assert [s.id for s in search_sessions(sessions, "optics")] == ["s2"]
    assert len(search_sessions(sessions, "")) == 4


def test_topic_filter(sessions):
    assert {s.id for s in search_sessions(sessions, topic="Math")} == {"s1", "s3"}


def test_sort_orders(sessions):
    assert [s.id for s in search_sessions(sessions, sort_by="date")] == ["s2", "s3", "s1", "s4"]
    assert [s.id for s in search_sessions(sessions, sort_by="duration")] == ["s2", "s3", "s1", "s4"]
    assert [s.topic for s in search_sessions(sessions, sort_by="topic")] == ["Art", "Math", "Math", "physics"]
    with pytest.raises(ValueError):
        search_sessions(sessions, sort_by="mood")


def test_totals_and_known_topics(sessions):
    assert history_totals(sessions) == {"total_sessions": 4, "total_minutes": 175, "unique_topics": 3}
    assert known_topics(sessions) == ["Art", "Math", "physics"]
    assert known_subtopics(sessions)["Math"] == ["Algebra", "Geometry"]
