from __future__ import annotations

from typing import Optional, Sequence

from studyflow.calendar_days import to_timestamp
from studyflow.models import StudySession

SORT_KEYS = ("date", "duration", "topic")


def _date_key(session: StudySession):
    # Undated sessions sort after every dated one when reversed
    ts = to_timestamp(session.completed_at)
    return (ts is not None, ts or 0)


def search_sessions(
    sessions: Sequence[StudySession],
    term: str = "",
    topic: Optional[str] = None,
    sort_by: str = "date",
) -> list[StudySession]:
    """Filter by a case-insensitive term over topic, subtopic and notes, then sort.

    date sorts newest first, duration longest first, topic A-Z.
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key {sort_by!r}; expected one of {SORT_KEYS}")
    needle = (term or "").lower()
    out = [
        s for s in sessions
        if (not needle or needle in s.topic.lower() or needle in s.subtopic.lower() or needle in (s.notes or "").lower())
        and (topic is None or s.topic == topic)
    ]
    if sort_by == "date":
        return sorted(out, key=_date_key, reverse=True)
    if sort_by == "duration":
        return sorted(out, key=lambda s: s.duration, reverse=True)
    return sorted(out, key=lambda s: s.topic.lower())


def history_totals(sessions: Sequence[StudySession]) -> dict:
    return {
        "total_sessions": len(sessions),
        "total_minutes": sum(max(0, int(s.duration)) for s in sessions),
        "unique_topics": len({s.topic for s in sessions}),
    }


def known_topics(sessions: Sequence[StudySession]) -> list[str]:
    return sorted({s.topic for s in sessions})


def known_subtopics(sessions: Sequence[StudySession]) -> dict[str, list[str]]:
    out: dict[str, set] = {}
    for s in sessions:
        out.setdefault(s.topic, set()).add(s.subtopic)
    return {topic: sorted(subs) for topic, subs in sorted(out.items())}
