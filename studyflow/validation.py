import logging
from typing import Iterable, List, Tuple, Union

from studyflow.calendar_days import to_timestamp
from studyflow.models import StudySession

logger = logging.getLogger(__name__)

MAX_TOPIC_LEN = 200
MAX_NOTES_LEN = 100_000
MAX_TAGS = 10
MAX_TAG_LEN = 32
MAX_DURATION = 1440


def _truncate(text: str, max_len: int) -> Tuple[str, bool]:
    if text is None:
        return "", False
    s = str(text)
    if len(s) > max_len:
        return s[:max_len], True
    return s, False


def normalize_tags(raw: Union[str, Iterable[str], None]) -> Tuple[List[str], List[str]]:
    """Normalize tags given as a comma-separated string or a list. Returns (tags, warnings)."""
    warnings: List[str] = []
    if not raw:
        return [], warnings
    if isinstance(raw, str):
        parts = [t.strip() for t in raw.split(",") if t.strip()]
    else:
        parts = [str(t).strip() for t in raw if str(t).strip()]
    # Dedup case-insensitive preserving order
    seen = set()
    uniq = []
    for p in parts:
        key = p.lower()
        if key not in seen:
            seen.add(key)
            uniq.append(p)
    filtered = []
    for p in uniq:
        if len(p) > MAX_TAG_LEN:
            filtered.append(p[:MAX_TAG_LEN])
            warnings.append(f"Tag '{p}' truncated to {MAX_TAG_LEN} characters")
        else:
            filtered.append(p)
    if len(filtered) > MAX_TAGS:
        warnings.append(f"Only first {MAX_TAGS} tags kept; others were dropped")
        filtered = filtered[:MAX_TAGS]
    return filtered, warnings


def validate_session_fields(
    *, topic: str, subtopic: str, duration, completed_at, notes: str = "", tags=None
) -> Tuple[dict, List[str], List[str]]:
    """Returns (sanitized, errors, warnings). Any error blocks the save; warnings do not."""
    errors: List[str] = []
    warnings: List[str] = []

    topic_s, topic_trunc = _truncate(topic or "", MAX_TOPIC_LEN)
    if not topic_s.strip():
        errors.append("Topic is required.")
    if topic_trunc:
        warnings.append(f"Topic truncated to {MAX_TOPIC_LEN} characters")

    subtopic_s, sub_trunc = _truncate(subtopic or "", MAX_TOPIC_LEN)
    if not subtopic_s.strip():
        errors.append("Subtopic is required.")
    if sub_trunc:
        warnings.append(f"Subtopic truncated to {MAX_TOPIC_LEN} characters")

    notes_s, notes_trunc = _truncate(notes or "", MAX_NOTES_LEN)
    if notes_trunc:
        warnings.append(f"Notes truncated to {MAX_NOTES_LEN} characters")

    try:
        duration_i = int(duration) if duration is not None else 0
    except (TypeError, ValueError):
        errors.append("Duration must be a whole number of minutes.")
        duration_i = 0
    if duration_i < 0 or duration_i > MAX_DURATION:
        errors.append(f"Duration must be between 0 and {MAX_DURATION} minutes.")
        duration_i = max(0, min(MAX_DURATION, duration_i))

    completed = to_timestamp(completed_at)
    if completed is None:
        errors.append("Completion time is required.")

    tags_l, tag_warnings = normalize_tags(tags)
    warnings.extend(tag_warnings)

    sanitized = {
        "topic": topic_s.strip(),
        "subtopic": subtopic_s.strip(),
        "duration": duration_i,
        "completed_at": completed,
        "notes": notes_s,
        "tags": tuple(tags_l),
    }
    return sanitized, errors, warnings


def coerce_session(session: StudySession) -> StudySession:
    """Repair a stored session so aggregate math never sees bad values.

    Negative or non-numeric durations become 0. An unparseable completion
    time becomes None, which keeps the session out of day-based views.
    """
    try:
        duration = int(session.duration)
    except (TypeError, ValueError):
        duration = -1
    if duration < 0:
        logger.warning("Session %s has invalid duration %r; using 0", session.id, session.duration)
        duration = 0
    completed = to_timestamp(session.completed_at)
    if completed is None:
        logger.warning("Session %s has no usable completion time; excluded from day views", session.id)
    if isinstance(session.duration, int) and duration == session.duration and completed == session.completed_at:
        return session
    return StudySession(
        id=session.id,
        topic=session.topic,
        subtopic=session.subtopic,
        duration=duration,
        completed_at=completed,
        notes=session.notes,
        tags=tuple(session.tags or ()),
    )


def coerce_sessions(sessions: Iterable[StudySession]) -> List[StudySession]:
    return [coerce_session(s) for s in sessions]
