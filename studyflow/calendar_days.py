from __future__ import annotations

import datetime as dt
from typing import Iterable, Optional

import pandas as pd

from studyflow.models import StudySession


def to_timestamp(value) -> Optional[dt.datetime]:
    """Parse a completion timestamp into a naive local datetime.

    Accepts datetimes, dates and anything pandas can parse (ISO strings,
    Timestamps). Aware values are converted to local time first.
    Returns None for missing or unparseable input.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        ts = value.to_pydatetime()
    elif isinstance(value, dt.datetime):
        ts = value
    elif isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    else:
        parsed = pd.to_datetime(value, errors="coerce")
        if pd.isna(parsed):
            return None
        ts = parsed.to_pydatetime()
    if ts.tzinfo is not None:
        ts = ts.astimezone().replace(tzinfo=None)
    return ts


def day_key(value) -> Optional[dt.date]:
    """Local calendar day of a timestamp, time-of-day discarded."""
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return value
    ts = to_timestamp(value)
    if ts is None:
        return None
    return ts.date()


def study_days(sessions: Iterable[StudySession]) -> list[dt.date]:
    """Unique study days, most recent first. Sessions without a usable timestamp are skipped."""
    keys = {day_key(s.completed_at) for s in sessions}
    keys.discard(None)
    return sorted(keys, reverse=True)


def day_gap(later: dt.date, earlier: dt.date) -> int:
    return (later - earlier).days
