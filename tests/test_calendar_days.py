import datetime as dt

from studyflow.calendar_days import day_gap, day_key, study_days, to_timestamp


def test_day_key_drops_time_of_day():
    assert day_key(dt.datetime(2024, 3, 1, 23, 59)) == dt.date(2024, 3, 1)
    assert day_key(dt.date(2024, 3, 1)) == dt.date(2024, 3, 1)
    assert day_key("2024-03-01T08:15:00") == dt.date(2024, 3, 1)


def test_day_key_bad_input_is_none():
    assert day_key(None) is None
    assert day_key("not a date") is None
    assert to_timestamp(float("nan")) is None


def test_aware_timestamp_becomes_naive_local():
    aware = dt.datetime(2024, 3, 1, 12, 0, tzinfo=dt.timezone.utc)
    ts = to_timestamp(aware)
    assert ts.tzinfo is None
    assert ts == aware.astimezone().replace(tzinfo=None)


def test_study_days_unique_descending(make_session):
    sessions = [
        make_session(dt.datetime(2024, 1, 2, 8)),
        make_session(dt.datetime(2024, 1, 1, 8)),
        make_session(dt.datetime(2024, 1, 2, 21)),
        make_session(None),
    ]
    assert study_days(sessions) == [dt.date(2024, 1, 2), dt.date(2024, 1, 1)]
    assert study_days([]) == []


def test_day_gap():
    assert day_gap(dt.date(2024, 3, 1), dt.date(2024, 2, 28)) == 2  # leap year
