import pandas as pd

from studyflow.storage import fetch_sessions, get_session, import_dataframe, init_db


def test_import_dataframe_insert_and_update():
    init_db()
    df = pd.DataFrame([
        {"id": "a", "completed_at": "2025-01-01T10:00:00", "topic": "A", "subtopic": "a1", "duration": 30, "tags": "x, y"},
        {"id": "b", "completed_at": "2025-01-02T11:00:00", "topic": "B", "subtopic": "b1", "duration": 15, "tags": "z"},
    ])
    inserted, updated, errors = import_dataframe(df)
    assert inserted == 2 and updated == 0
    assert not errors

    df2 = pd.DataFrame([
        {"id": "b", "completed_at": "2025-01-02T11:00:00", "topic": "B2", "subtopic": "b1", "duration": 60, "tags": "z, y"},
    ])
    inserted2, updated2, errors2 = import_dataframe(df2)
    assert inserted2 == 0 and updated2 == 1
    assert not errors2

    assert len(fetch_sessions()) == 2
    row = get_session("b")
    assert row.duration == 60
    assert row.topic == "B2"
    assert row.tags == ("z", "y")


def test_import_generates_ids_when_missing():
    df = pd.DataFrame([{"completed_at": "2025-01-03", "topic": "A", "subtopic": "a1", "duration": 20}])
    inserted, _, errors = import_dataframe(df)
    assert inserted == 1 and not errors
    assert len(fetch_sessions()[0].id) == 32


def test_import_validation_and_truncation():
    from studyflow.validation import MAX_TAG_LEN, MAX_TAGS, MAX_TOPIC_LEN

    long_topic = "X" * (MAX_TOPIC_LEN + 10)
    too_many_tags = ",".join([f"tag{i}" for i in range(MAX_TAGS + 5)])
    long_tag = "Y" * (MAX_TAG_LEN + 5)

    df = pd.DataFrame([
        {"completed_at": "bad-date", "topic": "Invalid", "subtopic": "x", "duration": 5},
        {"completed_at": "2025-02-01", "topic": "Neg", "subtopic": "x", "duration": -5},
        {"completed_at": "2025-02-01", "topic": "", "subtopic": "x", "duration": 5},
        {"completed_at": "2025-02-01", "topic": long_topic, "subtopic": "x", "duration": 20, "tags": too_many_tags + "," + long_tag},
    ])
    inserted, updated, errors = import_dataframe(df)
    assert inserted == 1 and updated == 0
    assert any("completion time is required" in e.lower() for e in errors)
    assert any("duration must be" in e.lower() for e in errors)
    assert any("topic is required" in e.lower() for e in errors)
    assert any("truncated" in e.lower() or "first" in e.lower() for e in errors)
    stored = fetch_sessions()[0]
    assert len(stored.topic) == MAX_TOPIC_LEN
    assert len(stored.tags) == MAX_TAGS


def test_import_dry_run_no_changes():
    init_db()
    df = pd.DataFrame([
        {"completed_at": "2025-03-01", "topic": "A", "subtopic": "a", "duration": 30},
        {"completed_at": "2025-03-02", "topic": "B", "subtopic": "b", "duration": 45},
    ])
    inserted, updated, errors = import_dataframe(df, dry_run=True)
    assert inserted == 2 and updated == 0
    assert fetch_sessions() == []


def test_import_empty_frame():
    assert import_dataframe(pd.DataFrame()) == (0, 0, ["No rows to import."])


def test_import_keeps_row_whose_truncated_tag_says_required():
    init_db()
    df = pd.DataFrame([
        {"id": "r", "completed_at": "2025-04-01", "topic": "A", "subtopic": "a", "duration": 10,
         "tags": "required-reading-for-the-final-exam"},
    ])
    inserted, _, errors = import_dataframe(df)
    assert inserted == 1
    assert len(errors) == 1 and "truncated" in errors[0]
    assert get_session("r") is not None
