import os
import sqlite3
import uuid
import logging
from contextlib import contextmanager
from typing import Iterable, List, Optional
import datetime as dt

import pandas as pd
from studyflow.calendar_days import to_timestamp
from studyflow.models import Achievement, StudySession
from studyflow.validation import normalize_tags, validate_session_fields

logger = logging.getLogger(__name__)

DB_PATH = os.path.join("data", "studyflow.db")
DEFAULT_WEEKLY_GOAL = 5
WEEKLY_GOAL_PRESETS = (3, 5, 7, 10)
SESSION_COLUMNS = ["id", "topic", "subtopic", "duration", "completed_at", "notes", "tags"]


@contextmanager
def conn_ctx():
    os.makedirs(os.path.dirname(DB_PATH) or ".", exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def init_db() -> None:
    with conn_ctx() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                topic TEXT NOT NULL,
                subtopic TEXT NOT NULL,
                duration INTEGER DEFAULT 0,
                completed_at TEXT NOT NULL,
                notes TEXT,
                tags TEXT
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_completed ON sessions(completed_at)")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS achievements (
                id TEXT PRIMARY KEY,
                title TEXT,
                description TEXT,
                icon TEXT,
                type TEXT,
                threshold INTEGER,
                unlocked_at TEXT NOT NULL
            )
            """
        )
        # Key/value configuration (weekly goal)
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )
            """
        )
    try:
        backup_db_daily()
    except OSError as ex:
        logger.warning("Daily backup skipped: %s", ex)


def _session_from_row(row) -> StudySession:
    tags, _ = normalize_tags(row["tags"] or "")
    return StudySession(
        id=row["id"],
        topic=row["topic"],
        subtopic=row["subtopic"],
        duration=row["duration"],
        completed_at=to_timestamp(row["completed_at"]),
        notes=row["notes"] or "",
        tags=tuple(tags),
    )


def insert_session(session: StudySession) -> None:
    with conn_ctx() as conn:
        conn.execute(
            """
            INSERT INTO sessions (id, topic, subtopic, duration, completed_at, notes, tags)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session.id,
                session.topic,
                session.subtopic,
                session.duration,
                session.completed_at.isoformat(),
                session.notes,
                ", ".join(session.tags),
            ),
        )


def upsert_session(session: StudySession) -> bool:
    """Insert or replace a session by id. Returns True when a row already existed."""
    existed = get_session(session.id) is not None
    with conn_ctx() as conn:
        conn.execute(
            """
            INSERT INTO sessions (id, topic, subtopic, duration, completed_at, notes, tags)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                topic=excluded.topic, subtopic=excluded.subtopic, duration=excluded.duration,
                completed_at=excluded.completed_at, notes=excluded.notes, tags=excluded.tags
            """,
            (
                session.id,
                session.topic,
                session.subtopic,
                session.duration,
                session.completed_at.isoformat(),
                session.notes,
                ", ".join(session.tags),
            ),
        )
    return existed


def fetch_sessions() -> List[StudySession]:
    with conn_ctx() as conn:
        conn.row_factory = sqlite3.Row
        cur = conn.execute(
            "SELECT id, topic, subtopic, duration, completed_at, notes, tags FROM sessions ORDER BY completed_at ASC, id ASC"
        )
        return [_session_from_row(r) for r in cur.fetchall()]


def get_session(session_id: str) -> Optional[StudySession]:
    with conn_ctx() as conn:
        conn.row_factory = sqlite3.Row
        cur = conn.execute(
            "SELECT id, topic, subtopic, duration, completed_at, notes, tags FROM sessions WHERE id=?",
            (session_id,),
        )
        row = cur.fetchone()
        return _session_from_row(row) if row else None


def delete_session(session_id: str) -> bool:
    with conn_ctx() as conn:
        cur = conn.execute("DELETE FROM sessions WHERE id=?", (session_id,))
        return cur.rowcount > 0


def save_achievements(achievements: Iterable[Achievement]) -> int:
    """Persist unlocked achievements; ids already stored are left untouched."""
    added = 0
    with conn_ctx() as conn:
        for a in achievements:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO achievements (id, title, description, icon, type, threshold, unlocked_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (a.id, a.title, a.description, a.icon, a.type, a.threshold, a.unlocked_at.isoformat()),
            )
            added += cur.rowcount
    return added


def fetch_achievements() -> List[Achievement]:
    with conn_ctx() as conn:
        conn.row_factory = sqlite3.Row
        cur = conn.execute(
            "SELECT id, title, description, icon, type, threshold, unlocked_at FROM achievements ORDER BY unlocked_at ASC, id ASC"
        )
        return [
            Achievement(
                id=r["id"],
                title=r["title"],
                description=r["description"],
                icon=r["icon"],
                type=r["type"],
                threshold=r["threshold"],
                unlocked_at=dt.datetime.fromisoformat(r["unlocked_at"]),
            )
            for r in cur.fetchall()
        ]


def sessions_to_df(sessions: Iterable[StudySession]) -> pd.DataFrame:
    rows = [
        {
            "id": s.id,
            "topic": s.topic,
            "subtopic": s.subtopic,
            "duration": s.duration,
            "completed_at": s.completed_at.isoformat() if s.completed_at else "",
            "notes": s.notes,
            "tags": ", ".join(s.tags),
        }
        for s in sessions
    ]
    return pd.DataFrame(rows, columns=SESSION_COLUMNS)


def get_sessions_df() -> pd.DataFrame:
    return sessions_to_df(fetch_sessions())


def export_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def export_excel_bytes(df: pd.DataFrame) -> bytes:
    import io
    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Sessions")
    bio.seek(0)
    return bio.read()


def backup_db_daily() -> None:
    """Create a once-per-day backup copy of the SQLite DB.
    Stored next to the DB under backups/studyflow-YYYYMMDD.db
    """
    if not os.path.exists(DB_PATH):
        return
    backups_dir = os.path.join(os.path.dirname(DB_PATH) or ".", "backups")
    os.makedirs(backups_dir, exist_ok=True)
    today_tag = dt.date.today().strftime("%Y%m%d")
    backup_path = os.path.join(backups_dir, f"studyflow-{today_tag}.db")
    if not os.path.exists(backup_path):
        with open(DB_PATH, "rb") as src, open(backup_path, "wb") as dst:
            dst.write(src.read())
        logger.info("Wrote daily backup %s", backup_path)


def set_setting(key: str, value: str) -> None:
    with conn_ctx() as conn:
        conn.execute("INSERT INTO settings(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value", (key, value))


def get_setting(key: str, default: Optional[str] = None) -> Optional[str]:
    with conn_ctx() as conn:
        cur = conn.execute("SELECT value FROM settings WHERE key=?", (key,))
        row = cur.fetchone()
        if not row:
            return default
        return row[0]


def get_weekly_goal() -> int:
    raw = get_setting("weekly_goal", None)
    try:
        goal = int(raw) if raw is not None else DEFAULT_WEEKLY_GOAL
    except ValueError:
        logger.warning("Stored weekly goal %r is not a number; using %d", raw, DEFAULT_WEEKLY_GOAL)
        return DEFAULT_WEEKLY_GOAL
    return goal if goal > 0 else DEFAULT_WEEKLY_GOAL


def set_weekly_goal(goal: int) -> None:
    goal = int(goal)
    if goal <= 0:
        raise ValueError("Weekly goal must be a positive number of sessions.")
    set_setting("weekly_goal", str(goal))


def import_dataframe(df: pd.DataFrame, *, dry_run: bool = False) -> tuple[int, int, list[str]]:
    """Import/merge sessions from a DataFrame.
    Required columns: topic, subtopic, completed_at
    Optional columns: id, duration, notes, tags
    Rows without an id get a fresh one. Returns: (inserted_count, updated_count, errors)
    """
    init_db()

    if df is None or df.empty:
        return 0, 0, ["No rows to import."]

    cols = {c.lower(): c for c in df.columns}

    def value(row, name, default=""):
        c = cols.get(name)
        if c is None:
            return default
        v = row[c]
        if not isinstance(v, (list, tuple)) and pd.isna(v):
            return default
        return v

    errors: list[str] = []
    inserted = 0
    updated = 0

    for idx, row in df.iterrows():
        sanitized, fatal, warnings = validate_session_fields(
            topic=str(value(row, "topic")),
            subtopic=str(value(row, "subtopic")),
            duration=value(row, "duration", 0),
            completed_at=value(row, "completed_at", None),
            notes=str(value(row, "notes")),
            tags=value(row, "tags", ""),
        )
        if fatal:
            errors.extend(f"Row {idx}: {m}" for m in fatal)
            continue
        session_id = str(value(row, "id", "")).strip() or uuid.uuid4().hex
        session = StudySession(id=session_id, **sanitized)
        if dry_run:
            existed = get_session(session_id) is not None
        else:
            existed = upsert_session(session)
        if existed:
            updated += 1
        else:
            inserted += 1
        for m in warnings:
            errors.append(f"Row {idx}: {m}")

    logger.info("Imported sessions: %d inserted, %d updated, %d messages (dry_run=%s)", inserted, updated, len(errors), dry_run)
    return inserted, updated, errors
