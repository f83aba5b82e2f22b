import os
import json
import logging
from typing import Optional

import pandas as pd

from studyflow.storage import SESSION_COLUMNS, get_sessions_df, import_dataframe

logger = logging.getLogger(__name__)

APP_DIR_NAME = "StudyFlow"
ENV_CSV_PATH = "STUDYFLOW_CSV_PATH"
ENV_JSON_PATH = "STUDYFLOW_JSON_PATH"


def _documents_dir() -> str:
    home = os.path.expanduser("~")
    # Prefer Documents if it exists
    docs = os.path.join(home, "Documents")
    if os.path.isdir(docs):
        return docs
    return home


def _sync_path(env_name: str, filename: str) -> str:
    override = os.getenv(env_name)
    if override:
        return os.path.abspath(override)
    folder = os.path.join(_documents_dir(), APP_DIR_NAME)
    os.makedirs(folder, exist_ok=True)
    return os.path.join(folder, filename)


def get_csv_path() -> str:
    return _sync_path(ENV_CSV_PATH, "sessions.csv")


def get_json_path() -> str:
    return _sync_path(ENV_JSON_PATH, "sessions.json")


def _export_frame() -> pd.DataFrame:
    df = get_sessions_df()
    # Stable column order
    for c in SESSION_COLUMNS:
        if c not in df.columns:
            df[c] = 0 if c == "duration" else ""
    return df[SESSION_COLUMNS]


def export_db_to_csv(path: Optional[str] = None) -> str:
    path = path or get_csv_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    _export_frame().to_csv(path, index=False)
    return path


def export_db_to_json(path: Optional[str] = None) -> str:
    path = path or get_json_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    df = _export_frame()
    records = df.to_dict(orient="records")
    for r in records:
        r["tags"] = [t.strip() for t in str(r["tags"]).split(",") if t.strip()]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(records, f, ensure_ascii=False, indent=2)
    return path


def import_csv_to_db(path: Optional[str] = None) -> tuple[int, int, list[str]]:
    path = path or get_csv_path()
    if not os.path.exists(path):
        return 0, 0, []
    try:
        df = pd.read_csv(path, dtype={"id": str})
    except (OSError, ValueError) as ex:
        logger.warning("Failed to read CSV at %s: %s", path, ex)
        return 0, 0, [f"Failed to read CSV at {path}: {ex}"]
    return import_dataframe(df, dry_run=False)


def import_json_to_db(path: Optional[str] = None) -> tuple[int, int, list[str]]:
    path = path or get_json_path()
    if not os.path.exists(path):
        return 0, 0, []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as ex:
        logger.warning("Failed to read JSON at %s: %s", path, ex)
        return 0, 0, [f"Failed to read JSON at {path}: {ex}"]
    if not isinstance(data, list):
        return 0, 0, ["Invalid JSON format: expected a list of sessions"]
    return import_dataframe(pd.DataFrame(data), dry_run=False)


def create_or_sync_on_launch() -> tuple[str, list[str]]:
    """Prefer JSON for user-visible sync; fall back to CSV if present.
    Returns (path_used, messages) where messages are any non-fatal import notes.
    """
    msgs: list[str] = []
    json_path = get_json_path()
    csv_path = get_csv_path()
    if os.path.exists(json_path):
        _, _, m = import_json_to_db(json_path)
        msgs.extend(m)
    elif os.path.exists(csv_path):
        _, _, m = import_csv_to_db(csv_path)
        msgs.extend(m)
    # Always leave a JSON mirror behind
    used_path = export_db_to_json(json_path)
    return used_path, msgs
