import os
import shutil
import tempfile
import importlib
import pytest
import sys


@pytest.fixture(autouse=True)
def temp_db(monkeypatch):
    # Ensure project root is importable
    root = os.path.dirname(os.path.abspath(__file__))
    root = os.path.dirname(root)
    if root not in sys.path:
        sys.path.insert(0, root)

    tmpdir = tempfile.mkdtemp()
    data_dir = os.path.join(tmpdir, "data")
    os.makedirs(data_dir, exist_ok=True)

    # Point storage at a throwaway DB
    storage = importlib.import_module("studyflow.storage")
    monkeypatch.setattr(storage, "DB_PATH", os.path.join(data_dir, "studyflow.db"), raising=False)

    yield
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def make_session():
    from studyflow.models import StudySession

    counter = {"n": 0}

    def _make(completed_at, topic="Math", subtopic="Algebra", duration=30, notes="", tags=()):
        counter["n"] += 1
        return StudySession(
            id=f"s{counter['n']}",
            topic=topic,
            subtopic=subtopic,
            duration=duration,
            completed_at=completed_at,
            notes=notes,
            tags=tuple(tags),
        )

    return _make
