from datetime import datetime, timedelta, timezone
from pathlib import Path
import os
import tempfile

# Point the engine at a throwaway SQLite file before the package is imported
_DB_FILE = Path(tempfile.mkdtemp(prefix="quiz_engine_tests_")) / "test.db"
os.environ["QUIZ_ENGINE_DB_URL"] = f"sqlite:///{_DB_FILE}"

import pytest

from quiz_engine.database import create_db_and_tables, drop_db_and_tables
from quiz_engine.quiz_loader import load_quiz


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start=None):
        self.current = start or datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

    def now(self):
        return self.current

    def advance(self, seconds):
        self.current += timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def reset_db():
    """Ensure fresh tables for every test."""
    drop_db_and_tables()
    create_db_and_tables()
    yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def quiz_payload():
    """Two single-choice questions worth 10 and 5 points, pass mark 70."""
    return {
        "id": "quiz-capitals",
        "title": "Capitals",
        "passingScore": 70,
        "showCorrectAnswers": True,
        "showScoreImmediately": True,
        "questions": [
            {
                "id": "q1",
                "type": "SINGLE_CHOICE",
                "question": "Capital of France?",
                "options": ["Paris", "Lyon", "Nice"],
                "correctAnswer": "Paris",
                "explanation": "Paris has been the capital since 987.",
                "points": 10,
                "order": 1,
            },
            {
                "id": "q2",
                "type": "SINGLE_CHOICE",
                "question": "Capital of Italy?",
                "options": ["Milan", "Rome"],
                "correctAnswer": "Rome",
                "points": 5,
                "order": 2,
            },
        ],
    }


@pytest.fixture
def make_quiz(quiz_payload):
    """Build a `Quiz` from the base payload with top-level overrides."""
    def _make(**overrides):
        return load_quiz({**quiz_payload, **overrides})
    return _make
