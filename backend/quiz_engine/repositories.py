"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (quizzes,
attempts). Repositories translate between the SQLModel rows and the
pydantic `Quiz` / `Attempt` schemas and commit their own writes.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from . import models
from .exceptions import AttemptInProgressError
from .quiz_loader import load_quiz
from .schemas import Attempt, AttemptStatus, Quiz


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


class QuizRepository:
    """Read and store quiz definitions."""
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, quiz_id: str) -> Optional[Quiz]:
        """Return the validated `Quiz` or `None` if not found."""
        record = self.session.get(models.QuizRecord, quiz_id)
        if record is None:
            return None
        return load_quiz(record.definition)

    def save(self, quiz: Quiz) -> Quiz:
        """Insert or replace a quiz definition.

        Replacing a quiz never touches existing attempts: they keep their
        own question snapshot.
        """
        record = self.session.get(models.QuizRecord, quiz.id)
        if record is None:
            record = models.QuizRecord(id=quiz.id, title=quiz.title, definition=_dump(quiz))
        else:
            record.title = quiz.title
            record.definition = _dump(quiz)
            record.updated_at = datetime.now(timezone.utc)
        self.session.add(record)
        self.session.commit()
        return quiz


class AttemptRepository:
    """Persist attempts and query them per user and quiz."""
    def __init__(self, session: Session):
        self.session = session

    def _row_values(self, attempt: Attempt) -> dict:
        return {
            "quiz_id": attempt.quiz_id,
            "user_id": attempt.user_id,
            "attempt_number": attempt.attempt_number,
            "status": attempt.status.value,
            "started_at": attempt.started_at,
            "completed_at": attempt.completed_at,
            "score": attempt.score,
            "passed": attempt.passed,
            "payload": _dump(attempt),
        }

    def create(self, attempt: Attempt) -> Attempt:
        """Insert a new attempt.

        The database refuses a second in-progress attempt for the same
        user and quiz; that surfaces as `AttemptInProgressError`.
        """
        record = models.AttemptRecord(id=attempt.id, **self._row_values(attempt))
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            existing = self.get_in_progress(attempt.user_id, attempt.quiz_id)
            raise AttemptInProgressError(
                f"user {attempt.user_id} already has an attempt in progress on quiz {attempt.quiz_id}",
                attempt_id=existing.id if existing else None,
            ) from e
        return attempt

    def get(self, attempt_id: str) -> Optional[Attempt]:
        record = self.session.get(models.AttemptRecord, attempt_id)
        if record is None:
            return None
        return Attempt.model_validate(record.payload)

    def update(self, attempt: Attempt) -> Attempt:
        """Write back a modified attempt."""
        record = self.session.get(models.AttemptRecord, attempt.id)
        if record is None:
            raise ValueError(f"attempt not found: {attempt.id}")
        for key, value in self._row_values(attempt).items():
            setattr(record, key, value)
        self.session.add(record)
        self.session.commit()
        return attempt

    def list_by_user(self, user_id: str, quiz_id: Optional[str] = None) -> List[Attempt]:
        """Return a user's attempts, optionally for one quiz, oldest first."""
        stmt = select(models.AttemptRecord).where(models.AttemptRecord.user_id == user_id)
        if quiz_id is not None:
            stmt = stmt.where(models.AttemptRecord.quiz_id == quiz_id)
        stmt = stmt.order_by(models.AttemptRecord.quiz_id, models.AttemptRecord.attempt_number)
        return [Attempt.model_validate(r.payload) for r in self.session.exec(stmt).all()]

    def list_by_quiz(self, quiz_id: str) -> List[Attempt]:
        stmt = (
            select(models.AttemptRecord)
            .where(models.AttemptRecord.quiz_id == quiz_id)
            .order_by(models.AttemptRecord.started_at)
        )
        return [Attempt.model_validate(r.payload) for r in self.session.exec(stmt).all()]

    def get_in_progress(self, user_id: str, quiz_id: str) -> Optional[Attempt]:
        stmt = select(models.AttemptRecord).where(
            models.AttemptRecord.user_id == user_id,
            models.AttemptRecord.quiz_id == quiz_id,
            models.AttemptRecord.status == AttemptStatus.IN_PROGRESS.value,
        )
        record = self.session.exec(stmt).first()
        return Attempt.model_validate(record.payload) if record else None

    def list_in_progress(self) -> List[Attempt]:
        stmt = select(models.AttemptRecord).where(
            models.AttemptRecord.status == AttemptStatus.IN_PROGRESS.value
        )
        return [Attempt.model_validate(r.payload) for r in self.session.exec(stmt).all()]
