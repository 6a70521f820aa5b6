"""SQLModel tables for stored quizzes and attempts.

Quizzes are stored as their validated JSON definition; attempts are
stored as the full serialised `Attempt` plus a few indexed columns used
for lookups. Two constraints back the attempt invariants at the
database level:

- a partial unique index allows at most one `in_progress` attempt per
  (user, quiz), so two concurrent starts cannot both succeed;
- (user, quiz, attempt_number) is unique.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel


def _utcnow():
    return datetime.now(timezone.utc)


class QuizRecord(SQLModel, table=True):
    """A quiz definition as imported from the content side."""
    __tablename__ = "quizzes"

    id: str = Field(primary_key=True)
    title: str = ""
    definition: dict = Field(sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class AttemptRecord(SQLModel, table=True):
    """A stored attempt.

    `payload` holds the complete attempt (question snapshot and answers);
    the other columns duplicate a few of its fields for querying.
    """
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", "attempt_number", name="uq_attempt_number"),
        Index(
            "uq_attempt_in_progress",
            "user_id",
            "quiz_id",
            unique=True,
            sqlite_where=text("status = 'in_progress'"),
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    id: str = Field(primary_key=True)
    quiz_id: str = Field(index=True)
    user_id: str = Field(index=True)
    attempt_number: int
    status: str = Field(index=True)
    started_at: datetime
    completed_at: Optional[datetime] = None
    score: int = 0
    passed: bool = False
    payload: dict = Field(sa_column=Column(JSON, nullable=False))
