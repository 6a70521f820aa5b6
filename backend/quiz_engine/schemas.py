"""Pydantic schemas for quiz definitions, attempts and API payloads.

Quiz definitions arrive as camelCase JSON (`correctAnswer`,
`passingScore`, ...). Questions are a discriminated union over the `type`
field: each question kind is its own model so the grader can dispatch on
the variant and load-time validation can reject unknown kinds before any
attempt starts.

Attempts embed a snapshot of the questions taken at start time; scoring
only ever looks at that snapshot, never at the live quiz.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

UserAnswer = Union[str, List[str]]


class QuestionType(str, Enum):
    SINGLE_CHOICE = "SINGLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    MULTI_SELECT = "MULTI_SELECT"
    FILL_IN_BLANK = "FILL_IN_BLANK"
    SHORT_ANSWER = "SHORT_ANSWER"
    ESSAY = "ESSAY"
    MATCHING = "MATCHING"
    ORDERING = "ORDERING"


class AttemptStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    TIMED_OUT = "timed_out"
    GRADED = "graded"
    REVIEWED = "reviewed"


TERMINAL_STATUSES = frozenset({AttemptStatus.GRADED, AttemptStatus.REVIEWED})


class CamelModel(BaseModel):
    """Base model reading and writing camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _unwrap_single(value):
    if isinstance(value, (list, tuple)) and len(value) == 1:
        return value[0]
    return value


class RubricCriterion(CamelModel):
    """One grading criterion of an essay rubric."""
    model_config = ConfigDict(frozen=True)
    criterion: str = Field(alias="criterion", validation_alias=AliasChoices("criterion", "criteria"))
    points: float = Field(ge=0)
    description: str = ""


class _QuestionBase(CamelModel):
    model_config = ConfigDict(frozen=True)
    id: str = Field(min_length=1)
    prompt: str = Field(alias="question")
    options: Tuple[str, ...] = ()
    explanation: Optional[str] = None
    points: float = Field(gt=0)
    order: int = 0


class ChoiceQuestion(_QuestionBase):
    """Single-choice and true/false questions: exactly one right option."""
    type: Literal["SINGLE_CHOICE", "TRUE_FALSE"]
    correct_answer: str

    @model_validator(mode="before")
    @classmethod
    def _default_true_false_options(cls, data):
        if isinstance(data, dict) and data.get("type") == QuestionType.TRUE_FALSE and not data.get("options"):
            data = {**data, "options": ["True", "False"]}
        return data

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _single_value(cls, v):
        return _unwrap_single(v)

    @model_validator(mode="after")
    def _correct_answer_is_an_option(self):
        if self.options and self.correct_answer not in self.options:
            raise ValueError(f"question {self.id}: correct answer is not one of the options")
        return self


class SetQuestion(_QuestionBase):
    """Multi-select and fill-in-blank questions graded as an exact set."""
    type: Literal["MULTI_SELECT", "FILL_IN_BLANK"]
    correct_answer: Tuple[str, ...] = Field(min_length=1)

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _as_sequence(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    @model_validator(mode="after")
    def _correct_answers_are_options(self):
        if self.type == QuestionType.MULTI_SELECT and self.options:
            missing = [a for a in self.correct_answer if a not in self.options]
            if missing:
                raise ValueError(f"question {self.id}: correct answers not in options: {missing}")
        return self


class ShortAnswerQuestion(_QuestionBase):
    type: Literal["SHORT_ANSWER"]
    correct_answer: str = Field(min_length=1)
    case_sensitive: bool = False
    keywords: Tuple[str, ...] = ()

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _single_value(cls, v):
        return _unwrap_single(v)


class EssayQuestion(_QuestionBase):
    """Free-text answer adjudicated by a human against the rubric."""
    type: Literal["ESSAY"]
    correct_answer: Optional[UserAnswer] = None
    rubric: Tuple[RubricCriterion, ...] = ()
    keywords: Tuple[str, ...] = ()


class ArrangementQuestion(_QuestionBase):
    """Matching and ordering questions; graded manually."""
    type: Literal["MATCHING", "ORDERING"]
    correct_answer: Optional[UserAnswer] = None


Question = Annotated[
    Union[ChoiceQuestion, SetQuestion, ShortAnswerQuestion, EssayQuestion, ArrangementQuestion],
    Field(discriminator="type"),
]


class Quiz(CamelModel):
    """A read-only quiz definition as provided by the content side."""
    model_config = ConfigDict(frozen=True)
    id: str = Field(min_length=1)
    title: str = ""
    description: Optional[str] = None
    questions: Tuple[Question, ...] = Field(min_length=1)
    passing_score: float = Field(default=70, ge=0, le=100)
    time_limit: Optional[int] = Field(default=None, ge=1)  # minutes
    max_attempts: Optional[int] = Field(default=None, ge=1)
    randomize_questions: bool = False
    randomize_options: bool = False
    questions_per_attempt: Optional[int] = Field(default=None, ge=1)
    show_correct_answers: bool = True
    show_score_immediately: bool = True
    immediate_feedback: bool = False

    @model_validator(mode="after")
    def _check_question_bank(self):
        ids = [q.id for q in self.questions]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"duplicate question ids: {dupes}")
        if self.questions_per_attempt is not None and self.questions_per_attempt > len(self.questions):
            raise ValueError(
                f"questionsPerAttempt ({self.questions_per_attempt}) exceeds the "
                f"question bank size ({len(self.questions)})"
            )
        return self

    @property
    def time_limit_seconds(self) -> Optional[int]:
        if self.time_limit is None:
            return None
        return self.time_limit * 60


class AnswerRecord(CamelModel):
    """Stored answer for one question of an attempt.

    `pending_review` marks manually graded question kinds: they score zero
    automatically but are not the same as a wrong answer.
    """
    question_id: str
    user_answer: UserAnswer = ""
    is_correct: bool = False
    points_earned: float = 0.0
    pending_review: bool = False
    graded: bool = False
    locked: bool = False
    time_spent_seconds: Optional[int] = None
    answered_at: Optional[datetime] = None


class Attempt(CamelModel):
    """One run of a user through a quiz, in progress or completed."""
    id: str
    quiz_id: str
    user_id: str
    attempt_number: int = Field(ge=1)
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    started_at: datetime
    completed_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    questions: List[Question]
    passing_score: float
    time_limit_seconds: Optional[int] = None
    immediate_feedback: bool = False
    answers: Dict[str, AnswerRecord] = Field(default_factory=dict)
    total_points: float
    earned_points: float = 0.0
    score: int = 0
    passed: bool = False
    time_spent_seconds: int = 0
    paused_seconds: int = 0
    timed_out: bool = False
    pending_review_count: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def deadline(self) -> Optional[datetime]:
        """Server-side deadline, or None for untimed attempts."""
        if self.time_limit_seconds is None:
            return None
        return self.started_at + timedelta(seconds=self.time_limit_seconds + self.paused_seconds)

    def question(self, question_id: str):
        for q in self.questions:
            if q.id == question_id:
                return q
        return None


class AnswerIn(CamelModel):
    """Single submitted answer item."""
    question_id: str
    user_answer: UserAnswer


class Submission(CamelModel):
    """Submission payload: answers plus the client's elapsed time."""
    answers: List[AnswerIn] = Field(default_factory=list)
    time_spent: Optional[int] = Field(default=None, ge=0)


class AnswerUpdate(CamelModel):
    """Payload for answering a single question."""
    user_answer: UserAnswer
    time_spent: Optional[int] = Field(default=None, ge=0)


class QuestionView(CamelModel):
    """A question as shown to a student: no answer key, no explanation."""
    id: str
    type: QuestionType
    prompt: str = Field(alias="question")
    options: List[str] = Field(default_factory=list)
    points: float
    order: int
    keywords: List[str] = Field(default_factory=list)


class FeedbackItem(CamelModel):
    """Read-only feedback for one question of a completed attempt."""
    model_config = ConfigDict(frozen=True)
    question_id: str
    type: QuestionType
    prompt: str = Field(alias="question")
    order: int
    points_possible: float
    user_answer: Optional[UserAnswer] = None
    is_correct: Optional[bool] = None
    points_earned: Optional[float] = None
    pending_review: bool = False
    correct_answer: Optional[UserAnswer] = None
    explanation: Optional[str] = None
    rubric: Optional[Tuple[RubricCriterion, ...]] = None
    keywords: Optional[Tuple[str, ...]] = None


class ReviewBundle(CamelModel):
    """Read-only review of a graded attempt."""
    model_config = ConfigDict(frozen=True)
    attempt_id: str
    quiz_id: str
    attempt_number: int
    status: AttemptStatus
    timed_out: bool
    time_spent_seconds: int
    score: Optional[int] = None
    passed: Optional[bool] = None
    earned_points: Optional[float] = None
    total_points: Optional[float] = None
    pending_review_count: int = 0
    items: Tuple[FeedbackItem, ...] = ()
