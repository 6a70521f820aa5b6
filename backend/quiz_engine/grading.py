"""Per-question grading.

`grade` is a pure function of a question and the user's answer. Each
question kind has its own grading function, selected from `_GRADERS`;
adding a kind means adding one function and one table entry. The table
is checked against `QuestionType` at import time so a kind without a
grader fails on startup rather than mid-attempt.

Essay, matching and ordering answers are never scored automatically:
they earn zero points and are flagged `pending_review`.
"""

from dataclasses import dataclass
from typing import Optional

from .schemas import QuestionType, UserAnswer


@dataclass(frozen=True)
class GradeResult:
    is_correct: bool
    points_earned: float
    pending_review: bool = False


_WRONG = GradeResult(is_correct=False, points_earned=0.0)


def is_blank(user_answer: Optional[UserAnswer]) -> bool:
    """True for missing, empty or whitespace-only answers."""
    if user_answer is None:
        return True
    if isinstance(user_answer, str):
        return not user_answer.strip()
    return not any(isinstance(a, str) and a.strip() for a in user_answer)


def _single_value(user_answer: UserAnswer) -> Optional[str]:
    if isinstance(user_answer, str):
        return user_answer
    if len(user_answer) == 1:
        return user_answer[0]
    return None


def _as_list(user_answer: UserAnswer) -> list:
    if isinstance(user_answer, str):
        return [user_answer]
    return list(user_answer)


def _right(question) -> GradeResult:
    return GradeResult(is_correct=True, points_earned=float(question.points))


def _grade_exact(question, user_answer: UserAnswer) -> GradeResult:
    """Single-choice and true/false: exact string match."""
    if _single_value(user_answer) == question.correct_answer:
        return _right(question)
    return _WRONG


def _grade_set(question, user_answer: UserAnswer) -> GradeResult:
    """Multi-select and fill-in-blank: the answer set must equal the key."""
    given = _as_list(user_answer)
    expected = list(question.correct_answer)
    if len(given) == len(expected) and set(given) == set(expected):
        return _right(question)
    return _WRONG


def _grade_short_answer(question, user_answer: UserAnswer) -> GradeResult:
    given = _single_value(user_answer)
    if given is None:
        return _WRONG
    given = given.strip()
    expected = question.correct_answer.strip()
    if not question.case_sensitive:
        given, expected = given.lower(), expected.lower()
    if given == expected:
        return _right(question)
    return _WRONG


def _grade_manual(question, user_answer: UserAnswer) -> GradeResult:
    return GradeResult(is_correct=False, points_earned=0.0, pending_review=True)


_GRADERS = {
    QuestionType.SINGLE_CHOICE: _grade_exact,
    QuestionType.TRUE_FALSE: _grade_exact,
    QuestionType.MULTI_SELECT: _grade_set,
    QuestionType.FILL_IN_BLANK: _grade_set,
    QuestionType.SHORT_ANSWER: _grade_short_answer,
    QuestionType.ESSAY: _grade_manual,
    QuestionType.MATCHING: _grade_manual,
    QuestionType.ORDERING: _grade_manual,
}

_missing = set(QuestionType) - set(_GRADERS)
if _missing:
    raise RuntimeError(f"no grader registered for question types: {sorted(t.value for t in _missing)}")


def grade(question, user_answer: Optional[UserAnswer]) -> GradeResult:
    """Grade one answer against `question`.

    Missing or blank answers are wrong for every question kind and are
    not flagged for review.
    """
    if is_blank(user_answer):
        return _WRONG
    return _GRADERS[QuestionType(question.type)](question, user_answer)
