"""Build read-only feedback for graded attempts.

`assemble` turns a graded attempt into a `ReviewBundle`. It works from
the attempt's own question snapshot, so reviewing an old attempt shows
the questions as they were when it was taken. The live quiz only
contributes its visibility flags:

- `show_correct_answers` controls whether the answer key is included;
- `show_score_immediately` controls whether the score summary and the
  per-question verdicts are included.

Explanations and essay rubrics are always included; a rubric describes
how an answer is judged, not what the answer is.
"""

from typing import List, Optional

from .exceptions import InvalidTransitionError
from .schemas import (
    AnswerRecord,
    Attempt,
    FeedbackItem,
    QuestionType,
    QuestionView,
    Quiz,
    ReviewBundle,
)

_KEYWORD_TYPES = (QuestionType.SHORT_ANSWER, QuestionType.ESSAY)


def feedback_for(
    question,
    record: Optional[AnswerRecord],
    show_correct_answers: bool = True,
    show_verdict: bool = True,
) -> FeedbackItem:
    """Feedback for a single question, used by reviews and immediate-feedback mode."""
    data = {
        "question_id": question.id,
        "type": question.type,
        "prompt": question.prompt,
        "order": question.order,
        "points_possible": question.points,
        "user_answer": record.user_answer if record is not None else None,
        "explanation": question.explanation,
    }
    if show_verdict:
        data["is_correct"] = record.is_correct if record is not None else False
        data["points_earned"] = record.points_earned if record is not None else 0.0
        data["pending_review"] = record.pending_review if record is not None else False
    if show_correct_answers and question.correct_answer is not None:
        ca = question.correct_answer
        data["correct_answer"] = list(ca) if isinstance(ca, tuple) else ca
    if question.type == QuestionType.ESSAY:
        data["rubric"] = question.rubric
    if question.type in _KEYWORD_TYPES and question.keywords:
        data["keywords"] = question.keywords
    return FeedbackItem(**data)


def assemble(attempt: Attempt, quiz: Quiz) -> ReviewBundle:
    """Render a graded attempt into a review bundle without mutating it."""
    if not attempt.is_terminal:
        raise InvalidTransitionError(f"attempt {attempt.id} is {attempt.status.value}; only graded attempts can be reviewed")
    show_score = quiz.show_score_immediately
    items = tuple(
        feedback_for(
            q,
            attempt.answers.get(q.id),
            show_correct_answers=quiz.show_correct_answers,
            show_verdict=show_score,
        )
        for q in attempt.questions
    )
    summary = {}
    if show_score:
        summary = {
            "score": attempt.score,
            "passed": attempt.passed,
            "earned_points": attempt.earned_points,
            "total_points": attempt.total_points,
        }
    return ReviewBundle(
        attempt_id=attempt.id,
        quiz_id=attempt.quiz_id,
        attempt_number=attempt.attempt_number,
        status=attempt.status,
        timed_out=attempt.timed_out,
        time_spent_seconds=attempt.time_spent_seconds,
        pending_review_count=attempt.pending_review_count,
        items=items,
        **summary,
    )


def question_view(question) -> QuestionView:
    return QuestionView(
        id=question.id,
        type=question.type,
        prompt=question.prompt,
        options=list(question.options),
        points=question.points,
        order=question.order,
        keywords=list(question.keywords) if question.type == QuestionType.ESSAY else [],
    )


def present_questions(attempt: Attempt) -> List[QuestionView]:
    """The attempt's questions in snapshot order, without answer keys."""
    return [question_view(q) for q in attempt.questions]
