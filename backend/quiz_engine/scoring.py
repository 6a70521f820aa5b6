"""Combine per-question results into a score and a pass/fail verdict.

Scores are whole percentages rounded half-up (12.5 becomes 13).
A quiz whose questions are worth zero points in total scores 0.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping


@dataclass(frozen=True)
class ScoreSummary:
    earned_points: float
    total_points: float
    score: int
    passed: bool
    pending_review_count: int = 0


def total_points(questions: Iterable) -> float:
    return float(sum(q.points for q in questions))


def percentage(earned: float, total: float) -> int:
    """Return `round(earned / total * 100)` using half-up rounding."""
    if total <= 0:
        return 0
    ratio = Decimal(str(earned)) / Decimal(str(total)) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def aggregate(questions, answers: Mapping, passing_score: float) -> ScoreSummary:
    """Aggregate graded answers over `questions`.

    `answers` maps question id to anything exposing `points_earned` and
    `pending_review` (an `AnswerRecord` or a `GradeResult`). Questions
    without an answer count toward the total with zero points earned.
    """
    total = total_points(questions)
    earned = 0.0
    pending = 0
    for q in questions:
        result = answers.get(q.id)
        if result is None:
            continue
        earned += float(result.points_earned)
        if result.pending_review:
            pending += 1
    score = percentage(earned, total)
    return ScoreSummary(
        earned_points=earned,
        total_points=total,
        score=score,
        passed=score >= passing_score,
        pending_review_count=pending,
    )
