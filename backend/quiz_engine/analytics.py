"""Quiz performance statistics for instructors.

Both functions work on already-loaded attempts and only count graded
or reviewed ones. Per-question figures are keyed by question id and
read from each attempt's own answers, so questions that were edited or
dropped from the live quiz still count for the attempts that had them.
"""

from collections import defaultdict
from typing import Dict, Iterable, List

from .schemas import Attempt, Quiz

SCORE_BUCKETS = ((0, 20, "0-20%"), (21, 40, "21-40%"), (41, 60, "41-60%"), (61, 80, "61-80%"), (81, 100, "81-100%"))
TIME_BUCKETS = (
    (0, 300, "0-5 min"),
    (301, 600, "5-10 min"),
    (601, 900, "10-15 min"),
    (901, 1200, "15-20 min"),
    (1201, None, "20+ min"),
)


def _completed(attempts: Iterable[Attempt]) -> List[Attempt]:
    return [a for a in attempts if a.is_terminal]


def _mean(values) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def difficulty(correct_rate: float) -> str:
    if correct_rate >= 80:
        return "easy"
    if correct_rate >= 50:
        return "medium"
    return "hard"


def _question_stats(quiz: Quiz, attempts: List[Attempt]) -> List[dict]:
    out = []
    for q in sorted(quiz.questions, key=lambda q: q.order):
        records = [a.answers[q.id] for a in attempts if q.id in a.answers]
        correct = sum(1 for r in records if r.is_correct)
        rate = (correct / len(records)) * 100 if records else 0.0
        out.append({
            "question_id": q.id,
            "question": q.prompt,
            "correct_rate": rate,
            "average_points": _mean(r.points_earned for r in records),
            "total_attempts": len(records),
            "pending_review": sum(1 for r in records if r.pending_review),
            "difficulty": difficulty(rate),
        })
    return out


def _time_stats(attempts: List[Attempt]) -> dict:
    if not attempts:
        return {"average_time": 0, "fastest_time": 0, "slowest_time": 0, "time_distribution": []}
    times = [a.time_spent_seconds for a in attempts]
    distribution = []
    for low, high, label in TIME_BUCKETS:
        count = sum(1 for t in times if t >= low and (high is None or t <= high))
        distribution.append({"range": label, "count": count})
    return {
        "average_time": _mean(times),
        "fastest_time": min(times),
        "slowest_time": max(times),
        "time_distribution": distribution,
    }


def quiz_analytics(quiz: Quiz, attempts: Iterable[Attempt]) -> dict:
    """Aggregate statistics over every completed attempt of `quiz`."""
    done = _completed(attempts)
    total = len(done)
    distribution = []
    for low, high, label in SCORE_BUCKETS:
        count = sum(1 for a in done if low <= a.score <= high)
        distribution.append({"range": label, "count": count, "percentage": (count / total) * 100 if total else 0.0})
    return {
        "quiz_id": quiz.id,
        "total_attempts": total,
        "unique_students": len({a.user_id for a in done}),
        "average_score": _mean(a.score for a in done),
        "pass_rate": (sum(1 for a in done if a.passed) / total) * 100 if total else 0.0,
        "average_time_spent": _mean(a.time_spent_seconds for a in done),
        "score_distribution": distribution,
        "question_analytics": _question_stats(quiz, done),
        "time_analytics": _time_stats(done),
    }


def student_progress(quiz: Quiz, attempts: Iterable[Attempt]) -> List[dict]:
    """Per-student summary, best score first.

    Weak areas are questions answered correctly less than half the time,
    strengths those answered correctly at least 80% of the time.
    """
    by_user: Dict[str, List[Attempt]] = defaultdict(list)
    for a in _completed(attempts):
        by_user[a.user_id].append(a)
    ordered_questions = sorted(quiz.questions, key=lambda q: q.order)
    progress = []
    for user_id, user_attempts in by_user.items():
        user_attempts.sort(key=lambda a: a.attempt_number)
        scores = [a.score for a in user_attempts]
        weak, strong = [], []
        for index, q in enumerate(ordered_questions, start=1):
            records = [a.answers[q.id] for a in user_attempts if q.id in a.answers]
            if not records:
                continue
            rate = sum(1 for r in records if r.is_correct) / len(records) * 100
            if rate < 50:
                weak.append(f"Question {index}")
            elif rate >= 80:
                strong.append(f"Question {index}")
        progress.append({
            "student_id": user_id,
            "attempts": len(user_attempts),
            "best_score": max(scores),
            "latest_score": scores[-1],
            "average_score": _mean(scores),
            "total_time_spent": sum(a.time_spent_seconds for a in user_attempts),
            "passed": any(a.passed for a in user_attempts),
            "improvement": scores[-1] - scores[0] if len(scores) > 1 else 0,
            "weak_areas": weak,
            "strengths": strong,
        })
    progress.sort(key=lambda p: p["best_score"], reverse=True)
    return progress
