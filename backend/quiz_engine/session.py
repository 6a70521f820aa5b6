"""Attempt state machine.

An `AttemptSession` drives one attempt through

    NOT_STARTED -> IN_PROGRESS -> SUBMITTED | TIMED_OUT -> GRADED -> REVIEWED

`start()` checks the attempt policy and freezes a snapshot of the quiz
questions (after any randomisation). `answer()` stores answers while the
attempt is in progress; in immediate-feedback mode each answer is graded
and locked at once and questions must be answered in snapshot order.
`submit()` grades everything and closes the attempt. A timer running out,
or the server clock passing the deadline, takes the TIMED_OUT path
instead and grades whatever answers exist.

Time is checked against the server clock on every `answer()` and
`submit()`; the optional in-process `AttemptTimer` only adds warning
callbacks and proactive expiry.

Once GRADED the attempt is read-only; `review()` renders it and moves it
to REVIEWED.
"""

import json
import logging
import math
import random
import uuid
from datetime import timedelta
from typing import Callable, Mapping, Optional

from . import review as review_assembler
from .clock import SystemClock
from .exceptions import (
    AnswerOrderError,
    InvalidTransitionError,
    NoActiveAttemptError,
    QuestionLockedError,
    TimeLimitExceededError,
    UnknownQuestionError,
)
from .grading import grade
from .policy import AttemptPolicy, PriorAttempts
from .schemas import AnswerRecord, Attempt, AttemptStatus, Quiz, ReviewBundle, UserAnswer
from .scoring import aggregate, total_points
from .timer import DEFAULT_WARNING_MINUTES, AttemptTimer

logger = logging.getLogger("quiz_engine.session")

# client-reported elapsed time further off than this is logged
TIME_DRIFT_TOLERANCE_SECONDS = 5


class AttemptSession:
    def __init__(
        self,
        quiz: Quiz,
        user_id: str,
        policy: Optional[AttemptPolicy] = None,
        clock=None,
        rng: Optional[random.Random] = None,
        warning_minutes=DEFAULT_WARNING_MINUTES,
        on_warning: Optional[Callable[[int], None]] = None,
        on_graded: Optional[Callable[[Attempt], None]] = None,
        submit_grace_seconds: int = 0,
    ):
        self.quiz = quiz
        self.user_id = user_id
        self.policy = policy or AttemptPolicy()
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.warning_minutes = warning_minutes
        self.on_warning = on_warning
        self.on_graded = on_graded
        self.submit_grace_seconds = submit_grace_seconds
        self.attempt: Optional[Attempt] = None
        self.timer: Optional[AttemptTimer] = None

    @classmethod
    def resume(cls, quiz: Quiz, attempt: Attempt, **kwargs) -> "AttemptSession":
        """Rebuild a session around a stored attempt."""
        session = cls(quiz, attempt.user_id, **kwargs)
        session.attempt = attempt
        if attempt.status == AttemptStatus.IN_PROGRESS and attempt.time_limit_seconds:
            session.timer = session._make_timer(attempt.time_limit_seconds)
            session.timer.paused_seconds = attempt.paused_seconds
            # thresholds already behind the countdown must not fire on the next tick
            session.timer.remaining_seconds = session.remaining_seconds()
        return session

    @property
    def status(self) -> AttemptStatus:
        if self.attempt is None:
            return AttemptStatus.NOT_STARTED
        return self.attempt.status

    def start(self, prior: Optional[PriorAttempts] = None, attempt_id: Optional[str] = None) -> Attempt:
        """Open the attempt: policy check, question snapshot, timer."""
        if self.status != AttemptStatus.NOT_STARTED:
            raise InvalidTransitionError(f"cannot start an attempt that is {self.status.value}")
        number = self.policy.ensure_can_start(self.user_id, self.quiz, prior or PriorAttempts())
        questions = self._snapshot_questions()
        self.attempt = Attempt(
            id=attempt_id or uuid.uuid4().hex,
            quiz_id=self.quiz.id,
            user_id=self.user_id,
            attempt_number=number,
            status=AttemptStatus.IN_PROGRESS,
            started_at=self.clock.now(),
            questions=questions,
            passing_score=self.quiz.passing_score,
            time_limit_seconds=self.quiz.time_limit_seconds,
            immediate_feedback=self.quiz.immediate_feedback,
            total_points=total_points(questions),
        )
        if self.attempt.time_limit_seconds:
            self.timer = self._make_timer(self.attempt.time_limit_seconds)
        logger.info(
            "attempt_started %s",
            json.dumps({
                "attempt_id": self.attempt.id,
                "quiz_id": self.quiz.id,
                "user_id": self.user_id,
                "attempt_number": number,
                "questions": len(questions),
                "time_limit_seconds": self.attempt.time_limit_seconds,
            }),
        )
        return self.attempt

    def answer(self, question_id: str, value: UserAnswer, time_spent_seconds: Optional[int] = None) -> AnswerRecord:
        """Store (or overwrite) the answer to one question.

        In immediate-feedback mode the answer is graded and locked before
        returning. Raises `TimeLimitExceededError` if the deadline has
        passed; the attempt is then already graded.
        """
        self._require_active()
        if self._enforce_deadline():
            raise TimeLimitExceededError(f"time limit exceeded; attempt {self.attempt.id} was submitted")
        question = self.attempt.question(question_id)
        if question is None:
            raise UnknownQuestionError(f"question {question_id} is not part of attempt {self.attempt.id}")
        existing = self.attempt.answers.get(question_id)
        if existing is not None and existing.locked:
            raise QuestionLockedError(f"question {question_id} is already graded and locked")
        if self.attempt.immediate_feedback:
            current = self.current_question()
            if current is None or current.id != question_id:
                raise AnswerOrderError(f"question {question_id} cannot be answered before the current question")
        record = AnswerRecord(
            question_id=question_id,
            user_answer=value,
            time_spent_seconds=time_spent_seconds,
            answered_at=self.clock.now(),
        )
        if self.attempt.immediate_feedback:
            self._apply_grade(question, record)
            record.locked = True
        self.attempt.answers[question_id] = record
        return record

    def feedback(self, question_id: str):
        """Feedback item for a graded question (immediate-feedback mode)."""
        question = self.attempt.question(question_id) if self.attempt else None
        if question is None:
            raise UnknownQuestionError(f"unknown question {question_id}")
        return review_assembler.feedback_for(
            question,
            self.attempt.answers.get(question_id),
            show_correct_answers=self.quiz.show_correct_answers,
            show_verdict=True,
        )

    def current_question(self):
        """First question not yet locked, in snapshot order."""
        if self.attempt is None:
            return None
        for q in self.attempt.questions:
            record = self.attempt.answers.get(q.id)
            if record is None or not record.locked:
                return q
        return None

    def submit(self, answers: Optional[Mapping[str, UserAnswer]] = None, client_time_spent: Optional[int] = None) -> Attempt:
        """Grade the attempt and close it.

        `answers` are stored first (locked questions keep their answer).
        A submission arriving as the countdown reaches zero (up to
        `submit_grace_seconds` after the deadline) keeps its answers but
        closes through the timeout path. Anything later is discarded and
        the attempt is closed with the answers it already had.
        """
        self._require_active()
        if self._past_deadline(self.submit_grace_seconds):
            self._enforce_deadline()
            return self.attempt
        now = self.clock.now()
        for question_id, value in (answers or {}).items():
            if self.attempt.question(question_id) is None:
                raise UnknownQuestionError(f"question {question_id} is not part of attempt {self.attempt.id}")
            existing = self.attempt.answers.get(question_id)
            if existing is not None and existing.locked:
                continue
            self.attempt.answers[question_id] = AnswerRecord(question_id=question_id, user_answer=value, answered_at=now)
        if self.remaining_seconds() == 0:
            return self.force_submit()
        self.attempt.status = AttemptStatus.SUBMITTED
        self._grade_and_close(timed_out=False)
        if client_time_spent is not None and abs(client_time_spent - self.attempt.time_spent_seconds) > TIME_DRIFT_TOLERANCE_SECONDS:
            logger.warning(
                "time_drift %s",
                json.dumps({
                    "attempt_id": self.attempt.id,
                    "client_seconds": client_time_spent,
                    "server_seconds": self.attempt.time_spent_seconds,
                }),
            )
        return self.attempt

    def force_submit(self, reason: str = "time_limit") -> Attempt:
        """Close the attempt through TIMED_OUT with the answers it has.

        Used by the timer and by stale-attempt expiry. Calling it on an
        attempt that is already closed does nothing.
        """
        if self.attempt is None:
            raise NoActiveAttemptError("no active attempt")
        if self.attempt.status != AttemptStatus.IN_PROGRESS:
            return self.attempt
        self.attempt.status = AttemptStatus.TIMED_OUT
        logger.info("attempt_timed_out %s", json.dumps({"attempt_id": self.attempt.id, "reason": reason}))
        self._grade_and_close(timed_out=True)
        return self.attempt

    def review(self) -> ReviewBundle:
        """Render the graded attempt; GRADED moves to REVIEWED."""
        if self.attempt is None or not self.attempt.is_terminal:
            raise InvalidTransitionError(f"cannot review an attempt that is {self.status.value}")
        bundle = review_assembler.assemble(self.attempt, self.quiz)
        if self.attempt.status == AttemptStatus.GRADED:
            self.attempt.status = AttemptStatus.REVIEWED
            self.attempt.reviewed_at = self.clock.now()
        return bundle

    def tick(self, seconds: int = 1) -> None:
        if self.timer is not None:
            self.timer.tick(seconds)

    def pause(self) -> None:
        """Freeze the countdown; the deadline moves by the paused time on resume."""
        self._require_active()
        if self._enforce_deadline():
            raise TimeLimitExceededError(f"time limit exceeded; attempt {self.attempt.id} was submitted")
        if self.timer is not None:
            self.timer.pause()

    def resume_timer(self) -> None:
        self._require_active()
        if self.timer is not None:
            self.timer.resume()
            self.attempt.paused_seconds = self.timer.paused_seconds

    def remaining_seconds(self) -> Optional[int]:
        """Seconds left on the server clock, or None when untimed."""
        if self.attempt is None or self.attempt.deadline is None:
            return None
        left = (self.attempt.deadline - self._now()).total_seconds()
        return max(0, math.ceil(left))

    def _now(self):
        # time stands still for the deadline while the timer is paused
        if self.timer is not None and self.timer.paused:
            return self.timer.paused_at
        return self.clock.now()

    def _past_deadline(self, grace_seconds: int = 0) -> bool:
        deadline = self.attempt.deadline
        if deadline is None:
            return False
        return self._now() > deadline + timedelta(seconds=grace_seconds)

    def _make_timer(self, limit_seconds: int) -> AttemptTimer:
        return AttemptTimer(
            limit_seconds,
            on_expire=self.force_submit,
            on_warning=self.on_warning,
            warning_minutes=self.warning_minutes,
            clock=self.clock,
        )

    def _snapshot_questions(self) -> list:
        questions = sorted(self.quiz.questions, key=lambda q: q.order)
        if self.quiz.questions_per_attempt is not None:
            questions = self.rng.sample(questions, self.quiz.questions_per_attempt)
            if not self.quiz.randomize_questions:
                questions.sort(key=lambda q: q.order)
        elif self.quiz.randomize_questions:
            self.rng.shuffle(questions)
        if self.quiz.randomize_options:
            questions = [
                q.model_copy(update={"options": tuple(self.rng.sample(q.options, len(q.options)))}) if q.options else q
                for q in questions
            ]
        return questions

    def _require_active(self) -> None:
        if self.attempt is None or self.attempt.status != AttemptStatus.IN_PROGRESS:
            raise NoActiveAttemptError("no active attempt")

    def _enforce_deadline(self) -> bool:
        """Force-submit if the server-side deadline has passed."""
        remaining = self.remaining_seconds()
        if remaining is None:
            return False
        if self.timer is not None:
            self.timer.sync_remaining(remaining)
        if remaining <= 0 and self.attempt.status == AttemptStatus.IN_PROGRESS:
            self.force_submit()
        return self.attempt.is_terminal

    def _apply_grade(self, question, record: AnswerRecord) -> None:
        result = grade(question, record.user_answer)
        record.is_correct = result.is_correct
        record.points_earned = result.points_earned
        record.pending_review = result.pending_review
        record.graded = True

    def _grade_and_close(self, timed_out: bool) -> None:
        attempt = self.attempt
        now = self.clock.now()
        for q in attempt.questions:
            record = attempt.answers.get(q.id)
            if record is None:
                record = AnswerRecord(question_id=q.id)
                attempt.answers[q.id] = record
            if not record.graded:
                self._apply_grade(q, record)
        summary = aggregate(attempt.questions, attempt.answers, attempt.passing_score)
        attempt.earned_points = summary.earned_points
        attempt.score = summary.score
        attempt.passed = summary.passed
        attempt.pending_review_count = summary.pending_review_count
        attempt.completed_at = now
        attempt.timed_out = timed_out
        if self.timer is not None:
            self.timer.resume()
            self.timer.stop()
            attempt.paused_seconds = self.timer.paused_seconds
        elapsed = int((now - attempt.started_at).total_seconds()) - attempt.paused_seconds
        if attempt.time_limit_seconds is not None:
            elapsed = min(elapsed, attempt.time_limit_seconds)
        attempt.time_spent_seconds = max(0, elapsed)
        attempt.status = AttemptStatus.GRADED
        logger.info(
            "attempt_graded %s",
            json.dumps({
                "attempt_id": attempt.id,
                "score": attempt.score,
                "passed": attempt.passed,
                "earned_points": attempt.earned_points,
                "total_points": attempt.total_points,
                "timed_out": timed_out,
                "pending_review": attempt.pending_review_count,
            }),
        )
        if self.on_graded is not None:
            self.on_graded(attempt)
