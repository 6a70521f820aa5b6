"""Business logic services used by HTTP controllers and scripts.

Services coordinate repositories with the engine. They load the quiz
and attempt, rebuild an `AttemptSession` around the stored attempt, run
one state-machine operation and write the attempt back. Every call
stands alone: nothing is kept in memory between requests, and all time
checks use the server clock.
"""

import json
import logging
from typing import List, Optional

from sqlmodel import Session

from . import analytics, repositories
from .clock import SystemClock
from .config import settings
from .exceptions import AttemptNotFoundError, QuizNotFoundError, TimeLimitExceededError
from .policy import AttemptPolicy, PriorAttempts
from .quiz_loader import load_quiz, load_quiz_from_lesson_content
from .review import present_questions, question_view
from .schemas import Attempt, Quiz, ReviewBundle, Submission, UserAnswer
from .session import AttemptSession

logger = logging.getLogger("quiz_engine.services")


def default_policy() -> AttemptPolicy:
    return AttemptPolicy(
        allow_retake_after_pass=settings.ALLOW_RETAKE_AFTER_PASS,
        attempt_ttl_seconds=settings.ATTEMPT_TTL_SECONDS,
    )


class QuizImportService:
    """Validate quiz definitions and store them."""
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)

    def import_quiz(self, payload) -> Quiz:
        """Load `payload` (dict or JSON) and persist it.

        Raises `QuizConfigurationError` for invalid definitions; nothing
        is stored in that case.
        """
        quiz = load_quiz(payload)
        self.quiz_repo.save(quiz)
        logger.info("quiz_imported %s", json.dumps({"quiz_id": quiz.id, "questions": len(quiz.questions)}))
        return quiz

    def import_lesson_content(self, content: str, lesson_id: str) -> Quiz:
        """Migrate a quiz embedded as JSON text in a lesson's content."""
        quiz = load_quiz_from_lesson_content(content, quiz_id=lesson_id)
        self.quiz_repo.save(quiz)
        logger.info("quiz_migrated %s", json.dumps({"quiz_id": quiz.id, "lesson_id": lesson_id}))
        return quiz


class QuizAttemptService:
    """Start, answer, submit and review quiz attempts."""
    def __init__(self, session: Session, clock=None, policy: Optional[AttemptPolicy] = None, rng=None):
        self.session = session
        self.clock = clock or SystemClock()
        self.policy = policy or default_policy()
        self.rng = rng
        self.quiz_repo = repositories.QuizRepository(session)
        self.attempt_repo = repositories.AttemptRepository(session)

    def get_quiz(self, quiz_id: str) -> Quiz:
        quiz = self.quiz_repo.get_by_id(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(f"quiz not found: {quiz_id}")
        return quiz

    def student_view(self, quiz_id: str) -> dict:
        """Quiz settings and questions without answer keys or explanations."""
        quiz = self.get_quiz(quiz_id)
        return {
            "id": quiz.id,
            "title": quiz.title,
            "description": quiz.description,
            "passingScore": quiz.passing_score,
            "timeLimit": quiz.time_limit,
            "maxAttempts": quiz.max_attempts,
            "immediateFeedback": quiz.immediate_feedback,
            "questions": [
                question_view(q).model_dump(by_alias=True, mode="json")
                for q in sorted(quiz.questions, key=lambda q: q.order)
            ],
        }

    def _session_for(self, quiz: Quiz, attempt: Optional[Attempt] = None, user_id: Optional[str] = None) -> AttemptSession:
        kwargs = dict(
            policy=self.policy,
            clock=self.clock,
            rng=self.rng,
            warning_minutes=settings.TIMER_WARNING_MINUTES,
            submit_grace_seconds=settings.SUBMIT_GRACE_SECONDS,
        )
        if attempt is None:
            return AttemptSession(quiz, user_id, **kwargs)
        return AttemptSession.resume(quiz, attempt, **kwargs)

    def _load_attempt(self, user_id: str, attempt_id: str) -> Attempt:
        attempt = self.attempt_repo.get(attempt_id)
        # other users' attempts are reported as missing
        if attempt is None or attempt.user_id != user_id:
            raise AttemptNotFoundError(f"attempt not found: {attempt_id}")
        return attempt

    def _expire(self, quiz: Quiz, attempt: Attempt) -> Attempt:
        session = self._session_for(quiz, attempt)
        session.force_submit(reason="expired")
        self.attempt_repo.update(session.attempt)
        logger.info(
            "attempt_expired %s",
            json.dumps({"attempt_id": attempt.id, "user_id": attempt.user_id, "quiz_id": attempt.quiz_id}),
        )
        return session.attempt

    def _expire_if_stale(self, attempt: Attempt, quiz: Optional[Quiz] = None) -> Attempt:
        if not self.policy.is_stale(attempt, self.clock.now()):
            return attempt
        return self._expire(quiz or self.get_quiz(attempt.quiz_id), attempt)

    def start_attempt(self, user_id: str, quiz_id: str) -> Attempt:
        """Open a new attempt after the policy check.

        A stale in-progress attempt is expired first; a live one makes
        the call fail with `AttemptInProgressError` naming it.
        """
        quiz = self.get_quiz(quiz_id)
        running = self.attempt_repo.get_in_progress(user_id, quiz_id)
        if running is not None:
            self._expire_if_stale(running, quiz)
        prior = PriorAttempts.from_attempts(self.attempt_repo.list_by_user(user_id, quiz_id))
        session = self._session_for(quiz, user_id=user_id)
        attempt = session.start(prior)
        return self.attempt_repo.create(attempt)

    def answer(self, user_id: str, attempt_id: str, question_id: str, value: UserAnswer, time_spent: Optional[int] = None) -> dict:
        """Save one answer; in immediate-feedback mode return its feedback too."""
        attempt = self._load_attempt(user_id, attempt_id)
        quiz = self.get_quiz(attempt.quiz_id)
        session = self._session_for(quiz, attempt)
        try:
            record = session.answer(question_id, value, time_spent_seconds=time_spent)
        except TimeLimitExceededError:
            self.attempt_repo.update(session.attempt)
            raise
        self.attempt_repo.update(session.attempt)
        feedback = None
        if session.attempt.immediate_feedback:
            feedback = session.feedback(question_id).model_dump(by_alias=True, mode="json")
        return {
            "answer": record.model_dump(by_alias=True, mode="json", include={"question_id", "user_answer", "locked"}),
            "remainingSeconds": session.remaining_seconds(),
            "feedback": feedback,
        }

    def submit(self, user_id: str, attempt_id: str, submission: Submission) -> Attempt:
        """Grade and close the attempt; returns the full attempt record."""
        attempt = self._load_attempt(user_id, attempt_id)
        quiz = self.get_quiz(attempt.quiz_id)
        session = self._session_for(quiz, attempt)
        answers = {a.question_id: a.user_answer for a in submission.answers}
        result = session.submit(answers, client_time_spent=submission.time_spent)
        return self.attempt_repo.update(result)

    def review(self, user_id: str, attempt_id: str) -> ReviewBundle:
        attempt = self._load_attempt(user_id, attempt_id)
        quiz = self.get_quiz(attempt.quiz_id)
        attempt = self._expire_if_stale(attempt, quiz)
        session = self._session_for(quiz, attempt)
        bundle = session.review()
        self.attempt_repo.update(session.attempt)
        return bundle

    def questions(self, user_id: str, attempt_id: str) -> list:
        """The attempt's question snapshot as shown to the student."""
        return present_questions(self._load_attempt(user_id, attempt_id))

    def list_attempts(self, user_id: str, quiz_id: Optional[str] = None) -> List[Attempt]:
        attempts = self.attempt_repo.list_by_user(user_id, quiz_id)
        return [self._expire_if_stale(a) if not a.is_terminal else a for a in attempts]

    def expire_stale_attempts(self) -> int:
        """Expire every stale in-progress attempt; returns how many."""
        expired = 0
        for attempt in self.attempt_repo.list_in_progress():
            if self.policy.is_stale(attempt, self.clock.now()):
                self._expire(self.get_quiz(attempt.quiz_id), attempt)
                expired += 1
        return expired

    def quiz_analytics(self, quiz_id: str) -> dict:
        quiz = self.get_quiz(quiz_id)
        return analytics.quiz_analytics(quiz, self.attempt_repo.list_by_quiz(quiz_id))

    def student_progress(self, quiz_id: str) -> list:
        quiz = self.get_quiz(quiz_id)
        return analytics.student_progress(quiz, self.attempt_repo.list_by_quiz(quiz_id))
