"""Attempt eligibility rules.

`AttemptPolicy.can_start` decides whether a user may open a new attempt
on a quiz, given a summary of their earlier attempts. It only enforces
the numeric attempt cap and the single-running-attempt rule; whether a
user who already passed may retake is a configuration flag.

The policy also defines when an abandoned in-progress attempt is stale
and should be expired (see `is_stale`).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .exceptions import AttemptInProgressError, MaxAttemptsExceededError, RetakeNotAllowedError
from .schemas import Attempt, AttemptStatus, Quiz, TERMINAL_STATUSES

DENY_IN_PROGRESS = "attempt_in_progress"
DENY_MAX_ATTEMPTS = "max_attempts_exceeded"
DENY_ALREADY_PASSED = "already_passed"


@dataclass(frozen=True)
class PriorAttempts:
    """What the policy needs to know about a user's earlier attempts."""
    completed_count: int = 0
    in_progress_id: Optional[str] = None
    has_passed: bool = False

    @classmethod
    def from_attempts(cls, attempts: Iterable[Attempt]) -> "PriorAttempts":
        completed = 0
        running = None
        passed = False
        for a in attempts:
            if a.status in TERMINAL_STATUSES:
                completed += 1
                passed = passed or a.passed
            elif a.status == AttemptStatus.IN_PROGRESS:
                running = a.id
        return cls(completed_count=completed, in_progress_id=running, has_passed=passed)


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    attempt_number: Optional[int] = None


class AttemptPolicy:
    """Decide whether a new attempt may start.

    `allow_retake_after_pass` controls whether a user who already passed
    may start another attempt (for example to improve their score).
    `attempt_ttl_seconds` bounds how long an untouched in-progress attempt
    may squat before it is considered stale.
    """

    def __init__(self, allow_retake_after_pass: bool = True, attempt_ttl_seconds: Optional[int] = None):
        self.allow_retake_after_pass = allow_retake_after_pass
        self.attempt_ttl_seconds = attempt_ttl_seconds

    def can_start(self, user_id: str, quiz: Quiz, prior: PriorAttempts) -> PolicyDecision:
        if prior.in_progress_id is not None:
            return PolicyDecision(
                allowed=False,
                reason=DENY_IN_PROGRESS,
                message=f"user {user_id} already has attempt {prior.in_progress_id} in progress on quiz {quiz.id}",
            )
        if quiz.max_attempts is not None and prior.completed_count >= quiz.max_attempts:
            return PolicyDecision(
                allowed=False,
                reason=DENY_MAX_ATTEMPTS,
                message=f"maximum attempts ({quiz.max_attempts}) exceeded",
            )
        if prior.has_passed and not self.allow_retake_after_pass:
            return PolicyDecision(
                allowed=False,
                reason=DENY_ALREADY_PASSED,
                message="quiz already passed; retakes are disabled",
            )
        return PolicyDecision(allowed=True, attempt_number=prior.completed_count + 1)

    def ensure_can_start(self, user_id: str, quiz: Quiz, prior: PriorAttempts) -> int:
        """Like `can_start` but raise on denial; returns the attempt number."""
        decision = self.can_start(user_id, quiz, prior)
        if decision.allowed:
            return decision.attempt_number
        if decision.reason == DENY_IN_PROGRESS:
            raise AttemptInProgressError(decision.message, attempt_id=prior.in_progress_id)
        if decision.reason == DENY_MAX_ATTEMPTS:
            raise MaxAttemptsExceededError(decision.message)
        raise RetakeNotAllowedError(decision.message)

    def is_stale(self, attempt: Attempt, now: datetime) -> bool:
        """True if an in-progress attempt should be expired.

        An attempt is stale once its time limit has run out on the server
        clock, or once it has been open longer than the TTL.
        """
        if attempt.status != AttemptStatus.IN_PROGRESS:
            return False
        deadline = attempt.deadline
        if deadline is not None and now >= deadline:
            return True
        if self.attempt_ttl_seconds is not None:
            return now >= attempt.started_at + timedelta(seconds=self.attempt_ttl_seconds)
        return False
