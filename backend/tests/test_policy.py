from datetime import timedelta

import pytest

from quiz_engine.exceptions import AttemptInProgressError, MaxAttemptsExceededError, RetakeNotAllowedError
from quiz_engine.policy import (
    DENY_ALREADY_PASSED,
    DENY_IN_PROGRESS,
    DENY_MAX_ATTEMPTS,
    AttemptPolicy,
    PriorAttempts,
)
from quiz_engine.session import AttemptSession


def test_first_attempt_is_number_one(make_quiz):
    decision = AttemptPolicy().can_start("u1", make_quiz(), PriorAttempts())
    assert decision.allowed is True
    assert decision.attempt_number == 1


def test_attempt_number_follows_completed_count(make_quiz):
    decision = AttemptPolicy().can_start("u1", make_quiz(), PriorAttempts(completed_count=3))
    assert decision.attempt_number == 4


def test_denied_while_in_progress(make_quiz):
    decision = AttemptPolicy().can_start("u1", make_quiz(), PriorAttempts(in_progress_id="a1"))
    assert decision.allowed is False
    assert decision.reason == DENY_IN_PROGRESS
    with pytest.raises(AttemptInProgressError) as exc:
        AttemptPolicy().ensure_can_start("u1", make_quiz(), PriorAttempts(in_progress_id="a1"))
    assert exc.value.attempt_id == "a1"


def test_max_attempts_cap(make_quiz):
    quiz = make_quiz(maxAttempts=2)
    policy = AttemptPolicy()
    assert policy.can_start("u1", quiz, PriorAttempts(completed_count=1)).allowed is True
    decision = policy.can_start("u1", quiz, PriorAttempts(completed_count=2))
    assert decision.allowed is False
    assert decision.reason == DENY_MAX_ATTEMPTS
    with pytest.raises(MaxAttemptsExceededError):
        policy.ensure_can_start("u1", quiz, PriorAttempts(completed_count=2))


def test_unlimited_attempts_when_unset(make_quiz):
    assert AttemptPolicy().can_start("u1", make_quiz(), PriorAttempts(completed_count=50)).allowed is True


def test_retake_after_pass_is_configurable(make_quiz):
    prior = PriorAttempts(completed_count=1, has_passed=True)
    assert AttemptPolicy().can_start("u1", make_quiz(), prior).allowed is True
    strict = AttemptPolicy(allow_retake_after_pass=False)
    decision = strict.can_start("u1", make_quiz(), prior)
    assert decision.reason == DENY_ALREADY_PASSED
    with pytest.raises(RetakeNotAllowedError):
        strict.ensure_can_start("u1", make_quiz(), prior)


def test_prior_attempts_from_attempts(make_quiz, clock):
    quiz = make_quiz()
    done = AttemptSession(quiz, "u1", clock=clock)
    done.start()
    done.submit({"q1": "Paris", "q2": "Rome"})
    running = AttemptSession(quiz, "u1", clock=clock)
    running.start(PriorAttempts(completed_count=1))
    prior = PriorAttempts.from_attempts([done.attempt, running.attempt])
    assert prior.completed_count == 1
    assert prior.in_progress_id == running.attempt.id
    assert prior.has_passed is True


def test_stale_by_ttl_and_deadline(make_quiz, clock):
    policy = AttemptPolicy(attempt_ttl_seconds=3600)
    untimed = AttemptSession(make_quiz(), "u1", clock=clock).start()
    assert policy.is_stale(untimed, clock.now()) is False
    assert policy.is_stale(untimed, clock.now() + timedelta(seconds=3600)) is True

    timed = AttemptSession(make_quiz(timeLimit=5), "u2", clock=clock).start()
    assert policy.is_stale(timed, clock.now() + timedelta(seconds=299)) is False
    assert policy.is_stale(timed, clock.now() + timedelta(seconds=300)) is True


def test_closed_attempts_are_never_stale(make_quiz, clock):
    session = AttemptSession(make_quiz(), "u1", clock=clock)
    session.start()
    session.submit({})
    assert AttemptPolicy(attempt_ttl_seconds=1).is_stale(session.attempt, clock.now() + timedelta(days=3)) is False
