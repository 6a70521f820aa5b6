"""Errors raised by the quiz engine.

Every error carries a `status_code` so the HTTP layer can translate it
into an `HTTPException` without a lookup table of its own. The engine
never retries: errors surface synchronously to the caller.
"""

from typing import Optional


class QuizEngineError(Exception):
    """Base class for all engine errors."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class QuizConfigurationError(QuizEngineError):
    """The quiz definition is invalid and was rejected at load time."""
    status_code = 422


class QuizNotFoundError(QuizEngineError):
    status_code = 404


class AttemptNotFoundError(QuizEngineError):
    status_code = 404


class AttemptInProgressError(QuizEngineError):
    """An attempt for this user and quiz is already running.

    `attempt_id` names the attempt the caller should resume, when known.
    """
    status_code = 409

    def __init__(self, message: str, attempt_id: Optional[str] = None):
        super().__init__(message)
        self.attempt_id = attempt_id


class MaxAttemptsExceededError(QuizEngineError):
    status_code = 403


class RetakeNotAllowedError(QuizEngineError):
    status_code = 403


class NoActiveAttemptError(QuizEngineError):
    status_code = 409


class InvalidTransitionError(QuizEngineError):
    status_code = 409


class UnknownQuestionError(QuizEngineError):
    status_code = 400


class QuestionLockedError(QuizEngineError):
    status_code = 409


class AnswerOrderError(QuizEngineError):
    status_code = 409


class TimeLimitExceededError(QuizEngineError):
    """The time limit ran out; the attempt has been force-submitted."""
    status_code = 409
