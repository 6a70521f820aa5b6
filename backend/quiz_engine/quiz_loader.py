"""Load and validate quiz definitions.

Quiz definitions reach the engine as JSON documents (dicts, text or raw
bytes). Loading is the single place where a definition can be rejected:
unknown question kinds, duplicate ids and inconsistent answer keys all
raise `QuizConfigurationError` here, so grading never has to cope with a
malformed quiz.

Two legacy shapes are still accepted:

- the `MULTIPLE_CHOICE` discriminator, which is split into
  `SINGLE_CHOICE` or `MULTI_SELECT` depending on its answer key;
- quizzes stored as JSON text inside a lesson's content field
  (`load_quiz_from_lesson_content`).
"""

import json
import logging
from typing import Union

from pydantic import ValidationError

from .exceptions import QuizConfigurationError
from .schemas import QuestionType, Quiz

logger = logging.getLogger("quiz_engine.loader")

LEGACY_MULTIPLE_CHOICE = "MULTIPLE_CHOICE"


def _normalize_question(raw):
    if not isinstance(raw, dict):
        return raw
    if raw.get("type") != LEGACY_MULTIPLE_CHOICE:
        return raw
    correct = raw.get("correctAnswer", raw.get("correct_answer"))
    if isinstance(correct, (list, tuple)):
        new_type = QuestionType.MULTI_SELECT.value
    else:
        new_type = QuestionType.SINGLE_CHOICE.value
    return {**raw, "type": new_type}


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def load_quiz(payload: Union[dict, str, bytes]) -> Quiz:
    """Validate a quiz definition and return an immutable `Quiz`.

    Accepts a parsed dict or JSON text/bytes. Raises
    `QuizConfigurationError` describing every problem found.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as e:
            raise QuizConfigurationError(f"quiz definition is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise QuizConfigurationError("quiz definition must be a JSON object")
    data = dict(payload)
    # stored documents may carry a database-style id key
    if "id" not in data and "_id" in data:
        data["id"] = data["_id"]
    questions = data.get("questions")
    if isinstance(questions, list):
        data["questions"] = [_normalize_question(q) for q in questions]
    try:
        quiz = Quiz.model_validate(data)
    except ValidationError as e:
        message = _format_errors(e)
        logger.warning("quiz_rejected %s", json.dumps({"quiz_id": data.get("id"), "errors": message}))
        raise QuizConfigurationError(f"invalid quiz definition: {message}") from e
    return quiz


def load_quiz_from_lesson_content(content: str, quiz_id: str = None) -> Quiz:
    """Load a quiz that was serialised as JSON inside a lesson's text content.

    Older lessons kept the whole quiz document in their free-text
    `content` field. `quiz_id` fills in the id when the embedded document
    has none (typically the lesson id).
    """
    if not content or not content.strip():
        raise QuizConfigurationError("lesson content is empty")
    try:
        data = json.loads(content)
    except ValueError as e:
        raise QuizConfigurationError(f"lesson content is not a quiz JSON document: {e}") from e
    if isinstance(data, dict) and quiz_id and not data.get("id") and not data.get("_id"):
        data["id"] = quiz_id
    return load_quiz(data)
