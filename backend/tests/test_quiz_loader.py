import copy
import json

import pytest

from quiz_engine.exceptions import QuizConfigurationError
from quiz_engine.quiz_loader import load_quiz, load_quiz_from_lesson_content
from quiz_engine.schemas import ChoiceQuestion, QuestionType, SetQuestion


def _with_question(payload, **question):
    data = copy.deepcopy(payload)
    data["questions"].append({"id": "q3", "question": "Extra", "points": 1, **question})
    return data


def test_loads_camel_case_definition(quiz_payload):
    quiz = load_quiz(quiz_payload)
    assert quiz.id == "quiz-capitals"
    assert quiz.passing_score == 70
    assert quiz.questions[0].prompt == "Capital of France?"
    assert quiz.questions[0].correct_answer == "Paris"
    assert quiz.time_limit_seconds is None


def test_loads_json_text_and_bytes(quiz_payload):
    text = json.dumps(quiz_payload)
    assert load_quiz(text).id == "quiz-capitals"
    assert load_quiz(text.encode("utf-8")).id == "quiz-capitals"


def test_invalid_json_is_rejected():
    with pytest.raises(QuizConfigurationError):
        load_quiz("{not json")
    with pytest.raises(QuizConfigurationError):
        load_quiz("[1, 2]")


def test_database_style_id(quiz_payload):
    data = copy.deepcopy(quiz_payload)
    data["_id"] = data.pop("id")
    assert load_quiz(data).id == "quiz-capitals"


def test_time_limit_in_minutes(make_quiz):
    assert make_quiz(timeLimit=15).time_limit_seconds == 900


def test_unknown_question_type_is_rejected(quiz_payload):
    with pytest.raises(QuizConfigurationError) as exc:
        load_quiz(_with_question(quiz_payload, type="DRAG_AND_DROP", correctAnswer="x"))
    assert exc.value.status_code == 422


def test_missing_question_type_is_rejected(quiz_payload):
    with pytest.raises(QuizConfigurationError):
        load_quiz(_with_question(quiz_payload, correctAnswer="x"))


def test_legacy_multiple_choice_is_split(quiz_payload):
    single = load_quiz(_with_question(quiz_payload, type="MULTIPLE_CHOICE", options=["a", "b"], correctAnswer="a"))
    assert isinstance(single.questions[2], ChoiceQuestion)
    assert single.questions[2].type == QuestionType.SINGLE_CHOICE

    wrapped = load_quiz(_with_question(quiz_payload, type="MULTIPLE_CHOICE", options=["a", "b"], correctAnswer=["b"]))
    assert wrapped.questions[2].type == QuestionType.MULTI_SELECT
    assert wrapped.questions[2].correct_answer == ("b",)

    multi = load_quiz(_with_question(quiz_payload, type="MULTIPLE_CHOICE", options=["a", "b", "c"], correctAnswer=["a", "c"]))
    assert isinstance(multi.questions[2], SetQuestion)
    assert multi.questions[2].correct_answer == ("a", "c")


def test_true_false_gets_default_options(quiz_payload):
    quiz = load_quiz(_with_question(quiz_payload, type="TRUE_FALSE", correctAnswer="False"))
    assert quiz.questions[2].options == ("True", "False")


def test_correct_answer_must_be_an_option(quiz_payload):
    with pytest.raises(QuizConfigurationError):
        load_quiz(_with_question(quiz_payload, type="SINGLE_CHOICE", options=["a", "b"], correctAnswer="z"))
    with pytest.raises(QuizConfigurationError):
        load_quiz(_with_question(quiz_payload, type="MULTI_SELECT", options=["a", "b"], correctAnswer=["a", "z"]))


def test_duplicate_question_ids_are_rejected(quiz_payload):
    data = copy.deepcopy(quiz_payload)
    data["questions"][1]["id"] = "q1"
    with pytest.raises(QuizConfigurationError) as exc:
        load_quiz(data)
    assert "duplicate" in exc.value.message


def test_empty_quiz_and_non_positive_points_are_rejected(quiz_payload):
    with pytest.raises(QuizConfigurationError):
        load_quiz({**quiz_payload, "questions": []})
    data = copy.deepcopy(quiz_payload)
    data["questions"][0]["points"] = 0
    with pytest.raises(QuizConfigurationError):
        load_quiz(data)


def test_passing_score_range(quiz_payload):
    with pytest.raises(QuizConfigurationError):
        load_quiz({**quiz_payload, "passingScore": 120})


def test_questions_per_attempt_cannot_exceed_bank(quiz_payload):
    with pytest.raises(QuizConfigurationError):
        load_quiz({**quiz_payload, "questionsPerAttempt": 3})


def test_quiz_is_immutable(make_quiz):
    quiz = make_quiz()
    with pytest.raises(Exception):
        quiz.passing_score = 10


def test_lesson_content_migration(quiz_payload):
    data = copy.deepcopy(quiz_payload)
    del data["id"]
    quiz = load_quiz_from_lesson_content(json.dumps(data), quiz_id="lesson-42")
    assert quiz.id == "lesson-42"
    assert len(quiz.questions) == 2


def test_lesson_content_keeps_embedded_id(quiz_payload):
    quiz = load_quiz_from_lesson_content(json.dumps(quiz_payload), quiz_id="lesson-42")
    assert quiz.id == "quiz-capitals"


def test_lesson_content_must_be_json():
    with pytest.raises(QuizConfigurationError):
        load_quiz_from_lesson_content("   ", quiz_id="lesson-1")
    with pytest.raises(QuizConfigurationError):
        load_quiz_from_lesson_content("Read chapter 4 before class.", quiz_id="lesson-1")
