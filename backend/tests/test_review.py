import pytest

from quiz_engine.exceptions import InvalidTransitionError
from quiz_engine.quiz_loader import load_quiz
from quiz_engine.review import assemble, present_questions
from quiz_engine.session import AttemptSession


def _graded(quiz, clock, answers):
    session = AttemptSession(quiz, "u1", clock=clock)
    session.start()
    return session.submit(answers)


def test_full_review(make_quiz, clock):
    quiz = make_quiz()
    attempt = _graded(quiz, clock, {"q1": "Lyon", "q2": "Rome"})
    bundle = assemble(attempt, quiz)
    assert bundle.score == 33
    assert bundle.passed is False
    assert bundle.earned_points == 5
    assert bundle.total_points == 15
    first, second = bundle.items
    assert first.question_id == "q1"
    assert first.user_answer == "Lyon"
    assert first.is_correct is False
    assert first.correct_answer == "Paris"
    assert first.explanation.startswith("Paris")
    assert second.is_correct is True
    assert second.points_earned == 5


def test_hidden_answer_key(make_quiz, clock):
    quiz = make_quiz(showCorrectAnswers=False)
    bundle = assemble(_graded(quiz, clock, {"q1": "Lyon"}), quiz)
    assert all(item.correct_answer is None for item in bundle.items)
    assert bundle.items[0].is_correct is False
    assert bundle.score == 0


def test_hidden_score(make_quiz, clock):
    quiz = make_quiz(showScoreImmediately=False)
    bundle = assemble(_graded(quiz, clock, {"q1": "Paris"}), quiz)
    assert bundle.score is None
    assert bundle.passed is None
    assert bundle.items[0].is_correct is None
    assert bundle.items[0].points_earned is None
    # explanations stay visible
    assert bundle.items[0].explanation is not None


def test_review_requires_graded_attempt(make_quiz, clock):
    quiz = make_quiz()
    attempt = AttemptSession(quiz, "u1", clock=clock).start()
    with pytest.raises(InvalidTransitionError):
        assemble(attempt, quiz)


def test_assemble_does_not_change_attempt(make_quiz, clock):
    quiz = make_quiz()
    attempt = _graded(quiz, clock, {"q1": "Paris"})
    before = attempt.model_dump()
    assemble(attempt, quiz)
    assert attempt.model_dump() == before


def test_essay_review_shows_rubric_and_pending_flag(clock):
    quiz = load_quiz({
        "id": "essay-quiz",
        "title": "Essay",
        "questions": [
            {
                "id": "e1",
                "type": "ESSAY",
                "question": "Discuss the causes of the French Revolution.",
                "points": 20,
                "keywords": ["debt", "bread"],
                "rubric": [{"criteria": "Argument", "points": 10}, {"criterion": "Evidence", "points": 10}],
            },
        ],
    })
    attempt = _graded(quiz, clock, {"e1": "Debt and the price of bread."})
    assert attempt.pending_review_count == 1
    item = assemble(attempt, quiz).items[0]
    assert item.pending_review is True
    assert item.is_correct is False
    assert [c.criterion for c in item.rubric] == ["Argument", "Evidence"]
    assert item.keywords == ("debt", "bread")


def test_present_questions_hides_answers(make_quiz, clock):
    attempt = AttemptSession(make_quiz(), "u1", clock=clock).start()
    views = present_questions(attempt)
    assert [v.id for v in views] == ["q1", "q2"]
    dumped = views[0].model_dump(by_alias=True)
    assert dumped["question"] == "Capital of France?"
    assert "correctAnswer" not in dumped
    assert "explanation" not in dumped


def test_review_bundle_serialises_camel_case(make_quiz, clock):
    quiz = make_quiz()
    data = assemble(_graded(quiz, clock, {}), quiz).model_dump(by_alias=True, mode="json")
    assert data["attemptId"]
    assert data["timeSpentSeconds"] == 0
    assert data["items"][0]["pointsPossible"] == 10
