"""FastAPI application entrypoint and HTTP controllers.

Controllers are intentionally thin: they resolve the current user,
delegate to services and return JSON. Engine errors are translated to
HTTP responses by a single exception handler using each error's
`status_code`.

Endpoints implemented:
- POST /quizzes (instructors)
- GET /quizzes/{quiz_id}
- POST /quizzes/{quiz_id}/attempts
- GET /quizzes/{quiz_id}/attempts
- GET /quizzes/{quiz_id}/analytics (instructors)
- GET /quizzes/{quiz_id}/progress (instructors)
- GET /attempts/{attempt_id}/questions
- PUT /attempts/{attempt_id}/answers/{question_id}
- POST /attempts/{attempt_id}/submit
- GET /attempts/{attempt_id}/review
- GET /health
"""

import json
import logging
import time
import uuid

from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session

from . import services
from .auth import get_current_user_id, require_instructor
from .config import settings
from .database import create_db_and_tables, get_session
from .exceptions import AttemptInProgressError, QuizEngineError
from .schemas import AnswerUpdate, Attempt, Submission

app = FastAPI(title="Quiz Engine API")
logger = logging.getLogger("quiz_engine.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.exception_handler(QuizEngineError)
async def quiz_engine_error_handler(request: Request, exc: QuizEngineError):
    content = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, AttemptInProgressError) and exc.attempt_id:
        content["attemptId"] = exc.attempt_id
    return JSONResponse(status_code=exc.status_code, content=content)


def _attempt_out(attempt: Attempt) -> dict:
    # the question snapshot carries answer keys; reviews expose them selectively
    return attempt.model_dump(by_alias=True, mode="json", exclude={"questions"})


@app.post('/quizzes', status_code=201)
def import_quiz(payload: dict = Body(...), user_id: str = Depends(require_instructor), session: Session = Depends(get_session)):
    """Validate and store a quiz definition."""
    quiz = services.QuizImportService(session).import_quiz(payload)
    return {'id': quiz.id, 'questions': len(quiz.questions)}


@app.get('/quizzes/{quiz_id}')
def get_quiz(quiz_id: str, session: Session = Depends(get_session)):
    """Return a quiz as students see it (no answers or explanations)."""
    return services.QuizAttemptService(session).student_view(quiz_id)


@app.post('/quizzes/{quiz_id}/attempts', status_code=201)
def start_attempt(quiz_id: str, user_id: str = Depends(get_current_user_id), session: Session = Depends(get_session)):
    svc = services.QuizAttemptService(session)
    attempt = svc.start_attempt(user_id, quiz_id)
    return {
        'attempt': _attempt_out(attempt),
        'questions': [q.model_dump(by_alias=True, mode="json") for q in svc.questions(user_id, attempt.id)],
    }


@app.get('/quizzes/{quiz_id}/attempts')
def list_attempts(quiz_id: str, user_id: str = Depends(get_current_user_id), session: Session = Depends(get_session)):
    attempts = services.QuizAttemptService(session).list_attempts(user_id, quiz_id)
    return [_attempt_out(a) for a in attempts]


@app.get('/quizzes/{quiz_id}/analytics')
def quiz_analytics(quiz_id: str, user_id: str = Depends(require_instructor), session: Session = Depends(get_session)):
    return services.QuizAttemptService(session).quiz_analytics(quiz_id)


@app.get('/quizzes/{quiz_id}/progress')
def student_progress(quiz_id: str, user_id: str = Depends(require_instructor), session: Session = Depends(get_session)):
    return services.QuizAttemptService(session).student_progress(quiz_id)


@app.get('/attempts/{attempt_id}/questions')
def attempt_questions(attempt_id: str, user_id: str = Depends(get_current_user_id), session: Session = Depends(get_session)):
    questions = services.QuizAttemptService(session).questions(user_id, attempt_id)
    return [q.model_dump(by_alias=True, mode="json") for q in questions]


@app.put('/attempts/{attempt_id}/answers/{question_id}')
def answer_question(
    attempt_id: str,
    question_id: str,
    payload: AnswerUpdate,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    """Save one answer. Immediate-feedback quizzes also return its feedback."""
    return services.QuizAttemptService(session).answer(
        user_id, attempt_id, question_id, payload.user_answer, time_spent=payload.time_spent
    )


@app.post('/attempts/{attempt_id}/submit')
def submit_attempt(
    attempt_id: str,
    payload: Submission,
    user_id: str = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    attempt = services.QuizAttemptService(session).submit(user_id, attempt_id, payload)
    return _attempt_out(attempt)


@app.get('/attempts/{attempt_id}/review')
def review_attempt(attempt_id: str, user_id: str = Depends(get_current_user_id), session: Session = Depends(get_session)):
    bundle = services.QuizAttemptService(session).review(user_id, attempt_id)
    return bundle.model_dump(by_alias=True, mode="json")


@app.get("/health")
def health():
    return {"status": "ok"}
