"""CLI script to expire stale in-progress quiz attempts.
Usage: python scripts/expire_attempts.py

Attempts past their time limit, or open longer than ATTEMPT_TTL_SECONDS,
are closed through the timeout path and graded with the answers they have.
"""
import sys
import pathlib
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from quiz_engine.database import engine, create_db_and_tables
from quiz_engine import services


def main() -> int:
    create_db_and_tables()
    with Session(engine) as session:
        expired = services.QuizAttemptService(session).expire_stale_attempts()
    print(f'Expired {expired} stale attempts')
    return expired


if __name__ == '__main__':
    main()
