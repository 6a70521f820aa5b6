"""CLI script to import quiz definitions (JSON files) into the backend DB.
Usage: python scripts/import_quizzes.py FILE [FILE ...] [--lesson-content --lesson-id ID]
"""
import sys
import argparse
import pathlib
from typing import List, Optional
# Ensure `backend/` is on sys.path so `quiz_engine` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from quiz_engine.database import engine, create_db_and_tables
from quiz_engine.exceptions import QuizConfigurationError
from quiz_engine import services


def main(files: List[pathlib.Path], lesson_content: bool = False, lesson_id: Optional[str] = None) -> int:
    """Load each file as a quiz definition and store the valid ones.

    With `lesson_content` the files hold a lesson's text content with a
    quiz JSON document embedded in it (the legacy representation).
    Returns the number of rejected files.
    """
    create_db_and_tables()
    rejected = 0
    with Session(engine) as session:
        svc = services.QuizImportService(session)
        for f in files:
            try:
                if lesson_content:
                    quiz = svc.import_lesson_content(f.read_text(encoding='utf-8'), lesson_id or f.stem)
                else:
                    quiz = svc.import_quiz(f.read_bytes())
                print(f'Imported {f}: quiz {quiz.id} with {len(quiz.questions)} questions')
            except (OSError, QuizConfigurationError) as e:
                rejected += 1
                print(f'Rejected {f}: {e}')
    print(f'Imported {len(files) - rejected} of {len(files)} files')
    return rejected


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('files', nargs='+', type=pathlib.Path)
    parser.add_argument('--lesson-content', action='store_true', help='Files are lesson content with embedded quiz JSON')
    parser.add_argument('--lesson-id', help='Quiz id to use for embedded quizzes without one')
    args = parser.parse_args()
    sys.exit(1 if main(args.files, args.lesson_content, args.lesson_id) else 0)
