"""Replace an application's question pool from a CSV file.

Usage: python scripts/load_questions.py RoadOps questions.csv [--db path]
"""
from __future__ import annotations

import argparse
import sys

from quizdesk.csv_import import import_questions_csv
from quizdesk.db_utils import open_connection, resolve_db_path
from quizdesk.errors import QuizError
from quizdesk.init_db import initialize_database
from quizdesk.store import QuestionStore


def main() -> int:
    parser = argparse.ArgumentParser(description="Load a question CSV into one application")
    parser.add_argument("application", help="Application name, e.g. RoadOps")
    parser.add_argument("csv_path", help="CSV with question,optionA..optionD,correctAnswer")
    parser.add_argument("--db", default=None, help="Database file path (defaults to $QUIZ_DB)")
    args = parser.parse_args()

    conn = open_connection(args.db)
    try:
        initialize_database(conn)
        store = QuestionStore(lambda: conn)
        app = store.get_application_by_name(args.application)
        if app is None:
            print(f"[ERROR] No application named '{args.application}' in {resolve_db_path(args.db)}")
            return 1
        try:
            with open(args.csv_path, newline="", encoding="utf-8-sig") as handle:
                parsed = import_questions_csv(store, app.id, handle)
        except OSError as exc:
            print(f"[ERROR] Cannot read {args.csv_path}: {exc}")
            return 1
        except QuizError as exc:
            print(f"[ERROR] {exc.message}")
            return 1
    finally:
        conn.close()

    print(f"[OK] {app.name}: imported {parsed.imported} question(s), skipped {parsed.skipped}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
