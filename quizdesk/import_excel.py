"""
Excel import utilities for the quiz service.
Loads question pools from a workbook with one sheet per application name.
"""

import argparse
import logging
from typing import Dict

import pandas as pd

from .csv_import import REQUIRED_HEADERS
from .db_utils import open_connection
from .init_db import initialize_database
from .models import Question
from .store import QuestionStore

logger = logging.getLogger(__name__)


def _frame_to_questions(df: pd.DataFrame, application_id: int):
    """Turn sheet rows into usable questions; incomplete rows are dropped."""
    missing_cols = [col for col in REQUIRED_HEADERS if col not in df.columns]
    if missing_cols:
        raise ValueError(f"Missing columns: {missing_cols}")

    questions = []
    skipped = 0
    for _, row in df.iterrows():
        values = {
            col: "" if pd.isna(row[col]) else str(row[col]).strip()
            for col in REQUIRED_HEADERS
        }
        question = Question(
            id=0,
            application_id=application_id,
            text=values["question"],
            options={
                "A": values["optionA"],
                "B": values["optionB"],
                "C": values["optionC"],
                "D": values["optionD"],
            },
            correct_answer=values["correctAnswer"].upper(),
        )
        if question.is_usable():
            questions.append(question)
        else:
            skipped += 1
    return questions, skipped


def import_workbook(db_path: str, workbook_path: str) -> Dict[str, int]:
    """Replace the pool of every application that has a sheet in the workbook."""
    print(f"Importing questions from {workbook_path}...")
    sheets = pd.read_excel(workbook_path, sheet_name=None, dtype=str)

    conn = open_connection(db_path)
    try:
        initialize_database(conn)
        store = QuestionStore(lambda: conn)
        imported: Dict[str, int] = {}
        for sheet_name, df in sheets.items():
            app = store.get_application_by_name(str(sheet_name).strip())
            if app is None:
                print(f"Warning: no application named '{sheet_name}', sheet skipped")
                continue
            questions, skipped = _frame_to_questions(df, app.id)
            if not questions:
                print(f"Warning: sheet '{sheet_name}' has no valid questions, pool left unchanged")
                continue
            imported[app.name] = store.replace_questions(app.id, questions)
            logger.info("[IMPORT] %s: %s question(s), %s skipped", app.name, imported[app.name], skipped)
        print(f"Successfully imported {sum(imported.values())} questions")
        return imported
    finally:
        conn.close()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description="Import question workbooks into the quiz database")
    parser.add_argument("--db", default=None, help="Database file path (defaults to $QUIZ_DB)")
    parser.add_argument("--workbook", required=True, help="Excel file with one sheet per application")

    args = parser.parse_args()

    try:
        import_workbook(args.db, args.workbook)
        print("Import completed successfully!")
    except Exception as e:
        print(f"Import failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    exit(main())
