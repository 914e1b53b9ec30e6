"""Tests for workbook import."""

import pandas as pd
import pytest

from quizdesk.import_excel import _frame_to_questions, import_workbook
from quizdesk.store import QuestionStore


def _rows(count, answer="A"):
    return pd.DataFrame(
        [
            {
                "question": f"Q{n}?",
                "optionA": "a",
                "optionB": "b",
                "optionC": "c",
                "optionD": "d",
                "correctAnswer": answer,
            }
            for n in range(count)
        ]
    )


def test_frame_to_questions_requires_columns():
    with pytest.raises(ValueError) as err:
        _frame_to_questions(pd.DataFrame([{"question": "Q?"}]), 1)
    assert "optionA" in str(err.value)


def test_frame_to_questions_skips_blank_cells():
    df = _rows(2, answer="b")
    df.loc[1, "optionC"] = None
    questions, skipped = _frame_to_questions(df, 1)
    assert len(questions) == 1
    assert questions[0].correct_answer == "B"
    assert skipped == 1


def test_import_workbook_sheet_per_application(tmp_path, conn, db_path):
    workbook = tmp_path / "questions.xlsx"
    with pd.ExcelWriter(workbook, engine="openpyxl") as writer:
        _rows(4).to_excel(writer, sheet_name="RoadOps", index=False)
        _rows(2, answer="C").to_excel(writer, sheet_name="UES", index=False)
        _rows(1).to_excel(writer, sheet_name="Unknown", index=False)

    imported = import_workbook(str(db_path), str(workbook))
    assert imported == {"RoadOps": 4, "UES": 2}

    store = QuestionStore(lambda: conn)
    assert store.get_application_by_name("RoadOps").question_pool_size == 4
    ues = store.get_application_by_name("UES")
    assert {q.correct_answer for q in store.questions_for_application(ues.id)} == {"C"}
