"""Parsing of question CSV files (question,optionA..optionD,correctAnswer)."""
from __future__ import annotations

import codecs
import csv
import logging
from dataclasses import dataclass, field
from typing import IO, Iterable, List, Union

from .errors import CsvImportError
from .models import Question
from .store import QuestionStore

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ["question", "optionA", "optionB", "optionC", "optionD", "correctAnswer"]

SAMPLE_CSV = (
    "question,optionA,optionB,optionC,optionD,correctAnswer\n"
    '"What is the size of int in Java?","16 bits","32 bits","64 bits","8 bits","B"\n'
    '"Which of the following is not a Java keyword?","static","Boolean","void","private","B"\n'
    '"What is the default value of boolean variable in Java?","true","false","0","null","B"\n'
)


@dataclass
class CsvParseResult:
    questions: List[Question] = field(default_factory=list)
    skipped: int = 0

    @property
    def imported(self) -> int:
        return len(self.questions)


def is_csv_upload(filename: str, mimetype: str = "") -> bool:
    return (filename or "").lower().endswith(".csv") or (mimetype or "").lower() in {
        "text/csv",
        "application/csv",
    }


def _text_stream(source: Union[IO[bytes], IO[str], Iterable[str]]) -> Iterable[str]:
    """Yield text lines from a binary upload stream or pass text through."""
    if hasattr(source, "read") and isinstance(source.read(0), bytes):
        return codecs.iterdecode(source, "utf-8-sig")  # type: ignore[arg-type]
    return source  # type: ignore[return-value]


def _row_to_question(row: dict, application_id: int) -> Question:
    values = {key: (row.get(key) or "").strip() for key in REQUIRED_HEADERS}
    return Question(
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


def parse_questions_csv(source, application_id: int = 0) -> CsvParseResult:
    """Read rows one at a time; rows with a missing field or bad key are skipped."""
    reader = csv.DictReader(_text_stream(source))
    fieldnames = [(name or "").strip().lstrip("\ufeff") for name in (reader.fieldnames or [])]
    missing = [h for h in REQUIRED_HEADERS if h not in fieldnames]
    if missing:
        raise CsvImportError(
            f"CSV headers must include {','.join(REQUIRED_HEADERS)}. Missing: {','.join(missing)}"
        )
    reader.fieldnames = fieldnames

    result = CsvParseResult()
    for raw in reader:
        question = _row_to_question(raw, application_id)
        if question.is_usable():
            result.questions.append(question)
        else:
            result.skipped += 1
    return result


def import_questions_csv(store: QuestionStore, application_id: int, source) -> CsvParseResult:
    """Replace an application's pool with the valid rows of a CSV file."""
    parsed = parse_questions_csv(source, application_id)
    if not parsed.questions:
        raise CsvImportError("No valid questions found in CSV")
    store.replace_questions(application_id, parsed.questions)
    logger.info(
        "[UPLOAD] application=%s imported=%s skipped=%s",
        application_id,
        parsed.imported,
        parsed.skipped,
    )
    return parsed


__all__ = [
    "REQUIRED_HEADERS",
    "SAMPLE_CSV",
    "CsvParseResult",
    "is_csv_upload",
    "parse_questions_csv",
    "import_questions_csv",
]
