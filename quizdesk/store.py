"""Data access for applications and their question pools."""
from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .errors import DuplicateName, InvalidArgument, NotFound, StoreUnavailable
from .models import Application, Question

logger = logging.getLogger(__name__)

Connect = Callable[[], sqlite3.Connection]

_APPLICATION_SELECT = """
    SELECT a.application_id, a.name, a.description, a.max_questions,
           (SELECT COUNT(*) FROM question q WHERE q.application_id = a.application_id) AS pool_size
    FROM application a
"""

_QUESTION_COLUMNS = (
    "question_id, application_id, question, option_a, option_b, option_c, option_d, correct_answer"
)


def _row_to_application(row: sqlite3.Row) -> Application:
    return Application(
        id=int(row["application_id"]),
        name=row["name"],
        description=row["description"] or "",
        question_pool_size=int(row["pool_size"] or 0),
        max_questions_per_attempt=int(row["max_questions"]),
    )


def _row_to_question(row: sqlite3.Row) -> Question:
    return Question(
        id=int(row["question_id"]),
        application_id=int(row["application_id"]),
        text=row["question"],
        options={
            "A": row["option_a"],
            "B": row["option_b"],
            "C": row["option_c"],
            "D": row["option_d"],
        },
        correct_answer=row["correct_answer"],
    )


class QuestionStore:
    """Durable catalog of applications and questions backed by SQLite.

    ``connect`` returns an open connection; inside Flask it is ``get_db`` so
    every request reuses its own connection.
    """

    name = "database"

    def __init__(self, connect: Connect) -> None:
        self._connect = connect

    def _conn(self) -> sqlite3.Connection:
        try:
            return self._connect()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Database connection failed: {exc}") from exc

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        conn = self._conn()
        try:
            return conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Database query failed: {exc}") from exc

    # --- applications ---

    def list_applications(self) -> List[Application]:
        rows = self._query(_APPLICATION_SELECT + " ORDER BY a.name")
        return [_row_to_application(r) for r in rows]

    def get_application(self, application_id: int) -> Optional[Application]:
        rows = self._query(_APPLICATION_SELECT + " WHERE a.application_id = ?", (application_id,))
        return _row_to_application(rows[0]) if rows else None

    def get_application_by_name(self, name: str) -> Optional[Application]:
        rows = self._query(_APPLICATION_SELECT + " WHERE a.name = ?", (name,))
        return _row_to_application(rows[0]) if rows else None

    def create_application(self, name: str, description: str = "", max_questions: int = 25) -> Application:
        name = (name or "").strip()
        if not name:
            raise InvalidArgument("Application name is required")
        if max_questions < 1:
            raise InvalidArgument("maxQuestionsPerAttempt must be at least 1")
        conn = self._conn()
        try:
            cur = conn.execute(
                "INSERT INTO application (name, description, max_questions) VALUES (?,?,?)",
                (name, description or "", max_questions),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise DuplicateName(f"Application '{name}' already exists") from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Database write failed: {exc}") from exc
        logger.info("[STORE] created application %s (%s)", cur.lastrowid, name)
        return self.get_application(int(cur.lastrowid))  # type: ignore[return-value]

    def update_application(
        self,
        application_id: int,
        max_questions: Optional[int] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Application:
        """Update an application.

        ``max_questions`` is clamped to the current pool size when the pool is
        non-empty, so the stored cap never promises more than can be served.
        """
        app = self.get_application(application_id)
        if app is None:
            raise NotFound(f"Application {application_id} not found")

        changes: Dict[str, Any] = {}
        if max_questions is not None:
            if max_questions < 1:
                raise InvalidArgument("maxQuestionsPerAttempt must be at least 1")
            if app.question_pool_size:
                max_questions = min(max_questions, app.question_pool_size)
            changes["max_questions"] = max_questions
        if name is not None:
            name = name.strip()
            if not name:
                raise InvalidArgument("Application name cannot be empty")
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if not changes:
            return app

        assignments = ", ".join(f"{col}=?" for col in changes)
        conn = self._conn()
        try:
            conn.execute(
                f"UPDATE application SET {assignments}, updated_at=datetime('now') WHERE application_id=?",
                (*changes.values(), application_id),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise DuplicateName(f"Application '{changes.get('name')}' already exists") from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Database write failed: {exc}") from exc
        return self.get_application(application_id)  # type: ignore[return-value]

    # --- questions ---

    def questions_for_application(self, application_id: int) -> List[Question]:
        rows = self._query(
            f"SELECT {_QUESTION_COLUMNS} FROM question WHERE application_id=? ORDER BY question_id",
            (application_id,),
        )
        return [_row_to_question(r) for r in rows]

    def questions_by_ids(self, application_id: int, question_ids: Sequence[int]) -> List[Question]:
        """Return the questions in ``question_ids`` order, skipping ids no longer stored."""
        if not question_ids:
            return []
        placeholders = ",".join(["?"] * len(question_ids))
        rows = self._query(
            f"SELECT {_QUESTION_COLUMNS} FROM question WHERE application_id=? AND question_id IN ({placeholders})",
            (application_id, *question_ids),
        )
        by_id = {int(r["question_id"]): _row_to_question(r) for r in rows}
        return [by_id[qid] for qid in question_ids if qid in by_id]

    def replace_questions(self, application_id: int, questions: Iterable[Question]) -> int:
        """Swap the whole pool of an application in one transaction.

        Readers on other connections keep seeing the previous pool until the
        commit; any failure rolls back to it.
        """
        if self.get_application(application_id) is None:
            raise NotFound(f"Application {application_id} not found")

        conn = self._conn()
        inserted = 0
        try:
            conn.execute("DELETE FROM question WHERE application_id=?", (application_id,))
            for q in questions:
                conn.execute(
                    """
                    INSERT INTO question (application_id, question, option_a, option_b, option_c, option_d, correct_answer)
                    VALUES (?,?,?,?,?,?,?)
                    """,
                    (
                        application_id,
                        q.text,
                        q.options.get("A", ""),
                        q.options.get("B", ""),
                        q.options.get("C", ""),
                        q.options.get("D", ""),
                        q.correct_answer,
                    ),
                )
                inserted += 1
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Question import failed: {exc}") from exc
        except Exception:
            conn.rollback()
            raise
        logger.info("[STORE] application %s now has %s question(s)", application_id, inserted)
        return inserted

    def summary(self) -> Dict[str, int]:
        rows = self._query(
            """
            SELECT
              (SELECT COUNT(*) FROM application) AS total_applications,
              (SELECT COUNT(*) FROM question)    AS total_questions,
              (SELECT COUNT(*) FROM quiz_result) AS total_quizzes
            """
        )
        return {key: int(rows[0][key] or 0) for key in rows[0].keys()}


__all__ = ["QuestionStore"]
