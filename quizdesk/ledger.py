"""Append-only store of completed quiz attempts and their statistics."""
from __future__ import annotations

import logging
import sqlite3
from collections import deque
from dataclasses import replace
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional

from .errors import NotFound, StoreUnavailable, ValidationError
from .models import Application, Result
from .store import QuestionStore

logger = logging.getLogger(__name__)

OFFLINE_LIMIT = 500

EXPORT_HEADERS = [
    "Name",
    "Email",
    "Application",
    "Score",
    "Total Questions",
    "Percentage",
    "Time Taken (seconds)",
    "Timestamp",
]

_RESULT_SELECT = """
    SELECT r.result_id, r.application_id, r.user_name, r.user_email, r.score,
           r.total_questions, r.percentage, r.time_taken_seconds, r.created_at,
           r.attempt_id, a.name AS application_name
    FROM quiz_result r
    LEFT JOIN application a ON a.application_id = r.application_id
"""


def percentage(score: int, total: int) -> int:
    """Whole-number percentage, rounding halves up (5/6 -> 83, 1/2 -> 50)."""
    if total <= 0:
        return 0
    value = Decimal(100 * score) / Decimal(total)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def bucket_for(pct: float) -> str:
    if pct >= 90:
        return "excellent"
    if pct >= 75:
        return "good"
    if pct >= 60:
        return "average"
    return "poor"


def aggregate_stats(results: Iterable[Result]) -> Dict[str, Any]:
    """Summaries for the admin panel; an empty input reports zeros."""
    values = [float(r.percentage) for r in results]
    buckets = {"excellent": 0, "good": 0, "average": 0, "poor": 0}
    for pct in values:
        buckets[bucket_for(pct)] += 1
    if not values:
        return {
            "count": 0,
            "meanPercentage": 0.0,
            "maxPercentage": 0.0,
            "minPercentage": 0.0,
            "bucketCounts": buckets,
        }
    return {
        "count": len(values),
        "meanPercentage": round(sum(values) / len(values), 1),
        "maxPercentage": max(values),
        "minPercentage": min(values),
        "bucketCounts": buckets,
    }


def _row_to_result(row: sqlite3.Row) -> Result:
    return Result(
        id=int(row["result_id"]),
        application_id=int(row["application_id"]),
        user_name=row["user_name"],
        user_email=row["user_email"],
        score=int(row["score"]),
        total_questions=int(row["total_questions"]),
        percentage=int(row["percentage"]),
        time_taken_seconds=int(row["time_taken_seconds"]),
        created_at=row["created_at"],
        application_name=row["application_name"],
        attempt_id=row["attempt_id"],
    )


class ResultLedger:
    """Durable results table with an in-memory overflow.

    ``applications`` resolves application ids during validation; the web app
    passes the availability coordinator so results for fallback tracks are
    accepted. Results that cannot be written (store down, or an application
    the store does not know) are kept in memory, newest ``OFFLINE_LIMIT`` only.
    """

    def __init__(
        self,
        connect: Callable[[], sqlite3.Connection],
        store: QuestionStore,
        applications=None,
    ) -> None:
        self._connect = connect
        self.store = store
        self.applications = applications or store
        self._offline: Deque[Result] = deque(maxlen=OFFLINE_LIMIT)

    def _conn(self) -> sqlite3.Connection:
        try:
            return self._connect()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Database connection failed: {exc}") from exc

    def validate(self, result: Result) -> Application:
        if not (result.user_name or "").strip():
            raise ValidationError("Name is required")
        if not (result.user_email or "").strip():
            raise ValidationError("Email is required")
        if result.total_questions <= 0:
            raise ValidationError("totalQuestions must be greater than zero")
        if result.score < 0 or result.score > result.total_questions:
            raise ValidationError("score must be between 0 and totalQuestions")
        if result.time_taken_seconds < 0:
            raise ValidationError("timeTaken cannot be negative")
        application = self.applications.get_application(result.application_id)
        if application is None:
            raise ValidationError(f"Unknown application {result.application_id}")
        return application

    def record(self, result: Result) -> Result:
        """Persist a completed attempt and return the stored copy.

        The caller's object is left untouched. The percentage is always
        derived from score/total. A result for an attempt that was already
        recorded returns the stored row instead of a duplicate.
        """
        application = self.validate(result)
        row = replace(
            result,
            id=None,
            user_name=result.user_name.strip(),
            user_email=result.user_email.strip(),
            percentage=percentage(result.score, result.total_questions),
            created_at=datetime.now(timezone.utc).isoformat(),
            application_name=application.name,
        )

        try:
            if self.store.get_application(row.application_id) is None:
                return self._keep_offline(row, "application is not in the database")
            conn = self._conn()
        except StoreUnavailable as exc:
            return self._keep_offline(row, exc.message)

        try:
            cur = conn.execute(
                """
                INSERT INTO quiz_result (application_id, user_name, user_email, score, total_questions,
                                         percentage, time_taken_seconds, created_at, attempt_id)
                VALUES (?,?,?,?,?,?,?,?,?)
                """,
                (
                    row.application_id,
                    row.user_name,
                    row.user_email,
                    row.score,
                    row.total_questions,
                    row.percentage,
                    row.time_taken_seconds,
                    row.created_at,
                    row.attempt_id,
                ),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if row.attempt_id is not None:
                existing = self.find_by_attempt(row.attempt_id)
                if existing is not None:
                    return existing
            raise ValidationError(f"Quiz result rejected: {exc}") from exc
        except sqlite3.Error as exc:
            conn.rollback()
            return self._keep_offline(row, str(exc))

        stored = self.get(int(cur.lastrowid))
        logger.info(
            "[RESULT] id=%s app=%s score=%s/%s pct=%s",
            stored.id,
            stored.application_id,
            stored.score,
            stored.total_questions,
            stored.percentage,
        )
        return stored

    def _keep_offline(self, row: Result, reason: str) -> Result:
        self._offline.append(row)
        logger.warning(
            "[RESULT] kept in memory (%s): %s <%s> app=%s score=%s/%s pct=%s",
            reason,
            row.user_name,
            row.user_email,
            row.application_id,
            row.score,
            row.total_questions,
            row.percentage,
        )
        return replace(row)

    def offline_results(self) -> List[Result]:
        return list(reversed(self._offline))

    def drop_offline(self) -> int:
        dropped = len(self._offline)
        self._offline.clear()
        return dropped

    def _select(self, where: str = "", params: Iterable[Any] = ()) -> List[Result]:
        conn = self._conn()
        try:
            rows = conn.execute(
                f"{_RESULT_SELECT} {where} ORDER BY r.created_at DESC, r.result_id DESC",
                tuple(params),
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not read quiz results: {exc}") from exc
        return [_row_to_result(r) for r in rows]

    def get(self, result_id: int) -> Result:
        rows = self._select("WHERE r.result_id = ?", (result_id,))
        if not rows:
            raise NotFound(f"Result {result_id} not found")
        return rows[0]

    def find_by_attempt(self, attempt_id: str) -> Optional[Result]:
        rows = self._select("WHERE r.attempt_id = ?", (attempt_id,))
        return rows[0] if rows else None

    def list_all(self, application_id: Optional[int] = None) -> List[Result]:
        """Results newest first, optionally for a single application."""
        if application_id is None:
            results = self._select()
        else:
            results = self._select("WHERE r.application_id = ?", (application_id,))
        held = [
            r for r in self.offline_results()
            if application_id is None or r.application_id == application_id
        ]
        if not held:
            return results
        return sorted(results + held, key=lambda r: r.created_at or "", reverse=True)

    def clear_all(self) -> int:
        conn = self._conn()
        try:
            deleted = conn.execute("SELECT COUNT(*) FROM quiz_result").fetchone()[0]
            conn.execute("UPDATE quiz_attempt SET result_id = NULL")
            conn.execute("DELETE FROM quiz_result")
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Could not clear quiz results: {exc}") from exc
        deleted = int(deleted) + self.drop_offline()
        logger.info("[RESULT] cleared %s result(s)", deleted)
        return deleted

    def per_application_stats(self) -> List[Dict[str, Any]]:
        """Per-track counters for the admin dashboard."""
        conn = self._conn()
        try:
            rows = conn.execute(
                """
                SELECT a.application_id, a.name, a.description, a.max_questions,
                       (SELECT COUNT(*) FROM question q WHERE q.application_id = a.application_id) AS question_count,
                       COUNT(r.result_id) AS quiz_count,
                       AVG(r.percentage) AS average_score
                FROM application a
                LEFT JOIN quiz_result r ON r.application_id = a.application_id
                GROUP BY a.application_id
                ORDER BY a.name
                """
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not read dashboard data: {exc}") from exc
        return [
            {
                "id": int(row["application_id"]),
                "name": row["name"],
                "description": row["description"],
                "questionCount": int(row["question_count"] or 0),
                "quizCount": int(row["quiz_count"] or 0),
                "maxQuestionsPerAttempt": int(row["max_questions"]),
                "averageScore": round(float(row["average_score"] or 0.0), 2),
            }
            for row in rows
        ]

    def export_rows(self, application_id: Optional[int] = None) -> List[List[Any]]:
        return [
            [
                r.user_name,
                r.user_email,
                r.application_name or "",
                r.score,
                r.total_questions,
                r.percentage,
                r.time_taken_seconds,
                r.created_at,
            ]
            for r in self.list_all(application_id)
        ]


__all__ = ["ResultLedger", "aggregate_stats", "percentage", "bucket_for", "EXPORT_HEADERS"]
