"""Server-side record of started quizzes, used to grade without trusting the client."""
from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any, Callable, Dict, List, MutableMapping, Optional

from .errors import NotFound, StoreUnavailable

HELD_ATTEMPT_LIMIT = 5


class AttemptStore:
    def __init__(self, connect: Callable[[], sqlite3.Connection]) -> None:
        self._connect = connect

    def _conn(self) -> sqlite3.Connection:
        try:
            return self._connect()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Database connection failed: {exc}") from exc

    def open(
        self,
        application_id: int,
        user_name: str,
        user_email: str,
        question_ids: List[int],
        started_at: float,
    ) -> str:
        attempt_id = uuid.uuid4().hex
        conn = self._conn()
        try:
            conn.execute(
                """
                INSERT INTO quiz_attempt (attempt_id, application_id, user_name, user_email, question_ids, started_at)
                VALUES (?,?,?,?,?,?)
                """,
                (attempt_id, application_id, user_name, user_email, json.dumps(question_ids), started_at),
            )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Could not start quiz: {exc}") from exc
        return attempt_id

    def get(self, attempt_id: str) -> Dict[str, Any]:
        conn = self._conn()
        try:
            row = conn.execute(
                "SELECT * FROM quiz_attempt WHERE attempt_id=?", (attempt_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"Could not read quiz attempt: {exc}") from exc
        if row is None:
            raise NotFound(f"Quiz attempt {attempt_id} not found")
        data = dict(row)
        data["question_ids"] = [int(x) for x in json.loads(data["question_ids"] or "[]")]
        return data

    def claim(self, attempt_id: str, finished_at: float) -> bool:
        """Mark the attempt finished; only the first caller gets True."""
        conn = self._conn()
        try:
            cur = conn.execute(
                "UPDATE quiz_attempt SET finished_at=? WHERE attempt_id=? AND finished_at IS NULL",
                (finished_at, attempt_id),
            )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Could not submit quiz: {exc}") from exc
        return cur.rowcount == 1

    def release(self, attempt_id: str) -> None:
        """Reopen an attempt whose result could not be recorded."""
        conn = self._conn()
        try:
            conn.execute(
                "UPDATE quiz_attempt SET finished_at=NULL WHERE attempt_id=? AND result_id IS NULL",
                (attempt_id,),
            )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Could not reopen quiz attempt: {exc}") from exc

    def attach_result(self, attempt_id: str, result_id: int) -> None:
        conn = self._conn()
        try:
            conn.execute(
                "UPDATE quiz_attempt SET result_id=? WHERE attempt_id=?",
                (result_id, attempt_id),
            )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Could not link quiz result: {exc}") from exc

    def clear_finished(self) -> int:
        return self._delete("DELETE FROM quiz_attempt WHERE finished_at IS NOT NULL")

    def prune_stale(self, started_before: float) -> int:
        """Drop attempts that were started before the cutoff and never submitted."""
        return self._delete(
            "DELETE FROM quiz_attempt WHERE finished_at IS NULL AND started_at < ?", (started_before,)
        )

    def _delete(self, sql: str, params: tuple = ()) -> int:
        conn = self._conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreUnavailable(f"Could not clear quiz attempts: {exc}") from exc
        return cur.rowcount


class SessionAttemptStore:
    """Attempts held in the signed Flask session when the database cannot keep them.

    ``bucket`` is the session mapping. Only the most recent
    ``HELD_ATTEMPT_LIMIT`` attempts are kept so the cookie stays small.
    """

    key = "quiz_attempts"

    def __init__(self, bucket: MutableMapping[str, Any]) -> None:
        self._bucket = bucket

    def _attempts(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._bucket.get(self.key) or {})

    def open(
        self,
        application_id: int,
        user_name: str,
        user_email: str,
        question_ids: List[int],
        started_at: float,
        source: str,
    ) -> str:
        attempt_id = uuid.uuid4().hex
        held = self._attempts()
        held[attempt_id] = {
            "application_id": application_id,
            "user_name": user_name,
            "user_email": user_email,
            "question_ids": list(question_ids),
            "started_at": started_at,
            "source": source,
            "result": None,
        }
        while len(held) > HELD_ATTEMPT_LIMIT:
            held.pop(next(iter(held)))
        self._bucket[self.key] = held
        return attempt_id

    def get(self, attempt_id: str) -> Optional[Dict[str, Any]]:
        return self._attempts().get(attempt_id)

    def finish(self, attempt_id: str, result: Dict[str, Any]) -> None:
        held = self._attempts()
        if attempt_id in held:
            held[attempt_id] = dict(held[attempt_id], result=result)
            self._bucket[self.key] = held


__all__ = ["AttemptStore", "SessionAttemptStore", "HELD_ATTEMPT_LIMIT"]
