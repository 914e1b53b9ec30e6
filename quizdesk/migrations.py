"""
Safe database migrations for the quiz service.
Adds columns introduced after the first release without touching existing data.
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)


def _columns(conn: sqlite3.Connection, table: str) -> list:
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})")]


def ensure_column(conn: sqlite3.Connection, table: str, col: str, ddl: str) -> bool:
    if col in _columns(conn, table):
        return False
    conn.execute(ddl)
    logger.info("[DB MIGRATE] added %s.%s", table, col)
    return True


def run_migrations(conn: sqlite3.Connection) -> None:
    """Run all pending migrations on an open connection."""
    try:
        ensure_column(
            conn,
            "application",
            "max_questions",
            "ALTER TABLE application ADD COLUMN max_questions INTEGER NOT NULL DEFAULT 25",
        )
        # SQLite cannot add a UNIQUE column, so uniqueness lives in an index.
        ensure_column(
            conn,
            "quiz_result",
            "attempt_id",
            "ALTER TABLE quiz_result ADD COLUMN attempt_id TEXT",
        )
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_result_attempt ON quiz_result(attempt_id)"
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        logger.exception("[DB MIGRATE] failed")
        raise
