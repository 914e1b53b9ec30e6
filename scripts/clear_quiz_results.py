"""Utility to purge recorded quiz results for a clean slate."""
from __future__ import annotations

import argparse
import sqlite3

from quizdesk.db_utils import open_connection, resolve_db_path

TARGET_TABLES = [
    "quiz_result",
    "quiz_attempt",
]


def table_exists(cur: sqlite3.Cursor, table: str) -> bool:
    row = cur.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


def clear_table(cur: sqlite3.Cursor, table: str) -> int:
    if not table_exists(cur, table):
        print(f"[SKIP] Table '{table}' does not exist.")
        return 0
    deleted = cur.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    cur.execute(f"DELETE FROM {table}")
    print(f"[CLEAR] {table}: removed {deleted} row(s).")
    return deleted


def main() -> None:
    parser = argparse.ArgumentParser(description="Delete every quiz result and attempt")
    parser.add_argument("--db", default=None, help="Database file path (defaults to $QUIZ_DB)")
    args = parser.parse_args()

    conn = open_connection(args.db)
    try:
        cur = conn.cursor()
        total_removed = 0
        for table in TARGET_TABLES:
            total_removed += clear_table(cur, table)
        conn.commit()
    finally:
        conn.close()

    print(f"[DONE] Cleared {total_removed} row(s) from {resolve_db_path(args.db)}.")


if __name__ == "__main__":
    main()
