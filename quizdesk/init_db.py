import argparse
import sqlite3
from pathlib import Path

from .db_utils import open_connection, resolve_db_path
from .migrations import run_migrations

BASE_DIR = Path(__file__).resolve().parent
CORE_TABLES = ("application", "question", "quiz_attempt", "quiz_result")


def table_exists(conn: sqlite3.Connection, name: str) -> bool:
    cur = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (name,)
    )
    return cur.fetchone() is not None


def initialize_database(conn: sqlite3.Connection, force: bool = False) -> bool:
    """Apply schema.sql and seed.sql when the core tables are missing.

    Returns True when the scripts were executed. Existing databases are only
    passed through the migrations.
    """
    applied = False
    if force or not all(table_exists(conn, name) for name in CORE_TABLES):
        schema_sql = (BASE_DIR / "schema.sql").read_text(encoding="utf-8")
        seed_sql = (BASE_DIR / "seed.sql").read_text(encoding="utf-8")
        conn.executescript(schema_sql)
        conn.executescript(seed_sql)
        conn.commit()
        applied = True
    run_migrations(conn)
    return applied


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the quiz database and default applications")
    parser.add_argument("--db", default=None, help="Database file path (defaults to $QUIZ_DB)")
    args = parser.parse_args()

    conn = open_connection(args.db)
    try:
        initialize_database(conn, force=True)
    finally:
        conn.close()
    print(f"Database initialized at: {resolve_db_path(args.db)}")


if __name__ == "__main__":
    main()
