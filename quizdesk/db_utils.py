"""Helpers for resolving and opening the SQLite database used by the app."""
from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Optional

from .config import DB_ENV

APP_ROOT = Path(__file__).resolve().parent
DEFAULT_DB_RELATIVE = Path("instance/quiz.db")


def _clean_path(value: Optional[str]) -> str:
    """Normalize an environment-provided path string."""
    if not value:
        return str(DEFAULT_DB_RELATIVE)
    cleaned = value.strip().strip('"').strip("'")
    return cleaned or str(DEFAULT_DB_RELATIVE)


def resolve_db_path(raw: Optional[str] = None) -> Path:
    """Return the absolute path to the SQLite database."""
    if raw is None:
        raw = os.environ.get(DB_ENV)
    candidate = Path(_clean_path(raw))
    if not candidate.is_absolute():
        candidate = APP_ROOT / candidate
    return candidate


def ensure_db_path(raw: Optional[str] = None) -> Path:
    """Resolve the database path and ensure the parent directory exists."""
    path = resolve_db_path(raw)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def open_connection(raw: Optional[str] = None, timeout: float = 5.0) -> sqlite3.Connection:
    """Connect with row dicts and foreign keys enabled."""
    conn = sqlite3.connect(str(ensure_db_path(raw)), timeout=timeout, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


__all__ = ["resolve_db_path", "ensure_db_path", "open_connection", "DEFAULT_DB_RELATIVE"]
