"""Test configuration and fixtures."""

import sys
from pathlib import Path

import pytest

APP_DIR = Path(__file__).resolve().parent.parent
REPO_ROOT = APP_DIR.parent

# Ensure the package root is importable without an install
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from quizdesk.app import app, coordinator, ledger
from quizdesk.db_utils import open_connection
from quizdesk.init_db import initialize_database
from quizdesk.models import Question
from quizdesk.store import QuestionStore


def make_question(application_id: int, n: int, answer: str = "A") -> Question:
    return Question(
        id=0,
        application_id=application_id,
        text=f"Question {n}?",
        options={"A": f"a{n}", "B": f"b{n}", "C": f"c{n}", "D": f"d{n}"},
        correct_answer=answer,
    )


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Isolated database file selected through QUIZ_DB."""
    path = tmp_path / "quiz.db"
    monkeypatch.setenv("QUIZ_DB", str(path))
    return path


@pytest.fixture
def conn(db_path):
    connection = open_connection(str(db_path))
    initialize_database(connection)
    yield connection
    connection.close()


@pytest.fixture
def store(conn):
    return QuestionStore(lambda: conn)


@pytest.fixture
def roadops(store):
    """RoadOps seeded with 30 questions whose key is always A."""
    app_row = store.get_application_by_name("RoadOps")
    store.replace_questions(app_row.id, [make_question(app_row.id, n) for n in range(30)])
    return store.get_application(app_row.id)


@pytest.fixture
def client(db_path):
    """Create test client with isolated database configuration."""
    ledger.drop_offline()
    coordinator.reset()
    previous_retry = coordinator.retry_seconds
    coordinator.retry_seconds = 0
    app.config["TESTING"] = True
    try:
        with app.test_client() as test_client:
            yield test_client
    finally:
        coordinator.retry_seconds = previous_retry
        coordinator.reset()
        ledger.drop_offline()


@pytest.fixture
def admin_client(client):
    """Client whose session already carries the admin role."""
    with client.session_transaction() as sess:
        sess["role"] = "admin"
    return client
