"""Tests for the quiz session state machine."""

import threading

import pytest

from quizdesk.availability import AvailabilityCoordinator
from quizdesk.errors import NoQuestionsAvailable, NotFound, ValidationError
from quizdesk.fallback import FallbackCatalog
from quizdesk.ledger import ResultLedger
from quizdesk.session import IDLE, IN_PROGRESS, SUBMITTED, QuizSession, elapsed_seconds, grade


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


@pytest.fixture
def ledger(conn, store):
    return ResultLedger(lambda: conn, store)


@pytest.fixture
def coordinator(store):
    return AvailabilityCoordinator(store, FallbackCatalog(), retry_seconds=0)


def test_full_attempt_scores_and_records(coordinator, ledger, roadops):
    clock = FakeClock()
    quiz = QuizSession(coordinator, ledger, clock=clock)
    assert quiz.state == IDLE

    questions = quiz.start("Ada", "ada@example.com", roadops.id)
    assert quiz.state == IN_PROGRESS
    assert len(questions) == 25

    # 20 right, 5 wrong
    for i in range(25):
        quiz.select_answer(i, "A" if i < 20 else "B")
    clock.now += 300.9

    result = quiz.submit()
    assert quiz.state == SUBMITTED
    assert result.score == 20
    assert result.total_questions == 25
    assert result.percentage == 80
    assert result.time_taken_seconds == 300
    assert ledger.list_all()[0].id == result.id


def test_unanswered_questions_count_as_wrong(coordinator, ledger, roadops):
    quiz = QuizSession(coordinator, ledger)
    quiz.start("Ada", "ada@example.com", roadops.id)
    quiz.select_answer(0, "a")
    result = quiz.submit()
    assert result.score == 1
    assert result.percentage == 4


def test_submit_twice_returns_same_result(coordinator, ledger, roadops):
    quiz = QuizSession(coordinator, ledger)
    quiz.start("Ada", "ada@example.com", roadops.id)
    first = quiz.submit()
    assert quiz.submit() is first
    assert len(ledger.list_all()) == 1


def test_concurrent_submit_records_once(coordinator, ledger, roadops):
    quiz = QuizSession(coordinator, ledger)
    quiz.start("Ada", "ada@example.com", roadops.id)
    results = []
    threads = [threading.Thread(target=lambda: results.append(quiz.submit().id)) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(set(results)) == 1
    assert len(ledger.list_all()) == 1


def test_start_requires_name_and_email(coordinator, ledger, roadops):
    quiz = QuizSession(coordinator, ledger)
    with pytest.raises(ValidationError):
        quiz.start("", "ada@example.com", roadops.id)
    with pytest.raises(ValidationError):
        quiz.start("Ada", "   ", roadops.id)
    assert quiz.state == IDLE


def test_start_unknown_application(coordinator, ledger, roadops):
    with pytest.raises(NotFound):
        QuizSession(coordinator, ledger).start("Ada", "ada@example.com", 9999)


def test_start_refused_when_pool_empty(coordinator, ledger, roadops, store):
    ues = store.get_application_by_name("UES")
    quiz = QuizSession(coordinator, ledger)
    with pytest.raises(NoQuestionsAvailable):
        quiz.start("Ada", "ada@example.com", ues.id)
    assert quiz.state == IDLE


def test_navigation_is_clamped(coordinator, ledger, store, roadops):
    store.update_application(roadops.id, max_questions=3)
    quiz = QuizSession(coordinator, ledger)
    quiz.start("Ada", "ada@example.com", roadops.id)
    assert quiz.retreat() == 0
    assert quiz.advance() == 1
    assert quiz.advance() == 2
    assert quiz.advance() == 2
    assert quiz.current() is quiz.questions[2]


def test_answers_can_change_until_submit(coordinator, ledger, roadops):
    quiz = QuizSession(coordinator, ledger)
    quiz.start("Ada", "ada@example.com", roadops.id)
    quiz.select_answer(0, "B")
    quiz.select_answer(0, "A")
    quiz.select_answer(1, "C")
    quiz.select_answer(1, None)
    assert quiz.answered_count() == 1
    with pytest.raises(ValidationError):
        quiz.select_answer(0, "E")
    with pytest.raises(ValidationError):
        quiz.select_answer(99, "A")
    quiz.submit()
    with pytest.raises(ValidationError):
        quiz.select_answer(0, "B")


def test_cannot_submit_before_start(coordinator, ledger):
    with pytest.raises(ValidationError):
        QuizSession(coordinator, ledger).submit()


def test_grade_and_elapsed_helpers(roadops, store):
    questions = store.questions_for_application(roadops.id)[:3]
    assert grade(questions, ["A", None, "B"]) == 1
    assert grade(questions, []) == 0
    assert elapsed_seconds(10.0, 9.0) == 0
    assert elapsed_seconds(10.0, 15.99) == 5
