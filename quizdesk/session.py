"""State machine for one quiz attempt: idle -> in_progress -> submitted."""
from __future__ import annotations

import math
import threading
import time
from typing import Callable, List, Optional, Sequence

from .availability import AvailabilityCoordinator
from .errors import NoQuestionsAvailable, NotFound, ValidationError
from .ledger import ResultLedger, percentage
from .models import OPTION_LABELS, Application, Question, Result

IDLE = "idle"
IN_PROGRESS = "in_progress"
SUBMITTED = "submitted"


def grade(questions: Sequence[Question], answers: Sequence[Optional[str]]) -> int:
    """Count positions where the chosen letter matches the key; blanks never match."""
    score = 0
    for i, question in enumerate(questions):
        choice = answers[i] if i < len(answers) else None
        if choice is not None and choice == question.correct_answer:
            score += 1
    return score


def elapsed_seconds(started_at: float, finished_at: float) -> int:
    return max(0, int(math.floor(finished_at - started_at)))


def normalize_choice(choice: Optional[str]) -> Optional[str]:
    if choice is None:
        return None
    letter = str(choice).strip().upper()
    if letter == "":
        return None
    if letter not in OPTION_LABELS:
        raise ValidationError(f"Answer must be one of {', '.join(OPTION_LABELS)}")
    return letter


class QuizSession:
    def __init__(
        self,
        coordinator: AvailabilityCoordinator,
        ledger: ResultLedger,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.coordinator = coordinator
        self.ledger = ledger
        self._clock = clock
        self._submit_lock = threading.Lock()
        self.state = IDLE
        self.application: Optional[Application] = None
        self.user_name = ""
        self.user_email = ""
        self.questions: List[Question] = []
        self.answers: List[Optional[str]] = []
        self.index = 0
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None
        self.attempt_id: Optional[str] = None
        self.result: Optional[Result] = None

    @classmethod
    def resume(
        cls,
        coordinator: AvailabilityCoordinator,
        ledger: ResultLedger,
        application: Application,
        user_name: str,
        user_email: str,
        questions: Sequence[Question],
        started_at: float,
        attempt_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> "QuizSession":
        """Rebuild an in-progress session from a persisted attempt."""
        session = cls(coordinator, ledger, clock=clock)
        session.application = application
        session.user_name = user_name
        session.user_email = user_email
        session.questions = list(questions)
        session.answers = [None] * len(session.questions)
        session.started_at = started_at
        session.attempt_id = attempt_id
        session.state = IN_PROGRESS
        return session

    def start(self, user_name: str, user_email: str, application_id: int) -> List[Question]:
        if self.state != IDLE:
            raise ValidationError("Quiz already started")
        user_name = (user_name or "").strip()
        user_email = (user_email or "").strip()
        if not user_name or not user_email:
            raise ValidationError("Please enter both email and name to start the quiz")

        application = self.coordinator.get_application(application_id)
        if application is None:
            raise NotFound(f"Application {application_id} not found")

        questions = self.coordinator.questions_for(application.id, application.max_questions_per_attempt)
        if not questions:
            raise NoQuestionsAvailable(f"No questions available for {application.name}")

        self.application = application
        self.user_name = user_name
        self.user_email = user_email
        self.questions = questions
        self.answers = [None] * len(questions)
        self.index = 0
        self.started_at = self._clock()
        self.state = IN_PROGRESS
        return list(questions)

    def _require_in_progress(self) -> None:
        if self.state == SUBMITTED:
            raise ValidationError("Quiz already submitted")
        if self.state != IN_PROGRESS:
            raise ValidationError("Quiz has not been started")

    def current(self) -> Optional[Question]:
        if 0 <= self.index < len(self.questions):
            return self.questions[self.index]
        return None

    def select_answer(self, index: int, choice: Optional[str]) -> None:
        self._require_in_progress()
        if not 0 <= index < len(self.questions):
            raise ValidationError(f"Question index {index} out of range")
        self.answers[index] = normalize_choice(choice)

    def advance(self) -> int:
        self._require_in_progress()
        if self.index < len(self.questions) - 1:
            self.index += 1
        return self.index

    def retreat(self) -> int:
        self._require_in_progress()
        if self.index > 0:
            self.index -= 1
        return self.index

    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a is not None)

    def submit(self) -> Result:
        """Score the attempt and record it once; repeated calls return the same result."""
        with self._submit_lock:
            if self.state == SUBMITTED and self.result is not None:
                return self.result
            self._require_in_progress()

            self.finished_at = self._clock()
            total = len(self.questions)
            score = grade(self.questions, self.answers)
            result = Result(
                application_id=self.application.id,
                user_name=self.user_name,
                user_email=self.user_email,
                score=score,
                total_questions=total,
                percentage=percentage(score, total),
                time_taken_seconds=elapsed_seconds(self.started_at, self.finished_at),
                attempt_id=self.attempt_id,
            )
            self.result = self.ledger.record(result)
            self.state = SUBMITTED
            return self.result


__all__ = ["QuizSession", "grade", "elapsed_seconds", "normalize_choice", "IDLE", "IN_PROGRESS", "SUBMITTED"]
