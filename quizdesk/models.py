"""Plain records shared by the store, the fallback catalog and the ledger."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

OPTION_LABELS = ("A", "B", "C", "D")


@dataclass
class Application:
    id: int
    name: str
    description: str = ""
    question_pool_size: int = 0
    max_questions_per_attempt: int = 25

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "questionPoolSize": self.question_pool_size,
            "maxQuestionsPerAttempt": self.max_questions_per_attempt,
        }


@dataclass
class Question:
    id: int
    application_id: int
    text: str
    options: Dict[str, str] = field(default_factory=dict)
    correct_answer: str = ""

    def is_usable(self) -> bool:
        if not (self.text or "").strip():
            return False
        if any(not (self.options.get(label) or "").strip() for label in OPTION_LABELS):
            return False
        return self.correct_answer in OPTION_LABELS

    def to_dict(self, include_answer: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "options": {label: self.options.get(label, "") for label in OPTION_LABELS},
        }
        if include_answer:
            payload["correctAnswer"] = self.correct_answer
        return payload


@dataclass
class Result:
    application_id: int
    user_name: str
    user_email: str
    score: int
    total_questions: int
    time_taken_seconds: int
    percentage: int = 0
    id: Optional[int] = None
    created_at: Optional[str] = None
    application_name: Optional[str] = None
    attempt_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.user_name,
            "email": self.user_email,
            "applicationId": self.application_id,
            "applicationName": self.application_name,
            "score": self.score,
            "totalQuestions": self.total_questions,
            "percentage": self.percentage,
            "timeTakenSeconds": self.time_taken_seconds,
            "createdAt": self.created_at,
        }
