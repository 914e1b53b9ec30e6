"""Static question catalog served while the database is unavailable."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .models import Application, Question

_TRACKS = [
    (
        1,
        "RoadOps",
        "RoadOps application quiz covering operational procedures and best practices",
        [
            ("What is the primary purpose of RoadOps?",
             ("Road maintenance operations", "Traffic management", "Fleet optimization", "Route planning"), "A"),
            ("Which metric is most important for RoadOps efficiency?",
             ("Response time", "Cost per mile", "Vehicle utilization", "All of the above"), "D"),
            ("What type of data does RoadOps primarily handle?",
             ("Operational data", "Financial data", "Customer data", "Marketing data"), "A"),
        ],
    ),
    (
        2,
        "RoadSales",
        "RoadSales application quiz covering sales processes and methodologies",
        [
            ("What is the main feature of RoadSales?",
             ("Sales tracking", "Customer management", "Lead generation", "All of the above"), "D"),
            ("RoadSales helps optimize which process?",
             ("Sales pipeline", "Customer onboarding", "Revenue forecasting", "All of the above"), "D"),
            ("What kind of reports does RoadSales generate?",
             ("Sales performance", "Customer analytics", "Revenue insights", "All of the above"), "D"),
        ],
    ),
    (
        3,
        "UES",
        "UES application quiz covering unified enterprise systems",
        [
            ("What does UES stand for?",
             ("Unified Enterprise System", "Universal Enterprise Solution",
              "Unified Enterprise Solutions", "Universal Enterprise Systems"), "C"),
            ("UES integrates which business functions?",
             ("HR and Finance", "Operations and Sales", "IT and Security", "All enterprise functions"), "D"),
            ("What is the primary benefit of UES?",
             ("Cost reduction", "Process integration", "Data consistency", "All of the above"), "D"),
        ],
    ),
    (
        4,
        "Digital",
        "Digital application quiz covering digital transformation and technologies",
        [
            ("What is digital transformation?",
             ("Converting to digital formats", "Using digital technologies to transform business",
              "Going paperless", "Automating processes"), "B"),
            ("Which technology is key to digital transformation?",
             ("Cloud computing", "Artificial Intelligence", "Internet of Things", "All of the above"), "D"),
            ("Digital transformation primarily focuses on:",
             ("Technology adoption", "Process improvement", "Customer experience", "All of the above"), "D"),
        ],
    ),
]


class FallbackCatalog:
    """Read-only stand-in for :class:`~quizdesk.store.QuestionStore`.

    Question ids are ``application_id * 1000 + n`` so they never collide across
    tracks.
    """

    name = "fallback"

    def __init__(self, max_questions: int = 25) -> None:
        self._applications: Dict[int, Application] = {}
        self._questions: Dict[int, List[Question]] = {}
        for app_id, name, description, items in _TRACKS:
            questions = [
                Question(
                    id=app_id * 1000 + n,
                    application_id=app_id,
                    text=text,
                    options=dict(zip("ABCD", options)),
                    correct_answer=correct,
                )
                for n, (text, options, correct) in enumerate(items, start=1)
            ]
            self._questions[app_id] = questions
            self._applications[app_id] = Application(
                id=app_id,
                name=name,
                description=description,
                question_pool_size=len(questions),
                max_questions_per_attempt=max_questions,
            )

    def list_applications(self) -> List[Application]:
        return sorted(self._applications.values(), key=lambda a: a.name)

    def get_application(self, application_id: int) -> Optional[Application]:
        return self._applications.get(application_id)

    def questions_for_application(self, application_id: int) -> List[Question]:
        return list(self._questions.get(application_id, []))

    def questions_by_ids(self, application_id: int, question_ids: Sequence[int]) -> List[Question]:
        by_id = {q.id: q for q in self._questions.get(application_id, [])}
        return [by_id[qid] for qid in question_ids if qid in by_id]


__all__ = ["FallbackCatalog"]
