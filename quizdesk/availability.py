"""Chooses between the database and the fallback catalog for read requests.

Policy: the first probe that finds at least one application marks the store
ready for the rest of the process lifetime. A failed or empty probe serves the
fallback catalog and allows another probe once ``retry_seconds`` have passed
(``0`` probes on every call). Concurrent first requests share one probe.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional, Sequence

from .errors import StoreUnavailable
from .fallback import FallbackCatalog
from .models import Application, Question
from .sampler import sample
from .store import QuestionStore

logger = logging.getLogger(__name__)


class AvailabilityCoordinator:
    def __init__(
        self,
        store: QuestionStore,
        fallback: FallbackCatalog,
        retry_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.fallback = fallback
        self.retry_seconds = retry_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._ready = False
        self._last_probe: Optional[float] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def source_name(self) -> str:
        return self.store.name if self._ready else self.fallback.name

    def reset(self) -> None:
        """Forget the readiness decision (used when the database is swapped)."""
        with self._lock:
            self._ready = False
            self._last_probe = None

    def _probe_due(self) -> bool:
        if self._last_probe is None:
            return True
        return self._clock() - self._last_probe >= self.retry_seconds

    def _ensure_ready(self) -> bool:
        if self._ready:
            return True
        with self._lock:
            if self._ready:
                return True
            if not self._probe_due():
                return False
            self._last_probe = self._clock()
            try:
                apps = self.store.list_applications()
            except StoreUnavailable as exc:
                logger.warning("[AVAILABILITY] store probe failed, using fallback: %s", exc)
                return False
            if not apps:
                logger.warning("[AVAILABILITY] store has no applications, using fallback")
                return False
            self._ready = True
            logger.info("[AVAILABILITY] store ready with %s application(s)", len(apps))
            return True

    def application_pool(self) -> List[Application]:
        if self._ensure_ready():
            try:
                return self.store.list_applications()
            except StoreUnavailable as exc:
                logger.warning("[AVAILABILITY] application list degraded to fallback: %s", exc)
        return self.fallback.list_applications()

    def get_application(self, application_id: int) -> Optional[Application]:
        if self._ensure_ready():
            try:
                return self.store.get_application(application_id)
            except StoreUnavailable as exc:
                logger.warning("[AVAILABILITY] application lookup degraded to fallback: %s", exc)
        return self.fallback.get_application(application_id)

    def _pool(self, application_id: int) -> List[Question]:
        if self._ensure_ready():
            try:
                return self.store.questions_for_application(application_id)
            except StoreUnavailable as exc:
                logger.warning("[AVAILABILITY] question pool degraded to fallback: %s", exc)
        return self.fallback.questions_for_application(application_id)

    def questions_for(self, application_id: int, count: Optional[int] = None) -> List[Question]:
        """Sampled, usable questions for an application; empty when none exist.

        ``count`` defaults to the application's per-attempt cap.
        """
        if count is None:
            app = self.get_application(application_id)
            if app is None:
                return []
            count = app.max_questions_per_attempt
        pool = [q for q in self._pool(application_id) if q.is_usable()]
        return sample(pool, count)

    def questions_by_ids(self, application_id: int, question_ids: Sequence[int]) -> List[Question]:
        if self._ensure_ready():
            try:
                return self.store.questions_by_ids(application_id, question_ids)
            except StoreUnavailable as exc:
                logger.warning("[AVAILABILITY] question lookup degraded to fallback: %s", exc)
        return self.fallback.questions_by_ids(application_id, question_ids)


__all__ = ["AvailabilityCoordinator"]
