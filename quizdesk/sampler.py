"""Random selection of the questions presented in one attempt."""
from __future__ import annotations

import random
from typing import List, Optional, Sequence, TypeVar

from .errors import InvalidArgument

T = TypeVar("T")


def sample(pool: Sequence[T], requested_count: int, rng: Optional[random.Random] = None) -> List[T]:
    """Return ``requested_count`` distinct items of ``pool`` in random order.

    A count at or above the pool size yields a shuffled copy of the whole
    pool. An empty pool yields an empty list so callers can report
    "no quiz available" instead of failing.
    """
    if isinstance(requested_count, bool) or not isinstance(requested_count, int):
        raise InvalidArgument("Question count must be an integer")
    if requested_count <= 0:
        raise InvalidArgument("Question count must be greater than zero")

    chooser = rng or random
    items = list(pool)
    if not items:
        return []
    k = min(requested_count, len(items))
    return chooser.sample(items, k)


__all__ = ["sample"]
