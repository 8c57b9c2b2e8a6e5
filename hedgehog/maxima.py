"""Local maxima detection over 1D intensity profiles."""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple


def local_maxima(samples: Sequence[Optional[float]]) -> List[Tuple[int, float]]:
    """Return ``(index, value)`` for every strict interior local maximum.

    A sample counts when it is strictly greater than both neighbours, so
    plateaus never match. Missing entries are treated as 0.0. Sequences shorter
    than three elements have no interior and yield nothing.
    """

    values = [0.0 if s is None else float(s) for s in samples]
    maxima: List[Tuple[int, float]] = []
    for i in range(1, len(values) - 1):
        left, center, right = values[i - 1], values[i], values[i + 1]
        if left < center and center > right:
            maxima.append((i, center))
    return maxima
