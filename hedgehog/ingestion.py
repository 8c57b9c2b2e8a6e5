"""Grouping of spine records by timepoint."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .domain import SpineRecord

logger = logging.getLogger(__name__)


@dataclass
class SpineIndex:
    """Spines grouped by timepoint, in first-seen timepoint order.

    Within a timepoint the spines keep their input order so chaining is
    deterministic.
    """

    timepoints: Dict[int, List[SpineRecord]] = field(default_factory=dict)
    avg_confidence: float = 0.0
    total_sample_count: int = 0

    def __len__(self) -> int:
        return len(self.timepoints)

    def is_empty(self) -> bool:
        return not self.timepoints

    def first_timepoint_above(self, threshold: float) -> int | None:
        """First timepoint (in insertion order) with any sample above ``threshold``."""
        for tp, spines in self.timepoints.items():
            for spine in spines:
                if any(s is not None and s > threshold for s in spine.samples):
                    return tp
        return None

    def drop_before(self, timepoint: int) -> None:
        """Discard every timepoint strictly earlier than ``timepoint``."""
        for tp in [tp for tp in self.timepoints if tp < timepoint]:
            del self.timepoints[tp]


def group_spines(spines: Iterable[SpineRecord]) -> SpineIndex:
    index = SpineIndex()
    confidence_sum = 0.0
    for spine in spines:
        index.timepoints.setdefault(spine.timepoint, []).append(spine)
        confidence_sum += spine.confidence
        index.total_sample_count += 1

    if index.total_sample_count:
        index.avg_confidence = confidence_sum / index.total_sample_count
    logger.debug(
        "Grouped %s spines into %s timepoints (avg confidence %.3f)",
        index.total_sample_count,
        len(index.timepoints),
        index.avg_confidence,
    )
    return index
