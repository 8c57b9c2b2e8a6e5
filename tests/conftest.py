from typing import Callable, List, Sequence, Tuple

import pytest

from hedgehog.domain import SpineRecord

PEAK_SAMPLES = (0.0, 0.0, 5.0, 0.0, 0.0)
FORWARD = (0.0, 0.0, -1.0)


def spine_at(
    timepoint: int,
    world_xy: Tuple[float, float],
    samples: Sequence[float] = PEAK_SAMPLES,
    confidence: float = 0.9,
    direction: Tuple[float, float, float] = FORWARD,
) -> SpineRecord:
    """Spine whose single peak lands on ``world_xy`` under an identity transform.

    The local direction is zero, so every maximum sits at the local entry;
    world = entry * 2 - 1.
    """

    x, y = world_xy
    return SpineRecord(
        timepoint=timepoint,
        origin=(x, y, 1.0),
        direction=direction,
        local_entry=((x + 1.0) / 2.0, (y + 1.0) / 2.0, 0.5),
        local_exit=((x + 1.0) / 2.0, (y + 1.0) / 2.0, 0.0),
        local_direction=(0.0, 0.0, 0.0),
        confidence=confidence,
        samples=tuple(samples),
    )


@pytest.fixture
def make_spine() -> Callable[..., SpineRecord]:
    return spine_at


@pytest.fixture
def line_spines() -> Callable[[int], List[SpineRecord]]:
    """Factory for one spine per timepoint on the x axis, one unit apart."""

    def _build(count: int) -> List[SpineRecord]:
        return [spine_at(t, (float(t), 0.0)) for t in range(count)]

    return _build
