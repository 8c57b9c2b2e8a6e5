"""Configuration dataclasses for hedgehog track reconstruction."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class HedgehogAnalysisConfig:
    """Thresholds for chaining and pruning spine candidates."""

    # A timepoint starts the track once any of its samples exceeds this
    starting_threshold: float = 0.02

    # Candidates at or below this value are never chained
    local_max_threshold: float = 0.01

    # Edges whose length z-score exceeds this are pruned
    z_score_threshold: float = 2.0

    # Minimum dot product between a spine direction and its predecessor's
    direction_threshold: float = 0.5

    # Recompute mean/stddev after every pruning batch. With False the
    # statistics of the initial chain are kept for the whole loop.
    recompute_statistics: bool = True

    # joblib workers for local maxima extraction, 1 = sequential
    n_jobs: int = 1

    def __post_init__(self) -> None:
        if self.z_score_threshold <= 0:
            raise ValueError("z_score_threshold must be > 0")
        if not -1.0 <= self.direction_threshold <= 1.0:
            raise ValueError("direction_threshold must lie within [-1, 1]")
        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero (use 1 for sequential, -1 for all CPUs)")


@dataclass(frozen=True)
class TrackExportConfig:
    """Settings for writing a track into a Tracks.tsv listing."""

    track_id: int = 1
    parent_id: int = 0
    volume_dimensions: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    session_name: Optional[str] = None

    def __post_init__(self) -> None:
        if len(self.volume_dimensions) != 3:
            raise ValueError("volume_dimensions must have exactly three entries")
