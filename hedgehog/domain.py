"""Data structures for gaze spines and reconstructed tracks.

A spine is one gaze ray fired into the volume together with the intensity
profile sampled along it. Spines are immutable once recorded; the analysis
derives candidate vertices from them and links those into a track.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

Vector3 = Tuple[float, float, float]
QuaternionXYZW = Tuple[float, float, float, float]

ZERO3: Vector3 = (0.0, 0.0, 0.0)
IDENTITY_QUATERNION: QuaternionXYZW = (0.0, 0.0, 0.0, 1.0)


@dataclass(frozen=True)
class SpineRecord:
    """Single gaze ray with its sampled intensity profile."""

    timepoint: int
    origin: Vector3 = ZERO3
    direction: Vector3 = ZERO3
    distance: float = 0.0
    local_entry: Vector3 = ZERO3
    local_exit: Vector3 = ZERO3
    local_direction: Vector3 = ZERO3
    head_position: Vector3 = ZERO3
    head_orientation: QuaternionXYZW = IDENTITY_QUATERNION
    position: Vector3 = ZERO3
    confidence: float = 0.0
    samples: Tuple[Optional[float], ...] = ()

    def filled_samples(self) -> List[float]:
        """Samples with missing entries replaced by 0.0."""
        return [0.0 if s is None else float(s) for s in self.samples]


@dataclass(eq=False)
class CandidateVertex:
    """A local maximum on a spine, promoted to a point in space.

    ``previous`` and ``next`` are indices into the owning ``VertexChain``,
    not references; they are only meaningful while the vertex is in the chain.
    """

    index: int
    timepoint: int
    local_position: np.ndarray
    world_position: np.ndarray
    value: float
    metadata: SpineRecord
    previous: Optional[int] = None
    next: Optional[int] = None

    def output_position(self) -> np.ndarray:
        """Local position remapped from [0, 1] to [-1, 1]."""
        return self.local_position * 2.0 - 1.0

    def __repr__(self) -> str:
        return (
            f"CandidateVertex(t={self.timepoint}, pos={self.local_position.tolist()}, "
            f"world={self.world_position.tolist()}, value={self.value})"
        )


@dataclass(eq=False)
class TrackPoint:
    position: np.ndarray
    vertex: CandidateVertex

    @property
    def timepoint(self) -> int:
        return self.vertex.timepoint


@dataclass
class Track:
    """Reconstructed gaze trajectory, ordered by timepoint."""

    points: List[TrackPoint] = field(default_factory=list)
    confidence: float = 0.0

    def __len__(self) -> int:
        return len(self.points)

    def positions(self) -> np.ndarray:
        if not self.points:
            return np.empty((0, 3), dtype=float)
        return np.vstack([p.position for p in self.points])

    def timepoints(self) -> List[int]:
        return [p.timepoint for p in self.points]

    def length(self) -> float:
        """Sum of distances between consecutive output positions."""
        positions = self.positions()
        if len(positions) < 2:
            return 0.0
        return float(np.linalg.norm(np.diff(positions, axis=0), axis=1).sum())
