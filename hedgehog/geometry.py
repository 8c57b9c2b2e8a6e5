"""Geometry helpers for mapping volume-local positions into world space."""
from __future__ import annotations

from typing import Sequence

import numpy as np


def distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(np.asarray(b, dtype=float) - np.asarray(a, dtype=float)))


def dot(a: Sequence[float], b: Sequence[float]) -> float:
    return float(np.dot(np.asarray(a, dtype=float), np.asarray(b, dtype=float)))


class VolumeTransform:
    """Homogeneous 4x4 transform from normalized volume coordinates to world space."""

    def __init__(self, matrix: Sequence[Sequence[float]] | np.ndarray | None = None) -> None:
        m = np.identity(4, dtype=float) if matrix is None else np.asarray(matrix, dtype=float)
        if m.shape != (4, 4):
            raise ValueError(f"Volume transform must be 4x4, got shape {m.shape}")
        self.matrix = m

    @classmethod
    def identity(cls) -> "VolumeTransform":
        return cls()

    def to_world(self, local_position: np.ndarray) -> np.ndarray:
        """Map a position in [0, 1]^3 UV space to world space.

        The position is first remapped to [-1, 1]^3, then multiplied as a
        homogeneous point (w = 1). No perspective divide is applied.
        """

        centered = np.asarray(local_position, dtype=float) * 2.0 - 1.0
        homogeneous = np.append(centered, 1.0)
        return (self.matrix @ homogeneous)[:3]

    def __repr__(self) -> str:
        return f"VolumeTransform({self.matrix.tolist()})"
