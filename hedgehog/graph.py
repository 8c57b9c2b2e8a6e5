"""Candidate vertex construction and the chain that links them.

Vertices live in a flat arena (``CandidateGraph.vertices``) and refer to each
other by arena index. ``VertexChain`` owns the linkage: removing a vertex
tombstones its index and relinks the neighbours that remain.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from importlib import import_module
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .domain import CandidateVertex, SpineRecord
from .geometry import VolumeTransform, distance
from .ingestion import SpineIndex
from .maxima import local_maxima

logger = logging.getLogger(__name__)


@dataclass
class CandidateGraph:
    vertices: List[CandidateVertex] = field(default_factory=list)
    by_timepoint: Dict[int, List[int]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.vertices)

    def candidates_at(self, timepoint: int) -> List[CandidateVertex]:
        return [self.vertices[i] for i in self.by_timepoint.get(timepoint, [])]

    def first_vertex(self) -> Optional[CandidateVertex]:
        """First vertex in construction order, if any."""
        for indices in self.by_timepoint.values():
            if indices:
                return self.vertices[indices[0]]
        return None


def _extract_all_maxima(spines: Sequence[SpineRecord], n_jobs: int) -> List[List[Tuple[int, float]]]:
    if n_jobs == 1 or len(spines) < 2:
        return [local_maxima(spine.samples) for spine in spines]

    try:
        joblib = import_module("joblib")
    except ModuleNotFoundError as exc:  # pragma: no cover - dependency is optional
        raise ModuleNotFoundError(
            "joblib is required for n_jobs != 1; install via `pip install hedgehog-analysis[parallel]`."
        ) from exc

    return joblib.Parallel(n_jobs=n_jobs)(
        joblib.delayed(local_maxima)(spine.samples) for spine in spines
    )


def build_candidate_graph(
    index: SpineIndex,
    transform: VolumeTransform,
    n_jobs: int = 1,
) -> CandidateGraph:
    """Promote every local maximum of every spine to a ``CandidateVertex``.

    Spines without a maximum contribute nothing; a timepoint whose spines all
    lack maxima gets an empty candidate list.
    """

    ordered: List[Tuple[int, SpineRecord]] = [
        (tp, spine) for tp, spines in index.timepoints.items() for spine in spines
    ]
    all_maxima = _extract_all_maxima([spine for _, spine in ordered], n_jobs)

    graph = CandidateGraph()
    for tp in index.timepoints:
        graph.by_timepoint[tp] = []

    for (tp, spine), maxima in zip(ordered, all_maxima):
        logger.debug("Local maxima at t=%s: %s", tp, maxima)
        if not maxima:
            continue

        entry = np.asarray(spine.local_entry, dtype=float)
        step = np.asarray(spine.local_direction, dtype=float)
        for sample_index, value in maxima:
            local_position = entry + step * float(sample_index)
            vertex = CandidateVertex(
                index=len(graph.vertices),
                timepoint=tp,
                local_position=local_position,
                world_position=transform.to_world(local_position),
                value=value,
                metadata=spine,
            )
            graph.vertices.append(vertex)
            graph.by_timepoint[tp].append(vertex.index)

    logger.info("Built %s candidate vertices over %s timepoints", len(graph.vertices), len(graph.by_timepoint))
    return graph


class VertexChain:
    """Doubly linked chain over arena indices, ordered by timepoint."""

    def __init__(self, vertices: Sequence[CandidateVertex], order: Iterable[int] = ()) -> None:
        self._vertices = vertices
        self.order: List[int] = []
        self.removed: set[int] = set()
        for idx in order:
            self.append(idx)

    def __len__(self) -> int:
        return len(self.order)

    def __iter__(self) -> Iterator[CandidateVertex]:
        return (self._vertices[i] for i in self.order)

    def __getitem__(self, position: int) -> CandidateVertex:
        return self._vertices[self.order[position]]

    @property
    def tail(self) -> Optional[CandidateVertex]:
        return self._vertices[self.order[-1]] if self.order else None

    def append(self, idx: int) -> None:
        vertex = self._vertices[idx]
        tail = self.tail
        if tail is not None:
            tail.next = idx
            vertex.previous = tail.index
        else:
            vertex.previous = None
        vertex.next = None
        self.order.append(idx)

    def previous_of(self, vertex: CandidateVertex) -> Optional[CandidateVertex]:
        return None if vertex.previous is None else self._vertices[vertex.previous]

    def next_of(self, vertex: CandidateVertex) -> Optional[CandidateVertex]:
        return None if vertex.next is None else self._vertices[vertex.next]

    def edge_length(self, vertex: CandidateVertex) -> float:
        """Distance from ``vertex`` to its successor, 0.0 at the tail."""
        successor = self.next_of(vertex)
        if successor is None:
            return 0.0
        return distance(vertex.world_position, successor.world_position)

    def edge_lengths(self) -> List[float]:
        return [self.edge_length(v) for v in self]

    def remove_positions(self, positions: Iterable[int]) -> int:
        """Remove the vertices at the given chain positions in one batch.

        Positions outside the chain are ignored. Returns the number removed.
        """

        doomed = {p for p in positions if 0 <= p < len(self.order)}
        if not doomed:
            return 0
        for p in doomed:
            idx = self.order[p]
            vertex = self._vertices[idx]
            before = self.previous_of(vertex)
            after = self.next_of(vertex)
            if before is not None:
                before.next = vertex.next
            if after is not None:
                after.previous = vertex.previous
            vertex.previous = None
            vertex.next = None
            self.removed.add(idx)
        self.order = [idx for p, idx in enumerate(self.order) if p not in doomed]
        self.relink()
        return len(doomed)

    def relink(self) -> None:
        """Link the remaining vertices contiguously in their current order."""
        for pos, idx in enumerate(self.order):
            vertex = self._vertices[idx]
            vertex.previous = self.order[pos - 1] if pos > 0 else None
            vertex.next = self.order[pos + 1] if pos + 1 < len(self.order) else None

    def is_consistent(self) -> bool:
        """True when every non-tail vertex is its successor's predecessor."""
        for vertex in self:
            successor = self.next_of(vertex)
            if successor is not None and successor.previous != vertex.index:
                return False
        return True
