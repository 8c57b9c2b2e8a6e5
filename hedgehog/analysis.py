"""Reconstruct a gaze track from a hedgehog of spines.

The analysis chains local maxima across timepoints by always stepping to the
candidate nearest to the current chain tip, then repeatedly removes vertices
whose outgoing edge is a length outlier (z-score) together with their direct
neighbours. Finally it keeps one vertex per timepoint and drops vertices whose
gaze direction disagrees with their predecessor's.

Note on output positions: chaining distances use ``world_position`` (the
volume transform applied), while track points carry ``local_position * 2 - 1``
without the transform. Both are kept so callers can choose.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .config import HedgehogAnalysisConfig
from .domain import CandidateVertex, SpineRecord, Track, TrackPoint
from .geometry import VolumeTransform, distance, dot
from .graph import CandidateGraph, VertexChain, build_candidate_graph
from .ingestion import SpineIndex, group_spines

logger = logging.getLogger(__name__)


def edge_statistics(lengths: Sequence[float]) -> Tuple[float, float]:
    """Mean and population standard deviation; (0.0, 0.0) for no edges."""
    if len(lengths) == 0:
        return 0.0, 0.0
    values = np.asarray(lengths, dtype=float)
    return float(values.mean()), float(values.std())


def z_scores(lengths: Sequence[float], mean: float, stddev: float) -> List[float]:
    if stddev <= 0.0:
        return [0.0 for _ in lengths]
    return [(length - mean) / stddev for length in lengths]


def prune_outliers(
    chain: VertexChain,
    z_score_threshold: float = 2.0,
    recompute_statistics: bool = True,
) -> int:
    """Remove outlier edges and their neighbours until none are left.

    Every vertex whose edge z-score exceeds the threshold is removed along with
    the vertices directly before and after it in chain order. All windows of
    one pass are removed as a single batch, then the chain is relinked. A zero
    standard deviation means no outliers are possible.

    Returns the number of removed vertices.
    """

    before = len(chain)
    mean, stddev = edge_statistics(chain.edge_lengths())
    logger.info("Average path length=%.4f, stddev=%.4f", mean, stddev)

    while len(chain) > 0 and stddev > 0.0:
        scores = z_scores(chain.edge_lengths(), mean, stddev)
        outliers = [pos for pos, score in enumerate(scores) if score > z_score_threshold]
        if not outliers:
            break

        window = {pos + offset for pos in outliers for offset in (-1, 0, 1)}
        chain.remove_positions(window)

        if recompute_statistics:
            mean, stddev = edge_statistics(chain.edge_lengths())
        logger.info(
            "Iterating: %s vertices remaining after removing %s outlier windows (mean=%.4f, stddev=%.4f)",
            len(chain),
            len(outliers),
            mean,
            stddev,
        )

    removed = before - len(chain)
    logger.info("Pruned %s vertices due to path length", removed)
    return removed


class HedgehogAnalysis:
    """One-shot track reconstruction over a list of spines.

    Construct with the spines of one hedgehog, call :meth:`run` once.
    """

    def __init__(
        self,
        spines: Iterable[SpineRecord],
        local_to_world: VolumeTransform | np.ndarray | Sequence[Sequence[float]] | None = None,
        config: Optional[HedgehogAnalysisConfig] = None,
    ) -> None:
        self.spines: List[SpineRecord] = list(spines)
        self.config = config or HedgehogAnalysisConfig()
        if isinstance(local_to_world, VolumeTransform):
            self.transform = local_to_world
        else:
            self.transform = VolumeTransform(local_to_world)

        logger.info("Starting analysis with %s spines", len(self.spines))
        self.index: SpineIndex = group_spines(self.spines)
        self.graph: Optional[CandidateGraph] = None
        self.chain: Optional[VertexChain] = None
        self._has_run = False

    @property
    def avg_confidence(self) -> float:
        return self.index.avg_confidence

    @property
    def total_sample_count(self) -> int:
        return self.index.total_sample_count

    @property
    def timepoints(self) -> Dict[int, List[SpineRecord]]:
        return self.index.timepoints

    @classmethod
    def from_csv(cls, path: str | Path, separator: str = ";", config: Optional[HedgehogAnalysisConfig] = None) -> "HedgehogAnalysis":
        from .spine_csv import read_spine_csv

        return cls(read_spine_csv(path, separator=separator), config=config)

    @classmethod
    def from_incomplete_csv(
        cls, path: str | Path, separator: str = ",", config: Optional[HedgehogAnalysisConfig] = None
    ) -> "HedgehogAnalysis":
        from .spine_csv import read_incomplete_spine_csv

        return cls(read_incomplete_spine_csv(path, separator=separator), config=config)

    def run(self) -> Optional[Track]:
        """Reconstruct the track, or return None when there is none."""
        if self._has_run:
            raise RuntimeError("HedgehogAnalysis.run() can only be called once per instance")
        self._has_run = True
        cfg = self.config

        if self.index.is_empty():
            logger.info("No spines given, no track")
            return None

        start = self.index.first_timepoint_above(cfg.starting_threshold)
        if start is None:
            logger.info("No timepoint exceeds the starting threshold %s", cfg.starting_threshold)
            return None

        logger.info("Starting point is %s/%s (threshold=%s)", start, len(self.index), cfg.starting_threshold)
        self.index.drop_before(start)
        logger.info("%s timepoints left", len(self.index))

        self.graph = build_candidate_graph(self.index, self.transform, n_jobs=cfg.n_jobs)
        self.chain = self._build_chain(self.graph)
        if self.chain is None:
            logger.info("No candidate vertices found, no track")
            return None

        prune_outliers(self.chain, cfg.z_score_threshold, cfg.recompute_statistics)
        logger.debug("Final distances: %s", ", ".join(f"d = {d:.4f}" for d in self.chain.edge_lengths()))

        vertices = self._finalize(self.chain)
        logger.info("Returning %s points", len(vertices))
        if not vertices:
            return None

        points = [TrackPoint(position=v.output_position(), vertex=v) for v in vertices]
        return Track(points=points, confidence=self.avg_confidence)

    def _build_chain(self, graph: CandidateGraph) -> Optional[VertexChain]:
        initial = graph.first_vertex()
        if initial is None:
            return None

        chain = VertexChain(graph.vertices, [initial.index])
        current = initial
        threshold = self.config.local_max_threshold

        for tp in sorted(graph.by_timepoint):
            if tp <= initial.timepoint:
                continue
            qualifying = [v for v in graph.candidates_at(tp) if v.value > threshold]
            if not qualifying:
                logger.debug("No qualifying candidate at t=%s", tp)
                continue

            closest = min(qualifying, key=lambda v: distance(current.world_position, v.world_position))
            logger.debug(
                "Minimum distance for t=%s d=%.4f",
                tp,
                distance(current.world_position, closest.world_position),
            )
            chain.append(closest.index)
            current = closest

        return chain

    def _finalize(self, chain: VertexChain) -> List[CandidateVertex]:
        best: Dict[int, CandidateVertex] = {}
        for vertex in chain:
            kept = best.get(vertex.timepoint)
            if kept is None or vertex.metadata.confidence > kept.metadata.confidence:
                best[vertex.timepoint] = vertex

        # predecessor links still describe the pruned chain here
        threshold = self.config.direction_threshold
        result = []
        for vertex in best.values():
            predecessor = chain.previous_of(vertex)
            if predecessor is None or dot(vertex.metadata.direction, predecessor.metadata.direction) > threshold:
                result.append(vertex)
        return result


def analyze_spines(
    spines: Iterable[SpineRecord],
    local_to_world: VolumeTransform | np.ndarray | None = None,
    config: Optional[HedgehogAnalysisConfig] = None,
) -> Optional[Track]:
    return HedgehogAnalysis(spines, local_to_world, config).run()
