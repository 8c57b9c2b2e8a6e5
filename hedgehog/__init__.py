"""Gaze-ray track reconstruction for hedgehog recordings."""

from .config import HedgehogAnalysisConfig, TrackExportConfig
from .domain import CandidateVertex, SpineRecord, Track, TrackPoint
from .geometry import VolumeTransform
from .maxima import local_maxima
from .analysis import HedgehogAnalysis, analyze_spines, prune_outliers
from .spine_csv import (
    SpineCSVError,
    read_incomplete_spine_csv,
    read_spine_csv,
    write_spine_csv,
)
from .track_export import append_track_listing, dump_hedgehog, track_to_frame

__all__ = [
    "HedgehogAnalysisConfig",
    "TrackExportConfig",
    "CandidateVertex",
    "SpineRecord",
    "Track",
    "TrackPoint",
    "VolumeTransform",
    "local_maxima",
    "HedgehogAnalysis",
    "analyze_spines",
    "prune_outliers",
    "SpineCSVError",
    "read_incomplete_spine_csv",
    "read_spine_csv",
    "write_spine_csv",
    "append_track_listing",
    "dump_hedgehog",
    "track_to_frame",
]
