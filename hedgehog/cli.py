"""Command line interface for hedgehog track reconstruction."""
from __future__ import annotations

import argparse
import logging
from typing import List, Optional

import numpy as np

from .analysis import HedgehogAnalysis
from .analyzer import PlotConfig, TrackAnalyzer
from .config import HedgehogAnalysisConfig, TrackExportConfig
from .domain import SpineRecord, Track
from .geometry import VolumeTransform
from .spine_csv import read_incomplete_spine_csv, read_spine_csv, write_spine_csv
from .track_export import append_track_listing, write_ctc_tracks

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _add_input_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Hedgehog spine CSV")
    parser.add_argument(
        "--incomplete",
        action="store_true",
        help="Input only has timepoint, confidence and samples (comma separated)",
    )


def _add_analysis_arguments(parser: argparse.ArgumentParser) -> None:
    defaults = HedgehogAnalysisConfig()
    parser.add_argument("--starting-threshold", type=float, default=defaults.starting_threshold)
    parser.add_argument("--local-max-threshold", type=float, default=defaults.local_max_threshold)
    parser.add_argument("--z-score", type=float, default=defaults.z_score_threshold, help="Outlier z-score cutoff")
    parser.add_argument(
        "--direction-threshold",
        type=float,
        default=defaults.direction_threshold,
        help="Minimum dot product between consecutive gaze directions",
    )
    parser.add_argument(
        "--frozen-statistics",
        action="store_true",
        help="Keep the initial edge statistics for the whole pruning loop",
    )
    parser.add_argument("--jobs", type=int, default=1, help="Parallel workers for maxima extraction")
    parser.add_argument(
        "--transform",
        help="Text file holding the 4x4 volume-to-world matrix (default: identity)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hedgehog gaze track reconstruction")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default="INFO",
        help="Logging level (default: INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Reconstruct a track from a spine CSV")
    _add_input_arguments(analyze)
    _add_analysis_arguments(analyze)
    analyze.add_argument("--tracks", help="Append the track to this Tracks.tsv listing")
    analyze.add_argument("--track-id", type=int, default=1)
    analyze.add_argument("--parent-id", type=int, default=0)
    analyze.add_argument(
        "--dimensions",
        nargs=3,
        type=float,
        metavar=("X", "Y", "Z"),
        default=(1.0, 1.0, 1.0),
        help="Volume dimensions in voxels used to scale exported positions",
    )

    plot = sub.add_parser("plot", help="Reconstruct a track and plot its coordinates")
    _add_input_arguments(plot)
    _add_analysis_arguments(plot)
    plot.add_argument("output", help="Path to write the generated plot (png or pdf)")
    plot.add_argument("--dpi", type=float, default=None, help="Optional DPI override for the figure")

    convert = sub.add_parser("convert", help="Rewrite an incomplete spine CSV in the complete layout")
    convert.add_argument("input", help="Incomplete spine CSV")
    convert.add_argument("output", help="Path to write the complete spine CSV")

    ctc = sub.add_parser("ctc", help="Convert a Tracks.tsv listing to Cell Tracking Challenge results")
    ctc.add_argument("input", help="Tracks.tsv listing")
    ctc.add_argument("output", help="Directory for res_track.txt and label TIFFs")
    ctc.add_argument(
        "--shape",
        nargs=3,
        type=int,
        metavar=("X", "Y", "Z"),
        default=(700, 660, 113),
        help="Label volume size in voxels",
    )
    ctc.add_argument("--timepoints", type=int, default=None, help="Number of label volumes to write")
    ctc.add_argument("--no-labels", action="store_true", help="Only write res_track.txt")

    return parser


def _load_spines(args: argparse.Namespace) -> List[SpineRecord]:
    if args.incomplete:
        return read_incomplete_spine_csv(args.input)
    return read_spine_csv(args.input)


def _analysis_config(args: argparse.Namespace) -> HedgehogAnalysisConfig:
    return HedgehogAnalysisConfig(
        starting_threshold=args.starting_threshold,
        local_max_threshold=args.local_max_threshold,
        z_score_threshold=args.z_score,
        direction_threshold=args.direction_threshold,
        recompute_statistics=not args.frozen_statistics,
        n_jobs=args.jobs,
    )


def _load_transform(path: Optional[str]) -> VolumeTransform:
    if path is None:
        return VolumeTransform.identity()
    return VolumeTransform(np.loadtxt(path, dtype=float, ndmin=2))


def _run_analysis(
    args: argparse.Namespace, config: HedgehogAnalysisConfig, transform: VolumeTransform
) -> Optional[Track]:
    track = HedgehogAnalysis(_load_spines(args), transform, config).run()
    if track is None:
        logger.warning("No track returned for %s", args.input)
    return track


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    if args.command in ("analyze", "plot"):
        try:
            config = _analysis_config(args)
            transform = _load_transform(args.transform)
        except (ValueError, OSError) as exc:
            parser.error(str(exc))

    if args.command == "analyze":
        track = _run_analysis(args, config, transform)
        if track is None:
            return 1
        print(f"Track with {len(track)} points, confidence {track.confidence:.3f}")
        for point in track.points:
            x, y, z = point.position
            print(f"{point.timepoint}\t{x:.6f}\t{y:.6f}\t{z:.6f}")
        if args.tracks:
            cfg = TrackExportConfig(
                track_id=args.track_id,
                parent_id=args.parent_id,
                volume_dimensions=tuple(args.dimensions),
            )
            append_track_listing(track, args.tracks, cfg)
        return 0

    if args.command == "plot":
        track = _run_analysis(args, config, transform)
        if track is None:
            return 1
        TrackAnalyzer(PlotConfig(title=str(args.input), dpi=args.dpi)).plot(track, args.output)
        return 0

    if args.command == "convert":
        write_spine_csv(read_incomplete_spine_csv(args.input), args.output)
        return 0

    if args.command == "ctc":
        write_ctc_tracks(
            args.input,
            args.output,
            volume_shape=tuple(args.shape),
            num_timepoints=args.timepoints,
            write_labels=not args.no_labels,
        )
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
