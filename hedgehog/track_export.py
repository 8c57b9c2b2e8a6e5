"""Export reconstructed tracks as a track listing and as Cell Tracking Challenge results."""
from __future__ import annotations

import logging
from importlib import import_module
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import TrackExportConfig
from .domain import SpineRecord, Track
from .spine_csv import write_spine_csv

logger = logging.getLogger(__name__)

TRACK_COLUMNS = ["TIME", "X", "Y", "Z", "TRACK_ID", "PARENT_TRACK_ID", "SPOT", "LABEL"]


def track_to_frame(
    track: Track,
    volume_dimensions: Sequence[float] = (1.0, 1.0, 1.0),
    track_id: int = 1,
    parent_id: int = 0,
) -> pd.DataFrame:
    """One row per consecutive pair of track points, scaled to voxels.

    Each row holds the first point of its pair, so a track of ``n`` points
    yields ``n - 1`` rows.
    """

    scale = np.asarray(volume_dimensions, dtype=float)
    rows = []
    for first, _second in zip(track.points, track.points[1:]):
        p = first.position * scale
        rows.append(
            {
                "TIME": first.timepoint,
                "X": float(p[0]),
                "Y": float(p[1]),
                "Z": float(p[2]),
                "TRACK_ID": track_id,
                "PARENT_TRACK_ID": parent_id,
                "SPOT": 0,
                "LABEL": 0,
            }
        )
    return pd.DataFrame.from_records(rows, columns=TRACK_COLUMNS)


def append_track_listing(
    track: Track,
    path: str | Path,
    config: Optional[TrackExportConfig] = None,
) -> Path:
    """Append ``track`` to a Tracks.tsv listing, creating it with a header if needed."""

    cfg = config or TrackExportConfig()
    path = Path(path)
    frame = track_to_frame(track, cfg.volume_dimensions, cfg.track_id, cfg.parent_id)

    if not path.exists():
        session = cfg.session_name or path.parent.name
        with path.open("w", encoding="utf-8") as fh:
            fh.write(f"# BionicTracking cell track listing for {session}\n")
            fh.write("# " + "\t".join(TRACK_COLUMNS) + "\n")

    with path.open("a", encoding="utf-8") as fh:
        fh.write("\n\n")
        fh.write(f"# START OF TRACK {cfg.track_id}, child of {cfg.parent_id}\n")
        frame.to_csv(fh, sep="\t", header=False, index=False)

    logger.info("Appended track %s (%s rows) to %s", cfg.track_id, len(frame), path)
    return path


def read_track_listing(path: str | Path) -> pd.DataFrame:
    """Load every track row of a listing, ignoring comments and blank lines."""
    return pd.read_csv(
        path,
        sep="\t",
        comment="#",
        header=None,
        names=TRACK_COLUMNS,
        skip_blank_lines=True,
    )


def ctc_track_table(listing: pd.DataFrame) -> pd.DataFrame:
    """Per-track first/last timepoint and parent, in order of first appearance.

    When a track lists several parents the last one seen wins.
    """

    grouped = listing.groupby("TRACK_ID", sort=False)
    table = pd.DataFrame(
        {
            "first": grouped["TIME"].min(),
            "last": grouped["TIME"].max(),
            "parent": grouped["PARENT_TRACK_ID"].last(),
        }
    )
    return table.reset_index().astype(int)


def _label_volumes(
    listing: pd.DataFrame,
    volume_shape: Sequence[int],
    num_timepoints: int,
) -> Iterator[Tuple[int, np.ndarray]]:
    nx, ny, nz = (int(v) for v in volume_shape)
    for t in range(num_timepoints):
        frame = np.zeros((nz, ny, nx), dtype=np.uint16)
        rows = listing[listing["TIME"] == t]
        for x, y, z, track_id in rows[["X", "Y", "Z", "TRACK_ID"]].itertuples(index=False):
            ix, iy, iz = (int(np.floor(v + 0.5)) for v in (x, y, z))
            if not (0 <= ix < nx and 0 <= iy < ny and 0 <= iz < nz):
                logger.debug("Skipping spot of track %s at t=%s outside the volume", track_id, t)
                continue
            frame[iz, iy, ix] = int(track_id)
        yield t, frame


def write_ctc_tracks(
    listing_path: str | Path,
    out_dir: str | Path,
    volume_shape: Sequence[int] = (700, 660, 113),
    num_timepoints: Optional[int] = None,
    write_labels: bool = True,
) -> Path:
    """Convert a Tracks.tsv listing into Cell Tracking Challenge results.

    Writes ``res_track.txt`` with one ``track_id first last parent`` line per
    track and, unless ``write_labels`` is False, one uint16 label TIFF per
    timepoint (``output_00000.tif`` ...) of shape ``volume_shape`` (x, y, z)
    where each spot's voxel holds its track id. ``num_timepoints`` defaults
    to the last listed timepoint + 1. Returns the path of ``res_track.txt``.
    """

    if len(volume_shape) != 3:
        raise ValueError("volume_shape must have exactly three entries")

    listing = read_track_listing(listing_path)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    table = ctc_track_table(listing)
    res_path = out_dir / "res_track.txt"
    table.to_csv(res_path, sep=" ", header=False, index=False)
    logger.info("Written %s tracks to %s", len(table), res_path)

    if not write_labels:
        return res_path

    try:
        tifffile = import_module("tifffile")
    except ModuleNotFoundError as exc:  # pragma: no cover - dependency is optional
        raise ModuleNotFoundError(
            "tifffile is required for label volumes; install via `pip install hedgehog-analysis[ctc]`."
        ) from exc

    if num_timepoints is None:
        num_timepoints = int(listing["TIME"].max()) + 1 if len(listing) else 0
    for t, frame in _label_volumes(listing, volume_shape, num_timepoints):
        tifffile.imwrite(out_dir / f"output_{t:05d}.tif", frame)
    logger.info("Written %s label volumes to %s", num_timepoints, out_dir)
    return res_path


def dump_hedgehog(
    spines: Iterable[SpineRecord],
    track: Optional[Track],
    directory: str | Path,
    config: Optional[TrackExportConfig] = None,
) -> Path:
    """Write a hedgehog's spines and, if present, append its track.

    Returns the path of the spine CSV. Without a track only the spines are
    written.
    """

    cfg = config or TrackExportConfig()
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    hedgehog_path = write_spine_csv(spines, directory / f"Hedgehog_{cfg.track_id}.csv")
    if track is None:
        logger.warning("No track returned for hedgehog %s", cfg.track_id)
        return hedgehog_path

    append_track_listing(track, directory / "Tracks.tsv", cfg)
    return hedgehog_path
