"""Read and write hedgehog spine CSV files.

Two layouts exist:

- incomplete: ``timepoint,confidence,sample_0,...,sample_N`` (comma separated),
  without ray geometry;
- complete: ``timepoint;origin;direction;localEntry;localExit;localDirection;
  headPosition;headOrientation;position;confidence;sample_0;...;sample_N``
  (semicolon separated). Vectors are written as ``[[x, y, z]]`` and
  orientations as ``Quaternion[x .., y .., z .., w ..]``.

In both layouts the samples are a trailing, variable-length run of columns
after a fixed prefix. The first line is a header and is skipped; blank lines
and ``#`` comment lines are ignored.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from .domain import QuaternionXYZW, SpineRecord, Vector3

logger = logging.getLogger(__name__)

HEADER = (
    "Timepoint,Origin,Direction,LocalEntry,LocalExit,LocalDirection,"
    "HeadPosition,HeadOrientation,Position,Confidence,Samples"
)

COMPLETE_PREFIX_COLUMNS = 10
INCOMPLETE_PREFIX_COLUMNS = 2

_NULL_TOKENS = {"", "null", "None", "nan", "NaN"}


class SpineCSVError(ValueError):
    """Raised for a spine CSV row that cannot be parsed."""

    def __init__(self, message: str, line_number: Optional[int] = None) -> None:
        self.line_number = line_number
        prefix = f"line {line_number}: " if line_number is not None else ""
        super().__init__(prefix + message)


def format_vector(values: Sequence[float]) -> str:
    return "[[" + ", ".join(repr(float(v)) for v in values) + "]]"


def format_quaternion(q: Sequence[float]) -> str:
    x, y, z, w = (float(v) for v in q)
    return f"Quaternion[x {x!r}, y {y!r}, z {z!r}, w {w!r}]"


def parse_vector(token: str) -> Vector3:
    cleaned = token.strip().replace("[[", "").replace("]]", "").strip("[]() ")
    parts = [p.strip() for p in cleaned.split(",")]
    try:
        values = [float(p) for p in parts]
    except ValueError as exc:
        raise SpineCSVError(f"invalid vector literal {token!r}") from exc
    if len(values) != 3:
        raise SpineCSVError(f"vector literal {token!r} has {len(values)} components, expected 3")
    return (values[0], values[1], values[2])


def parse_quaternion(token: str) -> QuaternionXYZW:
    cleaned = token.strip().replace("Quaternion[", "").replace("]", "")
    values = []
    for part in cleaned.split(","):
        part = part.strip()
        if part[:2] in ("x ", "y ", "z ", "w "):
            part = part[2:]
        try:
            values.append(float(part))
        except ValueError as exc:
            raise SpineCSVError(f"invalid quaternion literal {token!r}") from exc
    if len(values) != 4:
        raise SpineCSVError(f"quaternion literal {token!r} has {len(values)} components, expected 4")
    return (values[0], values[1], values[2], values[3])


def _parse_sample(token: str) -> Optional[float]:
    token = token.strip()
    if token in _NULL_TOKENS:
        return None
    return float(token)


def _format_sample(value: Optional[float]) -> str:
    return "null" if value is None else repr(float(value))


def _data_lines(path: str | Path) -> Iterator[Tuple[int, str]]:
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    for number, line in enumerate(lines[1:], start=2):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        yield number, line


def _split_row(line: str, separator: str, prefix_columns: int, line_number: int) -> List[str]:
    tokens = line.split(separator)
    if len(tokens) > prefix_columns and tokens[-1].strip() == "":
        tokens = tokens[:-1]
    if len(tokens) < prefix_columns:
        raise SpineCSVError(
            f"expected at least {prefix_columns} fields, got {len(tokens)}", line_number
        )
    return tokens


def parse_incomplete_row(line: str, separator: str = ",", line_number: int = 0) -> SpineRecord:
    tokens = _split_row(line, separator, INCOMPLETE_PREFIX_COLUMNS, line_number)
    try:
        return SpineRecord(
            timepoint=int(tokens[0]),
            confidence=float(tokens[1]),
            samples=tuple(_parse_sample(t) for t in tokens[INCOMPLETE_PREFIX_COLUMNS:]),
        )
    except ValueError as exc:
        if isinstance(exc, SpineCSVError):
            raise
        raise SpineCSVError(str(exc), line_number) from exc


def parse_complete_row(line: str, separator: str = ";", line_number: int = 0) -> SpineRecord:
    tokens = _split_row(line, separator, COMPLETE_PREFIX_COLUMNS, line_number)
    try:
        return SpineRecord(
            timepoint=int(tokens[0]),
            origin=parse_vector(tokens[1]),
            direction=parse_vector(tokens[2]),
            local_entry=parse_vector(tokens[3]),
            local_exit=parse_vector(tokens[4]),
            local_direction=parse_vector(tokens[5]),
            head_position=parse_vector(tokens[6]),
            head_orientation=parse_quaternion(tokens[7]),
            position=parse_vector(tokens[8]),
            confidence=float(tokens[9]),
            samples=tuple(_parse_sample(t) for t in tokens[COMPLETE_PREFIX_COLUMNS:]),
        )
    except SpineCSVError as exc:
        if exc.line_number is None:
            raise SpineCSVError(str(exc), line_number) from exc
        raise
    except ValueError as exc:
        raise SpineCSVError(str(exc), line_number) from exc


def read_incomplete_spine_csv(path: str | Path, separator: str = ",") -> List[SpineRecord]:
    """Load spines that only carry timepoint, confidence and samples."""
    logger.info("Loading spines from incomplete CSV at %s", path)
    return [parse_incomplete_row(line, separator, number) for number, line in _data_lines(path)]


def read_spine_csv(path: str | Path, separator: str = ";") -> List[SpineRecord]:
    """Load spines written in the complete layout."""
    logger.info("Loading spines from complete CSV at %s", path)
    return [parse_complete_row(line, separator, number) for number, line in _data_lines(path)]


def format_spine_row(spine: SpineRecord, separator: str = ";") -> str:
    fields = [
        str(spine.timepoint),
        format_vector(spine.origin),
        format_vector(spine.direction),
        format_vector(spine.local_entry),
        format_vector(spine.local_exit),
        format_vector(spine.local_direction),
        format_vector(spine.head_position),
        format_quaternion(spine.head_orientation),
        format_vector(spine.position),
        repr(float(spine.confidence)),
    ]
    fields.extend(_format_sample(s) for s in spine.samples)
    return separator.join(fields)


def write_spine_csv(spines: Iterable[SpineRecord], path: str | Path, separator: str = ";") -> Path:
    """Write spines in the complete layout, one row per spine."""
    path = Path(path)
    rows = [HEADER] + [format_spine_row(spine, separator) for spine in spines]
    path.write_text("\n".join(rows) + "\n", encoding="utf-8")
    logger.info("Written %s spines to %s", len(rows) - 1, path)
    return path


def spines_to_frame(spines: Iterable[SpineRecord]) -> pd.DataFrame:
    """Summarise spines as one DataFrame row each."""
    records = []
    for spine in spines:
        samples = spine.filled_samples()
        records.append(
            {
                "timepoint": spine.timepoint,
                "confidence": spine.confidence,
                "sample_count": len(samples),
                "max_sample": max(samples) if samples else float("nan"),
            }
        )
    return pd.DataFrame.from_records(
        records, columns=["timepoint", "confidence", "sample_count", "max_sample"]
    )
