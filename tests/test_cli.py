import numpy as np
import pytest

from conftest import spine_at
from hedgehog.cli import main
from hedgehog.spine_csv import read_spine_csv, write_spine_csv
from hedgehog.track_export import read_track_listing


def test_analyze_prints_track_and_appends_listing(tmp_path, capsys, line_spines):
    spines_path = write_spine_csv(line_spines(5), tmp_path / "Hedgehog_1.csv")
    tracks_path = tmp_path / "Tracks.tsv"

    code = main(
        [
            "analyze",
            str(spines_path),
            "--tracks",
            str(tracks_path),
            "--track-id",
            "3",
            "--dimensions",
            "2",
            "2",
            "2",
        ]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "Track with 5 points" in out
    rows = read_track_listing(tracks_path)
    assert len(rows) == 4
    assert rows["X"].tolist() == [0.0, 2.0, 4.0, 6.0]


def test_analyze_without_track_returns_error_code(tmp_path):
    path = tmp_path / "flat.csv"
    path.write_text("timepoint,confidence,samples\n0,0.5,0.0,0.0,0.0\n")

    assert main(["analyze", str(path), "--incomplete"]) == 1


def test_convert_writes_complete_layout(tmp_path):
    source = tmp_path / "incomplete.csv"
    source.write_text("timepoint,confidence,samples\n0,0.5,0.0,1.0,0.0\n2,0.25,1.0,0.0,1.0\n")
    target = tmp_path / "complete.csv"

    assert main(["convert", str(source), str(target)]) == 0

    spines = read_spine_csv(target)
    assert [s.timepoint for s in spines] == [0, 2]
    assert spines[1].samples == (1.0, 0.0, 1.0)


def test_ctc_writes_res_track(tmp_path, line_spines):
    spines_path = write_spine_csv(line_spines(3), tmp_path / "Hedgehog_1.csv")
    tracks_path = tmp_path / "Tracks.tsv"
    assert main(["analyze", str(spines_path), "--tracks", str(tracks_path), "--track-id", "5"]) == 0

    assert main(["ctc", str(tracks_path), str(tmp_path / "ctc"), "--no-labels"]) == 0

    assert (tmp_path / "ctc" / "res_track.txt").read_text() == "5 0 1 0\n"


def _two_way_spines():
    return [
        spine_at(0, (0.0, 0.0)),
        spine_at(1, (2.0, 0.0)),
        spine_at(1, (0.0, 1.5)),
    ]


def test_transform_changes_nearest_candidate(tmp_path, capsys):
    spines_path = write_spine_csv(_two_way_spines(), tmp_path / "Hedgehog_1.csv")
    matrix_path = tmp_path / "world.txt"
    np.savetxt(matrix_path, np.diag([1.0, 10.0, 1.0, 1.0]))

    assert main(["analyze", str(spines_path)]) == 0
    assert "1\t0.000000\t1.500000\t0.000000" in capsys.readouterr().out

    assert main(["analyze", str(spines_path), "--transform", str(matrix_path)]) == 0
    assert "1\t2.000000\t0.000000\t0.000000" in capsys.readouterr().out


def test_transform_must_be_4x4(tmp_path):
    spines_path = write_spine_csv(_two_way_spines(), tmp_path / "Hedgehog_1.csv")
    matrix_path = tmp_path / "world.txt"
    np.savetxt(matrix_path, np.identity(3))

    with pytest.raises(SystemExit) as exc_info:
        main(["analyze", str(spines_path), "--transform", str(matrix_path)])
    assert exc_info.value.code == 2


def test_invalid_jobs_is_a_usage_error(tmp_path, line_spines):
    spines_path = write_spine_csv(line_spines(3), tmp_path / "Hedgehog_1.csv")

    with pytest.raises(SystemExit) as exc_info:
        main(["analyze", str(spines_path), "--jobs", "0"])
    assert exc_info.value.code == 2


def test_unknown_log_level_is_a_usage_error(tmp_path, line_spines):
    spines_path = write_spine_csv(line_spines(3), tmp_path / "Hedgehog_1.csv")

    with pytest.raises(SystemExit) as exc_info:
        main(["--log-level", "LOUD", "analyze", str(spines_path)])
    assert exc_info.value.code == 2


def test_log_level_is_case_insensitive(tmp_path, line_spines):
    spines_path = write_spine_csv(line_spines(3), tmp_path / "Hedgehog_1.csv")

    assert main(["--log-level", "debug", "analyze", str(spines_path)]) == 0
