import numpy as np
import pytest

from hedgehog.analysis import HedgehogAnalysis, edge_statistics, prune_outliers, z_scores
from hedgehog.config import HedgehogAnalysisConfig
from hedgehog.domain import SpineRecord

from conftest import spine_at


def test_straight_line_yields_full_track(line_spines):
    analysis = HedgehogAnalysis(line_spines(5))
    track = analysis.run()

    assert track is not None
    assert len(track) == 5
    assert track.timepoints() == [0, 1, 2, 3, 4]
    assert track.confidence == pytest.approx(0.9)
    assert len(analysis.chain) == 5
    np.testing.assert_allclose(track.positions()[:, 0], [0.0, 1.0, 2.0, 3.0, 4.0])


def test_timepoint_without_maximum_leaves_a_gap(line_spines):
    spines = line_spines(5)
    spines[2] = spine_at(2, (2.0, 0.0), samples=(0.0, 0.0, 0.0, 0.0, 0.0))
    analysis = HedgehogAnalysis(spines)
    track = analysis.run()

    assert len(analysis.graph) == 4
    assert track.timepoints() == [0, 1, 3, 4]
    second = analysis.chain[1]
    assert analysis.chain.next_of(second).timepoint == 3
    assert analysis.chain.edge_length(second) == pytest.approx(2.0)


def test_displaced_first_vertex_is_pruned_with_its_neighbour():
    spines = [spine_at(0, (0.0, 100.0))] + [spine_at(t, (float(t), 0.0)) for t in range(1, 10)]
    track = HedgehogAnalysis(spines).run()

    assert track.timepoints() == [2, 3, 4, 5, 6, 7, 8, 9]


def test_displaced_middle_vertex_with_frozen_statistics():
    spines = [spine_at(t, (float(t), 100.0 if t == 10 else 0.0)) for t in range(20)]
    config = HedgehogAnalysisConfig(recompute_statistics=False)
    track = HedgehogAnalysis(spines, config=config).run()

    assert len(track) == 16
    assert not {8, 9, 10, 11} & set(track.timepoints())


def test_displaced_middle_vertex_with_recomputed_statistics():
    spines = [spine_at(t, (float(t), 100.0 if t == 10 else 0.0)) for t in range(20)]
    analysis = HedgehogAnalysis(spines)
    track = analysis.run()

    # each removal leaves a longer bridge that is an outlier again
    assert track.timepoints() == [16, 17, 18, 19]
    assert analysis.chain.is_consistent()


def test_chain_linkage_invariant_after_run(line_spines):
    analysis = HedgehogAnalysis(line_spines(6))
    analysis.run()

    for vertex in list(analysis.chain)[:-1]:
        assert analysis.chain.next_of(vertex).previous == vertex.index


def test_pruning_is_idempotent_on_pruned_chain():
    spines = [spine_at(0, (0.0, 100.0))] + [spine_at(t, (float(t), 0.0)) for t in range(1, 10)]
    analysis = HedgehogAnalysis(spines)
    analysis.run()
    order = list(analysis.chain.order)

    assert prune_outliers(analysis.chain) == 0
    assert analysis.chain.order == order


def test_empty_input_reports_no_track():
    analysis = HedgehogAnalysis([])

    assert analysis.run() is None
    assert analysis.avg_confidence == 0.0


def test_no_timepoint_above_starting_threshold():
    spines = [SpineRecord(timepoint=t, confidence=0.5, samples=(0.0, 0.01, 0.0)) for t in range(3)]

    assert HedgehogAnalysis(spines).run() is None


def test_timepoints_before_start_are_discarded(line_spines):
    spines = line_spines(4)
    spines[0] = spine_at(0, (0.0, 0.0), samples=(0.0, 0.015, 0.0))
    analysis = HedgehogAnalysis(spines)
    track = analysis.run()

    assert 0 not in analysis.timepoints
    assert track.timepoints() == [1, 2, 3]
    assert analysis.total_sample_count == 4


def test_gap_measures_from_unadvanced_tip():
    spines = [
        spine_at(0, (0.0, 0.0)),
        spine_at(1, (50.0, 0.0), samples=(0.0, 0.005, 0.0)),
        spine_at(2, (9.0, 0.0)),
        spine_at(2, (1.0, 1.0)),
        spine_at(3, (2.0, 1.0)),
    ]
    analysis = HedgehogAnalysis(spines)
    analysis.run()

    chosen = analysis.chain[1]
    assert chosen.timepoint == 2
    np.testing.assert_allclose(chosen.world_position[:2], [1.0, 1.0])


def test_first_candidate_at_start_wins_without_ranking():
    spines = [
        spine_at(0, (5.0, 5.0), samples=(0.0, 0.5, 0.0)),
        spine_at(0, (0.0, 0.0), samples=(0.0, 9.0, 0.0)),
        spine_at(1, (0.0, 0.0)),
    ]
    analysis = HedgehogAnalysis(spines)
    analysis.run()

    np.testing.assert_allclose(analysis.chain[0].world_position[:2], [5.0, 5.0])


def test_inconsistent_direction_is_filtered(line_spines):
    spines = line_spines(5)
    spines[3] = spine_at(3, (3.0, 0.0), direction=(0.0, 0.0, 1.0))
    track = HedgehogAnalysis(spines).run()

    # t=3 disagrees with t=2, and t=4 disagrees with its chain predecessor t=3
    assert track.timepoints() == [0, 1, 2]


def test_output_positions_skip_world_transform(line_spines):
    matrix = np.diag([3.0, 3.0, 3.0, 1.0])
    analysis = HedgehogAnalysis(line_spines(3), local_to_world=matrix)
    track = analysis.run()

    np.testing.assert_allclose(track.positions()[:, 0], [0.0, 1.0, 2.0])
    np.testing.assert_allclose(analysis.chain[2].world_position[0], 6.0)


def test_run_is_one_shot(line_spines):
    analysis = HedgehogAnalysis(line_spines(3))
    analysis.run()

    with pytest.raises(RuntimeError):
        analysis.run()


def test_track_length(line_spines):
    track = HedgehogAnalysis(line_spines(4)).run()

    assert track.length() == pytest.approx(3.0)


def test_statistics_handle_degenerate_input():
    assert edge_statistics([]) == (0.0, 0.0)
    mean, stddev = edge_statistics([1.0, 1.0, 1.0])
    assert mean == pytest.approx(1.0)
    assert stddev == 0.0
    assert z_scores([1.0, 1.0], mean, stddev) == [0.0, 0.0]


def test_population_stddev():
    mean, stddev = edge_statistics([1.0, 1.0, 1.0, 1.0, 0.0])

    assert mean == pytest.approx(0.8)
    assert stddev == pytest.approx(0.4)


@pytest.mark.parametrize(
    "kwargs",
    [{"z_score_threshold": 0.0}, {"direction_threshold": 1.5}, {"n_jobs": 0}],
)
def test_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        HedgehogAnalysisConfig(**kwargs)


def _displaced_line(count, displaced):
    return [spine_at(t, (float(t), 100.0 if t == displaced else 0.0)) for t in range(count)]


@pytest.mark.parametrize("recompute", [True, False])
def test_single_interior_outlier_among_ten_stays_below_cutoff(recompute):
    # two equal long edges among ten give z just under 2.0 with population stddev
    config = HedgehogAnalysisConfig(recompute_statistics=recompute)
    analysis = HedgehogAnalysis(_displaced_line(10, 5), config=config)
    track = analysis.run()

    assert track.timepoints() == list(range(10))
    scores = z_scores(analysis.chain.edge_lengths(), *edge_statistics(analysis.chain.edge_lengths()))
    assert 1.999 < max(scores) < 2.0


def test_outlier_at_the_end_of_ten_is_pruned():
    track = HedgehogAnalysis(_displaced_line(10, 9)).run()

    assert track.timepoints() == [0, 1, 2, 3, 4, 5, 6]


def _chain_at(xs):
    spines = [spine_at(t, (x, 0.0)) for t, x in enumerate(xs)]
    analysis = HedgehogAnalysis(spines, config=HedgehogAnalysisConfig(z_score_threshold=100.0))
    analysis.run()
    return analysis.chain


def test_z_score_equal_to_threshold_is_not_pruned():
    chain = _chain_at([0.0, 1.0, 2.0, 3.0, 10.0])
    lengths = chain.edge_lengths()
    threshold = max(z_scores(lengths, *edge_statistics(lengths)))

    assert prune_outliers(chain, z_score_threshold=threshold) == 0
    assert len(chain) == 5


def test_z_score_above_threshold_is_pruned():
    chain = _chain_at([0.0, 1.0, 2.0, 3.0, 10.0])
    lengths = chain.edge_lengths()
    threshold = float(np.nextafter(max(z_scores(lengths, *edge_statistics(lengths))), 0.0))

    assert prune_outliers(chain, z_score_threshold=threshold) == 3
    assert [v.timepoint for v in chain] == [0, 1]
