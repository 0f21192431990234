import json

import numpy as np
import pytest
from metrics import (
    acf_1d,
    canonical_labels,
    co_clustering_matrix,
    compute_credible_intervals,
    contingency_table,
    create_metrics,
    ess_multichain,
    misassignment_rate,
    modal_partition,
    partition_agreement,
    rhat_scalar,
    trace_summary,
)
from samplers import run_parallel_chains


def test_canonical_labels():
    np.testing.assert_array_equal(canonical_labels(np.array([3, 3, 1, 2, 1])), [1, 1, 2, 3, 2])
    np.testing.assert_array_equal(canonical_labels(np.array([5])), [1])


def test_modal_partition_ignores_label_names():
    samples = np.array([[1, 1, 2], [2, 2, 1], [1, 2, 3], [3, 3, 1]])

    partition, freq = modal_partition(samples)

    np.testing.assert_array_equal(partition, [1, 1, 2])
    assert freq == pytest.approx(0.75)


def test_co_clustering_matrix():
    samples = np.array([[1, 1, 2], [1, 2, 2]])

    together = co_clustering_matrix(samples)

    np.testing.assert_allclose(
        together, [[1.0, 0.5, 0.0], [0.5, 1.0, 0.5], [0.0, 0.5, 1.0]]
    )


def test_contingency_table():
    table = contingency_table(np.array([1, 1, 2, 2]), np.array([3, 3, 3, 4]))

    np.testing.assert_array_equal(table, [[2, 0], [1, 1]])


def test_misassignment_rate_is_label_invariant():
    truth = np.array([1, 1, 1, 2, 2, 2, 3, 3])

    assert misassignment_rate(truth, np.array([2, 2, 2, 3, 3, 3, 1, 1])) == 0.0
    assert misassignment_rate(truth, np.array([2, 2, 3, 3, 3, 3, 1, 1])) == pytest.approx(1 / 8)
    # a spurious fourth cluster cannot be matched
    assert misassignment_rate(truth, np.array([1, 1, 1, 2, 2, 4, 3, 3])) == pytest.approx(1 / 8)
    # merging two true clusters loses the smaller one
    assert misassignment_rate(truth, np.array([1, 1, 1, 1, 1, 1, 3, 3])) == pytest.approx(3 / 8)


def test_partition_agreement():
    truth = np.array([1, 1, 2, 2])

    agreement = partition_agreement(truth, np.array([2, 2, 1, 1]))

    assert agreement["misassignment_rate"] == 0.0
    assert agreement["adjusted_rand_index"] == pytest.approx(1.0)
    assert agreement["n_true_clusters"] == 2
    assert agreement["n_clusters"] == 2


def test_acf_1d():
    rng = np.random.default_rng(0)
    acf = acf_1d(rng.normal(size=2000), max_lag=10)

    assert acf.shape == (11,)
    assert acf[0] == pytest.approx(1.0)
    assert np.all(np.abs(acf[1:]) < 0.1)

    constant = acf_1d(np.full(50, 3.0), max_lag=5)
    np.testing.assert_allclose(constant, [1, 0, 0, 0, 0, 0])


def test_ess_of_independent_draws_is_close_to_sample_size():
    rng = np.random.default_rng(1)
    chains = [rng.normal(size=1000) for _ in range(2)]

    ess = ess_multichain(chains)

    assert 1000 < ess <= 2000


def test_ess_of_correlated_chain_is_small():
    rng = np.random.default_rng(2)
    walk = np.cumsum(rng.normal(size=1000))

    assert ess_multichain([walk]) < 100


def test_rhat():
    rng = np.random.default_rng(3)
    mixed = [rng.normal(size=500) for _ in range(4)]
    stuck = [rng.normal(loc, 0.1, size=500) for loc in (0.0, 5.0)]

    assert rhat_scalar(mixed) == pytest.approx(1.0, abs=0.02)
    assert rhat_scalar(stuck) > 2.0
    assert np.isnan(rhat_scalar([np.ones(10), np.ones(10)]))
    assert np.isnan(rhat_scalar([rng.normal(size=10)]))


def test_credible_intervals():
    lower, upper = compute_credible_intervals(np.arange(1001.0))

    assert lower == pytest.approx(25.0)
    assert upper == pytest.approx(975.0)


def test_trace_summary():
    traces = [np.array([5, 5, 2, 2, 3]), np.array([9, 2, 3, 3, 2])]

    summary = trace_summary(traces, burn=2)

    assert summary["mean"] == pytest.approx(15 / 6)
    assert set(summary) == {"mean", "ci_lower", "ci_upper", "rhat", "ess"}

    with pytest.raises(ValueError):
        trace_summary(traces, burn=5)


def test_create_metrics_writes_json(tmp_path, three_points):
    y, hyper = three_points
    results = run_parallel_chains(y, hyper, n_iter=6, n_chains=2, n_jobs=1)
    metrics_file = tmp_path / "example" / "metrics.json"
    metrics_file.parent.mkdir()
    metrics_file.write_text(json.dumps({"other": {"kept": True}}), encoding="utf-8")

    metrics = create_metrics(
        results, metrics_file, burn=2, true_labels=np.array([1, 1, 2])
    )

    stored = json.loads(metrics_file.read_text(encoding="utf-8"))
    assert stored["other"] == {"kept": True}
    assert stored["gibbs"]["final_n_clusters"] == [r.state.K for r in results]
    assert stored["gibbs"]["n_sweeps"] == [6, 6]
    assert len(stored["gibbs"]["agreement"]) == 2
    assert metrics["n_clusters"]["mean"] >= 1
