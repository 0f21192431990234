import numpy as np
from plots import (
    create_acf_plots,
    create_cluster_count_histogram,
    create_partition_plot,
    create_trace_plots,
    setup_plot_positions,
)


def test_setup_plot_positions():
    assert setup_plot_positions(1) == [(1, 1)]
    assert setup_plot_positions(3) == [(1, 1), (1, 2), (2, 1)]


def test_trace_and_acf_plots_have_one_trace_per_chain():
    traces = [np.array([1, 2, 2, 3, 3, 3]), np.array([1, 1, 2, 2, 2, 2])]

    assert len(create_trace_plots(traces).data) == 2
    assert len(create_acf_plots(traces, "log_joint").data) == 2
    assert len(create_cluster_count_histogram(traces, burn=2).data) == 2


def test_partition_plot_has_one_trace_per_cluster_and_means():
    y = np.array([[0.0, 0.0], [0.1, 0.0], [5.0, 5.0]])
    labels = np.array([1, 1, 2])

    fig = create_partition_plot(y, labels, np.array([[0.05, 0.0], [5.0, 5.0]]))

    assert len(fig.data) == 3
    assert fig.data[0].name == "Cluster 1 (n = 2)"


def test_partition_plot_one_dimensional():
    fig = create_partition_plot(np.array([[0.0], [1.0]]), np.array([1, 2]))

    assert len(fig.data) == 2
