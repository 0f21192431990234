# pylint: disable=too-many-locals

from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import plotly.graph_objects as go
import plotly.subplots as sp
from metrics import acf_1d

COLORS = [
    "blue",
    "red",
    "green",
    "orange",
    "purple",
    "brown",
    "pink",
    "gray",
    "olive",
    "cyan",
]

TRACE_LABELS = {"n_clusters": "K", "log_joint": "\\log p(y, z, \\mu)"}


def setup_plot_positions(n_chains: int):
    """Set up subplot positions for per-chain diagnostic plots.

    Args:
        n_chains: Number of chains.

    Returns:
        List of (row, col) subplot coordinates, one per chain.
    """
    cols = min(2, n_chains)
    positions = []
    for i in range(n_chains):
        row = (i // cols) + 1
        col = (i % cols) + 1
        positions.append((row, col))

    return positions


def _chain_subplots(n_chains: int):
    positions = setup_plot_positions(n_chains)
    n_rows = max(positions, key=lambda x: x[0])[0]
    n_cols = max(positions, key=lambda x: x[1])[1]
    fig = sp.make_subplots(
        rows=n_rows,
        cols=n_cols,
        subplot_titles=[f"Chain {c + 1}" for c in range(n_chains)],
    )
    return fig, positions


def _finish_layout(fig: go.Figure, title: str, **layout) -> go.Figure:
    fig.update_layout(
        height=600,
        width=1000,
        title_text=title,
        plot_bgcolor="white",
        paper_bgcolor="white",
        **layout,
    )
    fig.update_xaxes(gridcolor="lightgray")
    fig.update_yaxes(gridcolor="lightgray")
    return fig


def create_trace_plots(traces: List[np.ndarray], trace_name: str = "n_clusters"):
    """Create trace plots of a scalar quantity for all chains.

    Args:
        traces: One per-sweep trace per chain.
        trace_name: Name of the traced quantity ("n_clusters" or "log_joint").

    Returns:
        Plotly figure with one subplot per chain.
    """
    fig, positions = _chain_subplots(len(traces))
    label = TRACE_LABELS.get(trace_name, trace_name)
    for c, (row, col) in enumerate(positions):
        fig.add_trace(
            go.Scatter(
                y=traces[c],
                mode="lines",
                line={"width": 0.8, "color": COLORS[c % len(COLORS)]},
                name=f"${label}$",
                showlegend=(c == 0),
            ),
            row=row,
            col=col,
        )
    return _finish_layout(fig, f"$\\text{{Trace Plots by Chain - }}{label}$")


def create_acf_plots(traces: List[np.ndarray], trace_name: str = "n_clusters"):
    """Create autocorrelation function plots of a scalar quantity for all chains.

    Args:
        traces: One per-sweep trace per chain.
        trace_name: Name of the traced quantity.

    Returns:
        Plotly figure with one subplot per chain.
    """
    fig, positions = _chain_subplots(len(traces))
    label = TRACE_LABELS.get(trace_name, trace_name)
    for c, (row, col) in enumerate(positions):
        acf_vals = acf_1d(traces[c])
        fig.add_trace(
            go.Scatter(
                x=list(range(len(acf_vals))),
                y=acf_vals,
                mode="markers+lines",
                line={"color": COLORS[c % len(COLORS)]},
                marker={"color": COLORS[c % len(COLORS)]},
                name=f"${label}$",
                showlegend=(c == 0),
            ),
            row=row,
            col=col,
        )
    return _finish_layout(fig, f"$\\text{{ACF Plots by Chain - }}{label}$")


def create_cluster_count_histogram(traces: List[np.ndarray], burn: int = 0):
    """Histogram of the posterior number of clusters, one bar group per chain."""
    fig = go.Figure()
    for c, trace in enumerate(traces):
        fig.add_trace(
            go.Histogram(
                x=np.asarray(trace)[burn:],
                opacity=0.6,
                marker={"color": COLORS[c % len(COLORS)]},
                name=f"Chain {c + 1}",
            )
        )
    return _finish_layout(fig, "Posterior number of clusters", barmode="overlay")


def create_partition_plot(
    y: np.ndarray,
    labels: np.ndarray,
    means: Optional[np.ndarray] = None,
    title: str = "Partition",
):
    """Scatter plot of the first two coordinates colored by cluster.

    Args:
        y: Data points, shape (N, p) with p >= 1.
        labels: 1-based cluster label of each point.
        means: Cluster means, shape (K, p), drawn as crosses (optional).
        title: Figure title.

    Returns:
        Plotly figure.
    """
    y = np.asarray(y)
    second = y[:, 1] if y.shape[1] > 1 else np.zeros(len(y))
    fig = go.Figure()
    for k in np.unique(labels):
        idx = labels == k
        color = COLORS[(k - 1) % len(COLORS)]
        fig.add_trace(
            go.Scatter(
                x=y[idx, 0],
                y=second[idx],
                mode="markers",
                marker={"color": color, "size": 6, "opacity": 0.7},
                name=f"Cluster {k} (n = {idx.sum()})",
            )
        )
    if means is not None:
        means = np.asarray(means)
        fig.add_trace(
            go.Scatter(
                x=means[:, 0],
                y=means[:, 1] if means.shape[1] > 1 else np.zeros(len(means)),
                mode="markers",
                marker={"color": "black", "size": 12, "symbol": "x"},
                name="Cluster means",
            )
        )
    return _finish_layout(fig, title, xaxis_title="y_1", yaxis_title="y_2")


def create_diagnostic_plots(
    sampler_name: str,
    results: List,
    y: np.ndarray,
    figure_dir: Union[str, Path],
    burn: int = 0,
):
    """Create all diagnostic plots and save them as PNG files.

    Writes trace and ACF plots of the number of clusters and of the log joint,
    the posterior histogram of K and the final partition of the first chain.

    Args:
        sampler_name: Name of the sampling algorithm used, used as file prefix.
        results: One ChainResult per chain.
        y: Data points.
        figure_dir: Directory in which to write the images.
        burn: Number of burn-in sweeps excluded from the histogram.
    """
    figure_dir = Path(figure_dir)
    figure_dir.mkdir(parents=True, exist_ok=True)

    for trace_name in ("n_clusters", "log_joint"):
        traces = [getattr(r, trace_name) for r in results]
        create_trace_plots(traces, trace_name).write_image(
            figure_dir / f"{sampler_name}_trace_{trace_name}.png"
        )
        create_acf_plots(traces, trace_name).write_image(
            figure_dir / f"{sampler_name}_acf_{trace_name}.png"
        )

    create_cluster_count_histogram([r.n_clusters for r in results], burn).write_image(
        figure_dir / f"{sampler_name}_hist_n_clusters.png"
    )
    final = results[0].state
    create_partition_plot(
        y, final.labels, final.mu, title=f"Final partition (K = {final.K})"
    ).write_image(figure_dir / f"{sampler_name}_partition.png")
