# pylint: disable=too-many-locals

import json
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from numba import jit
from scipy.optimize import linear_sum_assignment
from sklearn.metrics import adjusted_rand_score
from sklearn.metrics.cluster import contingency_matrix


def canonical_labels(labels: np.ndarray) -> np.ndarray:
    """
    Relabel a partition by order of first appearance.

    Two assignment vectors describe the same partition exactly when their
    canonical labels are equal.

    Args:
        labels: Cluster label for each data point.

    Returns:
        Labels 1..K, the first point always in cluster 1.
    """
    _, first, inverse = np.unique(labels, return_index=True, return_inverse=True)
    rank = np.empty(len(first), dtype=int)
    rank[np.argsort(first)] = np.arange(1, len(first) + 1)
    return rank[inverse.ravel()]


def modal_partition(assignments: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Find the most frequent partition among posterior samples.

    Args:
        assignments: Sampled labels, shape (S, N).

    Returns:
        Tuple of (canonical labels of the modal partition, its frequency).
    """
    assignments = np.atleast_2d(assignments)
    counter = Counter(tuple(canonical_labels(z)) for z in assignments)
    partition, count = counter.most_common(1)[0]
    return np.array(partition), count / assignments.shape[0]


def co_clustering_matrix(assignments: np.ndarray) -> np.ndarray:
    """
    Posterior probability that two points share a cluster.

    Args:
        assignments: Sampled labels, shape (S, N).

    Returns:
        Symmetric (N, N) matrix of co-assignment frequencies.
    """
    assignments = np.atleast_2d(assignments)
    together = np.zeros((assignments.shape[1], assignments.shape[1]))
    for z in assignments:
        together += z[:, np.newaxis] == z[np.newaxis, :]
    return together / assignments.shape[0]


def contingency_table(true_labels: np.ndarray, labels: np.ndarray) -> np.ndarray:
    """Counts of points per (true cluster, inferred cluster) pair."""
    return contingency_matrix(true_labels, labels)


def misassignment_rate(true_labels: np.ndarray, labels: np.ndarray) -> float:
    """
    Fraction of points assigned to the wrong cluster.

    Inferred clusters are matched one-to-one to true clusters so as to maximize
    agreement (Hungarian algorithm on the contingency table); points in
    unmatched clusters count as errors.

    Args:
        true_labels: Generating cluster of each point.
        labels: Inferred cluster of each point.

    Returns:
        Misassignment rate in [0, 1].
    """
    table = contingency_table(true_labels, labels)
    rows, cols = linear_sum_assignment(table, maximize=True)
    return 1.0 - table[rows, cols].sum() / table.sum()


def partition_agreement(true_labels: np.ndarray, labels: np.ndarray) -> Dict[str, float]:
    """Summary of how well an inferred partition matches the truth."""
    return {
        "misassignment_rate": float(misassignment_rate(true_labels, labels)),
        "adjusted_rand_index": float(adjusted_rand_score(true_labels, labels)),
        "n_true_clusters": int(len(np.unique(true_labels))),
        "n_clusters": int(len(np.unique(labels))),
    }


def acf_1d(x: np.ndarray, max_lag: int = 100):
    """
    Compute autocorrelation function for a 1D time series.

    Uses FFT to compute the autocorrelation function efficiently.

    Args:
        x: Input time series.
        max_lag: Maximum lag to compute autocorrelation for.

    Returns:
        Autocorrelation values from lag 0 to max_lag. A constant series has
        autocorrelation 1 at lag 0 and 0 elsewhere.
    """
    x = np.asarray(x, dtype=float)
    n = len(x)
    max_lag = min(max_lag, n - 1)
    x = x - x.mean()
    n_fft = 2 ** int(np.ceil(np.log2(2 * n - 1))) if n > 1 else 1
    x_padded = np.zeros(n_fft)
    x_padded[:n] = x

    X = np.fft.fft(x_padded)
    ac = np.fft.ifft(X * np.conj(X)).real[: max_lag + 1]

    if ac[0] <= 0:
        out = np.zeros(max_lag + 1)
        out[0] = 1.0
        return out
    return ac / ac[0]


def ess_multichain(chains: List[np.ndarray], max_lag: int = 100):
    """
    Compute effective sample size for multiple chains.

    Uses the autocorrelation function to estimate the effective
    sample size accounting for serial correlation across multiple chains.

    Args:
        chains: List of MCMC chains for the same scalar quantity.
        max_lag: Maximum lag to use in autocorrelation computation.

    Returns:
        Effective sample size.
    """
    m = len(chains)
    n = min(len(c) for c in chains)
    chains_array = np.array([np.asarray(c[:n], dtype=float) for c in chains])

    acf_chains = np.array([acf_1d(c, max_lag) for c in chains_array])
    mean_acf = acf_chains.mean(axis=0)

    rho_sum = 0.0
    for k in range(1, len(mean_acf) - 1, 2):
        pair = mean_acf[k] + mean_acf[k + 1]
        if pair < 0:
            break
        rho_sum += pair

    ess = m * n / (1 + 2 * rho_sum)
    ess = min(ess, m * n)
    return ess


@jit(nopython=True)
def rhat_scalar_numba(chains_array: np.ndarray):
    """
    Compute R-hat convergence diagnostic using Numba optimization.

    Args:
        chains_array: 2D array where each row is a chain.

    Returns:
        R-hat value.
    """
    m, n = chains_array.shape
    chain_means = np.zeros(m)
    for i in range(m):
        chain_means[i] = np.mean(chains_array[i])

    W = 0.0
    for i in range(m):
        chain_var = 0.0
        for j in range(n):
            chain_var += (chains_array[i, j] - chain_means[i]) ** 2
        W += chain_var / (n - 1)
    W /= m

    overall_mean = np.mean(chain_means)
    B = 0.0
    for i in range(m):
        B += (chain_means[i] - overall_mean) ** 2
    B = n * B / (m - 1)

    var_hat = (n - 1) / n * W + B / n
    return np.sqrt(var_hat / W)


def rhat_scalar(chains: List[np.ndarray]):
    """
    Compute R-hat convergence diagnostic for multiple chains.

    Values close to 1 indicate good convergence. Returns NaN when fewer than
    two chains or two samples are available, or when every chain is constant.

    Args:
        chains: List of chains for the same scalar quantity.

    Returns:
        R-hat value.
    """
    n = min(len(c) for c in chains)
    if len(chains) < 2 or n < 2:
        return float("nan")
    chains_array = np.array([np.asarray(c[:n], dtype=float) for c in chains])
    if np.all(chains_array.var(axis=1) == 0):
        return float("nan")

    return float(rhat_scalar_numba(chains_array))


def compute_credible_intervals(pooled: np.ndarray, alpha: float = 0.05):
    """
    Compute credible intervals from posterior samples.

    Args:
        pooled: Pooled posterior samples.
        alpha: Significance level (default 0.05 for 95% CI).

    Returns:
        Tuple of (lower, upper) bounds of the credible interval.
    """
    lower_percentile = 100 * alpha / 2
    upper_percentile = 100 * (1 - alpha / 2)

    percentiles = np.percentile(pooled, [lower_percentile, upper_percentile], axis=0)

    return percentiles[0], percentiles[1]


def trace_summary(chains: List[np.ndarray], burn: int = 0) -> Dict[str, float]:
    """
    Posterior summary and convergence diagnostics of a scalar trace.

    Args:
        chains: Per-chain traces of the same quantity (e.g. number of clusters).
        burn: Number of leading sweeps to drop from every chain.

    Returns:
        Dictionary with mean, credible interval, R-hat and ESS.
    """
    kept = [np.asarray(c[burn:], dtype=float) for c in chains]
    kept = [c for c in kept if len(c)]
    if not kept:
        raise ValueError("no samples left after burn-in")
    pooled = np.concatenate(kept)
    ci_lower, ci_upper = compute_credible_intervals(pooled)
    return {
        "mean": float(pooled.mean()),
        "ci_lower": float(ci_lower),
        "ci_upper": float(ci_upper),
        "rhat": rhat_scalar(kept),
        "ess": float(ess_multichain(kept)),
    }


def create_metrics(
    results: Sequence,
    metrics_file: Union[str, Path],
    burn: int = 0,
    model_name: str = "gibbs",
    true_labels: Optional[np.ndarray] = None,
) -> Dict[str, object]:
    """
    Create convergence and posterior metrics from CRP Gibbs chains.

    Summarizes the number-of-clusters and log-joint traces across chains,
    records runtimes and, when ground truth is available, the agreement of
    each chain's final partition with it. The metrics are merged into a JSON
    file, organized by model name.

    Args:
        results: One ChainResult per chain.
        metrics_file: Path of the JSON file to update.
        burn: Number of leading sweeps to drop from the traces.
        model_name: Name of the model/algorithm.
        true_labels: Generating labels of the data (optional).

    Returns:
        Metrics stored for this model.
    """
    runtimes = [r.runtime for r in results]
    metrics = {
        "n_clusters": trace_summary([r.n_clusters for r in results], burn),
        "log_joint": trace_summary([r.log_joint for r in results], burn),
        "final_n_clusters": [int(r.state.K) for r in results],
        "n_sweeps": [int(r.n_sweeps) for r in results],
        "runtimes": runtimes,
        "mean_runtime": float(np.mean(runtimes)),
        "std_runtime": float(np.std(runtimes)),
    }
    if true_labels is not None:
        metrics["agreement"] = [
            partition_agreement(true_labels, r.state.labels) for r in results
        ]

    # Load existing metrics if they exist, otherwise create new dict
    metrics_file = Path(metrics_file)
    try:
        with open(metrics_file, encoding="utf-8") as f:
            metrics_dict = json.load(f)
    except FileNotFoundError:
        metrics_dict = {}

    metrics_dict[model_name] = metrics

    metrics_file.parent.mkdir(parents=True, exist_ok=True)
    with open(metrics_file, "w", encoding="utf-8") as f:
        json.dump(metrics_dict, f, indent=2)

    return metrics
