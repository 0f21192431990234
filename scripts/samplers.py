# pylint: disable=too-many-arguments
# pylint: disable=too-many-locals

import time
from dataclasses import dataclass
from multiprocessing import cpu_count
from typing import List, Optional, Tuple

import numpy as np
from errors import InvalidHyperparameter, NumericalInstability
from hyperparameters import Hyperparameters, validate_data, validate_options
from joblib import Parallel, delayed
from scipy.linalg import solve_triangular
from scipy.special import gammaln, logsumexp
from state import PartitionState
from tqdm import tqdm

# constants
LOG_2PI = 0.5 * np.log(2 * np.pi)


@dataclass
class ChainResult:
    """
    Output of a single CRP Gibbs chain.

    Attributes:
        assignments: Kept assignment vectors as 1-based labels, shape (S, N).
        means: Kept cluster mean matrices, one (K_s, p) array per kept sweep.
        n_clusters: Number of clusters after every completed sweep.
        log_joint: Log joint density after every completed sweep.
        state: Final state of the chain.
        runtime: Elapsed sampling time in seconds.
        n_sweeps: Number of completed sweeps.
        seed: Seed used for the chain.
    """

    assignments: np.ndarray
    means: List[np.ndarray]
    n_clusters: np.ndarray
    log_joint: np.ndarray
    state: PartitionState
    runtime: float
    n_sweeps: int
    seed: int


def log_gaussian_density(x: np.ndarray, means: np.ndarray, chol: np.ndarray) -> np.ndarray:
    """
    Evaluate multivariate normal log-densities with a shared covariance.

    Rows of x and means are broadcast against each other, so a single point
    can be scored against K means or N points against one mean.

    Args:
        x: Points, shape (p,) or (M, p).
        means: Means, shape (p,) or (M, p).
        chol: Lower Cholesky factor of the covariance, shape (p, p).

    Returns:
        Log-density for each broadcast row.
    """
    diff = np.atleast_2d(x) - np.atleast_2d(means)
    sol = solve_triangular(chol, diff.T, lower=True, check_finite=False)
    half_log_det = np.sum(np.log(np.diag(chol)))
    return -0.5 * np.sum(sol**2, axis=0) - half_log_det - chol.shape[0] * LOG_2PI


def draw_categorical(probs: np.ndarray, rng: np.random.Generator) -> int:
    """Draw an index with probability proportional to probs."""
    cum = np.cumsum(probs)
    k = int(np.searchsorted(cum, rng.random() * cum[-1], side="right"))
    return min(k, len(probs) - 1)


def score_clusters(
    x: np.ndarray, state: PartitionState, hyper: Hyperparameters, n: int
) -> np.ndarray:
    """
    Compute unnormalized log-weights for placing one evicted point.

    Entry k < K scores existing cluster k with the CRP term n_k / (n - 1 + alpha)
    and the Gaussian likelihood under the cluster mean. The last entry scores a
    new cluster with alpha / (n - 1 + alpha) and the prior predictive density
    N(x | mu0, sigma + sigma0), the new mean being integrated out.

    Args:
        x: The evicted point.
        state: Current state, with the point already evicted.
        hyper: Hyperparameters of the model.
        n: Total number of data points.

    Returns:
        Log-weights of length K + 1.
    """
    log_norm = np.log(n - 1 + hyper.alpha)
    log_w = np.empty(state.K + 1)
    if state.K:
        log_w[:-1] = (
            np.log(state.counts)
            - log_norm
            + log_gaussian_density(x, state.mu, hyper.sigma_chol)
        )
    log_w[-1] = (
        np.log(hyper.alpha)
        - log_norm
        + log_gaussian_density(x, hyper.mu0, hyper.predictive_chol)[0]
    )
    return log_w


def select_label(
    log_w: np.ndarray, rng: np.random.Generator, selection: str = "sample", index: int = -1
) -> int:
    """
    Choose a cluster index from log-weights.

    With selection="sample" the index is drawn from the normalized categorical
    distribution (a valid Gibbs step). With selection="argmax" the mode is
    taken, which turns the sweep into a greedy reassignment and uses no
    randomness.

    Args:
        log_w: Unnormalized log-weights.
        rng: Random number generator.
        selection: "sample" or "argmax".
        index: Observation being placed, reported on failure.

    Returns:
        Selected index into log_w.

    Raises:
        NumericalInstability: If a weight is NaN or +inf, or all weights are zero.
    """
    invalid = np.isnan(log_w) | np.isposinf(log_w)
    if np.any(invalid):
        raise NumericalInstability(
            "invalid assignment score", index, int(np.flatnonzero(invalid)[0]) + 1
        )
    if np.all(np.isneginf(log_w)):
        raise NumericalInstability("every assignment score underflowed", index)

    if selection == "argmax":
        return int(np.argmax(log_w))
    probs = np.exp(log_w - logsumexp(log_w))
    return draw_categorical(probs, rng)


def conjugate_posterior(
    sums: np.ndarray, counts: np.ndarray, hyper: Hyperparameters
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Posterior of cluster means under the Gaussian base measure.

    For each cluster, the posterior precision is sigma0^-1 + n_k sigma^-1 and the
    posterior mean is cov (sigma0^-1 mu0 + sigma^-1 sum_k).

    Args:
        sums: Sum of the points in each cluster, shape (K, p).
        counts: Number of points in each cluster, shape (K,).
        hyper: Hyperparameters of the model.

    Returns:
        Tuple of (posterior means (K, p), Cholesky factors of the posterior
        covariances (K, p, p)).
    """
    prec = (
        hyper.sigma0_prec[np.newaxis, :, :]
        + np.asarray(counts, dtype=float)[:, np.newaxis, np.newaxis]
        * hyper.sigma_prec[np.newaxis, :, :]
    )
    cov = np.linalg.inv(prec)
    cov = 0.5 * (cov + np.swapaxes(cov, 1, 2))
    rhs = (hyper.sigma0_prec @ hyper.mu0)[np.newaxis, :] + sums @ hyper.sigma_prec
    mean = np.einsum("kij,kj->ki", cov, rhs)
    return mean, np.linalg.cholesky(cov)


def sample_mu(
    y: np.ndarray,
    state: PartitionState,
    hyper: Hyperparameters,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Redraw every cluster mean from its conjugate normal posterior.

    Args:
        y: Observed data points, shape (N, p).
        state: Current state; every point must be assigned. Updated in place.
        hyper: Hyperparameters of the model.
        rng: Random number generator.

    Returns:
        New mean parameters for each cluster.
    """
    sums = np.column_stack(
        [np.bincount(state.z, weights=y[:, d], minlength=state.K) for d in range(y.shape[1])]
    )
    mean, chol = conjugate_posterior(sums, state.counts, hyper)
    state.mu = mean + np.einsum("kij,kj->ki", chol, rng.standard_normal(mean.shape))
    return state.mu


def sample_new_mu(
    x: np.ndarray, hyper: Hyperparameters, rng: np.random.Generator
) -> np.ndarray:
    """Draw the mean of a cluster holding the single point x."""
    mean, chol = conjugate_posterior(x[np.newaxis, :], np.ones(1), hyper)
    return mean[0] + chol[0] @ rng.standard_normal(x.shape[0])


def update_assignment(
    y: np.ndarray,
    state: PartitionState,
    i: int,
    hyper: Hyperparameters,
    rng: np.random.Generator,
    selection: str = "sample",
    refresh_means: bool = True,
) -> int:
    """
    Resample the cluster of point i.

    The point is evicted (deleting its cluster if it empties), scored against
    every remaining cluster and a new one, and placed in the selected cluster.
    A new cluster gets a mean drawn from its posterior given the point.

    Args:
        y: Observed data points.
        state: Current state, updated in place.
        i: Index of the point to resample.
        hyper: Hyperparameters of the model.
        rng: Random number generator.
        selection: "sample" or "argmax".
        refresh_means: Whether to redraw every cluster mean afterwards.

    Returns:
        New 0-based cluster index of the point.
    """
    state.evict(i)
    log_w = score_clusters(y[i], state, hyper, y.shape[0])
    k = select_label(log_w, rng, selection, index=i)
    if k == state.K:
        state.add_cluster(sample_new_mu(y[i], hyper, rng))
    state.assign(i, k)
    if refresh_means:
        sample_mu(y, state, hyper, rng)
    return k


def gibbs_sweep(
    y: np.ndarray,
    state: PartitionState,
    hyper: Hyperparameters,
    rng: np.random.Generator,
    selection: str = "sample",
    mean_refresh: str = "step",
) -> PartitionState:
    """
    Perform one sweep of the collapsed CRP Gibbs sampler.

    Points are visited in index order. With mean_refresh="step" every cluster
    mean is redrawn after each point; with "sweep" only once at the end.

    Args:
        y: Observed data points.
        state: Current state, updated in place.
        hyper: Hyperparameters of the model.
        rng: Random number generator.
        selection: "sample" or "argmax".
        mean_refresh: "step" or "sweep".

    Returns:
        The updated state.
    """
    refresh_each_step = mean_refresh == "step"
    for i in range(y.shape[0]):
        update_assignment(y, state, i, hyper, rng, selection, refresh_each_step)
    if not refresh_each_step:
        sample_mu(y, state, hyper, rng)
    return state


def sample_crp(
    n: int, hyper: Hyperparameters, rng: np.random.Generator
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Simulate the Chinese restaurant process generative model.

    Point i joins existing cluster k with probability n_k / (i + alpha) or opens
    a new cluster with probability alpha / (i + alpha). A new cluster draws its
    mean from N(mu0, sigma0); each point is drawn from N(mu_k, sigma).

    Args:
        n: Number of points to generate.
        hyper: Hyperparameters of the model.
        rng: Random number generator.

    Returns:
        Tuple of (labels 1..K for each point, cluster means (K, p), points (n, p)).

    Raises:
        InvalidHyperparameter: If n < 1 or the hyperparameters are invalid.
    """
    if n < 1:
        raise InvalidHyperparameter(f"n must be at least 1, got {n}")
    hyper.validate()

    z = np.empty(n, dtype=int)
    x = np.empty((n, hyper.dim))
    counts: List[int] = []
    mus: List[np.ndarray] = []
    for i in range(n):
        if counts:
            k = draw_categorical(np.append(counts, hyper.alpha) / (i + hyper.alpha), rng)
        else:
            k = 0
        if k == len(counts):
            counts.append(0)
            mus.append(hyper.mu0 + hyper.sigma0_chol @ rng.standard_normal(hyper.dim))
        z[i] = k
        x[i] = mus[k] + hyper.sigma_chol @ rng.standard_normal(hyper.dim)
        counts[k] += 1
    return z + 1, np.vstack(mus), x


def initialize_state(
    y: np.ndarray, hyper: Hyperparameters, rng: np.random.Generator, init: str = "single"
) -> PartitionState:
    """
    Create the starting state of a chain.

    With init="single" every point starts in one cluster; with "prior" the
    partition is a draw from the CRP prior. Means are then drawn from their
    posterior given the starting partition.

    Args:
        y: Observed data points.
        hyper: Hyperparameters of the model.
        rng: Random number generator.
        init: "single" or "prior".

    Returns:
        Initial state.
    """
    n = y.shape[0]
    if init == "prior":
        labels, mus, _ = sample_crp(n, hyper, rng)
        state = PartitionState.from_assignments(labels - 1, mus)
    else:
        state = PartitionState.single_cluster(n, hyper.mu0)
    sample_mu(y, state, hyper, rng)
    return state


def log_joint(y: np.ndarray, state: PartitionState, hyper: Hyperparameters) -> float:
    """
    Compute log p(y, z, mu) for the current state.

    Sum of the CRP partition log-probability, the base measure log-density of
    the cluster means and the Gaussian log-likelihood of the data.

    Args:
        y: Observed data points.
        state: Current state.
        hyper: Hyperparameters of the model.

    Returns:
        Log joint density.
    """
    n = y.shape[0]
    log_crp = (
        state.K * np.log(hyper.alpha)
        + np.sum(gammaln(state.counts))
        + gammaln(hyper.alpha)
        - gammaln(hyper.alpha + n)
    )
    log_prior_mu = np.sum(log_gaussian_density(state.mu, hyper.mu0, hyper.sigma0_chol))
    log_like = np.sum(log_gaussian_density(y, state.mu[state.z], hyper.sigma_chol))
    return float(log_crp + log_prior_mu + log_like)


def run_chain(
    y: np.ndarray,
    hyper: Hyperparameters,
    n_iter: int,
    burn: int = 0,
    seed: int = 0,
    thin: int = 1,
    init: str = "single",
    selection: str = "sample",
    mean_refresh: str = "step",
    time_budget: Optional[float] = None,
    check_invariants: bool = False,
    verbose: bool = False,
    loading_bar: bool = False,
) -> ChainResult:
    """
    Run a single CRP Gibbs chain.

    Hyperparameters, data and options are validated before the first sweep.
    After burn-in, every thin-th sweep is kept.

    Args:
        y: Observed data points, shape (N, p).
        hyper: Hyperparameters of the model.
        n_iter: Number of sweeps.
        burn: Number of burn-in sweeps to discard.
        seed: Random seed for reproducibility.
        thin: Keep every thin-th sweep after burn-in.
        init: "single" or "prior".
        selection: "sample" or "argmax".
        mean_refresh: "step" or "sweep".
        time_budget: Wall-clock limit in seconds, checked between sweeps.
        check_invariants: Whether to verify the partition after every sweep.
        verbose: Whether to print progress.
        loading_bar: Whether to show a progress bar.

    Returns:
        Samples and traces of the chain.

    Raises:
        InvalidHyperparameter: If the inputs are invalid.
        NumericalInstability: If an assignment score cannot be evaluated.
    """
    hyper.validate()
    y = validate_data(y, hyper)
    validate_options(n_iter, burn, thin, init, selection, mean_refresh)
    if time_budget is not None and time_budget <= 0:
        raise InvalidHyperparameter(f"time_budget must be positive, got {time_budget}")

    n = y.shape[0]
    rng = np.random.default_rng(seed)
    state = initialize_state(y, hyper, rng, init)

    kept_z = []
    kept_mu = []
    n_clusters = []
    log_joints = []

    t0 = time.perf_counter()

    iterations = tqdm(range(n_iter)) if (verbose or loading_bar) else range(n_iter)
    for it in iterations:
        gibbs_sweep(y, state, hyper, rng, selection, mean_refresh)
        if check_invariants:
            state.check_invariants(n)

        n_clusters.append(state.K)
        log_joints.append(log_joint(y, state, hyper))

        if it >= burn and (it - burn) % thin == 0:
            kept_z.append(state.labels)
            kept_mu.append(state.mu.copy())

        if time_budget is not None and time.perf_counter() - t0 > time_budget:
            if verbose:
                print(f"Time budget of {time_budget}s reached after {it + 1} sweeps")
            break

    return ChainResult(
        np.vstack(kept_z) if kept_z else np.empty((0, n), dtype=int),
        kept_mu,
        np.array(n_clusters),
        np.array(log_joints),
        state,
        time.perf_counter() - t0,
        len(n_clusters),
        seed,
    )


def run_parallel_chains(
    y: np.ndarray,
    hyper: Hyperparameters,
    n_iter: int,
    burn: int = 0,
    base_seed: int = 0,
    n_chains: int = 4,
    n_jobs: Optional[int] = None,
    thin: int = 1,
    init: str = "single",
    selection: str = "sample",
    mean_refresh: str = "step",
    time_budget: Optional[float] = None,
    check_invariants: bool = False,
    verbose: bool = False,
    loading_bar: bool = False,
) -> List[ChainResult]:
    """
    Run independent chains in parallel with joblib.

    Each chain owns its own state and random generator, seeded with
    base_seed + 1000 * c for chain c.

    Args:
        y: Observed data points.
        hyper: Hyperparameters of the model.
        n_iter: Number of sweeps per chain.
        burn: Number of burn-in sweeps to discard.
        base_seed: Base seed to generate unique seeds for each chain.
        n_chains: Number of chains to run.
        n_jobs: Number of worker processes (defaults to min(n_chains, cpu_count())).
        thin: Keep every thin-th sweep after burn-in.
        init: "single" or "prior".
        selection: "sample" or "argmax".
        mean_refresh: "step" or "sweep".
        time_budget: Wall-clock limit per chain in seconds.
        check_invariants: Whether to verify the partition after every sweep.
        verbose: Whether to print progress.
        loading_bar: Whether to show progress bars.

    Returns:
        One result per chain, in seed order.
    """
    if n_chains < 1:
        raise InvalidHyperparameter(f"n_chains must be at least 1, got {n_chains}")
    hyper.validate()
    y = validate_data(y, hyper)
    validate_options(n_iter, burn, thin, init, selection, mean_refresh)

    if n_jobs is None:
        n_jobs = min(n_chains, cpu_count())
    seeds = [base_seed + i * 1000 for i in range(n_chains)]
    if verbose:
        print(f"Running {n_chains} chains with joblib (backend: loky, n_jobs={n_jobs})...")
    return Parallel(
        n_jobs=n_jobs,
        backend="loky",
        verbose=0,
        batch_size=1,
        pre_dispatch="2*n_jobs",
    )(
        delayed(run_chain)(
            y,
            hyper,
            n_iter,
            burn=burn,
            seed=seed,
            thin=thin,
            init=init,
            selection=selection,
            mean_refresh=mean_refresh,
            time_budget=time_budget,
            check_invariants=check_invariants,
            verbose=verbose,
            loading_bar=loading_bar,
        )
        for seed in seeds
    )
