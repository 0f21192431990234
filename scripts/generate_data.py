# pylint: disable=too-many-arguments

from pathlib import Path
from typing import List, Tuple, Union

import numpy as np
from hyperparameters import Hyperparameters, make_hyperparameters
from plots import create_partition_plot
from samplers import sample_crp

DATA_ROOT = Path("../data")
FIGURE_ROOT = Path("../figures")


def generate_blobs(
    n: int,
    means: List[List[float]],
    weights: List[float],
    sigma: Union[float, np.ndarray],
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Draw points from a finite Gaussian mixture with a shared covariance.

    Args:
        n: Number of data points to generate.
        means: Mean of each component, K lists of length p.
        weights: Mixture weights (must sum to 1).
        sigma: Shared covariance (scalar, diagonal of length p or p x p).
        rng: Random number generator.

    Returns:
        Tuple of (labels 1..K, points (n, p)).

    Raises:
        ValueError: If means and weights disagree or the weights don't sum to 1.
    """
    means_array = np.asarray(means, dtype=float)
    if means_array.ndim != 2 or len(means_array) != len(weights):
        raise ValueError("means must be K vectors, one per weight")
    if not np.isclose(sum(weights), 1.0):
        raise ValueError("The weights must sum to 1")

    dim = means_array.shape[1]
    chol = make_hyperparameters(1.0, dim, sigma=sigma).sigma_chol
    classes = rng.choice(len(weights), size=n, p=weights)
    data = means_array[classes] + rng.standard_normal((n, dim)) @ chol.T
    return classes + 1, data


def save_dataset(
    name: str,
    data: np.ndarray,
    labels: np.ndarray,
    true_params: dict,
    data_root: Union[str, Path] = DATA_ROOT,
    figure_root: Union[str, Path] = FIGURE_ROOT,
    plot: bool = True,
) -> Path:
    """
    Save a synthetic dataset and a scatter plot of its generating partition.

    Writes data.npy, labels.npy and true_params.npy under data_root/name and
    generator_partition.png under figure_root/name.
    true_params.npy holds a pickled dict, so read it back with
    ``np.load(path, allow_pickle=True).item()``.

    Returns:
        Directory holding the data files.
    """
    data_dir = Path(data_root) / name
    data_dir.mkdir(parents=True, exist_ok=True)
    np.save(data_dir / "data.npy", data)
    np.save(data_dir / "labels.npy", labels)
    np.save(data_dir / "true_params.npy", true_params)

    if plot:
        figure_dir = Path(figure_root) / name
        figure_dir.mkdir(parents=True, exist_ok=True)
        means = np.asarray(true_params["means"])
        create_partition_plot(
            data,
            labels,
            means,
            title=f"Generating partition (K = {len(means)})",
        ).write_image(figure_dir / "generator_partition.png")

    return data_dir


def generate_data(
    n: int,
    means: List[List[float]],
    weights: List[float],
    sigma: Union[float, np.ndarray],
    name: str,
    seed: int = 0,
    **save_kwargs,
) -> Path:
    """
    Generate a Gaussian blob dataset with known labels and save it.

    Args:
        n: Number of data points to generate.
        means: Mean of each component.
        weights: Mixture weights for each component (must sum to 1).
        sigma: Shared within-cluster covariance.
        name: Name identifier for the dataset.
        seed: Random seed.
        **save_kwargs: Forwarded to save_dataset.

    Returns:
        Directory holding the data files.
    """
    rng = np.random.default_rng(seed)
    labels, data = generate_blobs(n, means, weights, sigma, rng)
    true_params = {
        "means": np.asarray(means, dtype=float).tolist(),
        "weights": list(weights),
        "sigma": np.asarray(sigma, dtype=float).tolist(),
        "K": len(weights),
    }
    return save_dataset(name, data, labels, true_params, **save_kwargs)


def generate_crp_data(
    n: int,
    hyper: Hyperparameters,
    name: str,
    seed: int = 0,
    **save_kwargs,
) -> Path:
    """
    Generate a dataset from the Chinese restaurant process prior and save it.

    Args:
        n: Number of data points to generate.
        hyper: Hyperparameters of the generating model.
        name: Name identifier for the dataset.
        seed: Random seed.
        **save_kwargs: Forwarded to save_dataset.

    Returns:
        Directory holding the data files.
    """
    rng = np.random.default_rng(seed)
    labels, mus, data = sample_crp(n, hyper, rng)
    true_params = {
        "means": mus.tolist(),
        "alpha": hyper.alpha,
        "mu0": hyper.mu0.tolist(),
        "sigma0": hyper.sigma0.tolist(),
        "sigma": hyper.sigma.tolist(),
        "K": len(mus),
    }
    return save_dataset(name, data, labels, true_params, **save_kwargs)


if __name__ == "__main__":
    n = 200
    means = [[-10.0, -10.0], [-10.0, 10.0], [10.0, -10.0], [10.0, 10.0]]
    weights = [0.25, 0.25, 0.25, 0.25]
    generate_data(n, means, weights, 1.0, "example_1", seed=0)

    means = [[-4.0, 0.0], [0.0, 3.0], [4.0, 0.0]]
    weights = [0.3, 0.3, 0.4]
    generate_data(n, means, weights, [1.0, 0.5], "example_2", seed=1)

    means = [[0.0, 0.0]]
    weights = [1.0]
    generate_data(100, means, weights, 0.25, "example_3", seed=2)

    generate_crp_data(
        n,
        make_hyperparameters(1.0, 2, mu0=0.0, sigma0=100.0, sigma=0.5),
        "example_4",
        seed=3,
    )
