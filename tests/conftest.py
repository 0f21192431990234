import numpy as np
import pytest
from generate_data import generate_blobs
from hyperparameters import make_hyperparameters

FOUR_BLOB_MEANS = [[-10.0, -10.0], [-10.0, 10.0], [10.0, -10.0], [10.0, 10.0]]


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def hyper():
    return make_hyperparameters(1.0, 2, mu0=0.0, sigma0=10.0, sigma=1.0)


@pytest.fixture
def four_blobs():
    """Four well-separated unit-variance blobs, N=200."""
    labels, y = generate_blobs(
        200, FOUR_BLOB_MEANS, [0.25] * 4, 1.0, np.random.default_rng(0)
    )
    return labels, y


@pytest.fixture
def four_blob_hyper():
    return make_hyperparameters(2.0, 2, mu0=0.0, sigma0=100.0, sigma=1.0)


@pytest.fixture
def three_points():
    y = np.array([[0.0, 0.0], [0.01, 0.01], [10.0, 10.0]])
    hyper = make_hyperparameters(1.0, 2, mu0=0.0, sigma0=10.0, sigma=0.1)
    return y, hyper
