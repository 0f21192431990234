import numpy as np
import pytest
from generate_data import generate_blobs, generate_crp_data, generate_data
from hyperparameters import make_hyperparameters


def test_generate_blobs(rng):
    means = [[-5.0, 0.0], [5.0, 0.0]]

    labels, y = generate_blobs(1000, means, [0.3, 0.7], 0.25, rng)

    assert y.shape == (1000, 2)
    assert set(np.unique(labels)) == {1, 2}
    assert np.mean(labels == 1) == pytest.approx(0.3, abs=0.05)
    np.testing.assert_allclose(y[labels == 2].mean(axis=0), means[1], atol=0.1)
    np.testing.assert_allclose(y[labels == 2].std(axis=0), [0.5, 0.5], atol=0.05)


def test_generate_blobs_rejects_bad_weights(rng):
    with pytest.raises(ValueError):
        generate_blobs(10, [[0.0], [1.0]], [0.5, 0.6], 1.0, rng)
    with pytest.raises(ValueError):
        generate_blobs(10, [[0.0], [1.0]], [1.0], 1.0, rng)


def test_generate_data_saves_files(tmp_path):
    data_dir = generate_data(
        50,
        [[0.0, 0.0], [10.0, 10.0]],
        [0.5, 0.5],
        1.0,
        "blobs",
        seed=3,
        data_root=tmp_path,
        plot=False,
    )

    assert data_dir == tmp_path / "blobs"
    y = np.load(data_dir / "data.npy")
    labels = np.load(data_dir / "labels.npy")
    true_params = np.load(data_dir / "true_params.npy", allow_pickle=True).item()
    assert y.shape == (50, 2)
    assert labels.shape == (50,)
    assert true_params["K"] == 2


def test_generate_crp_data_saves_files(tmp_path):
    hyper = make_hyperparameters(2.0, 2, sigma0=100.0, sigma=0.5)

    data_dir = generate_crp_data(40, hyper, "crp", seed=1, data_root=tmp_path, plot=False)

    labels = np.load(data_dir / "labels.npy")
    true_params = np.load(data_dir / "true_params.npy", allow_pickle=True).item()
    assert labels.max() == true_params["K"]
    assert len(true_params["means"]) == true_params["K"]
    assert true_params["alpha"] == 2.0
