from dataclasses import dataclass
from functools import cached_property
from typing import Union

import numpy as np
from errors import InvalidHyperparameter

ArrayLike = Union[float, np.ndarray]

SELECTIONS = ("sample", "argmax")
INITS = ("single", "prior")
MEAN_REFRESHES = ("step", "sweep")


def _as_mean(value: ArrayLike, dim: int, name: str) -> np.ndarray:
    mean = np.asarray(value, dtype=float)
    if mean.ndim == 0:
        return np.full(dim, float(mean))
    if mean.shape != (dim,):
        raise InvalidHyperparameter(
            f"{name} must be scalar or have length {dim}, got shape {mean.shape}"
        )
    return mean


def _as_covariance(value: ArrayLike, dim: int, name: str) -> np.ndarray:
    cov = np.asarray(value, dtype=float)
    if cov.ndim == 0:
        return float(cov) * np.eye(dim)
    if cov.ndim == 1:
        if cov.shape != (dim,):
            raise InvalidHyperparameter(
                f"{name} must have {dim} diagonal entries, got {cov.shape[0]}"
            )
        return np.diag(cov)
    if cov.shape != (dim, dim):
        raise InvalidHyperparameter(
            f"{name} must be a {dim}x{dim} matrix, got shape {cov.shape}"
        )
    return cov


def check_positive_definite(cov: np.ndarray, name: str) -> np.ndarray:
    """
    Check that a covariance matrix is symmetric positive-definite.

    Args:
        cov: Candidate covariance matrix.
        name: Name of the parameter for error messages.

    Returns:
        Lower Cholesky factor of the matrix.

    Raises:
        InvalidHyperparameter: If the matrix is not finite, symmetric or positive-definite.
    """
    if cov.ndim != 2 or cov.shape[0] != cov.shape[1]:
        raise InvalidHyperparameter(f"{name} must be a square matrix")
    if not np.all(np.isfinite(cov)):
        raise InvalidHyperparameter(f"{name} contains non-finite entries")
    if not np.allclose(cov, cov.T):
        raise InvalidHyperparameter(f"{name} must be symmetric")
    try:
        return np.linalg.cholesky(cov)
    except np.linalg.LinAlgError as exc:
        raise InvalidHyperparameter(f"{name} must be positive-definite") from exc


@dataclass
class Hyperparameters:
    """
    Prior and likelihood parameters of the Dirichlet process Gaussian mixture.

    Attributes:
        alpha: Concentration of the Chinese restaurant process.
        mu0: Mean of the base measure over cluster means.
        sigma0: Covariance of the base measure over cluster means.
        sigma: Known observation covariance shared by every cluster.
    """

    alpha: float
    mu0: np.ndarray
    sigma0: np.ndarray
    sigma: np.ndarray

    def __post_init__(self):
        try:
            self.alpha = float(self.alpha)
            self.mu0 = np.asarray(self.mu0, dtype=float)
            self.sigma0 = np.asarray(self.sigma0, dtype=float)
            self.sigma = np.asarray(self.sigma, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidHyperparameter(
                f"hyperparameters must be numeric arrays: {exc}"
            ) from exc

    @property
    def dim(self) -> int:
        return self.mu0.shape[0]

    @cached_property
    def sigma_chol(self) -> np.ndarray:
        return check_positive_definite(self.sigma, "sigma")

    @cached_property
    def sigma0_chol(self) -> np.ndarray:
        return check_positive_definite(self.sigma0, "sigma0")

    @cached_property
    def predictive_chol(self) -> np.ndarray:
        # new cluster: mean integrated out against the base measure
        return check_positive_definite(self.sigma + self.sigma0, "sigma + sigma0")

    @cached_property
    def sigma_prec(self) -> np.ndarray:
        return np.linalg.inv(self.sigma)

    @cached_property
    def sigma0_prec(self) -> np.ndarray:
        return np.linalg.inv(self.sigma0)

    def validate(self) -> "Hyperparameters":
        """
        Fail fast on unusable hyperparameters.

        Returns:
            The same hyperparameters, for chaining.

        Raises:
            InvalidHyperparameter: If alpha is not a positive finite number or a
                covariance is not positive-definite.
        """
        if not np.isfinite(self.alpha) or self.alpha <= 0:
            raise InvalidHyperparameter(f"alpha must be positive, got {self.alpha}")
        if self.mu0.ndim != 1 or not np.all(np.isfinite(self.mu0)):
            raise InvalidHyperparameter("mu0 must be a finite vector")
        for name, cov in (("sigma0", self.sigma0), ("sigma", self.sigma)):
            if cov.shape != (self.dim, self.dim):
                raise InvalidHyperparameter(
                    f"{name} must be a {self.dim}x{self.dim} matrix, got shape {cov.shape}"
                )
        _ = self.sigma_chol, self.sigma0_chol, self.predictive_chol
        return self


def make_hyperparameters(
    alpha: float,
    dim: int,
    mu0: ArrayLike = 0.0,
    sigma0: ArrayLike = 10.0,
    sigma: ArrayLike = 1.0,
) -> Hyperparameters:
    """
    Build validated hyperparameters for p-dimensional data.

    Scalars are broadcast: a scalar mean becomes a constant vector and a scalar
    covariance becomes a multiple of the identity. A vector covariance is used
    as the diagonal of the matrix.

    Args:
        alpha: Concentration parameter (> 0).
        dim: Dimension p of the observations.
        mu0: Base measure mean (scalar or length p).
        sigma0: Base measure covariance (scalar, length p diagonal or p x p).
        sigma: Observation covariance (scalar, length p diagonal or p x p).

    Returns:
        Validated hyperparameters.

    Raises:
        InvalidHyperparameter: If any parameter is invalid.
    """
    if dim < 1:
        raise InvalidHyperparameter(f"dim must be positive, got {dim}")
    return Hyperparameters(
        alpha=float(alpha),
        mu0=_as_mean(mu0, dim, "mu0"),
        sigma0=_as_covariance(sigma0, dim, "sigma0"),
        sigma=_as_covariance(sigma, dim, "sigma"),
    ).validate()


def validate_data(y: np.ndarray, hyper: Hyperparameters) -> np.ndarray:
    """
    Check the observation matrix against the hyperparameters.

    Args:
        y: Observations, shape (N, p).
        hyper: Hyperparameters of the model.

    Returns:
        The observations as a float array.

    Raises:
        InvalidHyperparameter: If there are no observations, the matrix is not
            2-D, contains missing values or its dimension does not match.
    """
    y = np.asarray(y, dtype=float)
    if y.ndim != 2:
        raise InvalidHyperparameter(f"y must be an (N, p) matrix, got shape {y.shape}")
    if y.shape[0] == 0:
        raise InvalidHyperparameter("y must contain at least one observation")
    if y.shape[1] != hyper.dim:
        raise InvalidHyperparameter(
            f"y has dimension {y.shape[1]} but hyperparameters have {hyper.dim}"
        )
    if not np.all(np.isfinite(y)):
        raise InvalidHyperparameter("y contains missing or non-finite values")
    return y


def validate_options(
    n_iter: int,
    burn: int = 0,
    thin: int = 1,
    init: str = "single",
    selection: str = "sample",
    mean_refresh: str = "step",
) -> None:
    """Validate sampler options shared by the chain drivers."""
    if n_iter < 1:
        raise InvalidHyperparameter(f"n_iter must be at least 1, got {n_iter}")
    if burn < 0:
        raise InvalidHyperparameter(f"burn must be non-negative, got {burn}")
    if thin < 1:
        raise InvalidHyperparameter(f"thin must be at least 1, got {thin}")
    if init not in INITS:
        raise InvalidHyperparameter(f"init must be one of {INITS}, got {init!r}")
    if selection not in SELECTIONS:
        raise InvalidHyperparameter(
            f"selection must be one of {SELECTIONS}, got {selection!r}"
        )
    if mean_refresh not in MEAN_REFRESHES:
        raise InvalidHyperparameter(
            f"mean_refresh must be one of {MEAN_REFRESHES}, got {mean_refresh!r}"
        )
