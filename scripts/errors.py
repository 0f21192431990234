from typing import Optional


class InvalidHyperparameter(ValueError):
    """Raised before sampling when the prior, likelihood or data are unusable."""


class NumericalInstability(FloatingPointError):
    """
    Raised when an assignment score cannot be evaluated.

    Attributes:
        index: Observation being resampled when the failure happened.
        label: 1-based cluster label whose score was invalid (K + 1 for a new cluster).
    """

    def __init__(self, message: str, index: int, label: Optional[int] = None):
        super().__init__(f"{message} (observation {index}, cluster {label})")
        self.index = index
        self.label = label


class EmptyClusterInvariantViolation(AssertionError):
    """Bookkeeping of the partition is inconsistent."""
