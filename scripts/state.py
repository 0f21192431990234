from dataclasses import dataclass

import numpy as np
from errors import EmptyClusterInvariantViolation

UNASSIGNED = -1


@dataclass
class PartitionState:
    """
    Represents the state of the CRP Gibbs sampler.

    Cluster indices are stored 0-based and kept contiguous in [0, K); the
    reported labels are 1-based (see ``labels``).

    Attributes:
        z: Cluster index for each data point.
        counts: Number of data points assigned to each cluster.
        mu: Mean parameters for each cluster, shape (K, p).
    """

    z: np.ndarray
    counts: np.ndarray
    mu: np.ndarray

    @property
    def K(self) -> int:  # pylint: disable=invalid-name
        return self.counts.shape[0]

    @property
    def labels(self) -> np.ndarray:
        """Assignments as contiguous labels 1..K."""
        return self.z + 1

    @classmethod
    def single_cluster(cls, n: int, mu: np.ndarray) -> "PartitionState":
        """All n points in one cluster with mean mu."""
        return cls(
            np.zeros(n, dtype=int),
            np.array([n], dtype=int),
            np.asarray(mu, dtype=float).reshape(1, -1).copy(),
        )

    @classmethod
    def from_assignments(cls, z: np.ndarray, mu: np.ndarray) -> "PartitionState":
        """
        Build a state from 0-based assignments, dropping unused clusters.

        Args:
            z: Cluster index for each data point.
            mu: Mean of every cluster referenced by z, shape (>= max(z) + 1, p).

        Returns:
            State with contiguous cluster indices, preserving their order.
        """
        z = np.asarray(z, dtype=int)
        mu = np.asarray(mu, dtype=float)
        used = np.unique(z)
        inv = np.full(mu.shape[0], UNASSIGNED)
        inv[used] = np.arange(len(used))
        new_z = inv[z]
        return cls(new_z, np.bincount(new_z, minlength=len(used)), mu[used].copy())

    def copy(self) -> "PartitionState":
        return PartitionState(self.z.copy(), self.counts.copy(), self.mu.copy())

    def evict(self, i: int) -> bool:
        """
        Remove point i from its cluster, deleting the cluster if it empties.

        Args:
            i: Index of the data point.

        Returns:
            True if the point's cluster was deleted.

        Raises:
            EmptyClusterInvariantViolation: If the point is already unassigned
                or the occupancy would become negative.
        """
        k = self.z[i]
        if k == UNASSIGNED:
            raise EmptyClusterInvariantViolation(f"point {i} is not assigned")
        self.counts[k] -= 1
        self.z[i] = UNASSIGNED
        if self.counts[k] < 0:
            raise EmptyClusterInvariantViolation(
                f"cluster {k + 1} has negative occupancy {self.counts[k]}"
            )
        if self.counts[k] == 0:
            self.remove_cluster(k)
            return True
        return False

    def remove_cluster(self, k: int) -> None:
        """Delete empty cluster k and shift every higher index down by one."""
        if self.counts[k] != 0:
            raise EmptyClusterInvariantViolation(
                f"cannot remove cluster {k + 1} with occupancy {self.counts[k]}"
            )
        self.z[self.z > k] -= 1
        self.counts = np.delete(self.counts, k)
        self.mu = np.delete(self.mu, k, axis=0)

    def add_cluster(self, mu_new: np.ndarray) -> int:
        """Open an empty cluster with mean mu_new and return its index."""
        self.counts = np.append(self.counts, 0)
        self.mu = np.vstack([self.mu, np.asarray(mu_new, dtype=float)[np.newaxis, :]])
        return self.K - 1

    def assign(self, i: int, k: int) -> None:
        """Place unassigned point i into existing cluster k."""
        if self.z[i] != UNASSIGNED:
            raise EmptyClusterInvariantViolation(f"point {i} is already assigned")
        if not 0 <= k < self.K:
            raise EmptyClusterInvariantViolation(
                f"cluster {k + 1} does not exist (K={self.K})"
            )
        self.z[i] = k
        self.counts[k] += 1

    def check_invariants(self, n: int) -> None:
        """
        Verify the partition bookkeeping.

        Checks that every point is assigned, occupancies sum to n, no cluster
        is empty, the cluster indices are exactly 0..K-1 and the counts agree
        with the assignments.

        Raises:
            EmptyClusterInvariantViolation: If any check fails.
        """
        if self.z.shape[0] != n or np.any(self.z == UNASSIGNED):
            raise EmptyClusterInvariantViolation("some points are unassigned")
        if self.counts.sum() != n:
            raise EmptyClusterInvariantViolation(
                f"occupancies sum to {self.counts.sum()}, expected {n}"
            )
        if np.any(self.counts <= 0):
            raise EmptyClusterInvariantViolation("an active cluster is empty")
        if self.mu.shape[0] != self.K:
            raise EmptyClusterInvariantViolation(
                f"{self.mu.shape[0]} means for {self.K} clusters"
            )
        if not np.array_equal(np.unique(self.z), np.arange(self.K)):
            raise EmptyClusterInvariantViolation("cluster labels are not contiguous")
        if not np.array_equal(np.bincount(self.z, minlength=self.K), self.counts):
            raise EmptyClusterInvariantViolation("occupancies disagree with assignments")
