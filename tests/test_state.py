import numpy as np
import pytest
from errors import EmptyClusterInvariantViolation
from state import UNASSIGNED, PartitionState


def make_state():
    return PartitionState(
        np.array([0, 1, 2, 1]),
        np.array([1, 2, 1]),
        np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]]),
    )


def test_single_cluster():
    state = PartitionState.single_cluster(5, np.array([1.0, 2.0]))

    assert state.K == 1
    np.testing.assert_array_equal(state.labels, np.ones(5))
    np.testing.assert_array_equal(state.counts, [5])
    state.check_invariants(5)


def test_evict_keeps_non_empty_cluster():
    state = make_state()

    assert not state.evict(1)
    assert state.z[1] == UNASSIGNED
    np.testing.assert_array_equal(state.counts, [1, 1, 1])
    assert state.K == 3


def test_evict_removes_empty_cluster_and_shifts_labels():
    state = make_state()

    assert state.evict(0)
    np.testing.assert_array_equal(state.z, [UNASSIGNED, 0, 1, 0])
    np.testing.assert_array_equal(state.counts, [2, 1])
    np.testing.assert_allclose(state.mu, [[1.0, 1.0], [2.0, 2.0]])

    state.assign(0, 1)
    state.check_invariants(4)
    np.testing.assert_array_equal(state.labels, [2, 1, 2, 1])


def test_evict_last_cluster():
    state = make_state()

    assert state.evict(2)
    np.testing.assert_array_equal(state.z, [0, 1, UNASSIGNED, 1])
    assert state.K == 2


def test_add_cluster_and_assign():
    state = make_state()
    state.evict(3)

    k = state.add_cluster(np.array([5.0, 5.0]))
    state.assign(3, k)

    assert k == 3
    np.testing.assert_array_equal(state.counts, [1, 1, 1, 1])
    np.testing.assert_allclose(state.mu[3], [5.0, 5.0])
    state.check_invariants(4)


def test_double_eviction_is_fatal():
    state = make_state()
    state.evict(1)

    with pytest.raises(EmptyClusterInvariantViolation):
        state.evict(1)


def test_negative_occupancy_is_fatal():
    state = make_state()
    state.counts[1] = 0

    with pytest.raises(EmptyClusterInvariantViolation):
        state.evict(1)


def test_assign_checks_bookkeeping():
    state = make_state()
    with pytest.raises(EmptyClusterInvariantViolation):
        state.assign(0, 1)

    state.evict(1)
    with pytest.raises(EmptyClusterInvariantViolation):
        state.assign(1, 3)


def test_remove_non_empty_cluster_is_fatal():
    with pytest.raises(EmptyClusterInvariantViolation):
        make_state().remove_cluster(1)


def test_check_invariants_detects_problems():
    state = make_state()
    state.check_invariants(4)

    broken = make_state()
    broken.counts[0] = 2
    with pytest.raises(EmptyClusterInvariantViolation):
        broken.check_invariants(4)

    gap = PartitionState(np.array([0, 2]), np.array([1, 0, 1]), np.zeros((3, 2)))
    with pytest.raises(EmptyClusterInvariantViolation):
        gap.check_invariants(2)

    unassigned = make_state()
    unassigned.evict(1)
    with pytest.raises(EmptyClusterInvariantViolation):
        unassigned.check_invariants(4)


def test_from_assignments_compacts_labels():
    mu = np.arange(10.0).reshape(5, 2)
    state = PartitionState.from_assignments(np.array([4, 1, 4, 3]), mu)

    np.testing.assert_array_equal(state.z, [2, 0, 2, 1])
    np.testing.assert_array_equal(state.counts, [1, 1, 2])
    np.testing.assert_allclose(state.mu, mu[[1, 3, 4]])
    state.check_invariants(4)


def test_copy_is_independent():
    state = make_state()
    other = state.copy()
    other.evict(0)

    assert state.K == 3
    state.check_invariants(4)
