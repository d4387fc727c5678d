#!/usr/bin/env python3
# tests/test_assignment.py
"""
Tests for the bottleneck (min-max) assignment solvers.
"""

import itertools
import numpy as np
import pytest

from ul_ofdma.assignment import bottleneck_assignment


def _brute_force(cost):
    n = cost.shape[0]
    return min(max(cost[i, p[i]] for i in range(n)) for p in itertools.permutations(range(n)))


@pytest.mark.parametrize("method", ["milp", "threshold"])
class TestBottleneck:
    def test_identity_optimum(self, method):
        cost = np.full((3, 3), 9.0)
        np.fill_diagonal(cost, 1.0)
        perm, z = bottleneck_assignment(cost, method)
        assert list(perm) == [0, 1, 2]
        assert z == 1.0

    def test_minimises_max_not_sum(self, method):
        # diagonal sums to 11 but peaks at 10; anti-diagonal peaks at 2
        cost = np.array([[1.0, 2.0], [2.0, 10.0]])
        perm, z = bottleneck_assignment(cost, method)
        assert list(perm) == [1, 0]
        assert z == 2.0

    def test_single(self, method):
        perm, z = bottleneck_assignment(np.array([[72.0]]), method)
        assert list(perm) == [0]
        assert z == 72.0

    @pytest.mark.parametrize("seed", range(6))
    def test_matches_brute_force(self, method, seed):
        rng = np.random.default_rng(seed)
        n = 2 + seed % 5
        cost = np.round(rng.uniform(50, 500, size=(n, n)), 1)
        perm, z = bottleneck_assignment(cost, method)
        assert sorted(perm.tolist()) == list(range(n))
        assert z == pytest.approx(_brute_force(cost))
        assert z == cost[np.arange(n), perm].max()

    def test_ties(self, method):
        cost = np.full((4, 4), 136.0)
        perm, z = bottleneck_assignment(cost, method)
        assert sorted(perm.tolist()) == [0, 1, 2, 3]
        assert z == 136.0


def test_solvers_agree_on_makespan():
    rng = np.random.default_rng(42)
    for _ in range(5):
        cost = rng.integers(1, 20, size=(7, 7)).astype(float)
        _, z1 = bottleneck_assignment(cost, "milp")
        _, z2 = bottleneck_assignment(cost, "threshold")
        assert z1 == z2


def test_empty_input():
    perm, z = bottleneck_assignment(np.zeros((0, 0)))
    assert perm.size == 0
    assert z == 0.0


def test_non_square():
    with pytest.raises(ValueError):
        bottleneck_assignment(np.ones((2, 3)))


def test_unknown_method():
    with pytest.raises(ValueError):
        bottleneck_assignment(np.ones((2, 2)), "hungarian")


def test_non_permutation_raises(monkeypatch):
    import ul_ofdma.assignment as assignment
    from ul_ofdma.errors import ScheduleInvariantError

    monkeypatch.setattr(assignment, "bottleneck_threshold", lambda cost: np.array([0, 0, 2]))
    with pytest.raises(ScheduleInvariantError):
        bottleneck_assignment(np.ones((3, 3)), "threshold")
