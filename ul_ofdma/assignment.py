# ul_ofdma/assignment.py
"""
Bottleneck (min-max) assignment of n stations to n RUs.

Two solvers return the same makespan:
  - 'milp': binary x[i, j] plus continuous z, minimise z subject to
    z >= cost[i, j] * x[i, j] and one RU per station / one station per RU
    (scipy.optimize.milp, HiGHS).
  - 'threshold': binary search over the distinct costs, feasibility checked by
    a perfect bipartite matching on the edges cost <= t.
"""
from __future__ import annotations
from typing import Tuple
import numpy as np
from scipy.optimize import Bounds, LinearConstraint, milp
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import maximum_bipartite_matching

from .errors import ScheduleInvariantError

SOLVERS = ("milp", "threshold")


def _makespan(cost: np.ndarray, perm: np.ndarray) -> float:
    return float(cost[np.arange(cost.shape[0]), perm].max())


def bottleneck_milp(cost: np.ndarray) -> np.ndarray:
    n = cost.shape[0]
    nx = n * n

    c = np.zeros(nx + 1)
    c[-1] = 1.0

    # cost[i, j] * x[i, j] - z <= 0
    a_bottleneck = np.zeros((nx, nx + 1))
    a_bottleneck[np.arange(nx), np.arange(nx)] = cost.ravel()
    a_bottleneck[:, -1] = -1.0

    a_assign = np.zeros((2 * n, nx + 1))
    for i in range(n):
        a_assign[i, i * n:(i + 1) * n] = 1.0     # station i on exactly one RU
        a_assign[n + i, i:nx:n] = 1.0            # RU i holds exactly one station

    integrality = np.ones(nx + 1)
    integrality[-1] = 0
    bounds = Bounds(np.zeros(nx + 1), np.r_[np.ones(nx), np.inf])

    res = milp(
        c,
        constraints=[LinearConstraint(a_bottleneck, -np.inf, 0.0), LinearConstraint(a_assign, 1.0, 1.0)],
        integrality=integrality,
        bounds=bounds,
    )
    if not res.success:
        raise RuntimeError(f"Bottleneck MILP failed: {res.message}")
    x = np.rint(res.x[:nx]).reshape(n, n)
    return x.argmax(axis=1)


def _perfect_matching(allowed: np.ndarray):
    match = maximum_bipartite_matching(csr_matrix(allowed.astype(np.int8)), perm_type="column")
    return match if np.all(match >= 0) else None


def bottleneck_threshold(cost: np.ndarray) -> np.ndarray:
    values = np.unique(cost)
    lo, hi = 0, values.size - 1
    best = _perfect_matching(cost <= values[hi])
    while lo < hi:
        mid = (lo + hi) // 2
        match = _perfect_matching(cost <= values[mid])
        if match is None:
            lo = mid + 1
        else:
            hi, best = mid, match
    return np.asarray(best, dtype=int)


def bottleneck_assignment(cost, method: str = "milp") -> Tuple[np.ndarray, float]:
    """
    Returns (perm, makespan): perm[i] is the RU column assigned to station row i,
    makespan = max_i cost[i, perm[i]] recomputed from the matrix.
    """
    cost = np.asarray(cost, dtype=float)
    if cost.size == 0:
        return np.zeros(0, dtype=int), 0.0
    if cost.ndim != 2 or cost.shape[0] != cost.shape[1]:
        raise ValueError(f"Cost matrix must be square, got shape {cost.shape}")
    if method == "milp":
        perm = bottleneck_milp(cost)
    elif method == "threshold":
        perm = bottleneck_threshold(cost)
    else:
        raise ValueError(f"Unknown assignment method: {method}")
    if not np.array_equal(np.sort(perm), np.arange(cost.shape[0])):
        raise ScheduleInvariantError(f"{method} solver returned a non-permutation: {perm.tolist()}")
    return perm, _makespan(cost, perm)
