# ul_ofdma/schedulers.py
"""
Per-PPDU schedulers: pick an RU partition for n requests, map stations to RUs
and choose an MCS per station.

AssignmentScheduler searches every one-user-per-RU partition for n users and
solves a bottleneck assignment on each; RoundRobinScheduler uses one fixed
partition per n and serves stations in order.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple
import logging
import numpy as np

from .airtime import ppdu_duration
from .assignment import SOLVERS, bottleneck_assignment
from .config import PhyConfig
from .errors import ConfigurationError, ScheduleInvariantError
from .mcs import MCSTable, round_tenth
from .ru_table import RUAllocation, partition_info, partitions_for
from .tones import snr_per_ru
from .traffic import Category

logger = logging.getLogger(__name__)

ROUND_ROBIN_ALLOCATION: Dict[int, int] = {1: 192, 2: 96, 3: 16, 4: 112, 5: 15, 6: 14, 7: 5, 8: 2, 9: 0}


@dataclass(frozen=True)
class StationRequest:
    """Head-of-line frame of one station as seen by the scheduler."""
    station_id: int
    frame_size: int
    age: float
    max_latency: float
    category: Category
    snr: np.ndarray = field(compare=False, repr=False)

    @property
    def avg_snr(self) -> float:
        return float(np.mean(self.snr))

    @property
    def remaining_budget(self) -> float:
        return self.max_latency - self.age


@dataclass
class CandidateSchedule:
    allocation_index: Optional[int] = None
    ru_sizes: Tuple[int, ...] = ()
    ru_indices: Tuple[int, ...] = ()
    assignment: Tuple[int, ...] = ()      # RU position -> request position
    station_ids: Tuple[int, ...] = ()     # per RU
    mcs: Tuple[int, ...] = ()             # per RU
    snr: Tuple[float, ...] = ()           # per RU, dB
    cost: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)), repr=False)
    duration: float = 0.0
    objective: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.station_ids


class PPDUScheduler:
    """Base class: evaluation of one partition for a list of requests."""

    name = "base"

    def __init__(self, mcs_table: MCSTable, phy: Optional[PhyConfig] = None, target_pdr: float = 0.95):
        self.mcs_table = mcs_table
        self.phy = phy or PhyConfig()
        self.target_pdr = float(target_pdr)

    def schedule(self, requests: Sequence[StationRequest]) -> CandidateSchedule:
        raise NotImplementedError

    def evaluate(self, requests: Sequence[StationRequest], allocation: RUAllocation):
        """
        Per (station, RU) SNR, MCS and airtime for one partition.
        Returns (snr, mcs, cost) as n x n arrays.
        """
        n = len(requests)
        bw = self.phy.bandwidth
        snr = np.empty((n, allocation.num_rus))
        mcs = np.empty((n, allocation.num_rus), dtype=int)
        cost = np.empty((n, allocation.num_rus))
        for i, req in enumerate(requests):
            ru_snr = [round_tenth(s) for s in snr_per_ru(req.snr, allocation, bw)]
            if len(ru_snr) != allocation.num_rus:
                raise ScheduleInvariantError(
                    f"Allocation {allocation.index}: {len(ru_snr)} RU SNRs for {allocation.num_rus} RUs")
            for j, s in enumerate(ru_snr):
                snr[i, j] = s
                mcs[i, j] = self.mcs_table.select(s, self.target_pdr)
                cost[i, j] = ppdu_duration(self.phy, allocation.ru_sizes[j], req.frame_size, mcs[i, j])
        return snr, mcs, cost

    def _decode(self, requests, allocation: RUAllocation, perm: np.ndarray,
                snr: np.ndarray, mcs: np.ndarray, cost: np.ndarray, objective: float) -> CandidateSchedule:
        n = len(requests)
        if len(perm) != allocation.num_rus or n != allocation.num_rus:
            raise ScheduleInvariantError(
                f"Allocation {allocation.index} has {allocation.num_rus} RUs for {n} stations")
        station_for_ru = np.empty(n, dtype=int)
        station_for_ru[perm] = np.arange(n)
        rows = station_for_ru
        cols = np.arange(n)
        return CandidateSchedule(
            allocation_index=allocation.index,
            ru_sizes=allocation.ru_sizes,
            ru_indices=allocation.ru_indices,
            assignment=tuple(int(i) for i in rows),
            station_ids=tuple(requests[i].station_id for i in rows),
            mcs=tuple(int(m) for m in mcs[rows, cols]),
            snr=tuple(float(s) for s in snr[rows, cols]),
            cost=cost,
            duration=float(cost[rows, cols].max()),
            objective=float(objective),
        )


class AssignmentScheduler(PPDUScheduler):
    """Min-max airtime over all partitions and station-to-RU mappings."""

    name = "AA"

    def __init__(self, mcs_table: MCSTable, phy: Optional[PhyConfig] = None, target_pdr: float = 0.95,
                 solver: str = "milp"):
        super().__init__(mcs_table, phy, target_pdr)
        if solver not in SOLVERS:
            raise ConfigurationError(f"Unknown assignment solver: {solver}")
        self.solver = solver

    def schedule(self, requests: Sequence[StationRequest]) -> CandidateSchedule:
        n = len(requests)
        if n == 0:
            logger.info("assignment scheduler called with no requests")
            return CandidateSchedule()
        candidates = partitions_for(n, self.phy.bandwidth)
        if not candidates:
            raise ConfigurationError(f"No RU partition serves {n} stations one per RU")

        best = None
        best_z = np.inf
        for alloc in candidates:
            snr, mcs, cost = self.evaluate(requests, alloc)
            perm, z = bottleneck_assignment(cost, self.solver)
            # first partition wins ties
            if z < best_z:
                best_z = z
                best = (alloc, perm, snr, mcs, cost)
        alloc, perm, snr, mcs, cost = best
        return self._decode(requests, alloc, perm, snr, mcs, cost, best_z)


class RoundRobinScheduler(PPDUScheduler):
    """Fixed partition per n, station k on RU k."""

    name = "RR"

    def schedule(self, requests: Sequence[StationRequest]) -> CandidateSchedule:
        n = len(requests)
        if n == 0:
            logger.info("round-robin scheduler called with no requests")
            return CandidateSchedule()
        if n not in ROUND_ROBIN_ALLOCATION:
            raise ConfigurationError(f"No round-robin allocation for {n} stations")
        alloc = partition_info(ROUND_ROBIN_ALLOCATION[n])
        if n == 1:
            alloc = partitions_for(1, self.phy.bandwidth)[0]
        elif self.phy.bandwidth != 20:
            raise ConfigurationError(f"Round-robin partitions are only defined for 20 MHz, got {self.phy.bandwidth}")
        snr, mcs, cost = self.evaluate(requests, alloc)
        perm = np.arange(n)
        return self._decode(requests, alloc, perm, snr, mcs, cost, float(np.trace(cost)))


def create_scheduler(name: str, mcs_table: MCSTable, phy: Optional[PhyConfig] = None,
                     target_pdr: float = 0.95, solver: str = "milp") -> PPDUScheduler:
    """Factory function to create schedulers by name."""
    key = str(name).lower()
    if key in ("aa", "assignment"):
        return AssignmentScheduler(mcs_table, phy, target_pdr, solver=solver)
    if key in ("rr", "round_robin"):
        return RoundRobinScheduler(mcs_table, phy, target_pdr)
    raise ValueError(f"Unknown scheduler: {name}")
