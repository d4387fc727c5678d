# ul_ofdma/txop.py
"""
Greedy TXOP packer.

Repeatedly orders the waiting requests, schedules the largest batch (up to 9)
whose PPDU fits both the PPDU and the remaining TXOP budget, commits it and ages
everyone still waiting by the elapsed trigger + SIFS + PPDU time.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence
import logging

from .config import LimitsConfig
from .schedulers import CandidateSchedule, PPDUScheduler, StationRequest

logger = logging.getLogger(__name__)

MAX_USERS_PER_PPDU = 9


class Ordering(str, Enum):
    NONE = "None"
    LATENCY = "ML"
    SNR = "SINR"
    LATENCY_SNR = "ML+SINR"

    @classmethod
    def parse(cls, value) -> "Ordering":
        if isinstance(value, cls):
            return value
        key = str(value).upper()
        for o in cls:
            if o.value.upper() == key or o.name == key:
                return o
        raise ValueError(f"Unknown ordering: {value}")


class TxopState(str, Enum):
    FILLING = "filling"
    DONE = "done"
    INFEASIBLE = "infeasible"


@dataclass
class StationOutcome:
    station_id: int
    scheduled: bool = False
    mcs: Optional[int] = None
    ru_size: Optional[int] = None
    ru_index: Optional[int] = None
    allocation_index: Optional[int] = None
    ppdu: Optional[int] = None          # position of the PPDU inside the TXOP
    completion_age: Optional[float] = None


@dataclass
class TxopResult:
    duration: float = 0.0
    state: TxopState = TxopState.DONE
    schedules: List[CandidateSchedule] = field(default_factory=list)
    outcomes: Dict[int, StationOutcome] = field(default_factory=dict)

    @property
    def scheduled_ids(self) -> List[int]:
        return [sid for sid, o in self.outcomes.items() if o.scheduled]

    @property
    def num_ppdus(self) -> int:
        return len(self.schedules)


def order_requests(requests: Sequence[StationRequest], ordering: Ordering) -> List[StationRequest]:
    """Stable sort: latency ascending by remaining budget, SNR descending by mean SNR."""
    if ordering == Ordering.NONE:
        return list(requests)
    if ordering == Ordering.LATENCY:
        return sorted(requests, key=lambda r: r.remaining_budget)
    if ordering == Ordering.SNR:
        return sorted(requests, key=lambda r: -r.avg_snr)
    return sorted(requests, key=lambda r: (r.remaining_budget, -r.avg_snr))


class TxopPacker:
    def __init__(self, scheduler: PPDUScheduler, ordering: Ordering = Ordering.NONE,
                 limits: Optional[LimitsConfig] = None, max_batch: int = MAX_USERS_PER_PPDU):
        if not 1 <= max_batch <= MAX_USERS_PER_PPDU:
            raise ValueError(f"max_batch must be in 1..{MAX_USERS_PER_PPDU}, got {max_batch}")
        self.scheduler = scheduler
        self.ordering = Ordering.parse(ordering)
        self.limits = limits or LimitsConfig()
        self.max_batch = max_batch

    def fits(self, schedule: CandidateSchedule, elapsed: float) -> bool:
        lim = self.limits
        if schedule.duration > lim.ppdu_limit:
            return False
        return elapsed + lim.overhead + schedule.duration <= lim.txop_limit

    def pack(self, requests: Sequence[StationRequest]) -> TxopResult:
        result = TxopResult()
        if not requests:
            logger.info("TXOP packer called with no requests")
            return result

        remaining = list(requests)
        state = TxopState.FILLING
        while remaining:
            remaining = order_requests(remaining, self.ordering)
            batch = min(self.max_batch, len(remaining))
            chosen = None
            while batch > 0:
                candidate = self.scheduler.schedule(remaining[:batch])
                if self.fits(candidate, result.duration):
                    chosen = candidate
                    break
                batch -= 1
            if chosen is None:
                state = TxopState.INFEASIBLE
                logger.info("TXOP full after %d PPDU(s), %.1f us; %d request(s) left",
                            result.num_ppdus, result.duration, len(remaining))
                break

            elapsed = self.limits.overhead + chosen.duration
            result.duration = round(result.duration + elapsed, 1)
            ppdu = result.num_ppdus
            result.schedules.append(chosen)
            served = {r.station_id: r for r in remaining[:batch]}
            for j, sid in enumerate(chosen.station_ids):
                result.outcomes[sid] = StationOutcome(
                    station_id=sid,
                    scheduled=True,
                    mcs=chosen.mcs[j],
                    ru_size=chosen.ru_sizes[j],
                    ru_index=chosen.ru_indices[j],
                    allocation_index=chosen.allocation_index,
                    ppdu=ppdu,
                    completion_age=served[sid].age + elapsed,
                )
            remaining = [replace(r, age=r.age + elapsed) for r in remaining[batch:]]
            logger.debug("PPDU %d: %d station(s) on allocation %s, %.1f us",
                         ppdu, batch, chosen.allocation_index, chosen.duration)

        for r in remaining:
            result.outcomes[r.station_id] = StationOutcome(station_id=r.station_id)
        result.state = TxopState.DONE if state == TxopState.FILLING else state
        return result
