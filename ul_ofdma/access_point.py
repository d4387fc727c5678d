# ul_ofdma/access_point.py
"""
Access point state machine driven once per tick (1 us).

While the countdown runs the AP waits (and tracks the active TXOP). When it
reaches zero the AP tries to gain the channel: on success it packs one TXOP
from the stations' head-of-line frames, on failure it backs off.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple
import logging
import math
import numpy as np

from .channel import SnrSource
from .schedulers import StationRequest
from .traffic import CategoryCounts, Station, coin_flip
from .txop import StationOutcome, TxopPacker, TxopResult

logger = logging.getLogger(__name__)


@dataclass
class TxopRecord:
    txop_number: int
    tick: int
    gained: bool
    duration: float = 0.0
    num_candidates: int = 0
    outcomes: List[StationOutcome] = field(default_factory=list)


class AccessPoint:
    def __init__(self, stations: Sequence[Station], packer: TxopPacker, channel: SnrSource,
                 access_probability: float = 0.5, backoff_range: Tuple[int, int] = (1000, 5600),
                 post_txop_gap: int = 100, initial_wait: int = 100,
                 rng: Optional[np.random.Generator] = None):
        if not 0.0 <= access_probability <= 1.0:
            raise ValueError(f"Access probability must be in [0, 1], got {access_probability}")
        self.stations = list(stations)
        self.packer = packer
        self.channel = channel
        self.access_probability = access_probability
        self.backoff_range = backoff_range
        self.post_txop_gap = post_txop_gap
        self.rng = rng if rng is not None else np.random.default_rng()

        self.tick = 0
        self.wait = initial_wait
        self.txop_remaining = 0
        self.txop_duration = 0.0
        self.total_txop_duration = 0.0
        self.access_attempts = 0
        self.gained_txops = 0
        self.completed_txops = 0
        self.transmitted = CategoryCounts()
        self.records: List[TxopRecord] = []
        self.on_txop_completed: List[Callable[[int], None]] = []

    def step(self) -> None:
        """Advance the AP, then every station, by one tick."""
        if self.wait > 0:
            self.wait -= 1
            if self.txop_remaining > 0:
                self.txop_remaining -= 1
                if self.txop_remaining == 0:
                    self.completed_txops += 1
                    logger.debug("tick %d: TXOP %d completed", self.tick, self.completed_txops)
                    for cb in self.on_txop_completed:
                        cb(self.tick)
        else:
            self._attempt_access()
        for sta in self.stations:
            sta.step(self.rng)
        self.tick += 1

    def requests(self) -> List[StationRequest]:
        """One request per station with a non-empty queue, from its head frame."""
        out = []
        for sta in self.stations:
            frame = sta.head()
            if frame is None:
                continue
            out.append(StationRequest(
                station_id=sta.station_id,
                frame_size=frame.size,
                age=frame.age,
                max_latency=frame.max_latency,
                category=frame.category,
                snr=self.channel.snr_per_subcarrier(sta.station_id),
            ))
        return out

    def _attempt_access(self) -> None:
        self.access_attempts += 1
        record = TxopRecord(txop_number=self.access_attempts, tick=self.tick, gained=False)
        if not coin_flip(self.access_probability, self.rng):
            lo, hi = self.backoff_range
            self.wait = int(self.rng.integers(lo, hi + 1))
            self.records.append(record)
            return

        self.gained_txops += 1
        record.gained = True
        requests = self.requests()
        record.num_candidates = len(requests)
        if not requests:
            logger.info("tick %d: TXOP gained with no stations to schedule", self.tick)
        result = self.packer.pack(requests) if requests else TxopResult()
        self._deliver(result)
        record.duration = result.duration
        record.outcomes = [o for o in result.outcomes.values() if o.scheduled]

        self.txop_duration = result.duration
        self.total_txop_duration += result.duration
        self.txop_remaining = int(math.ceil(result.duration))
        self.wait = self.post_txop_gap + self.txop_remaining
        self.records.append(record)
        logger.debug("tick %d: TXOP %d with %d/%d station(s), %.1f us (%s)", self.tick, self.gained_txops,
                     len(record.outcomes), len(requests), result.duration, result.state.value)

    def _deliver(self, result: TxopResult) -> None:
        by_id = {sta.station_id: sta for sta in self.stations}
        for sid in result.scheduled_ids:
            frame = by_id[sid].queue.dequeue()
            self.transmitted.increment(frame.category)

    @property
    def generated(self) -> CategoryCounts:
        return sum((s.generated for s in self.stations), CategoryCounts())

    @property
    def expired(self) -> CategoryCounts:
        return sum((s.expired for s in self.stations), CategoryCounts())

    def drain_remaining(self) -> CategoryCounts:
        """Empty every station queue, counting what was left."""
        return sum((s.drain_remaining() for s in self.stations), CategoryCounts())
