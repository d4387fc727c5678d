# ul_ofdma/traffic.py
"""
Frames, per-station FIFO queues and the per-tick station process.

A station ages its resident frames by one tick, drops those that reached their
latency budget, then draws one Bernoulli arrival per traffic tier.
"""
from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from itertools import count
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple
import math
import numpy as np


class Category(str, Enum):
    HEARTBEAT = "heartbeat"
    PLC = "plc"
    ROBOT = "robot"
    ARVR = "arvr"
    CAMERA = "camera"
    WORKER = "worker"


class Tier(str, Enum):
    SLOW = "slow"
    FAST = "fast"


@dataclass(frozen=True)
class TrafficProfile:
    size_range: Tuple[int, int]   # bytes, inclusive
    max_latency: int              # us


DEFAULT_PROFILES: Dict[Category, TrafficProfile] = {
    Category.HEARTBEAT: TrafficProfile((50, 100), 10_000),
    Category.PLC: TrafficProfile((100, 200), 2_000),
    Category.ROBOT: TrafficProfile((200, 400), 4_000),
    Category.ARVR: TrafficProfile((1000, 1500), 10_000),
    Category.CAMERA: TrafficProfile((1200, 1500), 16_000),
    Category.WORKER: TrafficProfile((500, 1000), 20_000),
}

DEFAULT_TIER_WEIGHTS: Dict[Tier, Dict[Category, float]] = {
    Tier.SLOW: {Category.CAMERA: 1.0, Category.ARVR: 1.0, Category.WORKER: 1.0},
    Tier.FAST: {Category.HEARTBEAT: 1.0, Category.PLC: 1.0, Category.ROBOT: 1.0},
}


class CategoryCounts:
    """One counter per Category with element-wise arithmetic."""

    def __init__(self, values: Optional[Mapping[Category, float]] = None):
        self._v: Dict[Category, float] = {c: 0 for c in Category}
        for c, x in (values or {}).items():
            self._v[Category(c)] = x

    @classmethod
    def from_categories(cls, cats: Iterable[Category]) -> "CategoryCounts":
        out = cls()
        for c in cats:
            out.increment(c)
        return out

    def increment(self, cat: Category, n: int = 1) -> None:
        self._v[Category(cat)] += n

    def __getitem__(self, cat: Category) -> float:
        return self._v[Category(cat)]

    def __add__(self, other: "CategoryCounts") -> "CategoryCounts":
        return CategoryCounts({c: self._v[c] + other._v[c] for c in Category})

    def __sub__(self, other: "CategoryCounts") -> "CategoryCounts":
        return CategoryCounts({c: self._v[c] - other._v[c] for c in Category})

    def __truediv__(self, other: "CategoryCounts") -> "CategoryCounts":
        # x/0 -> NaN
        return CategoryCounts({
            c: (self._v[c] / other._v[c]) if other._v[c] != 0 else math.nan
            for c in Category
        })

    def __eq__(self, other) -> bool:
        if not isinstance(other, CategoryCounts):
            return NotImplemented
        return self._v == other._v

    def total(self) -> float:
        return sum(self._v.values())

    def as_dict(self) -> Dict[str, float]:
        return {c.value: self._v[c] for c in Category}

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v}" for k, v in self.as_dict().items())
        return f"CategoryCounts({inner})"


_frame_ids = count()


@dataclass
class Frame:
    size: int
    max_latency: int
    category: Category
    age: int = 0
    frame_id: int = field(default_factory=lambda: next(_frame_ids))

    def tick(self) -> None:
        self.age += 1

    @property
    def expired(self) -> bool:
        return self.age >= self.max_latency

    @property
    def remaining_budget(self) -> int:
        return self.max_latency - self.age


class FrameQueue:
    """FIFO of frames. Only the head is offered to the scheduler."""

    def __init__(self):
        self._q: deque = deque()

    def enqueue(self, frame: Frame) -> None:
        self._q.append(frame)

    def dequeue(self) -> Frame:
        if not self._q:
            raise IndexError("dequeue from empty FrameQueue")
        return self._q.popleft()

    def peek(self) -> Frame:
        if not self._q:
            raise IndexError("peek into empty FrameQueue")
        return self._q[0]

    def remove_at(self, i: int) -> Frame:
        frame = self._q[i]
        del self._q[i]
        return frame

    def is_empty(self) -> bool:
        return not self._q

    def __len__(self) -> int:
        return len(self._q)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._q)


def coin_flip(p: float, rng: np.random.Generator) -> bool:
    """Bernoulli trial with success probability p."""
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"Probability must be in [0, 1], got {p}")
    return bool(rng.random() < p)


class FrameGenerator:
    """Draws a frame for a tier: category by tier weights, then size and deadline from its profile."""

    def __init__(self, profiles: Mapping[Category, TrafficProfile] = DEFAULT_PROFILES,
                 tier_weights: Mapping[Tier, Mapping[Category, float]] = DEFAULT_TIER_WEIGHTS):
        self.profiles = dict(profiles)
        self._choices: Dict[Tier, Tuple[Sequence[Category], np.ndarray]] = {}
        for tier in Tier:
            weights = dict(tier_weights.get(tier, {}))
            cats = [c for c, w in weights.items() if w > 0]
            if not cats:
                raise ValueError(f"Tier {tier.value!r} has no category with positive weight")
            w = np.asarray([weights[c] for c in cats], dtype=float)
            self._choices[tier] = (cats, w / w.sum())

    def generate(self, tier: Tier, rng: np.random.Generator) -> Frame:
        cats, p = self._choices[tier]
        cat = cats[int(rng.choice(len(cats), p=p))]
        prof = self.profiles[cat]
        lo, hi = prof.size_range
        return Frame(size=int(rng.integers(lo, hi + 1)), max_latency=prof.max_latency, category=cat)


class Station:
    def __init__(self, station_id: int, arrival_probabilities: Tuple[float, float] = (1.0 / 16000, 1.0 / 4000),
                 generator: Optional[FrameGenerator] = None):
        for p in arrival_probabilities:
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"Arrival probability must be in [0, 1], got {p}")
        self.station_id = station_id
        self.arrival_probabilities = tuple(arrival_probabilities)
        self.generator = generator or FrameGenerator()
        self.queue = FrameQueue()
        self.generated = CategoryCounts()
        self.expired = CategoryCounts()

    def step(self, rng: np.random.Generator) -> None:
        """One tick: age, expire, then arrivals (slow tier first)."""
        # Ageing runs before arrivals: a new frame is offered at age 0 and is
        # dropped on the tick its age reaches max_latency.
        dropped = False
        for frame in self.queue:
            frame.tick()
            dropped = dropped or frame.expired
        if dropped:
            kept = FrameQueue()
            for frame in self.queue:
                if frame.expired:
                    self.expired.increment(frame.category)
                else:
                    kept.enqueue(frame)
            self.queue = kept

        for tier, p in zip((Tier.SLOW, Tier.FAST), self.arrival_probabilities):
            if coin_flip(p, rng):
                frame = self.generator.generate(tier, rng)
                self.queue.enqueue(frame)
                self.generated.increment(frame.category)

    def head(self) -> Optional[Frame]:
        return None if self.queue.is_empty() else self.queue.peek()

    def drain_remaining(self) -> CategoryCounts:
        out = CategoryCounts()
        while not self.queue.is_empty():
            out.increment(self.queue.dequeue().category)
        return out
