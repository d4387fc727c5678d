#!/usr/bin/env python3
# tests/test_traffic.py
"""
Tests for frames, queues, per-category counters and the station tick.
"""

import math
import numpy as np
import pytest

from ul_ofdma.traffic import (
    Category,
    CategoryCounts,
    Frame,
    FrameGenerator,
    FrameQueue,
    Station,
    Tier,
    TrafficProfile,
    coin_flip,
)


@pytest.fixture
def rng():
    return np.random.default_rng(0)


class TestFrameLifecycle:
    def test_expires_exactly_at_max_latency(self, rng):
        sta = Station(0, (0.0, 0.0))
        sta.queue.enqueue(Frame(size=100, max_latency=5, category=Category.PLC))
        for t in range(1, 5):
            sta.step(rng)
            assert len(sta.queue) == 1
            assert sta.queue.peek().age == t
        sta.step(rng)
        assert sta.queue.is_empty()
        assert sta.expired[Category.PLC] == 1

    def test_generated_frame_resident_until_latency(self, rng):
        gen = FrameGenerator(
            profiles={c: TrafficProfile((10, 10), 3) for c in Category},
        )
        sta = Station(0, (0.0, 1.0), generator=gen)
        sta.step(rng)                       # tick 0: arrival with age 0
        sta.arrival_probabilities = (0.0, 0.0)
        assert len(sta.queue) == 1 and sta.queue.peek().age == 0
        sta.step(rng)                       # tick 1
        sta.step(rng)                       # tick 2
        assert len(sta.queue) == 1
        sta.step(rng)                       # tick 3
        assert sta.queue.is_empty()
        assert sta.generated.total() == 1
        assert sta.expired.total() == 1

    def test_remaining_budget(self):
        f = Frame(size=100, max_latency=2000, category=Category.PLC, age=1500)
        assert f.remaining_budget == 500
        assert not f.expired

    def test_frame_ids_increase(self):
        a = Frame(1, 10, Category.PLC)
        b = Frame(1, 10, Category.PLC)
        assert b.frame_id > a.frame_id


class TestStation:
    def test_zero_probability_generates_nothing(self, rng):
        sta = Station(3, (0.0, 0.0))
        for _ in range(10_000):
            sta.step(rng)
        assert sta.generated.total() == 0
        assert sta.queue.is_empty()

    def test_certain_arrivals_one_per_tier(self, rng):
        sta = Station(0, (1.0, 1.0))
        sta.step(rng)
        cats = [f.category for f in sta.queue]
        assert len(cats) == 2
        assert cats[0] in (Category.CAMERA, Category.ARVR, Category.WORKER)
        assert cats[1] in (Category.HEARTBEAT, Category.PLC, Category.ROBOT)
        assert sta.generated.total() == 2

    def test_invalid_probability(self):
        with pytest.raises(ValueError):
            Station(0, (1.5, 0.0))

    def test_drain_remaining(self, rng):
        sta = Station(0, (1.0, 1.0))
        for _ in range(3):
            sta.step(rng)
        left = sta.drain_remaining()
        assert left.total() == 6
        assert sta.queue.is_empty()

    def test_conservation(self, rng):
        sta = Station(0, (0.05, 0.2))
        for _ in range(20_000):
            sta.step(rng)
        gen = sta.generated
        left = sta.drain_remaining()
        assert gen == sta.expired + left


class TestFrameGenerator:
    def test_single_category_tier(self, rng):
        gen = FrameGenerator(tier_weights={
            Tier.SLOW: {Category.CAMERA: 1.0},
            Tier.FAST: {Category.PLC: 1.0, Category.ROBOT: 0.0},
        })
        for _ in range(50):
            f = gen.generate(Tier.SLOW, rng)
            assert f.category == Category.CAMERA
            assert 1200 <= f.size <= 1500
            assert f.max_latency == 16_000
            assert gen.generate(Tier.FAST, rng).category == Category.PLC

    def test_empty_tier(self):
        with pytest.raises(ValueError):
            FrameGenerator(tier_weights={Tier.SLOW: {}, Tier.FAST: {Category.PLC: 1.0}})


class TestFrameQueue:
    def test_fifo(self):
        q = FrameQueue()
        frames = [Frame(k + 1, 100, Category.PLC) for k in range(3)]
        for f in frames:
            q.enqueue(f)
        assert q.peek() is frames[0]
        assert q.dequeue() is frames[0]
        assert list(q) == frames[1:]
        assert q.remove_at(1) is frames[2]
        assert len(q) == 1

    def test_empty_errors(self):
        q = FrameQueue()
        assert q.is_empty()
        with pytest.raises(IndexError):
            q.dequeue()
        with pytest.raises(IndexError):
            q.peek()


class TestCategoryCounts:
    def test_arithmetic(self):
        a = CategoryCounts.from_categories([Category.PLC, Category.PLC, Category.ROBOT])
        b = CategoryCounts.from_categories([Category.PLC])
        assert (a + b)[Category.PLC] == 3
        assert (a - b)[Category.PLC] == 1
        assert a.total() == 3
        assert a.as_dict()["robot"] == 1

    def test_division_by_zero_is_nan(self):
        a = CategoryCounts.from_categories([Category.PLC, Category.PLC])
        b = CategoryCounts.from_categories([Category.PLC] * 4)
        r = a / b
        assert r[Category.PLC] == 0.5
        assert math.isnan(r[Category.CAMERA])


class TestCoinFlip:
    def test_bounds(self, rng):
        assert not any(coin_flip(0.0, rng) for _ in range(1000))
        assert all(coin_flip(1.0, rng) for _ in range(1000))

    @pytest.mark.parametrize("p", [-0.1, 1.01])
    def test_invalid(self, rng, p):
        with pytest.raises(ValueError):
            coin_flip(p, rng)
