#!/usr/bin/env python3
# tests/test_access_point.py
"""
Tests for the access point tick state machine.
"""

import logging
import numpy as np
import pytest

from ul_ofdma.access_point import AccessPoint
from ul_ofdma.channel import FlatChannel
from ul_ofdma.mcs import MCSTable
from ul_ofdma.schedulers import AssignmentScheduler
from ul_ofdma.traffic import Category, Frame, Station
from ul_ofdma.txop import TxopPacker


@pytest.fixture(scope="module")
def table():
    return MCSTable.synthetic()


def build_ap(table, n_stations=3, access_probability=1.0, frames_per_station=1, seed=0):
    stations = [Station(k, (0.0, 0.0)) for k in range(n_stations)]
    for sta in stations:
        for _ in range(frames_per_station):
            sta.queue.enqueue(Frame(size=100, max_latency=100_000, category=Category.ROBOT))
    packer = TxopPacker(AssignmentScheduler(table))
    ap = AccessPoint(stations, packer, FlatChannel(40.0), access_probability=access_probability,
                     rng=np.random.default_rng(seed))
    return ap


def run(ap, ticks):
    for _ in range(ticks):
        ap.step()


class TestChannelAccess:
    def test_initial_wait(self, table):
        ap = build_ap(table)
        run(ap, 100)
        assert ap.access_attempts == 0
        run(ap, 1)
        assert ap.access_attempts == 1
        assert ap.records[0].tick == 100

    def test_failed_access_backs_off(self, table):
        ap = build_ap(table, access_probability=0.0)
        run(ap, 101)
        rec = ap.records[0]
        assert not rec.gained
        assert ap.gained_txops == 0
        assert 1000 <= ap.wait <= 5600
        assert ap.transmitted.total() == 0

    def test_gained_txop_serves_stations(self, table):
        ap = build_ap(table)
        run(ap, 101)
        rec = ap.records[0]
        assert rec.gained
        assert rec.num_candidates == 3
        assert len(rec.outcomes) == 3
        # 52/52/106 partition at MCS 11: 104 us PPDU + 64 us overhead
        assert rec.duration == 168.0
        assert ap.wait == 100 + 168
        assert ap.total_txop_duration == 168.0
        assert ap.transmitted[Category.ROBOT] == 3
        assert all(sta.queue.is_empty() for sta in ap.stations)

    def test_txop_completion(self, table):
        ap = build_ap(table)
        seen = []
        ap.on_txop_completed.append(seen.append)
        run(ap, 101 + 167)
        assert ap.completed_txops == 0
        run(ap, 1)
        assert ap.completed_txops == 1
        assert seen == [101 + 167]

    def test_next_attempt_after_gap(self, table):
        ap = build_ap(table, frames_per_station=2)
        run(ap, 101 + 268 + 1)
        assert ap.access_attempts == 2
        assert ap.records[1].tick == 101 + 268
        assert ap.transmitted.total() == 6

    def test_gained_with_empty_queues(self, table, caplog):
        ap = build_ap(table, frames_per_station=0)
        with caplog.at_level(logging.INFO, logger="ul_ofdma.access_point"):
            run(ap, 101)
        assert "no stations to schedule" in caplog.text
        rec = ap.records[0]
        assert rec.gained and rec.num_candidates == 0
        assert rec.duration == 0.0
        assert ap.wait == 100

    def test_only_head_frames_are_offered(self, table):
        ap = build_ap(table, n_stations=2, frames_per_station=3)
        reqs = ap.requests()
        assert [r.station_id for r in reqs] == [0, 1]
        assert all(r.snr.shape == (242,) for r in reqs)

    def test_invalid_access_probability(self, table):
        with pytest.raises(ValueError):
            build_ap(table, access_probability=2.0)


def test_counters_balance(table):
    stations = [Station(k, (0.002, 0.004)) for k in range(4)]
    ap = AccessPoint(stations, TxopPacker(AssignmentScheduler(table)), FlatChannel(30.0),
                     rng=np.random.default_rng(7))
    run(ap, 30_000)
    generated = ap.generated
    expired = ap.expired
    transmitted = ap.transmitted
    remaining = ap.drain_remaining()
    assert generated == transmitted + expired + remaining
    assert ap.gained_txops == sum(r.gained for r in ap.records)
