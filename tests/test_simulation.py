#!/usr/bin/env python3
# tests/test_simulation.py
"""
End-to-end runs of the simulator, channel sources and reporting.
"""

import json
import math
import numpy as np
import pytest

from ul_ofdma.channel import FlatChannel, StaticChannel, TDLChannel
from ul_ofdma.config import SimulationConfig
from ul_ofdma.metrics import SimulationSummary, aggregate_runs, format_summary, multi_run_stats
from ul_ofdma.plots import plot_success_rates
from ul_ofdma.simulation import Simulation


def small_cfg(scheduler="AA-None", ticks=20_000, model="flat", seed=1, n=4):
    return SimulationConfig.from_dict({
        "simulation": {"num_stations": n, "simulation_time": ticks, "seed": seed, "scheduler": scheduler},
        "channel": {"model": model, "received_snr_db": 25.0},
        "traffic": {"arrival_probabilities": [0.001, 0.003]},
    })


class TestRuns:
    @pytest.mark.parametrize("scheduler", ["AA-None", "AA-ML", "RR-None", "RR-SINR", "AA-ML+SINR"])
    def test_frames_are_conserved(self, scheduler):
        s = Simulation(small_cfg(scheduler)).run()
        for cat, gen in s.generated.items():
            assert gen == s.transmitted[cat] + s.expired[cat] + s.remaining[cat]
        assert s.gained_txops > 0
        assert sum(s.generated.values()) > 0
        assert 0.0 <= s.overall_success_rate <= 1.0

    def test_deterministic_for_seed(self):
        a = Simulation(small_cfg(model="tdl")).run().to_dict()
        b = Simulation(small_cfg(model="tdl")).run().to_dict()
        assert a == b

    def test_threshold_solver_matches_milp(self):
        cfg = small_cfg()
        cfg_t = SimulationConfig.from_dict({
            "simulation": {"num_stations": 4, "simulation_time": 20_000, "seed": 1, "solver": "threshold"},
            "channel": {"model": "flat", "received_snr_db": 25.0},
            "traffic": {"arrival_probabilities": [0.001, 0.003]},
        })
        a = Simulation(cfg).run()
        b = Simulation(cfg_t).run()
        assert a.transmitted == b.transmitted
        assert a.total_txop_duration == b.total_txop_duration

    def test_summary_json(self):
        s = Simulation(small_cfg(ticks=5_000)).run()
        d = json.loads(json.dumps(s.to_dict()))
        assert d["scheduler"] == "AA-None"
        assert d["num_stations"] == 4
        assert "overall_success_rate" in d
        text = format_summary(s)
        assert "AA-None" in text and "plc" in text

    @pytest.mark.slow
    def test_ten_stations_tdl(self):
        cfg = SimulationConfig.from_dict({
            "simulation": {"num_stations": 10, "simulation_time": 300_000, "seed": 3},
            "channel": {"model": "tdl", "received_snr_db": 20.0},
        })
        s = Simulation(cfg).run(progress=False)
        assert s.txop_fraction > 0.0
        assert s.mean_stations_per_txop <= 10


class TestChannels:
    def test_flat(self):
        ch = FlatChannel(12.0)
        np.testing.assert_array_equal(ch.snr_per_subcarrier(0), np.full(242, 12.0))

    def test_static(self):
        ch = StaticChannel({3: np.arange(242.0)})
        assert ch.snr_per_subcarrier(3)[10] == 10.0
        with pytest.raises(ValueError):
            StaticChannel({0: np.zeros(10)})

    def test_tdl_shape_and_average(self):
        ch = TDLChannel(20.0, rng=np.random.default_rng(0))
        assert ch.tap_powers.sum() == pytest.approx(1.0)
        gains = np.stack([10 ** ((ch.snr_per_subcarrier(0) - 20.0) / 10) for _ in range(400)])
        assert gains.shape == (400, 242)
        assert gains.mean() == pytest.approx(1.0, rel=0.1)

    def test_tdl_fresh_realisation(self):
        ch = TDLChannel(20.0, rng=np.random.default_rng(0))
        assert not np.array_equal(ch.snr_per_subcarrier(0), ch.snr_per_subcarrier(0))

    def test_tdl_bad_bandwidth(self):
        with pytest.raises(ValueError):
            TDLChannel(20.0, bandwidth=160)


class TestReporting:
    def test_multi_run_stats(self):
        st = multi_run_stats([0.8, 0.9, 1.0])
        assert st.mean == pytest.approx(0.9)
        assert st.ci_95_lower < 0.9 < st.ci_95_upper
        assert st.n == 3
        single = multi_run_stats([0.5, math.nan])
        assert single.n == 1 and single.ci_95_lower == single.ci_95_upper == 0.5

    def test_aggregate_runs(self):
        runs = [
            SimulationSummary(scheduler="AA-None", num_stations=10, received_snr_db=20.0,
                              generated={"plc": 10}, transmitted={"plc": k}) for k in (8, 9)
        ]
        agg = aggregate_runs(runs)
        assert list(agg) == ["AA-None|10|20"]
        assert agg["AA-None|10|20"].mean == pytest.approx(0.85)

    def test_plot_success_rates(self, tmp_path):
        results = [
            {"scheduler": "AA-None", "num_stations": 10, "overall_success_rate": 0.9},
            {"scheduler": "RR-None", "num_stations": 10, "overall_success_rate": 0.7},
            {"scheduler": "AA-None", "num_stations": 12, "overall_success_rate": None},
        ]
        out = plot_success_rates(results, save_path=tmp_path / "fig.png")
        assert out.exists()
        with pytest.raises(ValueError):
            plot_success_rates([])
