# ul_ofdma/simulation.py
"""
End-to-end driver: builds stations, channel, scheduler, packer and access point
from a SimulationConfig and runs the tick loop.
"""
from __future__ import annotations
from typing import Optional
import logging
import numpy as np
from tqdm import tqdm

from .access_point import AccessPoint
from .channel import FlatChannel, SnrSource, TDLChannel
from .config import SimulationConfig
from .metrics import SimulationSummary, summarize
from .mcs import MCSTable
from .schedulers import create_scheduler
from .traffic import FrameGenerator, Station
from .txop import Ordering, TxopPacker

logger = logging.getLogger(__name__)


def build_channel(cfg: SimulationConfig, rng: np.random.Generator) -> SnrSource:
    ch = cfg.channel
    if ch.model == "flat":
        return FlatChannel(ch.received_snr_db, bandwidth=cfg.phy.bandwidth)
    return TDLChannel(ch.received_snr_db, bandwidth=cfg.phy.bandwidth,
                      rms_delay_spread_ns=ch.rms_delay_spread_ns, num_taps=ch.num_taps, rng=rng)


class Simulation:
    def __init__(self, cfg: SimulationConfig, mcs_table: Optional[MCSTable] = None,
                 channel: Optional[SnrSource] = None):
        self.cfg = cfg
        self.rng = np.random.default_rng(cfg.seed)
        self.mcs_table = mcs_table if mcs_table is not None else cfg.mcs.build_table()
        self.channel = channel if channel is not None else build_channel(cfg, self.rng)

        generator = FrameGenerator(cfg.traffic.profiles, cfg.traffic.tier_weights)
        self.stations = [Station(k, cfg.traffic.arrival_probabilities, generator)
                         for k in range(cfg.num_stations)]
        scheduler = create_scheduler(cfg.scheduler_family, self.mcs_table, cfg.phy,
                                     target_pdr=cfg.mcs.target_pdr, solver=cfg.solver)
        self.packer = TxopPacker(scheduler, Ordering.parse(cfg.ordering), cfg.limits, cfg.max_batch)
        acc = cfg.access
        self.ap = AccessPoint(self.stations, self.packer, self.channel,
                              access_probability=acc.access_probability,
                              backoff_range=acc.backoff_range,
                              post_txop_gap=acc.post_txop_gap,
                              initial_wait=acc.initial_wait,
                              rng=self.rng)

    def run(self, progress: bool = False) -> SimulationSummary:
        cfg = self.cfg
        logger.info("running %s with %d station(s) for %d ticks", cfg.scheduler, cfg.num_stations,
                    cfg.simulation_time)
        ticks = range(cfg.simulation_time)
        if progress:
            ticks = tqdm(ticks, desc=f"{cfg.scheduler} n={cfg.num_stations}", unit="tick",
                         mininterval=1.0, leave=False)
        for _ in ticks:
            self.ap.step()
        return summarize(self.ap, scheduler=cfg.scheduler, received_snr_db=cfg.channel.received_snr_db,
                         simulation_time=cfg.simulation_time, seed=cfg.seed)


def run_simulation(cfg: SimulationConfig, progress: bool = False) -> SimulationSummary:
    return Simulation(cfg).run(progress=progress)
