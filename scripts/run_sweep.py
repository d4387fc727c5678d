#!/usr/bin/env python3
# scripts/run_sweep.py
from __future__ import annotations
import argparse, copy, itertools, json
from pathlib import Path
from typing import Any, Dict

import yaml
from tqdm import tqdm

from ul_ofdma.config import SimulationConfig
from ul_ofdma.metrics import SimulationSummary, aggregate_runs
from ul_ofdma.simulation import Simulation


def _point_cfg(base: Dict[str, Any], n: int, sched: str, snr: float, seed: int,
               ticks: int | None) -> SimulationConfig:
    d = copy.deepcopy(base)
    sim = d.setdefault("simulation", {})
    sim["num_stations"] = int(n)
    sim["scheduler"] = str(sched)
    sim["seed"] = int(seed)
    if ticks is not None:
        sim["simulation_time"] = int(ticks)
    d.setdefault("channel", {})["received_snr_db"] = float(snr)
    return SimulationConfig.from_dict(d)


def main():
    ap = argparse.ArgumentParser(description="Stations x schedulers x SNR sweep, one JSON per run.")
    ap.add_argument("--cfg", required=True, help="Sweep YAML (see configs/sweep.yaml)")
    ap.add_argument("--outdir", default="artifacts/sweep", help="Directory for per-run JSON files")
    ap.add_argument("--ticks", type=int, default=None, help="Override simulation_time for every run")
    args = ap.parse_args()

    with open(args.cfg, "r") as f:
        cfg = yaml.safe_load(f)
    base: Dict[str, Any] = {}
    if cfg.get("base_config"):
        with open(Path(cfg["base_config"]).expanduser(), "r") as f:
            base = yaml.safe_load(f) or {}
    for key in ("simulation", "phy", "limits", "mcs", "channel", "access", "traffic"):
        if key in cfg:
            base.setdefault(key, {}).update(cfg[key])

    sw = cfg.get("sweep", {})
    stations = sw.get("num_stations", [10])
    schedulers = sw.get("schedulers", ["AA-None"])
    snrs = sw.get("received_snr_db", [20.0])
    seeds = sw.get("seeds", [0])
    ticks = args.ticks if args.ticks is not None else sw.get("simulation_time")

    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    grid = list(itertools.product(stations, schedulers, snrs, seeds))
    print(f"[SWEEP] {len(grid)} run(s) -> {outdir}")

    summaries = []
    for n, sched, snr, seed in tqdm(grid, desc="sweep", unit="run"):
        point = _point_cfg(base, n, sched, snr, seed, ticks)
        summary: SimulationSummary = Simulation(point).run()
        summaries.append(summary)
        tag = f"{sched.replace('+', 'p')}_n{n}_snr{snr:g}_s{seed}"
        (outdir / f"{tag}.json").write_text(json.dumps(summary.to_dict(), indent=2))

    agg = aggregate_runs(summaries)
    for key, stats in agg.items():
        print(f"[SWEEP] {key}: {stats}")
    print(f"[SWEEP] Done: {len(summaries)} result file(s) in {outdir}")


if __name__ == "__main__":
    main()
