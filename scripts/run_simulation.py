#!/usr/bin/env python3
# scripts/run_simulation.py
from __future__ import annotations
import argparse, dataclasses, json, logging
from pathlib import Path

from ul_ofdma.config import load_config
from ul_ofdma.metrics import format_summary
from ul_ofdma.simulation import Simulation


def main():
    ap = argparse.ArgumentParser(description="Run one uplink OFDMA simulation from a YAML config.")
    ap.add_argument("--cfg", required=True, help="YAML run config (see configs/default.yaml)")
    ap.add_argument("--out", default="artifacts/result.json", help="Output JSON summary")
    ap.add_argument("--ticks", type=int, default=None, help="Override simulation.simulation_time")
    ap.add_argument("--scheduler", default=None, help="Override simulation.scheduler, e.g. RR-SINR")
    ap.add_argument("--no-progress", action="store_true", help="Disable the tqdm progress bar")
    ap.add_argument("-v", "--verbose", action="store_true", help="DEBUG logging")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    cfg = load_config(args.cfg)
    if args.ticks is not None:
        cfg = dataclasses.replace(cfg, simulation_time=int(args.ticks))
    if args.scheduler is not None:
        cfg = dataclasses.replace(cfg, scheduler=args.scheduler)

    print(f"[SIM] {cfg.scheduler}: {cfg.num_stations} stations, {cfg.simulation_time} ticks, "
          f"{cfg.channel.model} channel @ {cfg.channel.received_snr_db:g} dB")
    summary = Simulation(cfg).run(progress=not args.no_progress)
    print(format_summary(summary))

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(summary.to_dict(), indent=2))
    print(f"[SIM] Wrote {out}")


if __name__ == "__main__":
    main()
