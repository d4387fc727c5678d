# ul_ofdma/metrics.py
"""
Run summary for the uplink OFDMA simulator.
"""
from __future__ import annotations
from dataclasses import asdict, dataclass, field
from typing import Dict, List
import math
import numpy as np
from scipy import stats

from .access_point import AccessPoint


@dataclass
class SimulationSummary:
    """Aggregate counters of one simulation run."""
    scheduler: str = ""
    num_stations: int = 0
    received_snr_db: float = 0.0
    simulation_time: int = 0
    seed: int = 0

    access_attempts: int = 0
    gained_txops: int = 0
    total_txop_duration: float = 0.0
    txop_fraction: float = 0.0      # share of airtime spent inside TXOPs
    mean_stations_per_txop: float = 0.0
    mean_ppdu_mcs: float = 0.0

    generated: Dict[str, float] = field(default_factory=dict)
    transmitted: Dict[str, float] = field(default_factory=dict)
    expired: Dict[str, float] = field(default_factory=dict)
    remaining: Dict[str, float] = field(default_factory=dict)
    success_rate: Dict[str, float] = field(default_factory=dict)

    @property
    def overall_success_rate(self) -> float:
        gen = sum(self.generated.values())
        return sum(self.transmitted.values()) / gen if gen else math.nan

    def to_dict(self) -> Dict:
        d = asdict(self)
        d["overall_success_rate"] = self.overall_success_rate
        # NaN is not valid JSON
        return _nan_to_none(d)


def _nan_to_none(obj):
    if isinstance(obj, dict):
        return {k: _nan_to_none(v) for k, v in obj.items()}
    if isinstance(obj, float) and math.isnan(obj):
        return None
    return obj


def summarize(ap: AccessPoint, scheduler: str = "", received_snr_db: float = 0.0,
              simulation_time: int = 0, seed: int = 0) -> SimulationSummary:
    """
    Collect counters from an access point at the end of a run.
    Drains the station queues to count the frames still waiting.
    """
    generated = ap.generated
    transmitted = ap.transmitted
    expired = ap.expired
    remaining = ap.drain_remaining()
    success = transmitted / generated

    gained = [r for r in ap.records if r.gained]
    served: List[int] = [len(r.outcomes) for r in gained]
    mcs_values = [o.mcs for r in gained for o in r.outcomes]

    horizon = simulation_time + ap.txop_duration
    return SimulationSummary(
        scheduler=scheduler,
        num_stations=len(ap.stations),
        received_snr_db=float(received_snr_db),
        simulation_time=int(simulation_time),
        seed=int(seed),
        access_attempts=ap.access_attempts,
        gained_txops=ap.gained_txops,
        total_txop_duration=float(ap.total_txop_duration),
        txop_fraction=float(ap.total_txop_duration / horizon) if horizon > 0 else 0.0,
        mean_stations_per_txop=float(np.mean(served)) if served else 0.0,
        mean_ppdu_mcs=float(np.mean(mcs_values)) if mcs_values else 0.0,
        generated=generated.as_dict(),
        transmitted=transmitted.as_dict(),
        expired=expired.as_dict(),
        remaining=remaining.as_dict(),
        success_rate=success.as_dict(),
    )


def format_summary(summary: SimulationSummary) -> str:
    """Format a summary for pretty printing."""
    lines = [f"=== {summary.scheduler} | {summary.num_stations} STA | {summary.received_snr_db:.1f} dB ==="]
    lines.append(f"TXOPs gained: {summary.gained_txops}/{summary.access_attempts} attempts")
    lines.append(f"TXOP airtime: {summary.total_txop_duration:.1f} us ({summary.txop_fraction:.2%})")
    lines.append(f"Stations/TXOP: {summary.mean_stations_per_txop:.2f}, mean MCS: {summary.mean_ppdu_mcs:.2f}")
    lines.append(f"{'category':<10} {'gen':>8} {'tx':>8} {'exp':>8} {'left':>6} {'success':>8}")
    for cat, gen in summary.generated.items():
        rate = summary.success_rate.get(cat)
        rate_s = "n/a" if rate is None or (isinstance(rate, float) and math.isnan(rate)) else f"{rate:.4f}"
        lines.append(f"{cat:<10} {gen:>8} {summary.transmitted[cat]:>8} {summary.expired[cat]:>8} "
                     f"{summary.remaining[cat]:>6} {rate_s:>8}")
    overall = summary.overall_success_rate
    lines.append(f"Overall success rate: {'n/a' if math.isnan(overall) else f'{overall:.4f}'}")
    return "\n".join(lines)


@dataclass
class MultiRunStats:
    """Statistics of one metric across independent runs (seeds)."""
    mean: float
    std: float
    ci_95_lower: float
    ci_95_upper: float
    n: int

    def __str__(self):
        return f"{self.mean:.4f} ± {self.std:.4f} [95% CI: {self.ci_95_lower:.4f}, {self.ci_95_upper:.4f}]"


def multi_run_stats(values) -> MultiRunStats:
    values = np.asarray([v for v in values if v is not None and not math.isnan(v)], dtype=float)
    if values.size == 0:
        return MultiRunStats(math.nan, math.nan, math.nan, math.nan, 0)
    mean_val = float(np.mean(values))
    std_val = float(np.std(values, ddof=1)) if values.size > 1 else 0.0
    # t-distribution interval
    if values.size > 1 and std_val > 0.0:
        lo, hi = stats.t.interval(0.95, values.size - 1, loc=mean_val, scale=stats.sem(values))
    else:
        lo, hi = mean_val, mean_val
    return MultiRunStats(mean_val, std_val, float(lo), float(hi), int(values.size))


def aggregate_runs(summaries: List[SimulationSummary]) -> Dict[str, MultiRunStats]:
    """Overall success rate per (scheduler, stations, SNR) group across seeds."""
    groups: Dict[str, List[float]] = {}
    for s in summaries:
        key = f"{s.scheduler}|{s.num_stations}|{s.received_snr_db:g}"
        groups.setdefault(key, []).append(s.overall_success_rate)
    return {k: multi_run_stats(v) for k, v in groups.items()}
