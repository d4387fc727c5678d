# ul_ofdma/plots.py
from __future__ import annotations
import json
from pathlib import Path
from typing import Dict, List, Optional
import numpy as np

import os, matplotlib
# Prevent GUI popups (which block a sweep) unless explicitly allowed
if not os.environ.get("ALLOW_GUI_PLOTS", ""):
    matplotlib.use("Agg")

import matplotlib.pyplot as plt


def load_result_json(path: str | Path) -> Dict:
    with open(path, "r") as f:
        return json.load(f)


def load_results_dir(path: str | Path) -> List[Dict]:
    """Every *.json summary under `path`, sorted by file name."""
    return [load_result_json(p) for p in sorted(Path(path).glob("*.json"))]


def _success_table(results: List[Dict]):
    """(schedulers, station counts, mean overall success rate[sched, n])."""
    scheds = sorted({r["scheduler"] for r in results})
    counts = sorted({int(r["num_stations"]) for r in results})
    acc = {}
    for r in results:
        v = r.get("overall_success_rate")
        if v is None:
            continue
        acc.setdefault((r["scheduler"], int(r["num_stations"])), []).append(float(v))
    table = np.full((len(scheds), len(counts)), np.nan)
    for (s, n), vals in acc.items():
        table[scheds.index(s), counts.index(n)] = np.mean(vals)
    return scheds, counts, table


def plot_success_rates(results: List[Dict], title: str = "Frame success rate per scheduler",
                       save_path: Optional[str | Path] = None, show: bool = False):
    """
    Grouped bars: one group per station count, one bar per scheduler label.
    `results` are SimulationSummary.to_dict() records.
    """
    if len(results) == 0:
        raise ValueError("No results provided to plot.")
    scheds, counts, table = _success_table(results)

    fig, ax = plt.subplots(figsize=(8, 5), dpi=130)
    width = 0.8 / max(len(scheds), 1)
    x = np.arange(len(counts))
    for k, s in enumerate(scheds):
        ax.bar(x + (k - (len(scheds) - 1) / 2) * width, table[k], width, label=s)
    ax.set_xticks(x)
    ax.set_xticklabels([str(n) for n in counts])
    ax.set_xlabel("Stations")
    ax.set_ylabel("Success rate (transmitted / generated)")
    ax.set_ylim(0.0, 1.05)
    ax.grid(True, axis="y", alpha=0.3)
    ax.set_title(title)
    ax.legend(loc="lower left", fontsize=8)
    fig.tight_layout()

    if save_path:
        save_path = Path(save_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path)
    if show:
        plt.show()
    plt.close(fig)
    return save_path
