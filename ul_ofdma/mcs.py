# ul_ofdma/mcs.py
"""
SNR -> PDR lookup table and MCS selection.

The table has one row per SNR value (0.1 dB grid) and one PDR column per
MCS 0..11. Selection is an exact row lookup; there is no interpolation.
"""
from __future__ import annotations
from pathlib import Path
from typing import Dict, Sequence
import math
import numpy as np

from .errors import ConfigurationError

NUM_MCS = 12

# SNR (dB) at which each MCS reaches PDR 0.5 in the synthetic table
DEFAULT_SNR_THRESHOLDS_DB = (1.0, 4.0, 6.5, 9.5, 13.0, 16.5, 18.0, 20.0, 23.5, 25.5, 28.5, 30.5)


def round_tenth(x: float) -> float:
    """Round to 0.1 with halves away from zero."""
    q = math.floor(abs(float(x)) * 10.0 + 0.5)
    return math.copysign(q, x) / 10.0


def _key(snr_db: float) -> int:
    return int(round(round_tenth(snr_db) * 10))


class MCSTable:
    def __init__(self, snr_db: Sequence[float], pdr: np.ndarray):
        snr = np.asarray(snr_db, dtype=float).ravel()
        pdr = np.array(pdr, dtype=float)
        if pdr.ndim != 2 or pdr.shape[1] != NUM_MCS:
            raise ConfigurationError(f"PDR table needs {NUM_MCS} columns (MCS 0..11), got shape {pdr.shape}")
        if pdr.shape[0] != snr.size or snr.size == 0:
            raise ConfigurationError(f"SNR column ({snr.size}) and PDR rows ({pdr.shape[0]}) disagree")
        self.snr_db = snr
        self.pdr = pdr
        self.pdr.setflags(write=False)
        self.max_snr = float(snr.max())
        self._rows: Dict[int, int] = {}
        for r, s in enumerate(snr):
            self._rows.setdefault(_key(s), r)

    @classmethod
    def from_array(cls, table: np.ndarray) -> "MCSTable":
        """First column SNR (dB), then PDR for MCS 0..11."""
        table = np.asarray(table, dtype=float)
        if table.ndim != 2 or table.shape[1] != NUM_MCS + 1:
            raise ConfigurationError(f"MCS table needs {NUM_MCS + 1} columns, got shape {table.shape}")
        return cls(table[:, 0], table[:, 1:])

    @classmethod
    def from_csv(cls, path: str | Path) -> "MCSTable":
        raw = np.genfromtxt(path, delimiter=",", dtype=float)
        raw = np.atleast_2d(raw)
        # header line (if any) parses as NaN
        raw = raw[~np.isnan(raw[:, 0])]
        return cls.from_array(raw)

    @classmethod
    def synthetic(cls, snr_min: float = -5.0, snr_max: float = 45.0, slope: float = 2.0,
                  thresholds_db: Sequence[float] = DEFAULT_SNR_THRESHOLDS_DB) -> "MCSTable":
        """Logistic PDR curves, one per MCS, on a 0.1 dB grid."""
        if len(thresholds_db) != NUM_MCS:
            raise ConfigurationError(f"Need {NUM_MCS} SNR thresholds, got {len(thresholds_db)}")
        lo, hi = _key(snr_min), _key(snr_max)
        if hi < lo:
            raise ConfigurationError(f"snr_max {snr_max} below snr_min {snr_min}")
        snr = np.arange(lo, hi + 1) / 10.0
        thr = np.asarray(thresholds_db, dtype=float)
        pdr = 1.0 / (1.0 + np.exp(-slope * (snr[:, None] - thr[None, :])))
        return cls(snr, pdr)

    def row(self, snr_db: float):
        """PDR row for the clamped, rounded SNR, or None when absent."""
        r = self._rows.get(_key(min(float(snr_db), self.max_snr)))
        return None if r is None else self.pdr[r]

    def select(self, snr_db: float, target_pdr: float) -> int:
        row = self.row(snr_db)
        if row is None:
            return 0
        ok = np.nonzero(row >= target_pdr)[0]
        return int(ok[-1]) if ok.size else 0


def select_mcs(snr_db: float, table: MCSTable, target_pdr: float = 0.95) -> int:
    """Highest MCS whose PDR at `snr_db` meets `target_pdr`; 0 if none does."""
    return table.select(snr_db, target_pdr)


def select_mcs_matrix(snr_db: np.ndarray, table: MCSTable, target_pdr: float = 0.95) -> np.ndarray:
    snr_db = np.asarray(snr_db, dtype=float)
    out = np.fromiter((table.select(s, target_pdr) for s in snr_db.ravel()), dtype=int, count=snr_db.size)
    return out.reshape(snr_db.shape)
