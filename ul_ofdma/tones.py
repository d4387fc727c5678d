# ul_ofdma/tones.py
"""
Subcarrier (tone) map of HE resource units and per-RU SNR averaging.

Tone indices follow the 802.11ax numbering relative to DC. Multi-RU layouts are
tabulated for 20 MHz; 40 and 80 MHz only carry their full-band RU.
"""
from __future__ import annotations
from typing import Dict, Sequence, Tuple
import numpy as np

from .errors import ConfigurationError
from .ru_table import RUAllocation

Span = Tuple[int, int]

# (bandwidth, ru_size) -> {ru_index: inclusive tone spans}
_RU_SPANS: Dict[Tuple[int, int], Dict[int, Tuple[Span, ...]]] = {
    (20, 26): {
        1: ((-121, -96),),
        2: ((-95, -70),),
        3: ((-68, -43),),
        4: ((-42, -17),),
        5: ((-16, -4), (4, 16)),
        6: ((17, 42),),
        7: ((43, 68),),
        8: ((70, 95),),
        9: ((96, 121),),
    },
    (20, 52): {
        1: ((-121, -70),),
        2: ((-68, -17),),
        3: ((17, 68),),
        4: ((70, 121),),
    },
    (20, 106): {
        1: ((-122, -17),),
        2: ((17, 122),),
    },
    (20, 242): {1: ((-122, -2), (2, 122))},
    (40, 484): {1: ((-244, -3), (3, 244))},
    (80, 996): {1: ((-500, -3), (3, 500))},
}

_FULL_BAND_RU = {20: 242, 40: 484, 80: 996}


def _expand(spans: Sequence[Span]) -> np.ndarray:
    t = np.concatenate([np.arange(lo, hi + 1) for lo, hi in spans])
    t.setflags(write=False)
    return t


_RU_TONES: Dict[Tuple[int, int, int], np.ndarray] = {
    (bw, size, idx): _expand(spans)
    for (bw, size), table in _RU_SPANS.items()
    for idx, spans in table.items()
}


def active_tones(bandwidth: int = 20) -> np.ndarray:
    """All data/pilot tones of the channel (the full-band RU), ascending."""
    if bandwidth not in _FULL_BAND_RU:
        raise ConfigurationError(f"No tone map for {bandwidth} MHz; supported: {sorted(_FULL_BAND_RU)}")
    return _RU_TONES[(bandwidth, _FULL_BAND_RU[bandwidth], 1)]


def ru_tones(ru_size: int, ru_index: int, bandwidth: int = 20) -> np.ndarray:
    key = (int(bandwidth), int(ru_size), int(ru_index))
    if key not in _RU_TONES:
        raise ConfigurationError(f"Unknown RU: size={ru_size} index={ru_index} at {bandwidth} MHz")
    return _RU_TONES[key]


def snr_per_ru(snr: np.ndarray, allocation: RUAllocation, bandwidth: int = 20) -> np.ndarray:
    """
    Mean of a per-subcarrier SNR vector (dB, aligned with `active_tones`) over
    the tones of each RU of `allocation`. Returns one value per RU.
    """
    snr = np.asarray(snr, dtype=float)
    active = active_tones(bandwidth)
    if snr.shape != active.shape:
        raise ValueError(f"SNR vector has {snr.size} tones, channel has {active.size}")
    out = np.empty(len(allocation.ru_sizes), dtype=float)
    for k, (size, idx) in enumerate(zip(allocation.ru_sizes, allocation.ru_indices)):
        pos = np.searchsorted(active, ru_tones(size, idx, bandwidth))
        out[k] = snr[pos].mean()
    return out
