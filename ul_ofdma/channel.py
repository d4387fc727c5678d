# ul_ofdma/channel.py
"""
Per-subcarrier SNR sources for the scheduler. Each returns a vector of SNR (dB)
aligned with `tones.active_tones(bandwidth)`.
"""
from __future__ import annotations
from typing import Dict, Optional, Protocol
import math
import numpy as np

from .tones import active_tones

# FFT size per bandwidth (78.125 kHz tone spacing)
FFT_SIZE = {20: 256, 40: 512, 80: 1024}


class SnrSource(Protocol):
    def snr_per_subcarrier(self, station_id: int) -> np.ndarray: ...


def _ensure_rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if isinstance(rng, np.random.Generator) else np.random.default_rng()


class FlatChannel:
    """Same SNR on every tone for every station."""

    def __init__(self, snr_db: float, bandwidth: int = 20):
        self.snr_db = float(snr_db)
        self._snr = np.full(active_tones(bandwidth).size, self.snr_db)
        self._snr.setflags(write=False)

    def snr_per_subcarrier(self, station_id: int) -> np.ndarray:
        return self._snr


class StaticChannel:
    """Explicit per-station SNR vectors."""

    def __init__(self, snr_by_station: Dict[int, np.ndarray], bandwidth: int = 20):
        n = active_tones(bandwidth).size
        self._snr = {}
        for sid, v in snr_by_station.items():
            v = np.asarray(v, dtype=float)
            if v.shape != (n,):
                raise ValueError(f"Station {sid}: expected {n} tones, got shape {v.shape}")
            self._snr[sid] = v

    def snr_per_subcarrier(self, station_id: int) -> np.ndarray:
        return self._snr[station_id]


class TDLChannel:
    """
    Rayleigh tapped-delay line with an exponential power delay profile.
    A fresh realization is drawn on every call; per-tone SNR is
    snr_db + 10*log10(|H(k)|^2) with unit average channel power.
    """

    def __init__(self, snr_db: float, bandwidth: int = 20, rms_delay_spread_ns: float = 50.0,
                 num_taps: Optional[int] = None, rng: Optional[np.random.Generator] = None):
        if bandwidth not in FFT_SIZE:
            raise ValueError(f"TDL channel supports {sorted(FFT_SIZE)} MHz, got {bandwidth}")
        self.snr_db = float(snr_db)
        self.bandwidth = bandwidth
        self.rng = _ensure_rng(rng)
        self.nfft = FFT_SIZE[bandwidth]
        ts_ns = 1e3 / bandwidth
        if num_taps is None:
            num_taps = max(1, int(math.ceil(5.0 * rms_delay_spread_ns / ts_ns)) + 1)
        delays = np.arange(num_taps) * ts_ns
        if rms_delay_spread_ns > 0:
            p = np.exp(-delays / rms_delay_spread_ns)
        else:
            p = np.zeros(num_taps)
            p[0] = 1.0
        self.tap_powers = p / p.sum()
        self._bins = active_tones(bandwidth) % self.nfft

    def frequency_response(self) -> np.ndarray:
        n = self.tap_powers.size
        taps = (self.rng.normal(0.0, 1.0, n) + 1j * self.rng.normal(0.0, 1.0, n)) / np.sqrt(2.0)
        h = np.sqrt(self.tap_powers) * taps
        return np.fft.fft(h, self.nfft)[self._bins]

    def snr_per_subcarrier(self, station_id: int) -> np.ndarray:
        gain = np.abs(self.frequency_response()) ** 2
        return self.snr_db + 10.0 * np.log10(np.maximum(gain, 1e-12))
