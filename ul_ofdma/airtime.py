# ul_ofdma/airtime.py
"""
HE PPDU airtime model (802.11ax, no DCM).

duration = L-preamble + HE preamble + N_SYM * T_SYM + midambles + SE

All arithmetic runs on integers in units of 0.1 us so results are exact;
`ppdu_duration` converts back to microseconds.
"""
from __future__ import annotations
from functools import lru_cache
from typing import Sequence
import math
import numpy as np

from .config import Coding, PhyConfig, PPDUType
from .errors import ConfigurationError, ScheduleInvariantError

# durations below are in 0.1 us
T_LEGACY = 200
T_RLSIG = 40
T_HESIGA = 80
T_HESIGA_R = 160
T_HESIGB = 40
T_HESTF_TB = 80
T_HESTF = 40

HELTF = {1: 32, 2: 64, 4: 128}
# GI -> OFDM symbol duration
SYMBOL = {8: 136, 16: 144, 32: 160}

SERVICE_BITS = 16
TAIL_BITS = {Coding.LDPC: 0, Coding.BCC: 6}

# data bits per symbol, MCS 0..11, one spatial stream
N_DBPS_SU20 = (117, 234, 351, 468, 702, 936, 1053, 1170, 1404, 1560, 1755, 1950)
N_DBPS_SU80 = (490, 980, 1470, 1960, 2940, 3920, 4410, 4900, 5880, 6533, 7350, 8166)
N_DBPS_RU26 = (12, 24, 36, 48, 72, 96, 108, 120, 144, 160, 180, 200)
N_DBPS_RU106 = (51, 102, 153, 204, 306, 408, 459, 510, 612, 680, 765, 850)
N_DBPS_SIGB = (26, 52, 78, 104, 156, 208)

# HE-SIG-B content: common field + one user block per pair of the nine 26-tone users
SIGB_BITS = 8 + 11 + 52 * math.ceil(9 / 2)

# placeholder users filling the other RUs of an MU PPDU
MU_PLACEHOLDER_USERS = 9
MU_PLACEHOLDER_BYTES = 4

NUM_MCS = 12


def _gi_key(gi: float) -> int:
    key = int(round(float(gi) * 10))
    if key not in SYMBOL or abs(float(gi) * 10 - key) > 1e-6:
        raise ConfigurationError(f"Unsupported guard interval {gi} us; expected 0.8, 1.6 or 3.2")
    return key


def _check_mcs(mcs: int) -> int:
    m = int(mcs)
    if m != mcs or not 0 <= m < NUM_MCS:
        raise ConfigurationError(f"MCS must be an integer in 0..{NUM_MCS - 1}, got {mcs}")
    return m


def data_bits_per_symbol(ppdu_type: PPDUType, bandwidth: int, ru_size: int, mcs: int, num_sts: int = 1) -> int:
    m = _check_mcs(mcs)
    if ppdu_type in (PPDUType.SU, PPDUType.ER_SU):
        if bandwidth in (20, 40):
            base = N_DBPS_SU20[m] * bandwidth // 20
        elif bandwidth == 80:
            base = N_DBPS_SU80[m]
        else:
            raise ConfigurationError(f"No SU data rate for {bandwidth} MHz")
        return base * num_sts
    if ru_size in (26, 52):
        return N_DBPS_RU26[m] * ru_size // 26
    if ru_size == 106:
        return N_DBPS_RU106[m]
    if ru_size in (242, 484):
        return N_DBPS_SU20[m] * ru_size // 242
    raise ConfigurationError(f"No data rate for a {ru_size}-tone RU")


def num_symbols(payload_bytes: int, n_dbps: int, tail: int, exact_extra: bool) -> int:
    bits = 8 * int(payload_bytes) + tail + SERVICE_BITS
    n = -(-bits // n_dbps)
    if exact_extra and bits % n_dbps == 0:
        n += 1
    return n


def num_heltf(num_sts: int) -> int:
    return 1 if num_sts == 1 else math.ceil(num_sts / 2) * 2


def _validate(phy: PhyConfig) -> None:
    if phy.ltf_type not in HELTF:
        raise ConfigurationError(f"Unsupported LTF type {phy.ltf_type}; expected 1, 2 or 4")
    _gi_key(phy.guard_interval)
    if phy.bandwidth not in (20, 40, 80, 160):
        raise ConfigurationError(f"Unsupported bandwidth {phy.bandwidth} MHz")
    if not 1 <= int(phy.num_sts) <= 8:
        raise ConfigurationError(f"num_sts must be in 1..8, got {phy.num_sts}")
    if phy.coding not in TAIL_BITS:
        raise ConfigurationError(f"Unsupported coding {phy.coding}")
    if phy.num_midambles < 0 or phy.signal_extension < 0:
        raise ConfigurationError("num_midambles and signal_extension must be non-negative")
    if phy.ppdu_type == PPDUType.MU:
        if phy.bandwidth not in (20, 40):
            raise ConfigurationError("HE-SIG-B is only modelled for 20/40 MHz MU PPDUs")
        if not 0 <= phy.sig_b_mcs < len(N_DBPS_SIGB):
            raise ConfigurationError(f"SIG-B MCS must be in 0..5, got {phy.sig_b_mcs}")
    if phy.ppdu_type == PPDUType.ER_SU and phy.bandwidth != 20:
        raise ConfigurationError("ER SU PPDU is only defined for 20 MHz")


@lru_cache(maxsize=1 << 16)
def _duration_tenths(phy: PhyConfig, ru_size: int, payload_bytes: int, mcs: int) -> int:
    _validate(phy)
    if payload_bytes < 0:
        raise ConfigurationError(f"Payload must be non-negative, got {payload_bytes}")

    gi = _gi_key(phy.guard_interval)
    t_sym = SYMBOL[gi]
    t_heltf_sym = HELTF[phy.ltf_type] + gi
    n_heltf = num_heltf(int(phy.num_sts))
    tail = TAIL_BITS[phy.coding]
    kind = phy.ppdu_type

    n_dbps = data_bits_per_symbol(kind, phy.bandwidth, ru_size, mcs, int(phy.num_sts))
    if kind == PPDUType.TB:
        n_sym = num_symbols(payload_bytes, n_dbps, tail, exact_extra=False)
    elif kind == PPDUType.MU:
        n_sym = num_symbols(payload_bytes, n_dbps, tail, exact_extra=True)
        filler = num_symbols(MU_PLACEHOLDER_BYTES, data_bits_per_symbol(kind, phy.bandwidth, 26, 0), tail,
                             exact_extra=True)
        n_sym = max(n_sym, filler)
    else:
        n_sym = num_symbols(payload_bytes, n_dbps, tail, exact_extra=True)

    heltf = n_heltf * t_heltf_sym
    if kind == PPDUType.TB:
        preamble = T_RLSIG + T_HESIGA + T_HESTF_TB + heltf
    elif kind == PPDUType.SU:
        preamble = T_RLSIG + T_HESIGA + T_HESTF + heltf
    elif kind == PPDUType.MU:
        n_sigb = -(-SIGB_BITS // N_DBPS_SIGB[phy.sig_b_mcs])
        preamble = T_RLSIG + T_HESIGA + T_HESTF + heltf + n_sigb * T_HESIGB
    else:
        preamble = T_RLSIG + T_HESIGA_R + T_HESTF + heltf

    midambles = int(phy.num_midambles) * heltf
    se = int(round(float(phy.signal_extension) * 10))
    return T_LEGACY + preamble + n_sym * t_sym + midambles + se


def ppdu_duration(phy: PhyConfig, ru_size: int, payload_bytes: int, mcs: int) -> float:
    """Airtime in us of one PPDU carrying `payload_bytes` on a `ru_size`-tone RU at `mcs`."""
    return _duration_tenths(phy, int(ru_size), int(payload_bytes), _check_mcs(mcs)) / 10.0


def ppdu_duration_matrix(phy: PhyConfig, ru_sizes: Sequence[int], frame_sizes: Sequence[int],
                         mcs_matrix: np.ndarray) -> np.ndarray:
    """Station x RU airtime matrix; mcs_matrix[i, j] is the MCS of station i on RU j."""
    mcs_matrix = np.asarray(mcs_matrix)
    if mcs_matrix.shape != (len(frame_sizes), len(ru_sizes)):
        raise ScheduleInvariantError(
            f"MCS matrix shape {mcs_matrix.shape} does not match {len(frame_sizes)} stations x {len(ru_sizes)} RUs")
    out = np.empty(mcs_matrix.shape, dtype=float)
    for i, size in enumerate(frame_sizes):
        for j, ru in enumerate(ru_sizes):
            out[i, j] = ppdu_duration(phy, ru, size, int(mcs_matrix[i, j]))
    return out
