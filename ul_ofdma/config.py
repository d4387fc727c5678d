# ul_ofdma/config.py
"""
Run configuration: dataclasses with the default PHY/MAC/traffic parameters and
YAML loading. Every section can be given partially; missing keys keep their
defaults.
"""
from __future__ import annotations
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import yaml

from .errors import ConfigurationError
from .mcs import MCSTable
from .traffic import Category, Tier, TrafficProfile, DEFAULT_PROFILES, DEFAULT_TIER_WEIGHTS


class PPDUType(str, Enum):
    SU = "SU"
    TB = "TB"
    MU = "MU"
    ER_SU = "ER_SU"


class Coding(str, Enum):
    LDPC = "LDPC"
    BCC = "BCC"


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    key = str(value).strip().upper().replace(" PPDU", "").replace("-", "_").replace(" ", "_")
    try:
        return enum_cls(key)
    except ValueError:
        raise ConfigurationError(f"Unknown {enum_cls.__name__}: {value!r}") from None


def _known(cls, d: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Keep only keys that are fields of dataclass `cls`."""
    d = dict(d or {})
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in d.items() if k in names}


@dataclass(frozen=True)
class PhyConfig:
    ppdu_type: PPDUType = PPDUType.TB
    ltf_type: int = 4
    guard_interval: float = 3.2
    bandwidth: int = 20
    num_sts: int = 1
    num_midambles: int = 0
    signal_extension: float = 0.0
    sig_b_mcs: int = 0
    coding: Coding = Coding.LDPC

    def __post_init__(self):
        # frozen: go through object.__setattr__
        object.__setattr__(self, "ppdu_type", _coerce(PPDUType, self.ppdu_type))
        object.__setattr__(self, "coding", _coerce(Coding, self.coding))

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "PhyConfig":
        return cls(**_known(cls, d))


@dataclass(frozen=True)
class LimitsConfig:
    ppdu_limit: float = 5484.0
    txop_limit: float = 4096.0
    trigger_frame: float = 48.0
    sifs: float = 16.0

    @property
    def overhead(self) -> float:
        """Per-PPDU trigger frame + SIFS."""
        return self.trigger_frame + self.sifs

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "LimitsConfig":
        return cls(**{k: float(v) for k, v in _known(cls, d).items()})


@dataclass
class McsConfig:
    table_path: Optional[str] = None
    target_pdr: float = 0.95
    # parameters of the synthetic table when no CSV is given
    snr_min: float = -5.0
    snr_max: float = 45.0
    slope: float = 2.0

    def __post_init__(self):
        if not 0.0 <= float(self.target_pdr) <= 1.0:
            raise ConfigurationError(f"target_pdr must be in [0, 1], got {self.target_pdr}")

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "McsConfig":
        return cls(**_known(cls, d))

    def build_table(self) -> MCSTable:
        if self.table_path:
            return MCSTable.from_csv(self.table_path)
        return MCSTable.synthetic(snr_min=self.snr_min, snr_max=self.snr_max, slope=self.slope)


@dataclass
class ChannelConfig:
    model: str = "tdl"            # 'tdl' | 'flat'
    received_snr_db: float = 40.0
    rms_delay_spread_ns: float = 50.0
    num_taps: Optional[int] = None

    def __post_init__(self):
        self.model = str(self.model).lower()
        if self.model not in ("tdl", "flat"):
            raise ConfigurationError(f"Unknown channel model: {self.model!r}")

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "ChannelConfig":
        return cls(**_known(cls, d))


@dataclass
class AccessConfig:
    access_probability: float = 0.5
    backoff_range: Tuple[int, int] = (1000, 5600)
    post_txop_gap: int = 100
    initial_wait: int = 100

    def __post_init__(self):
        lo, hi = (int(x) for x in self.backoff_range)
        if lo < 0 or hi < lo:
            raise ConfigurationError(f"Invalid backoff range: {self.backoff_range}")
        self.backoff_range = (lo, hi)
        if not 0.0 <= float(self.access_probability) <= 1.0:
            raise ConfigurationError(f"access_probability must be in [0, 1], got {self.access_probability}")

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "AccessConfig":
        return cls(**_known(cls, d))


@dataclass
class TrafficConfig:
    # (slow tier, fast tier) per-tick arrival probabilities
    arrival_probabilities: Tuple[float, float] = (1.0 / 16000, 1.0 / 4000)
    profiles: Dict[Category, TrafficProfile] = field(default_factory=lambda: dict(DEFAULT_PROFILES))
    tier_weights: Dict[Tier, Dict[Category, float]] = field(
        default_factory=lambda: {t: dict(w) for t, w in DEFAULT_TIER_WEIGHTS.items()})

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "TrafficConfig":
        d = dict(d or {})
        out = cls()
        if "arrival_probabilities" in d:
            probs = tuple(float(p) for p in d["arrival_probabilities"])
            if len(probs) != 2:
                raise ConfigurationError("arrival_probabilities needs exactly two values (slow, fast)")
            out.arrival_probabilities = probs
        for name, prof in dict(d.get("profiles", {})).items():
            cat = _coerce_category(name)
            out.profiles[cat] = TrafficProfile(
                size_range=tuple(int(s) for s in prof.get("size_range", out.profiles[cat].size_range)),
                max_latency=int(prof.get("max_latency", out.profiles[cat].max_latency)),
            )
        for tier_name, weights in dict(d.get("tier_weights", {})).items():
            try:
                tier = Tier(str(tier_name).lower())
            except ValueError:
                raise ConfigurationError(f"Unknown traffic tier: {tier_name!r}") from None
            out.tier_weights[tier] = {_coerce_category(c): float(w) for c, w in dict(weights).items()}
        return out


def _coerce_category(name) -> Category:
    try:
        return Category(str(name).lower())
    except ValueError:
        raise ConfigurationError(f"Unknown traffic category: {name!r}") from None


SCHEDULER_FAMILIES = ("AA", "RR")
ORDERINGS = ("None", "ML", "SINR", "ML+SINR", "FS")


def parse_scheduler(name: str) -> Tuple[str, str]:
    """
    Split a scheduler label like 'AA-ML+SINR' into (family, ordering).
    'FS' (first served) is accepted as an alias of 'None'.
    """
    family, sep, ordering = str(name).partition("-")
    ordering = ordering if sep else "None"
    if family.upper() not in SCHEDULER_FAMILIES:
        raise ConfigurationError(f"Unknown scheduler family in {name!r}; expected one of {SCHEDULER_FAMILIES}")
    lookup = {o.upper(): o for o in ORDERINGS}
    if ordering.upper() not in lookup:
        raise ConfigurationError(f"Unknown ordering in {name!r}; expected one of {ORDERINGS}")
    ordering = lookup[ordering.upper()]
    return family.upper(), ("None" if ordering == "FS" else ordering)


@dataclass
class SimulationConfig:
    num_stations: int = 10
    simulation_time: int = 1_000_000
    seed: int = 0
    scheduler: str = "AA-None"
    solver: str = "milp"
    max_batch: int = 9
    phy: PhyConfig = field(default_factory=PhyConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    mcs: McsConfig = field(default_factory=McsConfig)
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    access: AccessConfig = field(default_factory=AccessConfig)
    traffic: TrafficConfig = field(default_factory=TrafficConfig)

    def __post_init__(self):
        parse_scheduler(self.scheduler)
        if self.solver not in ("milp", "threshold"):
            raise ConfigurationError(f"Unknown assignment solver: {self.solver!r}")
        if int(self.num_stations) < 0 or int(self.simulation_time) < 0:
            raise ConfigurationError("num_stations and simulation_time must be non-negative")
        if not 1 <= int(self.max_batch) <= 9:
            raise ConfigurationError(f"max_batch must be in 1..9, got {self.max_batch}")

    @property
    def scheduler_family(self) -> str:
        return parse_scheduler(self.scheduler)[0]

    @property
    def ordering(self) -> str:
        return parse_scheduler(self.scheduler)[1]

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "SimulationConfig":
        d = dict(d or {})
        sim = dict(d.get("simulation", {}))
        return cls(
            num_stations=int(sim.get("num_stations", 10)),
            simulation_time=int(sim.get("simulation_time", 1_000_000)),
            seed=int(sim.get("seed", 0)),
            scheduler=str(sim.get("scheduler", "AA-None")),
            solver=str(sim.get("solver", "milp")),
            max_batch=int(sim.get("max_batch", 9)),
            phy=PhyConfig.from_dict(d.get("phy")),
            limits=LimitsConfig.from_dict(d.get("limits")),
            mcs=McsConfig.from_dict(d.get("mcs")),
            channel=ChannelConfig.from_dict(d.get("channel")),
            access=AccessConfig.from_dict(d.get("access")),
            traffic=TrafficConfig.from_dict(d.get("traffic")),
        )


def load_config(path: str | Path) -> SimulationConfig:
    with open(path, "r") as f:
        cfg = yaml.safe_load(f) or {}
    return SimulationConfig.from_dict(cfg)
