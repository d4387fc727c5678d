"""ul_ofdma: 802.11ax uplink OFDMA TXOP scheduling and station/queue simulation."""

from .errors import ConfigurationError, ScheduleInvariantError
from .ru_table import RUAllocation, partition_info, partitions_for, full_band_allocation
from .airtime import ppdu_duration, ppdu_duration_matrix
from .mcs import MCSTable, select_mcs
from .schedulers import (
    StationRequest,
    CandidateSchedule,
    AssignmentScheduler,
    RoundRobinScheduler,
    create_scheduler,
)
from .txop import Ordering, TxopPacker, TxopResult, TxopState
from .config import PhyConfig, LimitsConfig, SimulationConfig, load_config
from .simulation import Simulation, run_simulation
