"""
Configuration classes for the scenario harness
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .exceptions import InvalidConfiguration

# Simulation horizon and application window (seconds)
SIMULATION_STOP_TIME = 10.0
APP_START_TIME = 2.0
APP_STOP_TIME = 10.0

# Traffic source parameters
SERVER_PORT = 9
APP_DATA_RATE_BPS = 10e6  # 10 Mbps
APP_PACKET_SIZE = 4096  # bytes

# Wired backbone (congested on purpose)
WIRED_DATA_RATE_BPS = 100e6  # 100 Mbps
WIRED_DELAY = 6560e-9  # 6560 ns

# Address blocks
WIRELESS_NETWORK = "192.168.0.0/24"
WIRED_NETWORK = "10.1.1.0/24"

# Placement
GRID_SPACING = 10.0
GRID_WIDTH = 3
WALK_BOUNDS = (-50.0, 50.0, -50.0, 50.0)  # (min_x, max_x, min_y, max_y)
WALK_SPEED = 2.0

FLOW_MONITOR_FILE = "flowmonitor-results.xml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class ThroughputReduction(Enum):
    """How per-flow received bytes are folded into the throughput total"""
    # rxBytes * 8 / (8 * 10^6): the bit factor cancels, kept as reported
    LEGACY = "legacy"
    # rxBytes * 8 / active window / 10^6: megabits per second
    MBPS_OVER_WINDOW = "mbps_over_window"


class DelayReduction(Enum):
    """How per-flow delays are folded into the delay total"""
    # sum over flows of (delaySum / rxPackets)
    SUM_OF_FLOW_MEANS = "sum_of_flow_means"
    # sum(delaySum) / sum(rxPackets) across all flows
    WEIGHTED_MEAN = "weighted_mean"


@dataclass(frozen=True)
class ScenarioConfig:
    """Configuration parameters for one scenario run"""
    num_wireless_stations: int = 5
    mobility_enabled: bool = False
    traffic_pattern: Union[str, Enum] = "CBR"

    random_seed: Optional[int] = 1
    log_level: str = "INFO"
    output_directory: str = "."
    flow_monitor_file: str = FLOW_MONITOR_FILE

    # Reduction strategies for the aggregate report
    throughput_reduction: ThroughputReduction = ThroughputReduction.LEGACY
    delay_reduction: DelayReduction = DelayReduction.SUM_OF_FLOW_MEANS

    def __post_init__(self):
        if isinstance(self.num_wireless_stations, bool) or not isinstance(self.num_wireless_stations, int):
            raise InvalidConfiguration(
                f"num_wireless_stations must be an integer, got {self.num_wireless_stations!r}")
        if self.num_wireless_stations < 0:
            raise InvalidConfiguration(
                f"num_wireless_stations must be non-negative, got {self.num_wireless_stations}")

        if not isinstance(self.mobility_enabled, bool):
            raise InvalidConfiguration(
                f"mobility_enabled must be a boolean, got {self.mobility_enabled!r}")

        if self.random_seed is not None and (
                isinstance(self.random_seed, bool) or not isinstance(self.random_seed, int)):
            raise InvalidConfiguration(f"random_seed must be an integer, got {self.random_seed!r}")

        if self.log_level not in LOG_LEVELS:
            raise InvalidConfiguration(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")

        if not self.flow_monitor_file:
            raise InvalidConfiguration("flow_monitor_file must not be empty")

        # Frozen dataclass: coerce strategy names through object.__setattr__
        object.__setattr__(self, 'throughput_reduction',
                           _coerce(ThroughputReduction, self.throughput_reduction, 'throughput_reduction'))
        object.__setattr__(self, 'delay_reduction',
                           _coerce(DelayReduction, self.delay_reduction, 'delay_reduction'))

    @property
    def simulation_time(self) -> float:
        return SIMULATION_STOP_TIME


def _coerce(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ', '.join(member.value for member in enum_cls)
        raise InvalidConfiguration(f"{field_name} must be one of {choices}, got {value!r}") from None
