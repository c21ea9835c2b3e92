"""
Traffic Scheduler

Maps a traffic pattern onto traffic descriptors bound to wireless
stations and the wired server, and installs them as applications.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..core.config import (APP_DATA_RATE_BPS, APP_PACKET_SIZE, APP_START_TIME, APP_STOP_TIME,
                           SERVER_PORT)
from ..core.exceptions import InsufficientNodes
from ..kernel.applications import OnOffApplication, PacketSink
from ..kernel.engine import SimulationEngine
from ..kernel.stack import InternetStack
from ..network.addressing import AddressAssignment
from ..network.topology import Topology
from .patterns import ConstantVariable, ExponentialVariable, RandomVariable, TrafficPattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrafficDescriptor:
    """One traffic source: who sends, to where, and how"""
    name: str
    source_station: int  # index among the wireless stations
    source_node: int  # node index in the topology
    destination_address: ipaddress.IPv4Address
    destination_port: int
    data_rate_bps: float
    packet_size: int
    on_time: RandomVariable
    off_time: RandomVariable
    start_time: float
    stop_time: float


# (name, source station, on-time model, off-time model)
_CBR_SOURCE = ("cbr", 0, ConstantVariable(1.0), ConstantVariable(0.0))
_BURST_SOURCE = ("burst", 1, ExponentialVariable(1.0), ExponentialVariable(1.0))

PATTERN_SOURCES: Dict[TrafficPattern, Tuple[tuple, ...]] = {
    TrafficPattern.CBR: (_CBR_SOURCE,),
    TrafficPattern.BURST: (_BURST_SOURCE,),
    TrafficPattern.CBR_BURST: (_CBR_SOURCE, _BURST_SOURCE),
}


class TrafficScheduler:
    """
    Creates the traffic descriptors for a pattern. Every descriptor sends
    10 Mbps of 4096-byte packets to the server between 2 s and 10 s.
    """

    def __init__(self, data_rate_bps: float = APP_DATA_RATE_BPS, packet_size: int = APP_PACKET_SIZE,
                 start_time: float = APP_START_TIME, stop_time: float = APP_STOP_TIME,
                 port: int = SERVER_PORT):
        self.data_rate_bps = data_rate_bps
        self.packet_size = packet_size
        self.start_time = start_time
        self.stop_time = stop_time
        self.port = port
        self.sink = None

    @staticmethod
    def required_stations(pattern) -> int:
        pattern = TrafficPattern.parse(pattern)
        return max(source[1] for source in PATTERN_SOURCES[pattern]) + 1

    def validate(self, pattern, num_stations: int) -> TrafficPattern:
        """Check the pattern is known and every source station exists"""
        pattern = TrafficPattern.parse(pattern)
        for _, station, _, _ in PATTERN_SOURCES[pattern]:
            if num_stations <= station:
                raise InsufficientNodes(pattern.value, station, num_stations)
        return pattern

    def schedule(self, pattern, topology: Topology,
                 addresses: AddressAssignment) -> List[TrafficDescriptor]:
        pattern = self.validate(pattern, topology.num_stations)

        server_device = topology.device_of(topology.server_index, topology.wired_link_index)
        server_address = addresses.address_of(server_device.index)

        descriptors = []
        for name, station, on_time, off_time in PATTERN_SOURCES[pattern]:
            descriptor = TrafficDescriptor(
                name=name,
                source_station=station,
                source_node=topology.station_indices[station],
                destination_address=server_address,
                destination_port=self.port,
                data_rate_bps=self.data_rate_bps,
                packet_size=self.packet_size,
                on_time=on_time,
                off_time=off_time,
                start_time=self.start_time,
                stop_time=self.stop_time,
            )
            descriptors.append(descriptor)
            logger.info(f"Traffic {name}: station {station} -> {server_address}:{self.port} "
                        f"({self.data_rate_bps / 1e6:g} Mbps, {self.packet_size} bytes)")

        return descriptors

    def install(self, descriptors: List[TrafficDescriptor], internet: InternetStack,
                topology: Topology, engine: SimulationEngine) -> List[OnOffApplication]:
        """Install a sink on the server and one on/off source per descriptor"""
        self.sink = PacketSink(internet.stack(topology.server_index), self.port).install()

        applications = []
        for descriptor in descriptors:
            application = OnOffApplication(
                engine,
                internet.stack(descriptor.source_node),
                remote_address=descriptor.destination_address,
                remote_port=descriptor.destination_port,
                data_rate_bps=descriptor.data_rate_bps,
                packet_size=descriptor.packet_size,
                on_time=descriptor.on_time,
                off_time=descriptor.off_time,
                start_time=descriptor.start_time,
                stop_time=descriptor.stop_time,
            )
            applications.append(application.install())
        return applications
