"""
Topology construction for the mixed wireless/wired scenario.

Nodes, links and devices are records in lists owned by a Topology and are
referenced by integer index everywhere else.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from ..core.config import (GRID_SPACING, GRID_WIDTH, WALK_BOUNDS, WALK_SPEED,
                           WIRED_DATA_RATE_BPS, WIRED_DELAY)
from ..core.exceptions import InvalidConfiguration
from ..kernel.engine import SimulationEngine
from ..mobility.mobility_models import (ConstantPositionModel, GridPlacement, MobilityManager,
                                        MobilityPolicy, Position, RandomWalkPolicy, Rectangle,
                                        create_mobility_model)

logger = logging.getLogger(__name__)


class NodeRole(Enum):
    WIRELESS_STATION = "wireless_station"
    ACCESS_POINT = "access_point"
    WIRED_HOST = "wired_host"


class LinkKind(Enum):
    WIRELESS_INFRASTRUCTURE = "wireless_infrastructure"
    WIRED_SEGMENT = "wired_segment"


# PHY rates of the HT modes used by the constant rate manager (20 MHz, long GI)
HT_MODE_RATES_BPS = {
    "HtMcs0": 6.5e6,
    "HtMcs1": 13e6,
    "HtMcs2": 19.5e6,
    "HtMcs3": 26e6,
    "HtMcs4": 39e6,
    "HtMcs5": 52e6,
    "HtMcs6": 58.5e6,
    "HtMcs7": 65e6,
}


@dataclass(frozen=True)
class ConstantRateManager:
    """Fixed data and control modes for every station"""
    data_mode: str = "HtMcs1"
    control_mode: str = "HtMcs0"

    def __post_init__(self):
        for mode in (self.data_mode, self.control_mode):
            if mode not in HT_MODE_RATES_BPS:
                raise InvalidConfiguration(f"Unknown Wi-Fi mode: {mode}")

    @property
    def data_rate_bps(self) -> float:
        return HT_MODE_RATES_BPS[self.data_mode]

    @property
    def control_rate_bps(self) -> float:
        return HT_MODE_RATES_BPS[self.control_mode]


@dataclass(frozen=True)
class WirelessChannelParams:
    ssid: str = "ns-3-ssid"
    rate_manager: ConstantRateManager = field(default_factory=ConstantRateManager)
    active_probing: bool = False


@dataclass(frozen=True)
class WiredSegmentParams:
    data_rate_bps: float = WIRED_DATA_RATE_BPS
    delay: float = WIRED_DELAY  # seconds


LinkParams = Union[WirelessChannelParams, WiredSegmentParams]


@dataclass(frozen=True)
class Node:
    index: int
    role: NodeRole
    name: str


@dataclass(frozen=True)
class Link:
    index: int
    kind: LinkKind
    node_indices: Tuple[int, ...]
    params: LinkParams


@dataclass(frozen=True)
class Device:
    index: int
    node_index: int
    link_index: int


@dataclass
class Topology:
    """Node/link/device arena produced by the TopologyBuilder"""
    nodes: List[Node]
    links: List[Link]
    devices: List[Device]
    station_indices: List[int]
    access_point_index: int
    server_index: int
    wireless_link_index: int
    wired_link_index: int
    station_policy: MobilityPolicy
    initial_positions: Dict[int, Position]
    mobility: MobilityManager

    @property
    def num_stations(self) -> int:
        return len(self.station_indices)

    @property
    def wireless_link(self) -> Link:
        return self.links[self.wireless_link_index]

    @property
    def wired_link(self) -> Link:
        return self.links[self.wired_link_index]

    def node(self, index: int) -> Node:
        return self.nodes[index]

    def station(self, station_number: int) -> Node:
        return self.nodes[self.station_indices[station_number]]

    def devices_on(self, link_index: int) -> List[Device]:
        return [d for d in self.devices if d.link_index == link_index]

    def devices_of(self, node_index: int) -> List[Device]:
        return [d for d in self.devices if d.node_index == node_index]

    def device_of(self, node_index: int, link_index: int) -> Optional[Device]:
        for device in self.devices:
            if device.node_index == node_index and device.link_index == link_index:
                return device
        return None


class TopologyBuilder:
    """
    Builds the wireless stations, the access point and the wired server,
    the two links joining them, and the node placement.
    """

    def __init__(self, engine: SimulationEngine,
                 wireless_params: Optional[WirelessChannelParams] = None,
                 wired_params: Optional[WiredSegmentParams] = None):
        self.engine = engine
        self.wireless_params = wireless_params or WirelessChannelParams()
        self.wired_params = wired_params or WiredSegmentParams()

    @staticmethod
    def resolve_mobility_policy(mobility_enabled: bool) -> MobilityPolicy:
        if mobility_enabled:
            return RandomWalkPolicy(bounds=Rectangle(*WALK_BOUNDS), speed=WALK_SPEED)
        return GridPlacement(min_x=0.0, min_y=0.0, delta_x=GRID_SPACING, delta_y=GRID_SPACING,
                             grid_width=GRID_WIDTH, row_first=True)

    def build(self, num_wireless_stations: int, mobility_enabled: bool) -> Topology:
        if num_wireless_stations < 0:
            raise InvalidConfiguration(
                f"Number of wireless stations must be non-negative, got {num_wireless_stations}")

        nodes: List[Node] = []
        for i in range(num_wireless_stations):
            nodes.append(Node(len(nodes), NodeRole.WIRELESS_STATION, f"sta{i}"))
        station_indices = [n.index for n in nodes]

        ap = Node(len(nodes), NodeRole.ACCESS_POINT, "ap")
        nodes.append(ap)
        server = Node(len(nodes), NodeRole.WIRED_HOST, "server")
        nodes.append(server)

        links = [
            Link(0, LinkKind.WIRELESS_INFRASTRUCTURE, tuple(station_indices) + (ap.index,),
                 self.wireless_params),
            Link(1, LinkKind.WIRED_SEGMENT, (ap.index, server.index), self.wired_params),
        ]

        devices: List[Device] = []
        for link in links:
            for node_index in link.node_indices:
                devices.append(Device(len(devices), node_index, link.index))

        policy = self.resolve_mobility_policy(mobility_enabled)
        mobility = MobilityManager(self.engine)
        initial_positions: Dict[int, Position] = {}

        for placement_index, node_index in enumerate(station_indices):
            model = create_mobility_model(policy, node_index, placement_index, self.engine)
            mobility.install(model)
            initial_positions[node_index] = model.get_position()

        # The access point never moves. On the grid it takes the slot after
        # the last station; a walking segment leaves it at the origin.
        if isinstance(policy, GridPlacement):
            ap_position = policy.position(num_wireless_stations)
        else:
            ap_position = (0.0, 0.0)
        mobility.install(ConstantPositionModel(ap.index, self.engine, ap_position))
        initial_positions[ap.index] = ap_position

        topology = Topology(
            nodes=nodes,
            links=links,
            devices=devices,
            station_indices=station_indices,
            access_point_index=ap.index,
            server_index=server.index,
            wireless_link_index=0,
            wired_link_index=1,
            station_policy=policy,
            initial_positions=initial_positions,
            mobility=mobility,
        )

        if num_wireless_stations == 0:
            logger.warning("Topology has no wireless stations")
        logger.info(f"Built topology: {num_wireless_stations} stations, 1 access point, 1 server, "
                    f"{type(policy).__name__} placement")
        return topology
