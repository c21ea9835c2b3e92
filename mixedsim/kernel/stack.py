"""
IPv4/UDP stack for simulated nodes.

Each node gets a NodeStack with one interface per device. Static routes
are computed once for the whole topology before the run.
"""

import ipaddress
import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ..network.addressing import AddressAssignment
from ..network.topology import LinkKind, Topology
from .engine import SimulationEngine
from .medium import CsmaSegment, SharedMedium, WifiMedium

logger = logging.getLogger(__name__)

PROTOCOL_UDP = 17
IPV4_HEADER_SIZE = 20
UDP_HEADER_SIZE = 8
EPHEMERAL_PORT_START = 49153

# Drop reasons reported to probes
DROP_NO_ROUTE = "no_route"
DROP_QUEUE_FULL = "queue_full"
DROP_TTL_EXPIRED = "ttl_expired"

DEFAULT_TTL = 64


@dataclass
class Packet:
    uid: int
    protocol: int
    source: ipaddress.IPv4Address
    source_port: int
    destination: ipaddress.IPv4Address
    destination_port: int
    payload_size: int
    ttl: int = DEFAULT_TTL

    @property
    def size(self) -> int:
        """IPv4 packet size, bytes"""
        return self.payload_size + IPV4_HEADER_SIZE + UDP_HEADER_SIZE


@dataclass
class Interface:
    device_index: int
    link_index: int
    address: ipaddress.IPv4Interface
    medium: SharedMedium


@dataclass
class Route:
    network: ipaddress.IPv4Network
    interface: Interface
    gateway: Optional[ipaddress.IPv4Address] = None


class NodeStack:
    """IPv4 forwarding and UDP demultiplexing for one node"""

    def __init__(self, node_index: int, name: str, internet: 'InternetStack'):
        self.node_index = node_index
        self.name = name
        self.internet = internet
        self.interfaces: List[Interface] = []
        self.routes: List[Route] = []
        self.probes: List = []
        self._sockets: Dict[int, Optional[Callable[[Packet], None]]] = {}
        self._ports = itertools.count(EPHEMERAL_PORT_START)

    def add_interface(self, interface: Interface):
        self.interfaces.append(interface)
        self.routes.append(Route(interface.address.network, interface))

    def owns(self, address: ipaddress.IPv4Address) -> bool:
        return any(i.address.ip == address for i in self.interfaces)

    def has_route(self, network: ipaddress.IPv4Network) -> bool:
        return any(r.network == network for r in self.routes)

    def lookup(self, destination: ipaddress.IPv4Address) -> Optional[Route]:
        matches = [r for r in self.routes if destination in r.network]
        if not matches:
            return None
        return max(matches, key=lambda r: r.network.prefixlen)

    def bind(self, port: Optional[int] = None,
             handler: Optional[Callable[[Packet], None]] = None) -> int:
        if port is None:
            port = next(self._ports)
            while port in self._sockets:
                port = next(self._ports)
        elif port in self._sockets:
            raise ValueError(f"Port {port} already bound on {self.name}")
        self._sockets[port] = handler
        return port

    def send(self, source_port: int, destination: ipaddress.IPv4Address,
             destination_port: int, payload_size: int) -> Optional[Packet]:
        route = self.lookup(destination)
        if route is None:
            logger.debug(f"{self.name}: no route to {destination}")
            return None

        packet = Packet(
            uid=self.internet.next_packet_uid(),
            protocol=PROTOCOL_UDP,
            source=route.interface.address.ip,
            source_port=source_port,
            destination=destination,
            destination_port=destination_port,
            payload_size=payload_size,
        )
        for probe in self.probes:
            probe.send_outgoing(self.node_index, packet)
        self._transmit(packet, route)
        return packet

    def receive(self, packet: Packet, device_index: int):
        if self.owns(packet.destination):
            for probe in self.probes:
                probe.local_deliver(self.node_index, packet)
            handler = self._sockets.get(packet.destination_port)
            if handler is not None:
                handler(packet)
            return

        packet.ttl -= 1
        if packet.ttl <= 0:
            self._drop(packet, DROP_TTL_EXPIRED)
            return

        route = self.lookup(packet.destination)
        if route is None:
            self._drop(packet, DROP_NO_ROUTE)
            return
        for probe in self.probes:
            probe.forward(self.node_index, packet)
        self._transmit(packet, route)

    def _transmit(self, packet: Packet, route: Route):
        next_hop = route.gateway if route.gateway is not None else packet.destination
        next_device = self.internet.device_for_address(next_hop)
        if next_device is None:
            self._drop(packet, DROP_NO_ROUTE)
            return
        if not route.interface.medium.enqueue(route.interface.device_index, packet, next_device):
            self._drop(packet, DROP_QUEUE_FULL)

    def _drop(self, packet: Packet, reason: str):
        logger.debug(f"{self.name}: dropped packet {packet.uid} ({reason})")
        for probe in self.probes:
            probe.drop(self.node_index, packet, reason)


class InternetStack:
    """
    Media, node stacks and routes for a built topology.
    """

    def __init__(self, engine: SimulationEngine):
        self.engine = engine
        self.stacks: Dict[int, NodeStack] = {}
        self.media: Dict[int, SharedMedium] = {}  # link index -> medium
        self._devices_by_address: Dict[ipaddress.IPv4Address, int] = {}
        self._uids = itertools.count()

    @classmethod
    def install(cls, engine: SimulationEngine, topology: Topology,
                addresses: AddressAssignment) -> 'InternetStack':
        internet = cls(engine)
        device_nodes = {d.index: d.node_index for d in topology.devices}

        for link in topology.links:
            if link.kind == LinkKind.WIRELESS_INFRASTRUCTURE:
                manager = link.params.rate_manager
                medium = WifiMedium(engine, manager.data_rate_bps, manager.control_rate_bps,
                                    position_of=topology.mobility.position_of,
                                    device_nodes=device_nodes)
            else:
                medium = CsmaSegment(engine, link.params.data_rate_bps, link.params.delay)
            internet.media[link.index] = medium

        for node in topology.nodes:
            internet.stacks[node.index] = NodeStack(node.index, node.name, internet)

        for device in topology.devices:
            stack = internet.stacks[device.node_index]
            medium = internet.media[device.link_index]
            interface = Interface(device.index, device.link_index,
                                  addresses.interfaces[device.index], medium)
            stack.add_interface(interface)
            medium.attach(device.index, stack.receive)
            internet._devices_by_address[interface.address.ip] = device.index

        internet.populate_routing_tables()
        logger.info(f"Installed internet stack on {len(internet.stacks)} nodes")
        return internet

    def stack(self, node_index: int) -> NodeStack:
        return self.stacks[node_index]

    def next_packet_uid(self) -> int:
        return next(self._uids)

    def device_for_address(self, address: ipaddress.IPv4Address) -> Optional[int]:
        return self._devices_by_address.get(address)

    def add_probe(self, probe):
        for stack in self.stacks.values():
            stack.probes.append(probe)

    def _neighbors(self, stack: NodeStack) -> List[Tuple[NodeStack, Interface, ipaddress.IPv4Address]]:
        neighbors = []
        for interface in stack.interfaces:
            for other in self.stacks.values():
                if other is stack:
                    continue
                for other_interface in other.interfaces:
                    if other_interface.link_index == interface.link_index:
                        neighbors.append((other, interface, other_interface.address.ip))
        return neighbors

    def populate_routing_tables(self):
        """
        Add a route to every reachable network.

        Rounds only look at the routes neighbours knew when the round
        started, so every network is reached over the fewest hops.
        """
        while True:
            snapshot = {index: [r.network for r in stack.routes] for index, stack in self.stacks.items()}
            added = 0
            for stack in self.stacks.values():
                for neighbor, interface, gateway in self._neighbors(stack):
                    for network in snapshot[neighbor.node_index]:
                        if not stack.has_route(network):
                            stack.routes.append(Route(network, interface, gateway))
                            added += 1
            if not added:
                break

        for stack in self.stacks.values():
            logger.debug(f"{stack.name} routes: " + ", ".join(
                f"{r.network} via {r.gateway or 'direct'}" for r in stack.routes))
