"""
IPv4 address planning for the wireless and wired segments.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Dict, List

from ..core.config import WIRED_NETWORK, WIRELESS_NETWORK
from ..core.exceptions import InvalidConfiguration
from .topology import Topology

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddressBlock:
    """A /24 handed out to the devices of exactly one link"""
    link_index: int
    network: ipaddress.IPv4Network

    def overlaps(self, other: 'AddressBlock') -> bool:
        return self.network.overlaps(other.network)


@dataclass
class AddressAssignment:
    """Per-device interface addresses"""
    blocks: List[AddressBlock]
    interfaces: Dict[int, ipaddress.IPv4Interface]  # device index -> interface

    def address_of(self, device_index: int) -> ipaddress.IPv4Address:
        return self.interfaces[device_index].ip

    def block_for(self, link_index: int) -> AddressBlock:
        for block in self.blocks:
            if block.link_index == link_index:
                return block
        raise KeyError(f"No address block for link {link_index}")


class AddressPlanner:
    """
    Assigns one address per device, sequentially from the first host
    address of the block owned by the device's link.
    """

    def __init__(self, wireless_network: str = WIRELESS_NETWORK, wired_network: str = WIRED_NETWORK):
        try:
            self.wireless_network = ipaddress.IPv4Network(wireless_network)
            self.wired_network = ipaddress.IPv4Network(wired_network)
        except ValueError as e:
            raise InvalidConfiguration(f"Invalid address block: {e}") from e

        if self.wireless_network.overlaps(self.wired_network):
            raise InvalidConfiguration(
                f"Wireless block {self.wireless_network} overlaps wired block {self.wired_network}")

    def assign(self, topology: Topology) -> AddressAssignment:
        blocks = [
            AddressBlock(topology.wireless_link_index, self.wireless_network),
            AddressBlock(topology.wired_link_index, self.wired_network),
        ]

        interfaces: Dict[int, ipaddress.IPv4Interface] = {}
        for block in blocks:
            devices = topology.devices_on(block.link_index)
            hosts = iter(block.network.hosts())
            for device in devices:
                try:
                    address = next(hosts)
                except StopIteration:
                    raise InvalidConfiguration(
                        f"Address block {block.network} exhausted: "
                        f"{len(devices)} devices on link {block.link_index}") from None
                interfaces[device.index] = ipaddress.IPv4Interface(
                    f"{address}/{block.network.prefixlen}")

            logger.info(f"Assigned {len(devices)} addresses from {block.network} "
                        f"to link {block.link_index}")

        return AddressAssignment(blocks=blocks, interfaces=interfaces)
