"""
Flow Monitor probe

Passively observes every IPv4 packet sent, forwarded, delivered or dropped
on any node, classifies it into a flow by its 5-tuple and accumulates
per-flow counters. The probe never generates or alters traffic.
"""

import ipaddress
import logging
import math
import xml.etree.ElementTree as ET
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .engine import SimulationEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FiveTuple:
    protocol: int
    source_address: ipaddress.IPv4Address
    destination_address: ipaddress.IPv4Address
    source_port: int
    destination_port: int

    def __str__(self):
        return (f"{self.source_address}:{self.source_port} -> "
                f"{self.destination_address}:{self.destination_port} (proto {self.protocol})")


class Histogram:
    """Fixed-width bins counting non-negative samples"""

    def __init__(self, bin_width: float):
        self.bin_width = bin_width
        self.counts: Dict[int, int] = defaultdict(int)

    def add(self, value: float):
        self.counts[int(math.floor(value / self.bin_width))] += 1

    @property
    def n_bins(self) -> int:
        return max(self.counts) + 1 if self.counts else 0


@dataclass
class FlowStats:
    """Counters for one flow, accumulated over the run"""
    tx_packets: int = 0
    rx_packets: int = 0
    tx_bytes: int = 0
    rx_bytes: int = 0
    delay_sum: float = 0.0  # seconds
    jitter_sum: float = 0.0  # seconds
    last_delay: Optional[float] = None
    lost_packets: int = 0
    times_forwarded: int = 0
    time_first_tx_packet: Optional[float] = None
    time_last_tx_packet: Optional[float] = None
    time_first_rx_packet: Optional[float] = None
    time_last_rx_packet: Optional[float] = None
    packets_dropped: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    bytes_dropped: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    delay_histogram: Histogram = field(default_factory=lambda: Histogram(0.001))
    jitter_histogram: Histogram = field(default_factory=lambda: Histogram(0.001))
    packet_size_histogram: Histogram = field(default_factory=lambda: Histogram(20))

    @property
    def mean_delay(self) -> Optional[float]:
        return self.delay_sum / self.rx_packets if self.rx_packets > 0 else None


@dataclass
class _TrackedPacket:
    first_seen: float
    last_seen: float
    times_forwarded: int = 0


class FlowMonitor:
    """
    Flow-level observation probe installed on every node
    """

    def __init__(self, engine: SimulationEngine, max_per_hop_delay: float = 10.0,
                 delay_bin_width: float = 0.001, jitter_bin_width: float = 0.001,
                 packet_size_bin_width: float = 20):
        self.engine = engine
        self.max_per_hop_delay = max_per_hop_delay
        self.delay_bin_width = delay_bin_width
        self.jitter_bin_width = jitter_bin_width
        self.packet_size_bin_width = packet_size_bin_width

        self._flow_ids: Dict[FiveTuple, int] = {}
        self._tuples: Dict[int, FiveTuple] = {}
        self._stats: Dict[int, FlowStats] = {}
        self._tracked: Dict[Tuple[int, int], _TrackedPacket] = {}
        # node index -> flow id -> [packets, bytes, delay from first probe]
        self._probe_stats: Dict[int, Dict[int, List[float]]] = defaultdict(
            lambda: defaultdict(lambda: [0, 0, 0.0]))
        self.installed_nodes: List[int] = []

    def install_all(self, internet):
        """Attach the probe to every node of an internet stack"""
        internet.add_probe(self)
        self.installed_nodes = sorted(internet.stacks)
        logger.info(f"Flow monitor installed on {len(self.installed_nodes)} nodes")
        return self

    def _classify(self, packet) -> int:
        key = FiveTuple(packet.protocol, packet.source, packet.destination,
                        packet.source_port, packet.destination_port)
        flow_id = self._flow_ids.get(key)
        if flow_id is None:
            flow_id = len(self._flow_ids) + 1
            self._flow_ids[key] = flow_id
            self._tuples[flow_id] = key
            self._stats[flow_id] = FlowStats(
                delay_histogram=Histogram(self.delay_bin_width),
                jitter_histogram=Histogram(self.jitter_bin_width),
                packet_size_histogram=Histogram(self.packet_size_bin_width),
            )
            logger.debug(f"New flow {flow_id}: {key}")
        return flow_id

    def _probe_record(self, node_index: int, flow_id: int, packet, delay: float):
        record = self._probe_stats[node_index][flow_id]
        record[0] += 1
        record[1] += packet.size
        record[2] += delay

    def send_outgoing(self, node_index: int, packet):
        now = self.engine.current_time()
        flow_id = self._classify(packet)
        stats = self._stats[flow_id]

        self._tracked[(flow_id, packet.uid)] = _TrackedPacket(now, now)
        if stats.tx_packets == 0:
            stats.time_first_tx_packet = now
        stats.time_last_tx_packet = now
        stats.tx_packets += 1
        stats.tx_bytes += packet.size
        self._probe_record(node_index, flow_id, packet, 0.0)

    def forward(self, node_index: int, packet):
        flow_id = self._classify(packet)
        tracked = self._tracked.get((flow_id, packet.uid))
        if tracked is None:
            return
        now = self.engine.current_time()
        tracked.last_seen = now
        tracked.times_forwarded += 1
        self._probe_record(node_index, flow_id, packet, now - tracked.first_seen)

    def local_deliver(self, node_index: int, packet):
        flow_id = self._classify(packet)
        tracked = self._tracked.pop((flow_id, packet.uid), None)
        if tracked is None:
            return

        now = self.engine.current_time()
        stats = self._stats[flow_id]
        delay = now - tracked.first_seen

        stats.delay_sum += delay
        stats.delay_histogram.add(delay)
        if stats.last_delay is not None:
            jitter = abs(delay - stats.last_delay)
            stats.jitter_sum += jitter
            stats.jitter_histogram.add(jitter)
        stats.last_delay = delay

        if stats.rx_packets == 0:
            stats.time_first_rx_packet = now
        stats.time_last_rx_packet = now
        stats.rx_packets += 1
        stats.rx_bytes += packet.size
        stats.packet_size_histogram.add(packet.size)
        stats.times_forwarded += tracked.times_forwarded
        self._probe_record(node_index, flow_id, packet, delay)

    def drop(self, node_index: int, packet, reason: str):
        flow_id = self._classify(packet)
        tracked = self._tracked.pop((flow_id, packet.uid), None)
        if tracked is None:
            return
        stats = self._stats[flow_id]
        stats.lost_packets += 1
        stats.packets_dropped[reason] += 1
        stats.bytes_dropped[reason] += packet.size

    def check_for_lost_packets(self, max_delay: Optional[float] = None):
        """Count packets in flight longer than max_delay as lost"""
        if max_delay is None:
            max_delay = self.max_per_hop_delay
        now = self.engine.current_time()
        for key, tracked in list(self._tracked.items()):
            if now - tracked.last_seen > max_delay:
                self._stats[key[0]].lost_packets += 1
                del self._tracked[key]

    def in_flight(self) -> int:
        return len(self._tracked)

    def get_flow_stats(self) -> Dict[int, FlowStats]:
        return dict(self._stats)

    def find_flow(self, flow_id: int) -> FiveTuple:
        return self._tuples[flow_id]

    def serialize_to_xml_file(self, path: str, enable_histograms: bool = True,
                              enable_probes: bool = True):
        """Write the per-flow record set as FlowMonitor XML"""
        root = ET.Element("FlowMonitor")

        flow_stats = ET.SubElement(root, "FlowStats")
        for flow_id, stats in self._stats.items():
            flow = ET.SubElement(flow_stats, "Flow", {
                "flowId": str(flow_id),
                "timeFirstTxPacket": _ns(stats.time_first_tx_packet),
                "timeFirstRxPacket": _ns(stats.time_first_rx_packet),
                "timeLastTxPacket": _ns(stats.time_last_tx_packet),
                "timeLastRxPacket": _ns(stats.time_last_rx_packet),
                "delaySum": _ns(stats.delay_sum),
                "jitterSum": _ns(stats.jitter_sum),
                "lastDelay": _ns(stats.last_delay),
                "txBytes": str(stats.tx_bytes),
                "rxBytes": str(stats.rx_bytes),
                "txPackets": str(stats.tx_packets),
                "rxPackets": str(stats.rx_packets),
                "lostPackets": str(stats.lost_packets),
                "timesForwarded": str(stats.times_forwarded),
            })
            if enable_histograms:
                _histogram_element(flow, "delayHistogram", stats.delay_histogram)
                _histogram_element(flow, "jitterHistogram", stats.jitter_histogram)
                _histogram_element(flow, "packetSizeHistogram", stats.packet_size_histogram)
            for reason, count in sorted(stats.packets_dropped.items()):
                ET.SubElement(flow, "packetsDropped", {"reasonCode": reason, "number": str(count)})
            for reason, count in sorted(stats.bytes_dropped.items()):
                ET.SubElement(flow, "bytesDropped", {"reasonCode": reason, "bytes": str(count)})

        classifier = ET.SubElement(root, "Ipv4FlowClassifier")
        for flow_id, key in self._tuples.items():
            ET.SubElement(classifier, "Flow", {
                "flowId": str(flow_id),
                "sourceAddress": str(key.source_address),
                "destinationAddress": str(key.destination_address),
                "protocol": str(key.protocol),
                "sourcePort": str(key.source_port),
                "destinationPort": str(key.destination_port),
            })

        if enable_probes:
            probes = ET.SubElement(root, "FlowProbes")
            for node_index in sorted(self._probe_stats):
                probe = ET.SubElement(probes, "FlowProbe", {"index": str(node_index)})
                for flow_id, (packets, size, delay) in sorted(self._probe_stats[node_index].items()):
                    ET.SubElement(probe, "FlowStats", {
                        "flowId": str(flow_id),
                        "packets": str(packets),
                        "bytes": str(size),
                        "delayFromFirstProbeSum": _ns(delay),
                    })

        tree = ET.ElementTree(root)
        ET.indent(tree, space="  ")
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        tree.write(path, encoding="utf-8", xml_declaration=True)
        logger.info(f"Flow monitor results written to {path}")


def _ns(seconds: Optional[float]) -> str:
    if seconds is None:
        seconds = 0.0
    return f"{seconds * 1e9:+.1f}ns"


def _histogram_element(parent: ET.Element, tag: str, histogram: Histogram):
    element = ET.SubElement(parent, tag, {"nBins": str(histogram.n_bins)})
    for index in sorted(histogram.counts):
        ET.SubElement(element, "bin", {
            "index": str(index),
            "start": f"{index * histogram.bin_width:g}",
            "width": f"{histogram.bin_width:g}",
            "count": str(histogram.counts[index]),
        })
