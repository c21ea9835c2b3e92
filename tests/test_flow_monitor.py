"""
Tests for the IPv4 stack, the shared media and the flow monitor
"""

import ipaddress
import os
import tempfile
import unittest
import xml.etree.ElementTree as ET

from mixedsim.kernel.flow_monitor import FlowMonitor, Histogram
from mixedsim.kernel.medium import CsmaSegment, WifiMedium
from mixedsim.kernel.stack import InternetStack
from mixedsim.network.addressing import AddressPlanner
from mixedsim.network.topology import TopologyBuilder

from tests.fakes import RecordingEngine

SERVER = ipaddress.IPv4Address("10.1.1.2")


class TestInternetStack(unittest.TestCase):
    """Test media and routes built for a topology"""

    def setUp(self):
        self.engine = RecordingEngine()
        self.topology = TopologyBuilder(self.engine).build(3, mobility_enabled=False)
        self.addresses = AddressPlanner().assign(self.topology)
        self.internet = InternetStack.install(self.engine, self.topology, self.addresses)

    def test_media(self):
        self.assertIsInstance(self.internet.media[self.topology.wireless_link_index], WifiMedium)
        wired = self.internet.media[self.topology.wired_link_index]
        self.assertIsInstance(wired, CsmaSegment)
        self.assertAlmostEqual(wired.delay, 6560e-9)

    def test_station_routes_through_access_point(self):
        station = self.internet.stack(self.topology.station_indices[0])
        route = station.lookup(SERVER)
        self.assertIsNotNone(route)
        self.assertEqual(route.gateway, ipaddress.IPv4Address("192.168.0.4"))

    def test_server_routes_back_through_access_point(self):
        server = self.internet.stack(self.topology.server_index)
        route = server.lookup(ipaddress.IPv4Address("192.168.0.2"))
        self.assertEqual(route.gateway, ipaddress.IPv4Address("10.1.1.1"))

    def test_access_point_has_direct_routes(self):
        ap = self.internet.stack(self.topology.access_point_index)
        self.assertIsNone(ap.lookup(SERVER).gateway)
        self.assertIsNone(ap.lookup(ipaddress.IPv4Address("192.168.0.1")).gateway)

    def test_no_route(self):
        station = self.internet.stack(self.topology.station_indices[0])
        self.assertIsNone(station.send(49153, ipaddress.IPv4Address("172.16.0.1"), 9, 100))

    def test_duplicate_bind(self):
        server = self.internet.stack(self.topology.server_index)
        server.bind(9)
        with self.assertRaises(ValueError):
            server.bind(9)

    def test_delivery_across_both_segments(self):
        received = []
        server = self.internet.stack(self.topology.server_index)
        server.bind(9, received.append)

        station = self.internet.stack(self.topology.station_indices[0])
        port = station.bind()
        station.send(port, SERVER, 9, 4096)
        self.engine.run()

        self.assertEqual(len(received), 1)
        packet = received[0]
        self.assertEqual(packet.source, ipaddress.IPv4Address("192.168.0.1"))
        self.assertEqual(packet.size, 4096 + 28)
        self.assertEqual(packet.ttl, 63)
        # Wifi airtime at HtMcs1 dominates the end-to-end delay
        self.assertGreater(self.engine.current_time(), 4096 * 8 / 13e6)


class TestFlowMonitor(unittest.TestCase):
    """Test flow classification, counters and XML output"""

    def setUp(self):
        self.engine = RecordingEngine()
        self.topology = TopologyBuilder(self.engine).build(2, mobility_enabled=False)
        addresses = AddressPlanner().assign(self.topology)
        self.internet = InternetStack.install(self.engine, self.topology, addresses)
        self.monitor = FlowMonitor(self.engine).install_all(self.internet)
        self.internet.stack(self.topology.server_index).bind(9)
        self.temp_dir = tempfile.mkdtemp()

    def _send(self, station_number, count, payload_size=1000, spacing=0.01):
        stack = self.internet.stack(self.topology.station_indices[station_number])
        port = stack.bind()
        for i in range(count):
            self.engine.schedule(stack.send, i * spacing, port, SERVER, 9, payload_size)

    def test_installed_on_every_node(self):
        self.assertEqual(self.monitor.installed_nodes, [0, 1, 2, 3])

    def test_one_flow_per_five_tuple(self):
        self._send(0, 5)
        self._send(1, 3)
        self.engine.run()

        stats = self.monitor.get_flow_stats()
        self.assertEqual(sorted(stats), [1, 2])
        self.assertEqual(stats[1].tx_packets, 5)
        self.assertEqual(stats[1].rx_packets, 5)
        self.assertEqual(stats[2].tx_packets, 3)
        self.assertEqual(stats[1].tx_bytes, 5 * 1028)
        self.assertEqual(stats[1].rx_bytes, 5 * 1028)
        self.assertEqual(stats[1].times_forwarded, 5)
        self.assertEqual(stats[1].lost_packets, 0)

        five_tuple = self.monitor.find_flow(1)
        self.assertEqual(five_tuple.protocol, 17)
        self.assertEqual(five_tuple.destination_address, SERVER)
        self.assertEqual(five_tuple.destination_port, 9)

    def test_delay_accounting(self):
        self._send(0, 4)
        self.engine.run()
        stats = self.monitor.get_flow_stats()[1]
        self.assertGreater(stats.delay_sum, 0.0)
        self.assertAlmostEqual(stats.mean_delay, stats.delay_sum / 4)
        self.assertEqual(sum(stats.delay_histogram.counts.values()), 4)
        self.assertEqual(sum(stats.jitter_histogram.counts.values()), 3)
        self.assertLessEqual(stats.time_first_tx_packet, stats.time_first_rx_packet)

    def test_packets_in_flight_become_lost(self):
        self._send(0, 3)
        self.engine.stop(1e-6)
        self.engine.run()
        self.assertEqual(self.monitor.in_flight(), 1)

        self.monitor.check_for_lost_packets(max_delay=0.0)
        stats = self.monitor.get_flow_stats()[1]
        self.assertEqual(self.monitor.in_flight(), 0)
        self.assertEqual(stats.lost_packets, 1)

    def test_queue_overflow_counted_as_drop(self):
        medium = self.internet.media[self.topology.wireless_link_index]
        medium.queue_limit = 2
        self._send(0, 10, spacing=0.0)
        self.engine.run()

        stats = self.monitor.get_flow_stats()[1]
        self.assertEqual(stats.tx_packets, 10)
        self.assertEqual(stats.packets_dropped["queue_full"], stats.lost_packets)
        self.assertEqual(stats.rx_packets + stats.lost_packets, 10)

    def test_serialize_to_xml(self):
        self._send(0, 5)
        self.engine.run()
        path = os.path.join(self.temp_dir, "out", "flowmonitor-results.xml")
        self.monitor.serialize_to_xml_file(path, enable_histograms=True, enable_probes=True)

        root = ET.parse(path).getroot()
        self.assertEqual(root.tag, "FlowMonitor")
        flows = root.findall("./FlowStats/Flow")
        self.assertEqual(len(flows), 1)
        self.assertEqual(flows[0].get("txPackets"), "5")
        self.assertEqual(flows[0].get("rxPackets"), "5")
        self.assertTrue(flows[0].get("delaySum").endswith("ns"))
        self.assertIsNotNone(flows[0].find("delayHistogram"))

        classifier = root.findall("./Ipv4FlowClassifier/Flow")
        self.assertEqual(classifier[0].get("destinationAddress"), "10.1.1.2")
        self.assertEqual(classifier[0].get("destinationPort"), "9")
        self.assertEqual(len(root.findall("./FlowProbes/FlowProbe")), 3)

    def test_serialize_without_histograms_or_probes(self):
        path = os.path.join(self.temp_dir, "bare.xml")
        self.monitor.serialize_to_xml_file(path, enable_histograms=False, enable_probes=False)
        root = ET.parse(path).getroot()
        self.assertEqual(root.findall("./FlowStats/Flow"), [])
        self.assertIsNone(root.find("FlowProbes"))


class TestHistogram(unittest.TestCase):

    def test_bins(self):
        histogram = Histogram(0.5)
        for value in (0.1, 0.4, 0.6, 2.2):
            histogram.add(value)
        self.assertEqual(dict(histogram.counts), {0: 2, 1: 1, 4: 1})
        self.assertEqual(histogram.n_bins, 5)


if __name__ == '__main__':
    unittest.main()
