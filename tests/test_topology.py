"""
Tests for topology construction and address planning
"""

import ipaddress
import unittest

from mixedsim.core.exceptions import InvalidConfiguration
from mixedsim.mobility.mobility_models import GridPlacement, RandomWalkPolicy
from mixedsim.network.addressing import AddressPlanner
from mixedsim.network.topology import LinkKind, NodeRole, TopologyBuilder, WiredSegmentParams

from tests.fakes import RecordingEngine


class TestTopologyBuilder(unittest.TestCase):
    """Test cases for the TopologyBuilder"""

    def setUp(self):
        self.engine = RecordingEngine()
        self.builder = TopologyBuilder(self.engine)

    def test_node_counts_and_roles(self):
        """Test one AP, one server and the requested number of stations"""
        topology = self.builder.build(5, mobility_enabled=False)

        self.assertEqual(len(topology.nodes), 7)
        self.assertEqual(topology.num_stations, 5)
        roles = [node.role for node in topology.nodes]
        self.assertEqual(roles.count(NodeRole.WIRELESS_STATION), 5)
        self.assertEqual(roles.count(NodeRole.ACCESS_POINT), 1)
        self.assertEqual(roles.count(NodeRole.WIRED_HOST), 1)
        self.assertEqual(topology.node(topology.access_point_index).name, "ap")
        self.assertEqual(topology.node(topology.server_index).name, "server")

    def test_links(self):
        topology = self.builder.build(3, mobility_enabled=False)

        wifi = topology.wireless_link
        self.assertEqual(wifi.kind, LinkKind.WIRELESS_INFRASTRUCTURE)
        self.assertEqual(wifi.node_indices, (0, 1, 2, topology.access_point_index))
        self.assertEqual(wifi.params.ssid, "ns-3-ssid")
        self.assertEqual(wifi.params.rate_manager.data_mode, "HtMcs1")
        self.assertEqual(wifi.params.rate_manager.control_mode, "HtMcs0")

        wired = topology.wired_link
        self.assertEqual(wired.kind, LinkKind.WIRED_SEGMENT)
        self.assertEqual(wired.node_indices, (topology.access_point_index, topology.server_index))
        self.assertEqual(wired.params, WiredSegmentParams())
        self.assertAlmostEqual(wired.params.data_rate_bps, 100e6)
        self.assertAlmostEqual(wired.params.delay, 6560e-9)

    def test_access_point_bridges_both_links(self):
        topology = self.builder.build(2, mobility_enabled=False)
        ap_devices = topology.devices_of(topology.access_point_index)
        self.assertEqual({d.link_index for d in ap_devices},
                         {topology.wireless_link_index, topology.wired_link_index})
        self.assertEqual(len(topology.devices_of(topology.server_index)), 1)

    def test_grid_positions(self):
        """Stations fill a 3-wide grid with 10 unit spacing, AP takes the next slot"""
        topology = self.builder.build(5, mobility_enabled=False)

        self.assertIsInstance(topology.station_policy, GridPlacement)
        expected = [(0.0, 0.0), (10.0, 0.0), (20.0, 0.0), (0.0, 10.0), (10.0, 10.0)]
        for station, position in zip(topology.station_indices, expected):
            self.assertEqual(topology.initial_positions[station], position)
        self.assertEqual(topology.initial_positions[topology.access_point_index], (20.0, 10.0))

    def test_mobile_policy(self):
        topology = self.builder.build(4, mobility_enabled=True)

        policy = topology.station_policy
        self.assertIsInstance(policy, RandomWalkPolicy)
        self.assertEqual((policy.bounds.min_x, policy.bounds.max_x,
                          policy.bounds.min_y, policy.bounds.max_y), (-50.0, 50.0, -50.0, 50.0))
        self.assertEqual(policy.speed, 2.0)
        self.assertEqual(topology.initial_positions[topology.access_point_index], (0.0, 0.0))
        stats = topology.mobility.get_statistics()
        self.assertEqual(stats['moving_nodes'], 4)
        self.assertEqual(stats['stationary_nodes'], 1)

    def test_zero_stations(self):
        """An empty wireless segment still builds with the AP and server"""
        with self.assertLogs('mixedsim.network.topology', level='WARNING'):
            topology = self.builder.build(0, mobility_enabled=False)
        self.assertEqual(topology.num_stations, 0)
        self.assertEqual(len(topology.nodes), 2)
        self.assertEqual(topology.wireless_link.node_indices, (topology.access_point_index,))

    def test_negative_stations(self):
        with self.assertRaises(InvalidConfiguration):
            self.builder.build(-1, mobility_enabled=False)


class TestAddressPlanner(unittest.TestCase):
    """Test cases for the AddressPlanner"""

    def setUp(self):
        self.topology = TopologyBuilder(RecordingEngine()).build(5, mobility_enabled=False)

    def test_sequential_assignment(self):
        """Stations get .1 to .N, the AP gets .N+1, the wired pair .1 and .2"""
        assignment = AddressPlanner().assign(self.topology)
        wifi = self.topology.wireless_link_index
        wired = self.topology.wired_link_index

        for number, node_index in enumerate(self.topology.station_indices):
            device = self.topology.device_of(node_index, wifi)
            self.assertEqual(assignment.address_of(device.index),
                             ipaddress.IPv4Address(f"192.168.0.{number + 1}"))

        ap = self.topology.access_point_index
        self.assertEqual(assignment.address_of(self.topology.device_of(ap, wifi).index),
                         ipaddress.IPv4Address("192.168.0.6"))
        self.assertEqual(assignment.address_of(self.topology.device_of(ap, wired).index),
                         ipaddress.IPv4Address("10.1.1.1"))
        server = self.topology.device_of(self.topology.server_index, wired)
        self.assertEqual(assignment.address_of(server.index), ipaddress.IPv4Address("10.1.1.2"))

    def test_addresses_unique_and_in_block(self):
        assignment = AddressPlanner().assign(self.topology)
        addresses = [iface.ip for iface in assignment.interfaces.values()]
        self.assertEqual(len(addresses), len(set(addresses)))

        for device in self.topology.devices:
            block = assignment.block_for(device.link_index)
            self.assertIn(assignment.address_of(device.index), block.network)
            self.assertEqual(assignment.interfaces[device.index].network.prefixlen, 24)

    def test_overlapping_blocks_rejected(self):
        with self.assertRaises(InvalidConfiguration):
            AddressPlanner("10.1.0.0/16", "10.1.1.0/24")

    def test_malformed_block_rejected(self):
        with self.assertRaises(InvalidConfiguration):
            AddressPlanner("192.168.0.300/24")

    def test_block_exhausted(self):
        """A /24 holds 254 hosts, so 254 stations plus the AP do not fit"""
        topology = TopologyBuilder(RecordingEngine()).build(254, mobility_enabled=False)
        with self.assertRaises(InvalidConfiguration):
            AddressPlanner().assign(topology)

    def test_largest_segment_fits(self):
        topology = TopologyBuilder(RecordingEngine()).build(253, mobility_enabled=False)
        assignment = AddressPlanner().assign(topology)
        ap = topology.device_of(topology.access_point_index, topology.wireless_link_index)
        self.assertEqual(assignment.address_of(ap.index), ipaddress.IPv4Address("192.168.0.254"))


if __name__ == '__main__':
    unittest.main()
