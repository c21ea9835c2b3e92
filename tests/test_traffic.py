"""
Tests for traffic patterns, the traffic scheduler and on/off applications
"""

import ipaddress
import unittest

from mixedsim.core.exceptions import InsufficientNodes, ScenarioError, UnknownTrafficType
from mixedsim.kernel.applications import OnOffApplication
from mixedsim.network.addressing import AddressPlanner
from mixedsim.network.topology import TopologyBuilder
from mixedsim.traffic.patterns import ConstantVariable, ExponentialVariable, TrafficPattern
from mixedsim.traffic.scheduler import TrafficScheduler

from tests.fakes import RecordingEngine

SERVER = ipaddress.IPv4Address("10.1.1.2")


class StubStack:
    """Node stack stand-in recording send times"""

    def __init__(self, engine):
        self.engine = engine
        self.name = "stub"
        self.sent = []

    def bind(self, port=None, handler=None):
        return 49153

    def send(self, source_port, destination, destination_port, payload_size):
        self.sent.append((self.engine.current_time(), destination, destination_port, payload_size))


class TestTrafficPattern(unittest.TestCase):
    """Test traffic selector parsing"""

    def test_known_patterns(self):
        self.assertIs(TrafficPattern.parse("CBR"), TrafficPattern.CBR)
        self.assertIs(TrafficPattern.parse("Burst"), TrafficPattern.BURST)
        self.assertIs(TrafficPattern.parse("CBR_Burst"), TrafficPattern.CBR_BURST)
        self.assertIs(TrafficPattern.parse(TrafficPattern.BURST), TrafficPattern.BURST)

    def test_unknown_pattern(self):
        for value in ("Poisson", "cbr", "", None):
            with self.subTest(value=value):
                with self.assertRaises(UnknownTrafficType) as ctx:
                    TrafficPattern.parse(value)
                self.assertIsInstance(ctx.exception, ScenarioError)

    def test_variables(self):
        engine = RecordingEngine()
        self.assertEqual(ConstantVariable(1.0).sample(engine.rng), 1.0)
        samples = [ExponentialVariable(1.0).sample(engine.rng) for _ in range(2000)]
        self.assertTrue(all(s >= 0 for s in samples))
        self.assertAlmostEqual(sum(samples) / len(samples), 1.0, delta=0.15)
        with self.assertRaises(ValueError):
            ExponentialVariable(0.0)


class TestTrafficScheduler(unittest.TestCase):
    """Test descriptor generation per traffic pattern"""

    def setUp(self):
        self.scheduler = TrafficScheduler()
        self.topology = TopologyBuilder(RecordingEngine()).build(5, mobility_enabled=False)
        self.addresses = AddressPlanner().assign(self.topology)

    def test_cbr(self):
        descriptors = self.scheduler.schedule("CBR", self.topology, self.addresses)
        self.assertEqual(len(descriptors), 1)
        cbr = descriptors[0]
        self.assertEqual(cbr.source_station, 0)
        self.assertEqual(cbr.source_node, self.topology.station_indices[0])
        self.assertEqual(cbr.destination_address, SERVER)
        self.assertEqual(cbr.destination_port, 9)
        self.assertEqual(cbr.data_rate_bps, 10e6)
        self.assertEqual(cbr.packet_size, 4096)
        self.assertEqual((cbr.start_time, cbr.stop_time), (2.0, 10.0))
        self.assertEqual(cbr.on_time, ConstantVariable(1.0))
        self.assertEqual(cbr.off_time, ConstantVariable(0.0))

    def test_burst(self):
        descriptors = self.scheduler.schedule("Burst", self.topology, self.addresses)
        self.assertEqual(len(descriptors), 1)
        burst = descriptors[0]
        self.assertEqual(burst.source_station, 1)
        self.assertEqual(burst.on_time, ExponentialVariable(1.0))
        self.assertEqual(burst.off_time, ExponentialVariable(1.0))

    def test_cbr_burst(self):
        descriptors = self.scheduler.schedule("CBR_Burst", self.topology, self.addresses)
        self.assertEqual([d.source_station for d in descriptors], [0, 1])
        self.assertEqual({d.destination_address for d in descriptors}, {SERVER})

    def test_required_stations(self):
        self.assertEqual(TrafficScheduler.required_stations("CBR"), 1)
        self.assertEqual(TrafficScheduler.required_stations("Burst"), 2)
        self.assertEqual(TrafficScheduler.required_stations("CBR_Burst"), 2)

    def test_insufficient_nodes(self):
        """Burst needs a second station"""
        with self.assertRaises(InsufficientNodes) as ctx:
            self.scheduler.validate("Burst", 1)
        self.assertEqual(ctx.exception.station_index, 1)
        self.assertEqual(ctx.exception.num_stations, 1)

        with self.assertRaises(InsufficientNodes):
            self.scheduler.validate("CBR", 0)

    def test_unknown_type_checked_first(self):
        with self.assertRaises(UnknownTrafficType):
            self.scheduler.validate("Poisson", 0)


class TestOnOffApplication(unittest.TestCase):
    """Test the on/off source against the recording engine"""

    def setUp(self):
        self.engine = RecordingEngine()
        self.stack = StubStack(self.engine)

    def _application(self, on_time, off_time, start=2.0, stop=10.0):
        return OnOffApplication(self.engine, self.stack, SERVER, 9, data_rate_bps=10e6,
                                packet_size=4096, on_time=on_time, off_time=off_time,
                                start_time=start, stop_time=stop).install()

    def test_constant_rate(self):
        """Always-on source sends one packet per packet interval inside the window"""
        app = self._application(ConstantVariable(1.0), ConstantVariable(0.0))
        self.engine.stop(10.0)
        self.engine.run()

        interval = 4096 * 8 / 10e6
        self.assertAlmostEqual(app.packet_interval, interval)
        times = [t for t, _, _, _ in self.stack.sent]
        self.assertTrue(all(2.0 < t < 10.0 for t in times))
        expected = 8.0 / interval
        self.assertLessEqual(abs(len(times) - expected), 8 + 1)
        self.assertEqual(app.packets_sent, len(times))
        self.assertEqual(app.bytes_sent, 4096 * len(times))
        self.assertTrue(all(dst == SERVER and port == 9 for _, dst, port, _ in self.stack.sent))

    def test_nothing_before_start(self):
        self._application(ConstantVariable(1.0), ConstantVariable(0.0))
        self.engine.advance(2.0)
        self.assertEqual(self.stack.sent, [])

    def test_stops_mid_on_period(self):
        app = self._application(ConstantVariable(100.0), ConstantVariable(0.0), start=0.0, stop=1.0)
        self.engine.run()
        self.assertTrue(self.stack.sent)
        self.assertTrue(all(t <= 1.0 for t, _, _, _ in self.stack.sent))
        self.assertFalse(app.running)

    def test_bursty_sends_less_than_constant(self):
        app = self._application(ExponentialVariable(1.0), ExponentialVariable(1.0))
        self.engine.stop(10.0)
        self.engine.run()
        always_on = 8.0 / app.packet_interval
        self.assertGreater(app.packets_sent, 0)
        self.assertLess(app.packets_sent, always_on)

    def test_invalid_parameters(self):
        with self.assertRaises(ValueError):
            OnOffApplication(self.engine, self.stack, SERVER, 9, 0.0, 4096,
                             ConstantVariable(1.0), ConstantVariable(0.0), 2.0, 10.0)
        with self.assertRaises(ValueError):
            OnOffApplication(self.engine, self.stack, SERVER, 9, 10e6, 4096,
                             ConstantVariable(1.0), ConstantVariable(0.0), 10.0, 2.0)


if __name__ == '__main__':
    unittest.main()
