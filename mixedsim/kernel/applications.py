"""
Traffic applications running on node stacks.
"""

import ipaddress
import logging
from typing import Optional

from .engine import SimulationEngine
from .stack import NodeStack, Packet

logger = logging.getLogger(__name__)


class OnOffApplication:
    """
    UDP source alternating between on and off periods.

    Every cycle begins with an off period. While on, packets of a fixed
    size leave at the configured data rate. Sending halts at the stop time
    even in the middle of an on period.
    """

    def __init__(self, engine: SimulationEngine, stack: NodeStack,
                 remote_address: ipaddress.IPv4Address, remote_port: int,
                 data_rate_bps: float, packet_size: int, on_time, off_time,
                 start_time: float, stop_time: float):
        if data_rate_bps <= 0:
            raise ValueError(f"Data rate must be positive, got {data_rate_bps}")
        if packet_size <= 0:
            raise ValueError(f"Packet size must be positive, got {packet_size}")
        if stop_time < start_time:
            raise ValueError(f"Stop time {stop_time} before start time {start_time}")

        self.engine = engine
        self.stack = stack
        self.remote_address = remote_address
        self.remote_port = remote_port
        self.data_rate_bps = data_rate_bps
        self.packet_size = packet_size
        self.on_time = on_time
        self.off_time = off_time
        self.start_time = start_time
        self.stop_time = stop_time

        self.local_port: Optional[int] = None
        self.running = False
        self.sending = False
        self.packets_sent = 0
        self.bytes_sent = 0
        # Bumped whenever pending events must be ignored
        self._generation = 0

    @property
    def packet_interval(self) -> float:
        return self.packet_size * 8 / self.data_rate_bps

    def install(self):
        self.engine.schedule(self._start_application, self.start_time)
        self.engine.schedule(self._stop_application, self.stop_time)
        return self

    def _start_application(self):
        if self.local_port is None:
            self.local_port = self.stack.bind()
        self.running = True
        logger.debug(f"{self.stack.name}: on/off application started at {self.engine.now:.6f}s "
                     f"(port {self.local_port})")
        self._schedule_start_sending()

    def _stop_application(self):
        self.running = False
        self.sending = False
        self._generation += 1
        logger.debug(f"{self.stack.name}: on/off application stopped, {self.packets_sent} packets sent")

    def _schedule_start_sending(self):
        off = self.off_time.sample(self.engine.rng)
        self.engine.schedule_in(off, self._start_sending, self._generation)

    def _start_sending(self, generation: int):
        if generation != self._generation or not self.running:
            return
        self.sending = True
        on = self.on_time.sample(self.engine.rng)
        self.engine.schedule_in(on, self._stop_sending, generation)
        self.engine.schedule_in(self.packet_interval, self._send_packet, generation)

    def _stop_sending(self, generation: int):
        if generation != self._generation or not self.running:
            return
        self.sending = False
        self._generation += 1
        self._schedule_start_sending()

    def _send_packet(self, generation: int):
        if generation != self._generation or not self.sending:
            return
        self.stack.send(self.local_port, self.remote_address, self.remote_port, self.packet_size)
        self.packets_sent += 1
        self.bytes_sent += self.packet_size
        self.engine.schedule_in(self.packet_interval, self._send_packet, generation)


class PacketSink:
    """Receives and counts UDP packets on a port"""

    def __init__(self, stack: NodeStack, port: int):
        self.stack = stack
        self.port = port
        self.packets_received = 0
        self.bytes_received = 0

    def install(self):
        self.stack.bind(self.port, self._receive)
        return self

    def _receive(self, packet: Packet):
        self.packets_received += 1
        self.bytes_received += packet.payload_size
