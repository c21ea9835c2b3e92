"""
Shared media for the Wi-Fi access segment and the wired backbone.

Both media carry one frame at a time. Each attached device owns a
drop-tail queue and the medium serves non-empty queues round robin.
"""

import math
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from .engine import SimulationEngine

logger = logging.getLogger(__name__)

SPEED_OF_LIGHT = 299792458.0  # m/s

# 802.11n timing (5 GHz OFDM)
SLOT_TIME = 9e-6
SIFS = 16e-6
DIFS = SIFS + 2 * SLOT_TIME
CW_MIN = 15
HT_PREAMBLE = 40e-6
MAC_OVERHEAD = 38  # MAC header + LLC/SNAP + FCS, bytes
ACK_SIZE = 14  # bytes

# Ethernet framing on the CSMA segment
ETHERNET_OVERHEAD = 14 + 4 + 8  # header + FCS + preamble, bytes

WIFI_QUEUE_LIMIT = 500  # frames
CSMA_QUEUE_LIMIT = 100  # frames

Receiver = Callable[[object, int], None]


class LogDistancePropagation:
    """Log-distance path loss with the Wi-Fi default parameters"""

    def __init__(self, exponent: float = 3.0, reference_distance: float = 1.0,
                 reference_loss: float = 46.6777):
        self.exponent = exponent
        self.reference_distance = reference_distance
        self.reference_loss = reference_loss  # dB

    def calculate_path_loss(self, distance: float) -> float:
        if distance <= self.reference_distance:
            return self.reference_loss
        return self.reference_loss + 10 * self.exponent * math.log10(distance / self.reference_distance)

    def calculate_rx_power(self, tx_power_dbm: float, distance: float) -> float:
        return tx_power_dbm - self.calculate_path_loss(distance)


class SharedMedium(ABC):
    """Half-duplex medium with per-device transmit queues"""

    def __init__(self, engine: SimulationEngine, name: str, queue_limit: int):
        self.engine = engine
        self.name = name
        self.queue_limit = queue_limit

        self._queues: Dict[int, Deque[Tuple[object, int]]] = {}
        self._receivers: Dict[int, Receiver] = {}
        self._order: List[int] = []
        self._cursor = 0
        self.busy = False

        self.frames_sent = 0
        self.frames_lost = 0

    def attach(self, device_index: int, receiver: Receiver):
        self._queues[device_index] = deque()
        self._receivers[device_index] = receiver
        self._order.append(device_index)

    def enqueue(self, device_index: int, packet, destination_device: int) -> bool:
        """Queue a frame; False when the device queue is full"""
        queue = self._queues[device_index]
        if len(queue) >= self.queue_limit:
            return False
        queue.append((packet, destination_device))
        if not self.busy:
            self._transmit_next()
        return True

    def queue_length(self, device_index: int) -> int:
        return len(self._queues[device_index])

    def _next_device(self) -> Optional[int]:
        for step in range(len(self._order)):
            position = (self._cursor + step) % len(self._order)
            device_index = self._order[position]
            if self._queues[device_index]:
                self._cursor = (position + 1) % len(self._order)
                return device_index
        return None

    def _transmit_next(self):
        device_index = self._next_device()
        if device_index is None:
            self.busy = False
            return

        self.busy = True
        packet, destination_device = self._queues[device_index].popleft()
        duration = self.frame_duration(packet)
        self.engine.schedule(self._finish, self.engine.current_time() + duration,
                             device_index, packet, destination_device)

    def _finish(self, device_index: int, packet, destination_device: int):
        self.frames_sent += 1
        if self.can_deliver(device_index, destination_device):
            delay = self.propagation_delay(device_index, destination_device)
            self.engine.schedule(self._receivers[destination_device],
                                 self.engine.current_time() + delay, packet, destination_device)
        else:
            self.frames_lost += 1
            logger.debug(f"{self.name}: frame from device {device_index} "
                         f"to device {destination_device} lost")
        self._transmit_next()

    @abstractmethod
    def frame_duration(self, packet) -> float:
        """Channel occupancy for one frame, seconds"""
        pass

    def propagation_delay(self, source_device: int, destination_device: int) -> float:
        return 0.0

    def can_deliver(self, source_device: int, destination_device: int) -> bool:
        return True


class WifiMedium(SharedMedium):
    """
    Infrastructure Wi-Fi channel at a constant data rate.

    A frame costs DIFS, the mean contention backoff, the PHY preamble, the
    payload at the data mode rate, SIFS and an ACK at the control mode
    rate. Frames are lost when the receiver is out of range.
    """

    def __init__(self, engine: SimulationEngine, data_rate_bps: float, control_rate_bps: float,
                 position_of: Callable[[int], Optional[Tuple[float, float]]],
                 device_nodes: Dict[int, int], tx_power_dbm: float = 16.0206,
                 rx_sensitivity_dbm: float = -101.0, queue_limit: int = WIFI_QUEUE_LIMIT):
        super().__init__(engine, "wifi", queue_limit)
        self.data_rate_bps = data_rate_bps
        self.control_rate_bps = control_rate_bps
        self.position_of = position_of
        self.device_nodes = device_nodes
        self.tx_power_dbm = tx_power_dbm
        self.rx_sensitivity_dbm = rx_sensitivity_dbm
        self.propagation = LogDistancePropagation()

    def frame_duration(self, packet) -> float:
        backoff = (CW_MIN / 2.0) * SLOT_TIME
        data = HT_PREAMBLE + (packet.size + MAC_OVERHEAD) * 8 / self.data_rate_bps
        ack = HT_PREAMBLE + ACK_SIZE * 8 / self.control_rate_bps
        return DIFS + backoff + data + SIFS + ack

    def distance(self, source_device: int, destination_device: int) -> float:
        a = self.position_of(self.device_nodes[source_device])
        b = self.position_of(self.device_nodes[destination_device])
        if a is None or b is None:
            return 0.0
        return math.hypot(a[0] - b[0], a[1] - b[1])

    def propagation_delay(self, source_device: int, destination_device: int) -> float:
        return self.distance(source_device, destination_device) / SPEED_OF_LIGHT

    def can_deliver(self, source_device: int, destination_device: int) -> bool:
        distance = self.distance(source_device, destination_device)
        rx_power = self.propagation.calculate_rx_power(self.tx_power_dbm, distance)
        return rx_power >= self.rx_sensitivity_dbm


class CsmaSegment(SharedMedium):
    """Wired shared segment with fixed rate and propagation delay"""

    def __init__(self, engine: SimulationEngine, data_rate_bps: float, delay: float,
                 queue_limit: int = CSMA_QUEUE_LIMIT):
        super().__init__(engine, "csma", queue_limit)
        self.data_rate_bps = data_rate_bps
        self.delay = delay

    def frame_duration(self, packet) -> float:
        return (packet.size + ETHERNET_OVERHEAD) * 8 / self.data_rate_bps

    def propagation_delay(self, source_device: int, destination_device: int) -> float:
        return self.delay
