"""
Scenario-level report

Reduces per-flow counters into the five aggregate metrics and prints or
persists them.
"""

import json
import logging
import sys
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, TextIO

from ..core.config import (APP_START_TIME, APP_STOP_TIME, DelayReduction, ScenarioConfig,
                           ThroughputReduction)
from ..kernel.flow_monitor import FlowStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregateReport:
    total_tx: int
    total_rx: int
    total_lost: int
    total_throughput_mbps: float
    total_delay_seconds: float


class ReportAggregator:
    """
    Folds per-flow statistics into one aggregate record.

    The default strategies keep the historical arithmetic: throughput is
    rxBytes * 8 / (8 * 10^6) per flow, and delay is the sum of the
    per-flow mean delays rather than one scenario-wide mean.
    """

    def __init__(self, throughput_reduction: ThroughputReduction = ThroughputReduction.LEGACY,
                 delay_reduction: DelayReduction = DelayReduction.SUM_OF_FLOW_MEANS,
                 active_window: float = APP_STOP_TIME - APP_START_TIME):
        self.throughput_reduction = ThroughputReduction(throughput_reduction)
        self.delay_reduction = DelayReduction(delay_reduction)
        self.active_window = active_window

    def aggregate(self, flow_stats: Mapping[Any, FlowStats]) -> AggregateReport:
        total_tx = 0
        total_rx = 0
        total_lost = 0
        total_throughput = 0.0
        total_delay = 0.0
        delay_sum = 0.0
        delay_packets = 0

        for flow_id, stats in flow_stats.items():
            total_tx += stats.tx_packets
            total_rx += stats.rx_packets
            lost = stats.tx_packets - stats.rx_packets
            if lost < 0:
                logger.warning(f"Flow {flow_id} received more packets than it sent ({lost})")
            total_lost += lost

            total_throughput += self._flow_throughput(stats)

            if stats.rx_packets > 0:
                total_delay += stats.delay_sum / stats.rx_packets
                delay_sum += stats.delay_sum
                delay_packets += stats.rx_packets

        if self.delay_reduction == DelayReduction.WEIGHTED_MEAN:
            total_delay = delay_sum / delay_packets if delay_packets > 0 else 0.0

        return AggregateReport(
            total_tx=total_tx,
            total_rx=total_rx,
            total_lost=total_lost,
            total_throughput_mbps=total_throughput,
            total_delay_seconds=total_delay,
        )

    def _flow_throughput(self, stats: FlowStats) -> float:
        if self.throughput_reduction == ThroughputReduction.MBPS_OVER_WINDOW:
            return stats.rx_bytes * 8.0 / self.active_window / 1e6
        return (stats.rx_bytes * 8.0) / (8.0 * 1000000)

    @staticmethod
    def format_report(report: AggregateReport) -> List[str]:
        return [
            f"Total Tx Packets: {report.total_tx}",
            f"Total Rx Packets: {report.total_rx}",
            f"Total Packet Loss: {report.total_lost}",
            f"Total Throughput: {report.total_throughput_mbps:g} Mbps",
            f"Average Delay: {report.total_delay_seconds:g} s",
        ]

    def print_report(self, report: AggregateReport, stream: Optional[TextIO] = None):
        stream = stream or sys.stdout
        for line in self.format_report(report):
            print(line, file=stream)

    def format_flow_details(self, records: Iterable) -> List[str]:
        """Per-flow listing: id, endpoints, counters, throughput, mean delay"""
        lines = []
        for record in records:
            stats = record.stats
            five_tuple = record.five_tuple
            lines.append(f"Flow {record.flow_id} ({five_tuple.source_address} -> "
                         f"{five_tuple.destination_address})")
            lines.append(f"  Tx Packets: {stats.tx_packets}")
            lines.append(f"  Rx Packets: {stats.rx_packets}")
            if stats.rx_packets > 0:
                throughput = stats.rx_bytes * 8.0 / self.active_window / 1e6
                lines.append(f"  Throughput: {throughput:g} Mbps")
                lines.append(f"  Mean Delay: {stats.mean_delay:g} s")
                lines.append(f"  Lost Packets: {stats.lost_packets}")
            else:
                lines.append("  Throughput: 0 Mbps")
                lines.append("  Mean Delay: N/A (no packets received)")
        return lines

    def save_summary_json(self, report: AggregateReport, filename: str,
                          config: Optional[ScenarioConfig] = None):
        summary: Dict[str, Any] = {
            'report': asdict(report),
            'throughput_reduction': self.throughput_reduction.value,
            'delay_reduction': self.delay_reduction.value,
        }
        if config is not None:
            summary['config'] = asdict(config)

        with open(filename, 'w') as f:
            json.dump(summary, f, indent=2, default=_json_default)

        logger.info(f"Summary saved to {filename}")


def _json_default(value):
    if hasattr(value, 'value'):
        return value.value
    return str(value)
