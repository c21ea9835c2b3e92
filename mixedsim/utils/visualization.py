"""
Visualization utilities for scenario results.
"""

import os
from typing import Dict, List, Optional, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from ..network.topology import Topology
from ..simulation.collector import FlowRecord


class ScenarioVisualizer:
    """Plots node placement and per-flow results."""

    def __init__(self, style: str = 'seaborn-v0_8'):
        try:
            plt.style.use(style)
        except OSError:
            plt.style.use('default')

    def plot_topology(self, topology: Topology, output_dir: str,
                      positions: Optional[Dict[int, Tuple[float, float]]] = None) -> str:
        """Scatter wireless stations and the access point"""
        positions = positions or topology.initial_positions
        fig, ax = plt.subplots(figsize=(7, 7))

        stations = [positions[i] for i in topology.station_indices if i in positions]
        if stations:
            xs, ys = zip(*stations)
            ax.scatter(xs, ys, marker='o', s=60, label='Stations')
            for station_number, node_index in enumerate(topology.station_indices):
                x, y = positions[node_index]
                ax.annotate(str(station_number), (x, y), textcoords='offset points', xytext=(4, 4))

        ap = positions.get(topology.access_point_index)
        if ap is not None:
            ax.scatter([ap[0]], [ap[1]], marker='^', s=140, color='red', label='Access point')

        bounds = getattr(topology.station_policy, 'bounds', None)
        if bounds is not None:
            ax.add_patch(plt.Rectangle((bounds.min_x, bounds.min_y),
                                       bounds.max_x - bounds.min_x, bounds.max_y - bounds.min_y,
                                       fill=False, linestyle='--', alpha=0.5))

        ax.set_title('Wireless Segment Placement', fontsize=14, fontweight='bold')
        ax.set_xlabel('x')
        ax.set_ylabel('y')
        ax.legend()
        ax.grid(True, alpha=0.3)
        ax.set_aspect('equal', adjustable='datalim')

        path = os.path.join(output_dir, 'topology.png')
        fig.savefig(path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        return path

    def plot_flow_statistics(self, records: List[FlowRecord], output_dir: str,
                             active_window: float = 8.0) -> str:
        """Bar charts of per-flow packets, throughput and mean delay"""
        fig, (ax1, ax2, ax3) = plt.subplots(1, 3, figsize=(16, 5))
        labels = [str(r.flow_id) for r in records]
        x = np.arange(len(records))

        tx = [r.stats.tx_packets for r in records]
        rx = [r.stats.rx_packets for r in records]
        ax1.bar(x - 0.2, tx, width=0.4, label='Tx')
        ax1.bar(x + 0.2, rx, width=0.4, label='Rx')
        ax1.set_title('Packets per Flow', fontsize=14, fontweight='bold')
        ax1.set_xlabel('Flow')
        ax1.set_ylabel('Packets')
        ax1.legend()

        throughput = [r.stats.rx_bytes * 8.0 / active_window / 1e6 for r in records]
        ax2.bar(x, throughput, color='green')
        ax2.set_title('Throughput per Flow', fontsize=14, fontweight='bold')
        ax2.set_xlabel('Flow')
        ax2.set_ylabel('Throughput (Mbps)')

        delays = [r.stats.mean_delay or 0.0 for r in records]
        ax3.bar(x, delays, color='orange')
        ax3.set_title('Mean Delay per Flow', fontsize=14, fontweight='bold')
        ax3.set_xlabel('Flow')
        ax3.set_ylabel('Delay (s)')

        for ax in (ax1, ax2, ax3):
            ax.set_xticks(x)
            ax.set_xticklabels(labels)
            ax.grid(True, alpha=0.3, axis='y')

        plt.tight_layout()
        path = os.path.join(output_dir, 'flow_statistics.png')
        fig.savefig(path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        return path
