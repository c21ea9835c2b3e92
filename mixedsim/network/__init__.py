"""
Network module for the scenario harness.

This module builds the two-segment topology and plans its IPv4 addressing.
"""

from .addressing import AddressAssignment, AddressBlock, AddressPlanner
from .topology import NodeRole, Topology, TopologyBuilder

__all__ = ['Topology', 'TopologyBuilder', 'NodeRole',
           'AddressPlanner', 'AddressAssignment', 'AddressBlock']
