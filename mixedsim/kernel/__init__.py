"""
Discrete-event kernel for the scenario harness.

Provides the engine interface plus the shared media, IPv4 stack, on/off
applications and flow monitor that run on top of it.
"""

from .engine import SimPyEngine, SimulationEngine

__all__ = ['SimulationEngine', 'SimPyEngine']
