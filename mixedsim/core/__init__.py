"""Core configuration and error types."""

from .config import DelayReduction, ScenarioConfig, ThroughputReduction
from .exceptions import InsufficientNodes, InvalidConfiguration, ScenarioError, UnknownTrafficType

__all__ = ['ScenarioConfig', 'ThroughputReduction', 'DelayReduction', 'ScenarioError',
           'InvalidConfiguration', 'UnknownTrafficType', 'InsufficientNodes']
