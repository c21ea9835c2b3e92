"""Traffic patterns and their application descriptors."""

from .patterns import ConstantVariable, ExponentialVariable, TrafficPattern
from .scheduler import TrafficDescriptor, TrafficScheduler

__all__ = ['TrafficPattern', 'ConstantVariable', 'ExponentialVariable',
           'TrafficDescriptor', 'TrafficScheduler']
