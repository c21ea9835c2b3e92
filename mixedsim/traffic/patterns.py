"""
Traffic patterns and the on/off time distributions they use.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np

from ..core.exceptions import UnknownTrafficType


class TrafficPattern(Enum):
    """Traffic shapes a scenario can inject"""
    CBR = "CBR"
    BURST = "Burst"
    CBR_BURST = "CBR_Burst"

    @classmethod
    def parse(cls, value) -> 'TrafficPattern':
        """Resolve a selector, failing on anything that is not a known pattern"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for pattern in cls:
                if pattern.value == value:
                    return pattern
        raise UnknownTrafficType(value, [p.value for p in cls])


@dataclass(frozen=True)
class ConstantVariable:
    value: float

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(f"Duration must be non-negative, got {self.value}")

    def sample(self, rng: np.random.Generator) -> float:
        return self.value

    @property
    def mean(self) -> float:
        return self.value


@dataclass(frozen=True)
class ExponentialVariable:
    mean: float

    def __post_init__(self):
        if self.mean <= 0:
            raise ValueError(f"Exponential mean must be positive, got {self.mean}")

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.exponential(self.mean))


RandomVariable = Union[ConstantVariable, ExponentialVariable]
