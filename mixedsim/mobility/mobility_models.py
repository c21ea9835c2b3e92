"""
Mobility Models for the wireless segment

This module implements the placement policies for wireless nodes and the
mobility models the simulation engine drives during a run.
"""

import math
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from ..kernel.engine import SimulationEngine

logger = logging.getLogger(__name__)

Position = Tuple[float, float]

# Rebound tolerance against floating point drift at the walls
_EPSILON = 1e-9


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned area (min_x, max_x, min_y, max_y)"""
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def __post_init__(self):
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise ValueError(f"Degenerate rectangle: {self}")

    def contains(self, position: Position) -> bool:
        x, y = position
        return (self.min_x - _EPSILON <= x <= self.max_x + _EPSILON and
                self.min_y - _EPSILON <= y <= self.max_y + _EPSILON)

    def clamp(self, position: Position) -> Position:
        x, y = position
        return (min(max(x, self.min_x), self.max_x),
                min(max(y, self.min_y), self.max_y))


@dataclass(frozen=True)
class GridPlacement:
    """Stationary nodes laid out on a grid, filled row first"""
    min_x: float = 0.0
    min_y: float = 0.0
    delta_x: float = 10.0
    delta_y: float = 10.0
    grid_width: int = 3
    row_first: bool = True

    def position(self, index: int) -> Position:
        if self.row_first:
            column, row = index % self.grid_width, index // self.grid_width
        else:
            row, column = index % self.grid_width, index // self.grid_width
        return (self.min_x + column * self.delta_x, self.min_y + row * self.delta_y)


@dataclass(frozen=True)
class RandomWalkPolicy:
    """
    Bounded 2D random walk.

    Each leg picks a uniform direction and travels `distance` units at
    `speed`, rebounding off the walls of `bounds`.
    """
    bounds: Rectangle
    speed: float = 2.0
    distance: float = 1.0
    initial_position: Position = (0.0, 0.0)

    def __post_init__(self):
        if self.speed <= 0:
            raise ValueError(f"Random walk speed must be positive, got {self.speed}")
        if self.distance <= 0:
            raise ValueError(f"Random walk distance must be positive, got {self.distance}")
        if not self.bounds.contains(self.initial_position):
            raise ValueError(f"Initial position {self.initial_position} outside {self.bounds}")


MobilityPolicy = Union[GridPlacement, RandomWalkPolicy]


class MobilityModel(ABC):
    """Abstract base class for mobility models"""

    def __init__(self, node_index: int, engine: SimulationEngine):
        self.node_index = node_index
        self.engine = engine

    @abstractmethod
    def get_position(self) -> Position:
        """Position at the engine's current time"""
        pass

    def start(self):
        """Begin any time-driven movement"""
        pass


class ConstantPositionModel(MobilityModel):
    """Node that never moves"""

    def __init__(self, node_index: int, engine: SimulationEngine, position: Position):
        super().__init__(node_index, engine)
        self.position = position

    def get_position(self) -> Position:
        return self.position


class RandomWalk2dModel(MobilityModel):
    """Random walk confined to a rectangle, legs of fixed distance"""

    def __init__(self, node_index: int, engine: SimulationEngine, policy: RandomWalkPolicy):
        super().__init__(node_index, engine)
        self.bounds = policy.bounds
        self.speed = policy.speed
        self.leg_distance = policy.distance

        self._origin = policy.initial_position
        self._origin_time = engine.current_time()
        self._velocity = (0.0, 0.0)
        self.legs = 0
        self.rebounds = 0

    def get_position(self) -> Position:
        dt = self.engine.current_time() - self._origin_time
        x = self._origin[0] + self._velocity[0] * dt
        y = self._origin[1] + self._velocity[1] * dt
        return self.bounds.clamp((x, y))

    def start(self):
        self.engine.schedule(self._begin_leg, self.engine.current_time())

    def _set_origin(self):
        self._origin = self.get_position()
        self._origin_time = self.engine.current_time()

    def _begin_leg(self):
        self._set_origin()
        direction = self.engine.rng.uniform(0.0, 2 * math.pi)
        self._velocity = (self.speed * math.cos(direction), self.speed * math.sin(direction))
        self.legs += 1
        self._schedule_leg(self.leg_distance / self.speed)

    def _schedule_leg(self, remaining: float):
        now = self.engine.current_time()
        hit = self._time_to_wall()
        if hit < remaining:
            self.engine.schedule(self._rebound, now + hit, remaining - hit)
        else:
            self.engine.schedule(self._begin_leg, now + remaining)

    def _time_to_wall(self) -> float:
        x, y = self._origin
        vx, vy = self._velocity
        times = []
        if vx > 0:
            times.append((self.bounds.max_x - x) / vx)
        elif vx < 0:
            times.append((self.bounds.min_x - x) / vx)
        if vy > 0:
            times.append((self.bounds.max_y - y) / vy)
        elif vy < 0:
            times.append((self.bounds.min_y - y) / vy)
        return max(min(times), 0.0) if times else math.inf

    def _rebound(self, remaining: float):
        self._set_origin()
        x, y = self._origin
        vx, vy = self._velocity
        if (vx > 0 and x >= self.bounds.max_x - _EPSILON) or (vx < 0 and x <= self.bounds.min_x + _EPSILON):
            vx = -vx
        if (vy > 0 and y >= self.bounds.max_y - _EPSILON) or (vy < 0 and y <= self.bounds.min_y + _EPSILON):
            vy = -vy
        self._velocity = (vx, vy)
        self.rebounds += 1
        self._schedule_leg(remaining)


def create_mobility_model(policy: MobilityPolicy, node_index: int, placement_index: int,
                          engine: SimulationEngine) -> MobilityModel:
    """Create the mobility model a placement policy calls for"""
    if isinstance(policy, GridPlacement):
        return ConstantPositionModel(node_index, engine, policy.position(placement_index))
    if isinstance(policy, RandomWalkPolicy):
        return RandomWalk2dModel(node_index, engine, policy)
    raise TypeError(f"Unsupported mobility policy: {policy!r}")


class MobilityManager:
    """
    Mobility Manager holding one model per positioned node
    """

    def __init__(self, engine: SimulationEngine):
        self.engine = engine
        self.models: Dict[int, MobilityModel] = {}
        self.started = False

    def install(self, model: MobilityModel):
        self.models[model.node_index] = model
        logger.debug(f"Installed {type(model).__name__} on node {model.node_index}")

    def start(self):
        """Start every model; called once, right before the run"""
        if self.started:
            return
        for model in self.models.values():
            model.start()
        self.started = True

    def position_of(self, node_index: int) -> Optional[Position]:
        model = self.models.get(node_index)
        return model.get_position() if model else None

    def get_positions(self) -> Dict[int, Position]:
        return {index: model.get_position() for index, model in self.models.items()}

    def get_statistics(self) -> Dict[str, int]:
        moving = [m for m in self.models.values() if isinstance(m, RandomWalk2dModel)]
        return {
            'total_nodes': len(self.models),
            'moving_nodes': len(moving),
            'stationary_nodes': len(self.models) - len(moving),
            'walk_legs': sum(m.legs for m in moving),
            'rebounds': sum(m.rebounds for m in moving)
        }
