"""
Discrete event simulation engine

This module defines the engine handle the harness is written against and
the SimPy implementation used for real runs. Components never touch a
process-wide simulator: every builder, application and probe receives the
engine it schedules on.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import numpy as np
import simpy

logger = logging.getLogger(__name__)


class SimulationEngine(ABC):
    """
    Virtual-time event scheduler.

    Callbacks are ordered by virtual time, then by the order in which they
    were scheduled. When a stop time is set, run() returns at that time and
    everything still queued is discarded.
    """

    rng: np.random.Generator

    @abstractmethod
    def schedule(self, callback: Callable[..., Any], time: float, *args) -> None:
        """Schedule callback(*args) at absolute virtual time `time`"""
        pass

    @abstractmethod
    def run(self) -> None:
        """Process events until the stop time or until none remain"""
        pass

    @abstractmethod
    def current_time(self) -> float:
        pass

    @abstractmethod
    def stop(self, time: float) -> None:
        """Truncate the run at absolute virtual time `time`"""
        pass

    @property
    def now(self) -> float:
        return self.current_time()

    def schedule_in(self, delay: float, callback: Callable[..., Any], *args) -> None:
        """Schedule callback(*args) `delay` seconds from now"""
        self.schedule(callback, self.current_time() + delay, *args)


class SimPyEngine(SimulationEngine):
    """SimPy-backed engine"""

    def __init__(self, seed: Optional[int] = None):
        self.env = simpy.Environment()
        # One seeded stream per engine keeps runs reproducible
        self.rng = np.random.default_rng(seed)
        self.seed = seed
        self.stop_time: Optional[float] = None
        self.run_count = 0

        logger.debug(f"SimPy engine created (seed={seed})")

    def schedule(self, callback: Callable[..., Any], time: float, *args) -> None:
        delay = time - self.env.now
        if delay < 0:
            raise ValueError(f"Cannot schedule at {time:.9f}s, current time is {self.env.now:.9f}s")

        event = self.env.timeout(delay)
        event.callbacks.append(lambda _event: callback(*args))

    def run(self) -> None:
        self.run_count += 1
        if self.stop_time is None:
            logger.info("Running simulation until the event queue is empty")
            self.env.run()
        else:
            logger.info(f"Running simulation until {self.stop_time}s")
            # simpy stops before processing anything queued at `until`
            self.env.run(until=self.stop_time)
        logger.info(f"Simulation stopped at {self.env.now}s")

    def current_time(self) -> float:
        return float(self.env.now)

    def stop(self, time: float) -> None:
        if time <= self.env.now:
            raise ValueError(f"Stop time {time}s must be after current time {self.env.now}s")
        self.stop_time = time
