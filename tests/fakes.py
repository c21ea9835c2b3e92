"""
In-memory engine for tests that drive components without SimPy.
"""

import heapq
import itertools

import numpy as np

from mixedsim.kernel.engine import SimulationEngine


class RecordingEngine(SimulationEngine):
    """Heap-ordered engine that records every scheduled callback"""

    def __init__(self, seed=1):
        self.rng = np.random.default_rng(seed)
        self._now = 0.0
        self._queue = []
        self._sequence = itertools.count()
        self.stop_time = None
        self.scheduled = []
        self.run_calls = 0

    def schedule(self, callback, time, *args):
        if time < self._now:
            raise ValueError(f"Cannot schedule in the past: {time} < {self._now}")
        heapq.heappush(self._queue, (time, next(self._sequence), callback, args))
        self.scheduled.append((time, getattr(callback, '__name__', repr(callback))))

    def run(self):
        self.run_calls += 1
        while self._queue:
            time, _, callback, args = self._queue[0]
            if self.stop_time is not None and time >= self.stop_time:
                break
            heapq.heappop(self._queue)
            self._now = time
            callback(*args)
        if self.stop_time is not None:
            self._now = self.stop_time

    def current_time(self):
        return self._now

    def stop(self, time):
        if time <= self._now:
            raise ValueError(f"Stop time {time} must be after {self._now}")
        self.stop_time = time

    def advance(self, time):
        """Run events up to (not including) `time` and move the clock there"""
        previous = self.stop_time
        self.stop_time = time
        self.run()
        self.run_calls -= 1
        self.stop_time = previous
