"""
Scenario validation errors.

Every error here is raised while the scenario is being built, before the
simulation engine is asked to run anything.
"""


class ScenarioError(Exception):
    """Base class for scenario construction failures"""


class InvalidConfiguration(ScenarioError):
    """Malformed scenario input caught at the boundary"""


class UnknownTrafficType(ScenarioError):
    """Traffic selector does not name a known traffic pattern"""

    def __init__(self, value, known=()):
        self.value = value
        self.known = tuple(known)
        message = f"Unknown traffic type: {value!r}"
        if self.known:
            message += f" (expected one of: {', '.join(self.known)})"
        super().__init__(message)


class InsufficientNodes(ScenarioError):
    """Traffic pattern needs a station index the topology does not have"""

    def __init__(self, pattern: str, station_index: int, num_stations: int):
        self.pattern = pattern
        self.station_index = station_index
        self.num_stations = num_stations
        super().__init__(
            f"Traffic pattern {pattern} uses wireless station {station_index} "
            f"but only {num_stations} station(s) exist; "
            f"at least {station_index + 1} required"
        )
