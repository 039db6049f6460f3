class SimulationError(Exception):
    """Base class for every error raised by the gravity engine."""


class ConfigurationError(SimulationError, ValueError):
    """Invalid simulation parameters. Raised at construction, before any tick runs."""


class DegenerateGeometryError(SimulationError, ValueError):
    """Positions that cannot be bounded (NaN or infinite coordinates)."""


class NumericOverflow(SimulationError, RuntimeWarning):
    """Issued as a warning when an acceleration or speed exceeds its sanity bound.

    The offending vector is clamped and the tick carries on.
    """
