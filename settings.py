import math
import os
from dataclasses import dataclass, replace
from typing import Optional

from errors import ConfigurationError


@dataclass(frozen=True)
class SimulationConfig:
    """Physical constants and engine parameters. Immutable once built."""

    G: float = 1.0                 # Gravitational constant
    dt: float = 0.05               # Fixed time step
    softening: float = 1.0         # Softening length (epsilon)
    theta: float = 1.0             # Barnes-Hut opening threshold (side / distance)
    exact_threshold: int = 64      # Below this many live bodies use exact pairwise sums
    merge_enabled: bool = True
    merge_passes: int = 1          # Merge passes per tick, 1 = first pair wins
    density: Optional[float] = None  # Mass per unit area; None keeps configured radii
    max_depth: int = 64            # Quadtree depth cap for co-located bodies
    bounds_margin: float = 0.1     # Fractional growth of the root square
    max_acceleration: float = 1e9
    max_speed: float = 1e9
    workers: Optional[int] = None  # Thread pool size, None = os.cpu_count()

    def __post_init__(self):
        for name in ("G", "dt", "softening", "max_acceleration", "max_speed"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive finite number, got {value!r}")
        if not math.isfinite(self.theta) or self.theta < 0:
            raise ConfigurationError(f"theta must be non-negative, got {self.theta!r}")
        if self.exact_threshold < 0:
            raise ConfigurationError("exact_threshold must be non-negative")
        if self.merge_passes < 1:
            raise ConfigurationError("merge_passes must be at least 1")
        if self.density is not None and (not math.isfinite(self.density) or self.density <= 0):
            raise ConfigurationError(f"density must be positive, got {self.density!r}")
        if self.max_depth < 1:
            raise ConfigurationError("max_depth must be at least 1")
        if not math.isfinite(self.bounds_margin) or self.bounds_margin < 0:
            raise ConfigurationError("bounds_margin must be non-negative")
        if self.workers is not None and self.workers < 1:
            raise ConfigurationError("workers must be at least 1")

    @property
    def pool_size(self) -> int:
        return self.workers or os.cpu_count() or 1

    def with_overrides(self, **changes) -> "SimulationConfig":
        """Return a validated copy with some fields replaced."""
        return replace(self, **changes)
