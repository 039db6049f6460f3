import logging
import math
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

import numpy as np

from errors import DegenerateGeometryError

logger = logging.getLogger(__name__)

DEFAULT_DENSITY = 1.0


def radius_for_mass(mass: float, density: Optional[float]) -> float:
    """Disc radius for a mass under a uniform areal density (area ~ mass)."""
    return math.sqrt(mass / (math.pi * (density or DEFAULT_DENSITY)))


class Body:
    def __init__(self, pos, vel, mass, radius=None):
        """Initialize a body with position, velocity, mass and radius.

        A radius of None is derived from the mass when the body enters a store.
        """
        self.pos = np.array(pos, dtype=np.float64)  # 2D position vector
        self.vel = np.array(vel, dtype=np.float64)  # 2D velocity vector
        self.mass = float(mass)
        self.radius = None if radius is None else float(radius)

    def __repr__(self):
        return (f"Body(pos=({self.pos[0]:.6g}, {self.pos[1]:.6g}), "
                f"vel=({self.vel[0]:.6g}, {self.vel[1]:.6g}), "
                f"mass={self.mass:.6g}, radius={self.radius})")


@dataclass(frozen=True, eq=False)
class Snapshot:
    """Read-only copy of the live bodies after a tick."""

    tick: int
    ids: np.ndarray
    positions: np.ndarray
    velocities: np.ndarray
    masses: np.ndarray
    radii: np.ndarray
    merges: int = 0
    clamped: int = 0

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self) -> Iterator[Body]:
        for i in range(len(self.ids)):
            yield Body(self.positions[i], self.velocities[i], self.masses[i], self.radii[i])

    def mass_points(self) -> List[tuple]:
        return [(float(m), (float(p[0]), float(p[1]))) for m, p in zip(self.masses, self.positions)]


def _frozen(array: np.ndarray) -> np.ndarray:
    array = array.copy()
    array.setflags(write=False)
    return array


class ParticleStore:
    """Owns the mutable state of every body as parallel arrays.

    A body's row index is its identity for the whole run. Merged bodies stay
    in their row with alive set to False.
    """

    def __init__(self, positions, velocities, masses, radii, alive=None):
        self.positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        self.velocities = np.asarray(velocities, dtype=np.float64).reshape(-1, 2)
        self.masses = np.asarray(masses, dtype=np.float64).reshape(-1)
        self.radii = np.asarray(radii, dtype=np.float64).reshape(-1)
        n = len(self.masses)
        if alive is None:
            alive = self.masses > 0
        self.alive = np.asarray(alive, dtype=bool).reshape(-1)
        if not (len(self.positions) == len(self.velocities) == len(self.radii) == len(self.alive) == n):
            raise ValueError("particle arrays must have matching lengths")

    @classmethod
    def from_bodies(cls, bodies: Iterable[Body], density: Optional[float] = None) -> "ParticleStore":
        bodies = list(bodies)
        n = len(bodies)
        positions = np.zeros((n, 2), dtype=np.float64)
        velocities = np.zeros((n, 2), dtype=np.float64)
        masses = np.zeros(n, dtype=np.float64)
        radii = np.zeros(n, dtype=np.float64)

        for i, body in enumerate(bodies):
            if body.pos.shape != (2,) or body.vel.shape != (2,):
                raise DegenerateGeometryError(f"body {i} must have 2D position and velocity")
            if not (np.all(np.isfinite(body.pos)) and np.all(np.isfinite(body.vel))
                    and math.isfinite(body.mass)):
                raise DegenerateGeometryError(f"body {i} has a non-finite position, velocity or mass")
            if body.mass < 0:
                raise DegenerateGeometryError(f"body {i} has negative mass {body.mass}")
            radius = body.radius
            if radius is None:
                radius = radius_for_mass(body.mass, density)
            elif not math.isfinite(radius) or (radius <= 0 and body.mass > 0):
                raise DegenerateGeometryError(f"body {i} has invalid radius {radius}")
            positions[i] = body.pos
            velocities[i] = body.vel
            masses[i] = body.mass
            radii[i] = radius

        store = cls(positions, velocities, masses, radii)
        massless = n - store.count_live()
        if massless:
            logger.info("Ignoring %d zero-mass bodies", massless)
        return store

    def __len__(self) -> int:
        return len(self.masses)

    def live_indices(self) -> np.ndarray:
        return np.flatnonzero(self.alive)

    def count_live(self) -> int:
        return int(np.count_nonzero(self.alive))

    def kill(self, index: int) -> None:
        self.alive[index] = False

    def invalidate_nonfinite(self) -> np.ndarray:
        """Mark live bodies with non-finite state as dead and return their indices."""
        finite = (np.all(np.isfinite(self.positions), axis=1)
                  & np.all(np.isfinite(self.velocities), axis=1))
        bad = np.flatnonzero(self.alive & ~finite)
        if len(bad):
            self.alive[bad] = False
        return bad

    def snapshot(self, tick: int, merges: int = 0, clamped: int = 0) -> Snapshot:
        live = self.live_indices()
        return Snapshot(
            tick=tick,
            ids=_frozen(live),
            positions=_frozen(self.positions[live]),
            velocities=_frozen(self.velocities[live]),
            masses=_frozen(self.masses[live]),
            radii=_frozen(self.radii[live]),
            merges=merges,
            clamped=clamped,
        )
