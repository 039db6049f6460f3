import logging
import threading
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Iterator, List, Optional

import numpy as np

from body import Body, ParticleStore, Snapshot
from collisions import resolve_collisions
from errors import NumericOverflow, SimulationError
from forces import compute_accelerations
from integrator import integrate
from quadtree import QuadTree
from settings import SimulationConfig
from vector import clamp_magnitudes

logger = logging.getLogger(__name__)


class Simulation:
    """Drives the per-tick pipeline over a particle store.

    One tick rebuilds the quadtree, accumulates accelerations, integrates,
    merges overlapping bodies and emits a read-only snapshot. Cancellation
    through stop() only takes effect between ticks.
    """

    def __init__(self, bodies: Iterable[Body] = (), config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()
        self.dt = self.config.dt
        self.tick = 0

        self.store = ParticleStore.from_bodies(bodies, self.config.density)
        self.quadtree = QuadTree(max_depth=self.config.max_depth, margin=self.config.bounds_margin)

        # Initialize thread pool for parallel force computation
        workers = self.config.pool_size
        self.executor = ThreadPoolExecutor(max_workers=workers) if workers > 1 else None
        self._stop_requested = threading.Event()
        self._closed = False
        self.last_snapshot: Snapshot = self.store.snapshot(self.tick)

        logger.info("Simulation created with %d bodies (dt=%g, theta=%g, softening=%g, workers=%d)",
                    self.store.count_live(), self.dt, self.config.theta, self.config.softening, workers)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.executor is not None:
            self.executor.shutdown(wait=True)

    @property
    def particle_count(self) -> int:
        return self.store.count_live()

    def step(self) -> Snapshot:
        """Advance the simulation by one timestep."""
        if self._closed:
            raise SimulationError("simulation has been closed")
        store = self.store
        config = self.config

        # Update quadtree
        self.quadtree.build(store.positions, store.masses, store.live_indices())

        accelerations = compute_accelerations(store, self.quadtree, config, self.executor)
        clamped = clamp_magnitudes(accelerations, config.max_acceleration)
        if len(clamped):
            self._report_overflow("acceleration", clamped, config.max_acceleration)

        integrate(store, accelerations, self.dt)

        live = store.live_indices()
        velocities = store.velocities[live]
        fast = clamp_magnitudes(velocities, config.max_speed)
        if len(fast):
            store.velocities[live] = velocities
            self._report_overflow("speed", live[fast], config.max_speed)

        dropped = store.invalidate_nonfinite()
        if len(dropped):
            logger.warning("Tick %d: dropped %d bodies with non-finite state: %s",
                           self.tick + 1, len(dropped), dropped.tolist())

        # Handle collisions
        merges = []
        if config.merge_enabled:
            merges = resolve_collisions(store, config.merge_passes, config.density)

        self.tick += 1
        self.last_snapshot = store.snapshot(self.tick, merges=len(merges),
                                            clamped=len(np.union1d(clamped, live[fast])))
        logger.debug("Tick %d: %d bodies, %d merges", self.tick, len(self.last_snapshot), len(merges))
        return self.last_snapshot

    def _report_overflow(self, quantity: str, indices: np.ndarray, limit: float) -> None:
        message = (f"tick {self.tick + 1}: {quantity} of {len(indices)} bodies "
                   f"clamped to {limit:g} (bodies {indices[:8].tolist()})")
        logger.warning("Numeric overflow, %s", message)
        warnings.warn(message, NumericOverflow, stacklevel=3)

    def run(self, ticks: Optional[int] = None) -> Iterator[Snapshot]:
        """Yield one snapshot per tick until ticks have run or stop() is called."""
        done = 0
        while ticks is None or done < ticks:
            if self._stop_requested.is_set():
                # A request stays pending until a run honours it
                self._stop_requested.clear()
                logger.info("Stopped at tick %d", self.tick)
                return
            yield self.step()
            done += 1

    def stop(self) -> None:
        """Ask run() to finish before starting its next tick. Safe from any thread.

        A request made while no run is active stops the next one before its
        first tick.
        """
        self._stop_requested.set()

    def advance(self, substeps: int = 1) -> Snapshot:
        """Run several ticks and return only the last snapshot, as one rendered frame."""
        if substeps < 1:
            raise ValueError("substeps must be at least 1")
        for _ in range(substeps):
            self.step()
        return self.last_snapshot

    def snapshot(self) -> Snapshot:
        return self.store.snapshot(self.tick)

    def mass_points(self) -> List[tuple]:
        """(mass, (x, y)) for every live body."""
        return self.last_snapshot.mass_points()
