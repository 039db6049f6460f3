"""Semi-implicit (symplectic) Euler: velocity first, then position.

Updating the velocity before the position keeps orbits closed over long runs
where explicit Euler spirals outwards. dt is fixed; it has to stay small
against the fastest orbital period in the system or close encounters are
integrated poorly.
"""
import numpy as np


def integrate_particle(store, index: int, acceleration: np.ndarray, dt: float) -> None:
    """Advance a single body by one step."""
    store.velocities[index] += acceleration * dt
    store.positions[index] += store.velocities[index] * dt


def integrate(store, accelerations: np.ndarray, dt: float) -> None:
    """Advance every live body using accelerations from the pre-step positions."""
    live = store.live_indices()
    if len(live) == 0:
        return
    store.velocities[live] += accelerations[live] * dt
    store.positions[live] += store.velocities[live] * dt
