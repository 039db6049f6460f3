"""Conserved quantities of a particle store or snapshot."""
import numpy as np


def _live_arrays(state):
    alive = getattr(state, 'alive', None)
    if alive is None:
        return state.positions, state.velocities, state.masses
    return state.positions[alive], state.velocities[alive], state.masses[alive]


def total_mass(state) -> float:
    _, _, masses = _live_arrays(state)
    return float(np.sum(masses))


def total_momentum(state) -> np.ndarray:
    _, velocities, masses = _live_arrays(state)
    return np.sum(masses[:, np.newaxis] * velocities, axis=0) if len(masses) else np.zeros(2)


def center_of_mass(state) -> np.ndarray:
    positions, _, masses = _live_arrays(state)
    if len(masses) == 0:
        return np.zeros(2)
    return np.average(positions, weights=masses, axis=0)


def kinetic_energy(state) -> float:
    _, velocities, masses = _live_arrays(state)
    return float(0.5 * np.sum(masses * np.sum(velocities * velocities, axis=1)))


def potential_energy(state, G: float, softening: float) -> float:
    """Pairwise potential matching the softened force law.

    The force G*m/(d^2 + eps^2) along the separation integrates to
    -G*m1*m2/eps * atan(d/eps) (up to a constant), measured so that the
    energy vanishes at infinity.
    """
    positions, _, masses = _live_arrays(state)
    n = len(masses)
    if n < 2:
        return 0.0
    diff = positions[np.newaxis, :, :] - positions[:, np.newaxis, :]
    d = np.sqrt(np.sum(diff * diff, axis=-1))
    pair = masses[:, np.newaxis] * masses[np.newaxis, :]
    potential = -G * pair / softening * (np.pi / 2 - np.arctan(d / softening))
    upper = np.triu_indices(n, k=1)
    return float(np.sum(potential[upper]))


def total_energy(state, G: float, softening: float) -> float:
    return kinetic_energy(state) + potential_energy(state, G, softening)
