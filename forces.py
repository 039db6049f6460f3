"""Gravitational acceleration from the quadtree or from exact pairwise sums.

Every contribution uses the softened law ``G * m / (d**2 + eps**2)`` along the
unit vector towards the source, so a single source can never pull harder
than ``G * m / eps**2``.
"""
import math
from concurrent.futures import Executor
from typing import Optional

import numpy as np

from quadtree import QuadTree
from vector import vec2, zero


def acceleration(index: int, tree: QuadTree, G: float, softening: float, theta: float) -> np.ndarray:
    """Net acceleration on body ``index`` from every other body in the tree."""
    root = tree.root
    if root is None:
        return zero()

    positions = tree.positions
    masses = tree.masses
    pos = positions[index]
    px, py = float(pos[0]), float(pos[1])
    eps_sq = softening * softening
    ax = ay = 0.0

    stack = [root]
    while stack:
        node = stack.pop()
        if node.mass <= 0:
            continue

        if node.is_leaf:
            for other in node.body_indices:
                if other == index:
                    continue
                dx = positions[other, 0] - px
                dy = positions[other, 1] - py
                d_sq = dx * dx + dy * dy
                if d_sq == 0.0:
                    continue
                d = math.sqrt(d_sq)
                f = G * masses[other] / ((d_sq + eps_sq) * d)
                ax += f * dx
                ay += f * dy
            continue

        # Vector from body to node's center of mass
        dx = node.com[0] - px
        dy = node.com[1] - py
        d_sq = dx * dx + dy * dy
        d = math.sqrt(d_sq)

        # Far enough away, and the body is not part of the aggregate
        if d > 0 and node.size / d < theta and not node.contains(pos):
            f = G * node.mass / ((d_sq + eps_sq) * d)
            ax += f * dx
            ay += f * dy
        else:
            stack.extend(tree.nodes[node.children:node.children + 4])

    return vec2(ax, ay)


def exact_accelerations(positions: np.ndarray, masses: np.ndarray, G: float, softening: float) -> np.ndarray:
    """O(n^2) summation of the softened law over all pairs."""
    positions = np.asarray(positions, dtype=np.float64)
    masses = np.asarray(masses, dtype=np.float64)
    if len(masses) == 0:
        return np.zeros((0, 2), dtype=np.float64)

    diff = positions[np.newaxis, :, :] - positions[:, np.newaxis, :]  # diff[i, j] = p_j - p_i
    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        d_sq = np.sum(diff * diff, axis=-1)
        d = np.sqrt(d_sq)
        factor = G * masses[np.newaxis, :] / ((d_sq + softening * softening) * d)
        # Self pairs and exactly co-located pairs have no direction
        factor[d == 0] = 0.0
        return np.sum(factor[:, :, np.newaxis] * diff, axis=1)


def _compute_chunk(indices: np.ndarray, tree: QuadTree, G: float, softening: float, theta: float) -> np.ndarray:
    """Compute accelerations for a chunk of bodies."""
    result = np.zeros((len(indices), 2), dtype=np.float64)
    for k, i in enumerate(indices):
        result[k] = acceleration(int(i), tree, G, softening, theta)
    return result


def compute_accelerations(store, tree: QuadTree, config, executor: Optional[Executor] = None) -> np.ndarray:
    """Accelerations for every row of the store; dead rows stay zero.

    Small systems use exact summation. Larger ones walk the tree, split into
    one index range per worker when an executor is given.
    """
    accelerations = np.zeros((len(store), 2), dtype=np.float64)
    live = store.live_indices()
    if len(live) == 0:
        return accelerations

    if len(live) < config.exact_threshold:
        accelerations[live] = exact_accelerations(
            store.positions[live], store.masses[live], config.G, config.softening)
        return accelerations

    args = (tree, config.G, config.softening, config.theta)
    if executor is None:
        accelerations[live] = _compute_chunk(live, *args)
        return accelerations

    n_chunks = max(1, min(config.pool_size, len(live)))
    chunks = np.array_split(live, n_chunks)

    # Fan out, then join before anything is integrated
    futures = [executor.submit(_compute_chunk, chunk, *args) for chunk in chunks]
    for chunk, future in zip(chunks, futures):
        accelerations[chunk] = future.result()
    return accelerations
