"""Inelastic merging of overlapping bodies.

Each pass detects every overlapping pair up front and merges them in
ascending (i, j) order; a body takes part in at most one merge per pass, so
chains such as A-B-C leave B-C (or A-C) for the next pass or the next tick.
"""
import logging
import math
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

from body import radius_for_mass
from vector import add, scale, sub

logger = logging.getLogger(__name__)


class Merge(NamedTuple):
    survivor: int
    absorbed: int


def find_overlaps(store) -> List[Tuple[int, int]]:
    """Live pairs whose centers are closer than the sum of their radii."""
    live = store.live_indices()
    positions = store.positions
    radii = store.radii
    pairs = []
    for k in range(len(live) - 1):
        i = live[k]
        others = live[k + 1:]
        d = positions[others] - positions[i]
        dist_sq = np.sum(d * d, axis=1)
        reach = radii[i] + radii[others]
        for j in others[dist_sq < reach * reach]:
            pairs.append((int(i), int(j)))
    return pairs


def merge(store, a: int, b: int, density: Optional[float] = None) -> Merge:
    """Merge two bodies, keeping the heavier one (the lower index on a tie)."""
    if store.masses[a] > store.masses[b] or (store.masses[a] == store.masses[b] and a < b):
        survivor, absorbed = a, b
    else:
        survivor, absorbed = b, a

    m1 = store.masses[survivor]
    m2 = store.masses[absorbed]
    total = m1 + m2

    # Conservation of momentum, position at the combined center of mass
    v1, v2 = store.velocities[survivor], store.velocities[absorbed]
    p1, p2 = store.positions[survivor], store.positions[absorbed]
    store.velocities[survivor] = scale(add(scale(v1, m1), scale(v2, m2)), 1.0 / total)
    store.positions[survivor] = add(p1, scale(sub(p2, p1), m2 / total))
    store.masses[survivor] = total

    r1 = store.radii[survivor]
    r2 = store.radii[absorbed]
    if density is None:
        # Radii were given directly: keep the combined area
        radius = math.sqrt(r1 * r1 + r2 * r2)
    else:
        radius = radius_for_mass(total, density)
    store.radii[survivor] = max(radius, r1)

    store.kill(absorbed)
    return Merge(survivor, absorbed)


def resolve_collisions(store, passes: int = 1, density: Optional[float] = None) -> List[Merge]:
    merges: List[Merge] = []
    for _ in range(passes):
        engaged = set()
        merged_this_pass = 0
        for i, j in find_overlaps(store):
            if i in engaged or j in engaged:
                continue
            merges.append(merge(store, i, j, density))
            engaged.update((i, j))
            merged_this_pass += 1
        if not merged_this_pass:
            break

    if merges:
        logger.debug("Merged %d pairs, %d bodies remain", len(merges), store.count_live())
    return merges
