import numpy as np
from typing import List, Optional, Tuple

from errors import DegenerateGeometryError

MIN_ROOT_SIZE = 1.0


class QuadNode:
    __slots__ = ['center', 'size', 'depth', 'mass', 'com', 'children', 'body_indices']

    def __init__(self, center: np.ndarray, size: float, depth: int = 0):
        self.center = center
        self.size = size
        self.depth = depth
        self.mass = 0.0
        self.com = np.zeros(2, dtype=np.float64)  # Center of mass
        self.children = -1  # Arena index of the first of four children (NW, NE, SW, SE)
        self.body_indices: List[int] = []  # One body, or several co-located ones at max depth

    @property
    def is_leaf(self) -> bool:
        return self.children < 0

    def contains(self, pos: np.ndarray) -> bool:
        half = self.size / 2
        return (abs(pos[0] - self.center[0]) <= half
                and abs(pos[1] - self.center[1]) <= half)


def bounding_square(positions: np.ndarray, margin: float = 0.1) -> Tuple[np.ndarray, float]:
    """Center and side of the tightest square around positions, grown by margin."""
    if not np.all(np.isfinite(positions)):
        raise DegenerateGeometryError("cannot bound non-finite positions")
    min_pos = np.min(positions, axis=0)
    max_pos = np.max(positions, axis=0)
    center = (min_pos + max_pos) / 2
    size = float(max(max_pos[0] - min_pos[0], max_pos[1] - min_pos[1]))
    size = max(size, MIN_ROOT_SIZE) * (1.0 + margin)
    return center, size


class QuadTree:
    """Barnes-Hut quadtree stored as an arena of nodes, rebuilt every tick."""

    def __init__(self, max_depth: int = 64, margin: float = 0.1):
        self.max_depth = max_depth
        self.margin = margin
        self.positions: Optional[np.ndarray] = None
        self.masses: Optional[np.ndarray] = None
        self.nodes: List[QuadNode] = []  # All nodes in the quadtree, root first

    @property
    def root(self) -> Optional[QuadNode]:
        return self.nodes[0] if self.nodes else None

    def __len__(self) -> int:
        return len(self.nodes)

    def build(self, positions: np.ndarray, masses: np.ndarray, indices=None) -> "QuadTree":
        """Rebuild the tree from scratch.

        positions and masses are indexed by body id; indices selects the bodies
        to insert (all of them when None).
        """
        self.nodes = []
        self.positions = np.asarray(positions, dtype=np.float64)
        self.masses = np.asarray(masses, dtype=np.float64)
        if indices is None:
            indices = range(len(self.masses))
        indices = [int(i) for i in indices]
        if not indices:
            return self

        center, size = bounding_square(self.positions[indices], self.margin)
        self.nodes.append(QuadNode(center, size))

        for idx in indices:
            self._insert(idx)

        # Propagate mass and center of mass upward
        self._propagate_mass()
        return self

    def _insert(self, idx: int) -> None:
        pos = self.positions[idx]
        node = self.nodes[0]
        while True:
            if not node.is_leaf:
                node = self.nodes[node.children + self._get_quadrant(pos, node.center)]
                continue
            if not node.body_indices or node.depth >= self.max_depth:
                node.body_indices.append(idx)
                return

            # Occupied leaf: split and push the occupant down one level
            self._subdivide(node)
            for old in node.body_indices:
                quadrant = self._get_quadrant(self.positions[old], node.center)
                self.nodes[node.children + quadrant].body_indices.append(old)
            node.body_indices = []

    def _subdivide(self, node: QuadNode) -> None:
        node.children = len(self.nodes)
        offset = node.size / 4
        for i in range(4):
            dx = offset * (1 if i in [1, 3] else -1)
            dy = offset * (1 if i in [0, 1] else -1)
            child_center = node.center + np.array([dx, dy], dtype=np.float64)
            self.nodes.append(QuadNode(child_center, node.size / 2, node.depth + 1))

    @staticmethod
    def _get_quadrant(pos: np.ndarray, center: np.ndarray) -> int:
        if pos[0] >= center[0]:
            return 1 if pos[1] >= center[1] else 3
        return 0 if pos[1] >= center[1] else 2

    def _propagate_mass(self) -> None:
        # Children always sit after their parent in the arena.
        for node in reversed(self.nodes):
            if node.is_leaf:
                if node.body_indices:
                    masses = self.masses[node.body_indices]
                    node.mass = float(np.sum(masses))
                    if node.mass > 0:
                        node.com = np.average(self.positions[node.body_indices], weights=masses, axis=0)
                continue

            total_mass = 0.0
            weighted_pos = np.zeros(2, dtype=np.float64)
            for child in self.nodes[node.children:node.children + 4]:
                total_mass += child.mass
                weighted_pos += child.com * child.mass

            node.mass = total_mass
            if total_mass > 0:
                node.com = weighted_pos / total_mass

    def depth(self) -> int:
        return max((node.depth for node in self.nodes), default=0)

    def boundaries(self) -> List[tuple]:
        """Get all node boundaries for visualization.
        Returns:
            List of tuples: (min_corner, size, depth)
        """
        result = []
        for node in self.nodes:
            half_size = node.size / 2
            min_corner = (float(node.center[0] - half_size), float(node.center[1] - half_size))
            result.append((min_corner, node.size, node.depth))
        return result


def build_tree(store, config) -> QuadTree:
    """Build a tree over the live bodies of a particle store."""
    tree = QuadTree(max_depth=config.max_depth, margin=config.bounds_margin)
    return tree.build(store.positions, store.masses, store.live_indices())
