from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from body import Body, ParticleStore
from forces import acceleration, compute_accelerations, exact_accelerations
from quadtree import QuadTree, build_tree
from settings import SimulationConfig

G = 1.0
SOFTENING = 0.05


def tree_accelerations(positions, masses, theta, softening=SOFTENING):
    tree = QuadTree().build(positions, masses)
    return np.array([acceleration(i, tree, G, softening, theta) for i in range(len(masses))])


def test_triangle_matches_exact_with_zero_theta():
    positions = np.array([[0.0, 0.0], [3.0, 0.0], [0.0, 4.0]])
    masses = np.array([1.0, 2.0, 3.0])
    np.testing.assert_allclose(tree_accelerations(positions, masses, theta=0.0),
                               exact_accelerations(positions, masses, G, SOFTENING),
                               rtol=0, atol=1e-6)


def test_exact_matches_hand_computed_pair():
    positions = np.array([[0.0, 0.0], [2.0, 0.0]])
    masses = np.array([1.0, 3.0])
    acc = exact_accelerations(positions, masses, G, 1.0)
    # G * m / (d^2 + eps^2) along the separation
    np.testing.assert_allclose(acc, [[3.0 / 5.0, 0.0], [-1.0 / 5.0, 0.0]])


def test_many_bodies_match_exact_with_zero_theta():
    rng = np.random.default_rng(7)
    positions = rng.uniform(-50, 50, size=(120, 2))
    masses = rng.uniform(0.1, 5.0, size=120)
    np.testing.assert_allclose(tree_accelerations(positions, masses, theta=0.0),
                               exact_accelerations(positions, masses, G, SOFTENING),
                               rtol=1e-9, atol=1e-9)


def test_approximation_error_is_small():
    rng = np.random.default_rng(21)
    positions = rng.uniform(-50, 50, size=(300, 2))
    masses = rng.uniform(0.5, 1.5, size=300)
    approx = tree_accelerations(positions, masses, theta=0.3)
    exact = exact_accelerations(positions, masses, G, SOFTENING)
    assert np.linalg.norm(approx - exact) / np.linalg.norm(exact) < 0.05


def test_no_self_force():
    tree = QuadTree().build(np.array([[4.0, -2.0]]), np.array([10.0]))
    np.testing.assert_array_equal(acceleration(0, tree, G, SOFTENING, 0.5), [0.0, 0.0])
    np.testing.assert_array_equal(exact_accelerations(np.array([[4.0, -2.0]]), np.array([10.0]), G, SOFTENING),
                                  [[0.0, 0.0]])


@pytest.mark.parametrize("separation", [1.0, 1e-1, 1e-3, 1e-6, 1e-12, 0.0])
def test_softening_bounds_acceleration(separation):
    mass = 2.0
    positions = np.array([[0.0, 0.0], [separation, 0.0]])
    masses = np.array([1.0, mass])
    bound = G * mass / SOFTENING ** 2
    for acc in (tree_accelerations(positions, masses, theta=0.5)[0],
                exact_accelerations(positions, masses, G, SOFTENING)[0]):
        assert np.all(np.isfinite(acc))
        assert np.linalg.norm(acc) <= bound * (1 + 1e-12)


def test_compute_accelerations_skips_dead_bodies():
    bodies = [Body((0, 0), (0, 0), 1.0, 0.1), Body((1, 0), (0, 0), 1.0, 0.1), Body((0, 1), (0, 0), 1.0, 0.1)]
    store = ParticleStore.from_bodies(bodies)
    store.kill(2)
    config = SimulationConfig(softening=SOFTENING)
    acc = compute_accelerations(store, build_tree(store, config), config)
    np.testing.assert_array_equal(acc[2], [0.0, 0.0])
    assert acc[0][1] == 0.0
    assert acc[0][0] > 0
    np.testing.assert_allclose(acc[0], -acc[1])


def test_compute_accelerations_uses_tree_above_threshold():
    rng = np.random.default_rng(5)
    bodies = [Body(p, (0, 0), m, 0.1) for p, m in zip(rng.uniform(-20, 20, (80, 2)), rng.uniform(1, 2, 80))]
    store = ParticleStore.from_bodies(bodies)
    config = SimulationConfig(softening=SOFTENING, theta=0.0, exact_threshold=0, workers=1)
    acc = compute_accelerations(store, build_tree(store, config), config)
    np.testing.assert_allclose(acc, exact_accelerations(store.positions, store.masses, G, SOFTENING),
                               rtol=1e-9, atol=1e-9)


def test_parallel_chunks_match_serial():
    rng = np.random.default_rng(9)
    bodies = [Body(p, (0, 0), 1.0, 0.1) for p in rng.uniform(-20, 20, (150, 2))]
    store = ParticleStore.from_bodies(bodies)
    config = SimulationConfig(softening=SOFTENING, theta=0.7, exact_threshold=0, workers=4)
    tree = build_tree(store, config)
    serial = compute_accelerations(store, tree, config)
    with ThreadPoolExecutor(max_workers=4) as executor:
        parallel = compute_accelerations(store, tree, config, executor)
    np.testing.assert_array_equal(parallel, serial)
