import numpy as np
import pytest

import vector


def test_basic_arithmetic():
    a = vector.vec2(1.0, 2.0)
    b = vector.vec2(3.0, -4.0)
    np.testing.assert_array_equal(vector.add(a, b), [4.0, -2.0])
    np.testing.assert_array_equal(vector.sub(a, b), [-2.0, 6.0])
    np.testing.assert_array_equal(vector.scale(a, 3.0), [3.0, 6.0])
    assert vector.dot(a, b) == -5.0
    assert vector.magnitude(b) == 5.0


def test_normalize():
    np.testing.assert_allclose(vector.normalize(vector.vec2(3.0, 4.0)), [0.6, 0.8])
    np.testing.assert_array_equal(vector.normalize(vector.zero()), [0.0, 0.0])


def test_clamp_magnitude():
    v = vector.vec2(6.0, 8.0)
    assert vector.magnitude(vector.clamp_magnitude(v, 5.0)) == pytest.approx(5.0)
    np.testing.assert_array_equal(vector.clamp_magnitude(v, 20.0), v)


def test_clamp_magnitudes_in_place():
    rows = np.array([[3.0, 4.0], [0.3, 0.4], [0.0, -10.0]])
    clamped = vector.clamp_magnitudes(rows, 1.0)
    assert clamped.tolist() == [0, 2]
    np.testing.assert_allclose(rows, [[0.6, 0.8], [0.3, 0.4], [0.0, -1.0]])


def test_clamp_magnitude_keeps_the_direction_of_infinite_components():
    np.testing.assert_allclose(vector.clamp_magnitude(vector.vec2(np.inf, 5.0), 2.0), [2.0, 0.0])
    np.testing.assert_allclose(vector.clamp_magnitude(vector.vec2(-np.inf, np.inf), 1.0),
                               [-np.sqrt(0.5), np.sqrt(0.5)])
    np.testing.assert_array_equal(vector.clamp_magnitude(vector.vec2(np.nan, np.nan), 1.0), [0.0, 0.0])


def test_clamp_magnitudes_rebuilds_non_finite_rows():
    rows = np.array([[np.inf, 0.0], [3.0, 4.0], [0.1, 0.1], [np.nan, -np.inf]])
    clamped = vector.clamp_magnitudes(rows, 1.0)
    assert clamped.tolist() == [0, 1, 3]
    assert np.all(np.isfinite(rows))
    np.testing.assert_allclose(rows, [[1.0, 0.0], [0.6, 0.8], [0.1, 0.1], [0.0, -1.0]])
