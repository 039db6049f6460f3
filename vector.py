"""2D vector helpers.

Vectors are plain numpy float64 arrays of shape (2,), so they compose with
the array-based particle store without conversion.
"""
import numpy as np


def vec2(x: float = 0.0, y: float = 0.0) -> np.ndarray:
    return np.array([x, y], dtype=np.float64)


def zero() -> np.ndarray:
    return np.zeros(2, dtype=np.float64)


def add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + b


def sub(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a - b


def scale(v: np.ndarray, k: float) -> np.ndarray:
    return v * k


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[0] + a[1] * b[1])


def magnitude(v: np.ndarray) -> float:
    return float(np.hypot(v[0], v[1]))


def normalize(v: np.ndarray) -> np.ndarray:
    """Unit vector along v. The zero vector normalizes to itself."""
    length = magnitude(v)
    if length == 0.0:
        return zero()
    return v / length


def clamp_magnitude(v: np.ndarray, limit: float) -> np.ndarray:
    """v shortened to at most limit.

    Infinite components keep their sign as the direction of the result; NaN
    components carry no direction.
    """
    if not np.all(np.isfinite(v)):
        return scale(normalize(np.where(np.isinf(v), np.sign(v), 0.0)), limit)
    length = magnitude(v)
    if length > limit:
        return scale(v, limit / length)
    return v


def clamp_magnitudes(vectors: np.ndarray, limit: float) -> np.ndarray:
    """Rescale, in place, every row of an (n, 2) array longer than limit.

    Non-finite rows are rebuilt by clamp_magnitude. Returns the indices of
    the rows that were changed.
    """
    broken = np.flatnonzero(~np.all(np.isfinite(vectors), axis=1))
    for i in broken:
        vectors[i] = clamp_magnitude(vectors[i], limit)

    lengths = np.hypot(vectors[:, 0], vectors[:, 1])
    over = np.flatnonzero(lengths > limit)
    if len(over):
        vectors[over] *= (limit / lengths[over])[:, None]
    return np.union1d(over, broken)
