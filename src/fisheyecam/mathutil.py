import numba
import numpy as np


@numba.njit(error_model='numpy', cache=True)
def numerically_stable_norm2(x, y):
    """Euclidean norm of (x, y) without overflow or underflow in the squares."""
    abs_x = abs(x)
    abs_y = abs(y)
    lo = min(abs_x, abs_y)
    hi = max(abs_x, abs_y)
    if hi <= 0:
        return hi - hi
    ratio = lo / hi
    return hi * np.sqrt(np.float32(1) + ratio * ratio)


@numba.njit(error_model='numpy', cache=True)
def eval_poly_horner(poly, x):
    """Evaluate sum(poly[i] * x**i) with Horner's scheme.

    The coefficients are in ascending order of power. ``poly`` may be a homogeneous
    tuple or a 1D array.
    """
    result = poly[len(poly) - 1]
    for i in range(len(poly) - 2, -1, -1):
        result = result * x + poly[i]
    return result
