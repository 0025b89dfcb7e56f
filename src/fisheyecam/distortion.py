"""Kannala-Brandt radial distortion of the incidence angle.

The distortion maps the angle ``theta`` between the optical axis and a ray to the
distorted angle ``theta_d = theta * (1 + k1*theta^2 + k2*theta^4 + k3*theta^6 + k4*theta^8)``.
It is only invertible on ``[0, max_theta]``, where ``max_theta`` is the first
positive zero of its derivative (see :func:`monotonic_max_theta`).
"""

import functools
import logging

import numba
import numpy as np

from .mathutil import eval_poly_horner
from .solver import newton, poly_minimal_positive

logger = logging.getLogger(__name__)

FLT_MAX = np.float32(np.finfo(np.float32).max)
N_ITER = 20
NEWTON_TOL = 1e-6
MAX_THETA_GUESS = 1.57
ROOT_N_ITER = 60
ROOT_TOL = 1e-12

_1 = np.float32(1)
_3 = np.float32(3)
_5 = np.float32(5)
_7 = np.float32(7)
_9 = np.float32(9)


def get_radial_coeffs(d):
    """Return (k1, k2, k3, k4) as float32, zero-padding shorter input."""
    d = np.asarray(d, dtype=np.float32).reshape(-1)
    if len(d) > 4:
        raise ValueError(f"Expected at most 4 radial distortion coefficients, got {len(d)}")
    if len(d) == 4:
        return d
    d_padded = np.zeros(4, dtype=np.float32)
    d_padded[:len(d)] = d
    return d_padded


@numba.njit(error_model='numpy', cache=True)
def distortion(theta, radial_coeffs):
    """Distorted angle theta_d for the angle theta."""
    k1 = radial_coeffs[0]
    # The Horner tuple must be homogeneous, so 1 takes the dtype of the coefficients
    one = k1 - k1 + _1
    theta2 = theta * theta
    return theta * eval_poly_horner(
        (one, k1, radial_coeffs[1], radial_coeffs[2], radial_coeffs[3]), theta2)


@numba.njit(error_model='numpy', cache=True)
def distortion_jac(theta, radial_coeffs):
    """Derivative d(theta_d)/d(theta)."""
    k1 = radial_coeffs[0]
    one = k1 - k1 + _1
    theta2 = theta * theta
    return eval_poly_horner(
        (one, _3 * k1, _5 * radial_coeffs[1], _7 * radial_coeffs[2], _9 * radial_coeffs[3]),
        theta2)


@numba.njit(error_model='numpy', cache=True)
def _undistortion_residual(theta, args):
    theta_d, radial_coeffs, max_theta = args
    # Also rejects NaN
    if not theta <= max_theta:
        zero = theta_d - theta_d
        return zero, zero
    residual = distortion(theta, radial_coeffs) - theta_d
    return residual, distortion_jac(theta, radial_coeffs)


@numba.njit(error_model='numpy', cache=False)
def undistortion(theta_d, radial_coeffs, max_theta=FLT_MAX, n_iter=N_ITER):
    """Invert :func:`distortion` with Newton's method, starting from theta_d.

    Trial angles beyond ``max_theta`` stop the iteration, so a solve that would
    leave the monotonic domain reports non-convergence.

    Returns:
        (theta, converged) tuple. theta is the last iterate and is meaningless when
        converged is False.
    """
    return newton(
        _undistortion_residual, theta_d, (theta_d, radial_coeffs, max_theta), NEWTON_TOL, n_iter
    )


@numba.njit(error_model='numpy', cache=True)
def monotonic_max_theta(radial_coeffs, guess=MAX_THETA_GUESS, n_iter=ROOT_N_ITER):
    """Largest max_theta such that the distortion increases monotonically on [0, max_theta].

    With x = theta^2 the derivative of the distortion is the quartic
    ``1 + 3*k1*x + 5*k2*x^2 + 7*k3*x^3 + 9*k4*x^4``, and max_theta is the square root
    of its minimal positive root. The root is searched in float64, and each
    root bracket gets at most ``n_iter`` refinement steps.

    Returns:
        max_theta as float32, or FLT_MAX when the distortion is monotonic everywhere.
    """
    poly = (
        1.0,
        3.0 * np.float64(radial_coeffs[0]),
        5.0 * np.float64(radial_coeffs[1]),
        7.0 * np.float64(radial_coeffs[2]),
        9.0 * np.float64(radial_coeffs[3]),
    )
    inf = np.float64(FLT_MAX)
    x = poly_minimal_positive(poly, 0.0, np.float64(guess), inf, n_iter, ROOT_TOL)
    if x == inf:
        return FLT_MAX
    return np.float32(np.sqrt(x))


def monotonic_max_theta_cached(radial_coeffs):
    """Like :func:`monotonic_max_theta`, memoized per coefficient set."""
    d = get_radial_coeffs(radial_coeffs)
    return _monotonic_max_theta_cached(d.tobytes())


@functools.lru_cache(maxsize=128)
def _monotonic_max_theta_cached(d_bytes):
    d = np.frombuffer(d_bytes, dtype=np.float32).copy()
    max_theta = monotonic_max_theta(d)
    if max_theta == FLT_MAX:
        logger.debug('Distortion %s is monotonic for all angles', d.tolist())
    else:
        logger.debug(
            'Distortion %s is monotonic up to theta=%.6f rad (%.2f deg)',
            d.tolist(), max_theta, np.rad2deg(max_theta))
    return max_theta
