"""Fixed-budget scalar solvers.

Every loop here runs for at most a fixed number of iterations that the caller
chooses up front, so the cost per point is bounded and the same for all points.
A solve that does not meet its tolerance within the budget is not an error: the
last iterate is returned together with a ``False`` flag.
"""

import numba
import numpy as np


@numba.njit(error_model='numpy', cache=False)
def newton(func, x0, args, tol, n_iter):
    """Newton-Raphson for a scalar equation.

    Args:
        func: jitted callback ``func(x, args) -> (residual, jacobian)``.
        x0: initial guess.
        args: tuple forwarded to ``func`` unchanged.
        tol: convergence threshold on ``abs(residual)``.
        n_iter: maximum number of iterations.

    Returns:
        (x, converged) tuple. A zero jacobian cannot produce a step and counts as
        failure, which lets ``func`` veto a region by returning ``(0, 0)``.
    """
    x = x0
    for _ in range(n_iter):
        residual, jac = func(x, args)
        if jac == 0:
            return x, False
        if abs(residual) < tol:
            return x, True
        x = x - residual / jac
    return x, False


@numba.njit(error_model='numpy', cache=True)
def _poly_and_derivative(poly, degree, x):
    value = poly[degree]
    deriv = value - value
    for i in range(degree - 1, -1, -1):
        deriv = deriv * x + value
        value = value * x + poly[i]
    return value, deriv


@numba.njit(error_model='numpy', cache=True)
def _bracketed_root(poly, degree, lo, hi, x0, tol, n_iter):
    """Root of a polynomial that changes sign exactly once on [lo, hi].

    Newton steps that would leave the current bracket are replaced by bisection,
    so the bracket shrinks in every iteration.
    """
    value_lo = _poly_and_derivative(poly, degree, lo)[0]
    x = x0 if lo < x0 < hi else 0.5 * (lo + hi)
    for _ in range(n_iter):
        value, deriv = _poly_and_derivative(poly, degree, x)
        if abs(value) <= tol:
            return x
        if (value < 0) == (value_lo < 0):
            lo = x
        else:
            hi = x
        # Division by zero gives inf or nan, which fails the bracket test
        x_next = x - value / deriv
        x = x_next if lo < x_next < hi else 0.5 * (lo + hi)
    return x


@numba.njit(error_model='numpy', cache=True)
def _real_roots(poly, degree, min_x, max_x, guess, tol, n_iter):
    """Real roots in (min_x, max_x] of a polynomial of exact degree ``degree``, ascending.

    Between consecutive roots of its derivative a polynomial is monotonic and has
    at most one root there. Starting from the linear (degree - 1)-th derivative,
    the roots of each derivative bracket the roots of the one below it.
    """
    derivs = np.zeros((degree + 1, degree + 1))
    for i in range(degree + 1):
        derivs[0, i] = poly[i]
    for k in range(1, degree + 1):
        for i in range(degree + 1 - k):
            derivs[k, i] = (i + 1) * derivs[k - 1, i + 1]

    roots = np.empty(degree)
    bounds = np.empty(degree + 1)
    # The degree-th derivative is a nonzero constant
    n_roots = 0
    for k in range(degree - 1, -1, -1):
        n_bounds = n_roots + 2
        bounds[0] = min_x
        bounds[1:n_roots + 1] = roots[:n_roots]
        bounds[n_roots + 1] = max_x
        # Only the final level stops early, the brackets need exact critical points
        level_tol = tol if k == 0 else 0.0

        n_roots = 0
        for j in range(n_bounds - 1):
            lo = bounds[j]
            hi = bounds[j + 1]
            if not lo < hi:
                continue
            value_lo = _poly_and_derivative(derivs[k], degree - k, lo)[0]
            value_hi = _poly_and_derivative(derivs[k], degree - k, hi)[0]
            if value_hi == 0:
                roots[n_roots] = hi
            elif (value_lo < 0) != (value_hi < 0) and value_lo != 0:
                x0 = guess if k == 0 else 0.5 * (lo + hi)
                roots[n_roots] = _bracketed_root(
                    derivs[k], degree - k, lo, hi, x0, level_tol, n_iter)
            else:
                continue
            n_roots += 1
    return roots[:n_roots]


@numba.njit(error_model='numpy', cache=True)
def poly_minimal_positive(poly, min_x, guess, default, n_iter, tol=1e-6):
    """Smallest root above ``min_x`` of the polynomial ``sum(poly[i] * x**i)``.

    Linear and quadratic polynomials (after dropping vanishing leading terms) are
    solved in closed form. Higher degrees isolate the roots between the critical
    points of the polynomial inside the Cauchy bound, then refine each bracket with
    at most ``n_iter`` safeguarded Newton steps. ``guess`` seeds the step in the
    bracket that holds it. Returns ``default`` if there is no such root.
    """
    degree = len(poly) - 1
    while degree > 0 and poly[degree] == 0:
        degree -= 1

    if degree == 0:
        return default

    if degree == 1:
        root = -poly[0] / poly[1]
        return root if root > min_x else default

    if degree == 2:
        a = poly[2]
        b = poly[1]
        c = poly[0]
        disc = b * b - 4 * a * c
        if disc < 0:
            return default
        sq = np.sqrt(disc)
        # Avoids cancellation between -b and sq
        q = -0.5 * (b + sq) if b >= 0 else -0.5 * (b - sq)
        r1 = q / a
        r2 = c / q if q != 0 else r1
        lo = min(r1, r2)
        hi = max(r1, r2)
        if lo > min_x:
            return lo
        if hi > min_x:
            return hi
        return default

    # Every root satisfies |x| <= 1 + max(|poly[i] / poly[degree]|)
    lead = abs(poly[degree])
    bound = 0.0
    for i in range(degree):
        ratio = abs(poly[i]) / lead
        if ratio > bound:
            bound = ratio
    roots = _real_roots(poly, degree, min_x, 1.0 + bound, guess, tol, n_iter)
    if len(roots) == 0:
        return default
    return roots[0]
