"""Equidistant fisheye projection, its derivatives and its inverse.

Each public function handles a single point. It converts its arguments to float32
arrays, checks their shapes and calls the jitted kernel of the same name with a
leading underscore. The kernels can be called directly from other jitted code and
take an optional ``dst`` output array, allocated when ``None``.

Conventions:
    camera_point: (x, y, z) in the camera frame, z != 0.
    focal_length: (fx, fy) in pixels.
    principal_point: (cx, cy) in pixels.
    radial_coeffs: (k1, k2, k3, k4), see :mod:`fisheyecam.distortion`.

Near the optical axis (normalized radius below ``min_2d_norm``) the model is
treated as distortion-free, which avoids the 0/0 in theta / r.
"""

import numba
import numpy as np

from .distortion import FLT_MAX, distortion, get_radial_coeffs, undistortion
from .mathutil import numerically_stable_norm2

MIN_2D_NORM = 1e-6

_0 = np.float32(0)
_1 = np.float32(1)
_2 = np.float32(2)


def project(camera_point, focal_length, principal_point, min_2d_norm=MIN_2D_NORM):
    """Project a camera-space point to pixel coordinates with the ideal equidistant model.

    Returns:
        Image point, shape (2,).
    """
    camera_point = _as_vector(camera_point, 3, 'camera_point')
    focal_length = _as_vector(focal_length, 2, 'focal_length')
    principal_point = _as_vector(principal_point, 2, 'principal_point')
    return _project(camera_point, focal_length, principal_point, min_2d_norm, None)


def project_distorted(
    camera_point,
    focal_length,
    principal_point,
    radial_coeffs,
    min_2d_norm=MIN_2D_NORM,
    max_theta=FLT_MAX,
):
    """Project a camera-space point to pixel coordinates through radial distortion.

    Points whose incidence angle exceeds ``max_theta`` are rejected, since the
    distortion cannot be inverted there.

    Returns:
        (image_point, valid) tuple. image_point is zero when valid is False.
    """
    camera_point = _as_vector(camera_point, 3, 'camera_point')
    focal_length = _as_vector(focal_length, 2, 'focal_length')
    principal_point = _as_vector(principal_point, 2, 'principal_point')
    radial_coeffs = get_radial_coeffs(radial_coeffs)
    return _project_distorted(
        camera_point, focal_length, principal_point, radial_coeffs, min_2d_norm, max_theta, None
    )


def project_jac(camera_point, focal_length, min_2d_norm=MIN_2D_NORM):
    """Jacobian of :func:`project` with respect to the camera point.

    Returns:
        Array of shape (2, 3), where row i is the gradient of pixel coordinate i.
    """
    camera_point = _as_vector(camera_point, 3, 'camera_point')
    focal_length = _as_vector(focal_length, 2, 'focal_length')
    return _project_jac(camera_point, focal_length, min_2d_norm, None)


def project_hess(camera_point, focal_length, min_2d_norm=MIN_2D_NORM):
    """Hessian of :func:`project` with respect to the camera point.

    Returns:
        Array of shape (2, 3, 3). Entry [i] is the symmetric matrix of second
        derivatives of pixel coordinate i.
    """
    camera_point = _as_vector(camera_point, 3, 'camera_point')
    focal_length = _as_vector(focal_length, 2, 'focal_length')
    return _project_hess(camera_point, focal_length, min_2d_norm, None)


def project_hess_reference(camera_point, focal_length, min_2d_norm=MIN_2D_NORM):
    """Same as :func:`project_hess`, derived by differentiating the Jacobian directly.

    Slower; serves as a cross-check for :func:`project_hess`.
    """
    camera_point = _as_vector(camera_point, 3, 'camera_point')
    focal_length = _as_vector(focal_length, 2, 'focal_length')
    return _project_hess_reference(camera_point, focal_length, min_2d_norm, None)


def unproject(image_point, focal_length, principal_point, min_2d_norm=MIN_2D_NORM):
    """Ray direction in the camera frame for a pixel of the ideal equidistant model.

    Returns:
        Unit direction, shape (3,).
    """
    image_point = _as_vector(image_point, 2, 'image_point')
    focal_length = _as_vector(focal_length, 2, 'focal_length')
    principal_point = _as_vector(principal_point, 2, 'principal_point')
    return _unproject(image_point, focal_length, principal_point, min_2d_norm, None)


def unproject_distorted(
    image_point,
    focal_length,
    principal_point,
    radial_coeffs,
    min_2d_norm=MIN_2D_NORM,
    max_theta=FLT_MAX,
):
    """Ray direction in the camera frame for a pixel of the distorted fisheye model.

    Returns:
        (direction, valid) tuple. valid is False if the distortion could not be
        inverted within ``max_theta``, in which case direction is zero.
    """
    image_point = _as_vector(image_point, 2, 'image_point')
    focal_length = _as_vector(focal_length, 2, 'focal_length')
    principal_point = _as_vector(principal_point, 2, 'principal_point')
    radial_coeffs = get_radial_coeffs(radial_coeffs)
    return _unproject_distorted(
        image_point, focal_length, principal_point, radial_coeffs, min_2d_norm, max_theta, None
    )


def _as_vector(v, n, name):
    v = np.asarray(v, dtype=np.float32)
    if v.shape != (n,):
        raise ValueError(f"{name} must have shape ({n},), got {v.shape}")
    return v


@numba.njit(error_model='numpy', cache=True)
def _project(camera_point, focal_length, principal_point, min_2d_norm, dst):
    if dst is None:
        dst = np.empty(2, dtype=camera_point.dtype)

    invz = _1 / camera_point[2]
    x = camera_point[0] * invz
    y = camera_point[1] * invz
    r = numerically_stable_norm2(x, y)
    if r < min_2d_norm:
        # No distortion at the image center
        s = _1
    else:
        s = np.arctan(r) / r

    dst[0] = focal_length[0] * (s * x) + principal_point[0]
    dst[1] = focal_length[1] * (s * y) + principal_point[1]
    return dst


@numba.njit(error_model='numpy', cache=True)
def _project_distorted(
    camera_point, focal_length, principal_point, radial_coeffs, min_2d_norm, max_theta, dst
):
    if dst is None:
        dst = np.empty(2, dtype=camera_point.dtype)

    invz = _1 / camera_point[2]
    x = camera_point[0] * invz
    y = camera_point[1] * invz
    r = numerically_stable_norm2(x, y)
    if r < min_2d_norm:
        s = _1
    else:
        theta = np.arctan(r)
        if theta > max_theta:
            dst[0] = _0
            dst[1] = _0
            return dst, False
        s = distortion(theta, radial_coeffs) / r

    dst[0] = focal_length[0] * (s * x) + principal_point[0]
    dst[1] = focal_length[1] * (s * y) + principal_point[1]
    return dst, True


@numba.njit(error_model='numpy', cache=True)
def _project_jac(camera_point, focal_length, min_2d_norm, dst):
    if dst is None:
        dst = np.empty((2, 3), dtype=camera_point.dtype)

    invz = _1 / camera_point[2]
    x = camera_point[0] * invz
    y = camera_point[1] * invz
    r = numerically_stable_norm2(x, y)

    # uv = s(r) * xy, so J_uv_xy = s * I + outer(ds/dxy, xy)
    if r < min_2d_norm:
        s = _1
        tmp = _0
    else:
        invr = _1 / r
        s = np.arctan(r) * invr
        J_theta_r = _1 / (_1 + r * r)
        tmp = (J_theta_r - s) * invr * invr

    j00 = s + tmp * x * x
    j01 = tmp * x * y
    j11 = s + tmp * y * y

    # Chain with J_xy_cam = [[1/z, 0, -x/z], [0, 1/z, -y/z]] (x, y already divided by z)
    fx = focal_length[0]
    fy = focal_length[1]
    dst[0, 0] = fx * j00 * invz
    dst[0, 1] = fx * j01 * invz
    dst[0, 2] = -fx * (j00 * x + j01 * y) * invz
    dst[1, 0] = fy * j01 * invz
    dst[1, 1] = fy * j11 * invz
    dst[1, 2] = -fy * (j01 * x + j11 * y) * invz
    return dst


@numba.njit(error_model='numpy', cache=True)
def _project_hess(camera_point, focal_length, min_2d_norm, dst):
    if dst is None:
        dst = np.empty((2, 3, 3), dtype=camera_point.dtype)

    invz = _1 / camera_point[2]
    x = camera_point[0] * invz
    y = camera_point[1] * invz
    r2 = x * x + y * y
    r = numerically_stable_norm2(x, y)
    invr = _1 / r if r > _0 else _0

    # s(r) = atan(r) / r with its first and second radial derivatives s1, s2.
    # Js = ds/dxy and Hs = d2s/dxy2 vanish at the center.
    s = _1
    js_x = _0
    js_y = _0
    hs00 = _0
    hs01 = _0
    hs11 = _0
    if r >= min_2d_norm:
        theta = np.arctan(r)
        J_theta_r = _1 / (_1 + r2)
        H_theta_r = -_2 * r / ((_1 + r2) * (_1 + r2))
        s = theta * invr
        s1 = (J_theta_r - s) * invr
        s2 = (H_theta_r - s1 - (J_theta_r - s) * invr) * invr

        js_x = s1 * invr * x
        js_y = s1 * invr * y

        invr2 = invr * invr
        c1 = s2 * invr2
        c2 = s1 * invr
        hs00 = c1 * x * x + c2 * (_1 - x * x * invr2)
        hs01 = c1 * x * y - c2 * x * y * invr2
        hs11 = c1 * y * y + c2 * (_1 - y * y * invr2)

    # uv = s * xy. Gradient g and Hessian (a00, a01, a11) of u and of v w.r.t. xy.
    _write_hess_row(
        dst, 0, focal_length[0],
        x * js_x + s, x * js_y,
        x * hs00 + _2 * js_x, x * hs01 + js_y, x * hs11,
        x, y, invz * invz)
    _write_hess_row(
        dst, 1, focal_length[1],
        y * js_x, y * js_y + s,
        y * hs00, y * hs01 + js_x, y * hs11 + _2 * js_y,
        x, y, invz * invz)
    return dst


@numba.njit(error_model='numpy', cache=True)
def _write_hess_row(dst, i, f, g0, g1, a00, a01, a11, x, y, invz2):
    # With J_xy_cam = invz * M, M = [[1, 0, -x], [0, 1, -y]], the Hessian is
    # f * invz2 * (M^T A M + sum_j g_j * H_xy_j / invz2).
    c = f * invz2
    h02 = -(a00 * x + a01 * y) - g0
    h12 = -(a01 * x + a11 * y) - g1
    h22 = a00 * x * x + _2 * a01 * x * y + a11 * y * y + _2 * (g0 * x + g1 * y)
    dst[i, 0, 0] = c * a00
    dst[i, 0, 1] = c * a01
    dst[i, 0, 2] = c * h02
    dst[i, 1, 0] = c * a01
    dst[i, 1, 1] = c * a11
    dst[i, 1, 2] = c * h12
    dst[i, 2, 0] = c * h02
    dst[i, 2, 1] = c * h12
    dst[i, 2, 2] = c * h22


@numba.njit(error_model='numpy', cache=True)
def _project_hess_reference(camera_point, focal_length, min_2d_norm, dst):
    if dst is None:
        dst = np.empty((2, 3, 3), dtype=camera_point.dtype)

    invz = _1 / camera_point[2]
    invz2 = invz * invz
    x = camera_point[0] * invz
    y = camera_point[1] * invz
    r = numerically_stable_norm2(x, y)

    # J_uv_xy (symmetric) and its derivatives along x and y
    j00 = _1
    j01 = _0
    j11 = _1
    dx00 = _0
    dx01 = _0
    dx11 = _0
    dy00 = _0
    dy01 = _0
    dy11 = _0
    if r >= min_2d_norm:
        invr = _1 / r
        invr2 = invr * invr
        theta = np.arctan(r)
        s = theta * invr
        J_theta_r = _1 / (_1 + r * r)
        tmp = (J_theta_r - s) * invr2

        j00 = s + tmp * x * x
        j01 = tmp * x * y
        j11 = s + tmp * y * y

        d_s_d_r = J_theta_r * invr - theta * invr2
        d_tmp_d_r = invr2 * (-_2 * J_theta_r * J_theta_r * r - np.float32(3) * d_s_d_r)
        d_s_d_x = d_s_d_r * x * invr
        d_s_d_y = d_s_d_r * y * invr
        d_tmp_d_x = d_tmp_d_r * x * invr
        d_tmp_d_y = d_tmp_d_r * y * invr

        dx00 = d_s_d_x + d_tmp_d_x * x * x + tmp * _2 * x
        dx01 = d_tmp_d_x * x * y + tmp * y
        dx11 = d_s_d_x + d_tmp_d_x * y * y

        dy00 = d_s_d_y + d_tmp_d_y * x * x
        dy01 = d_tmp_d_y * x * y + tmp * x
        dy11 = d_s_d_y + d_tmp_d_y * y * y + tmp * _2 * y

    _write_reference_row(dst, 0, focal_length[0], j00, j01, dx00, dx01, dy00, dy01, x, y, invz2)
    _write_reference_row(dst, 1, focal_length[1], j01, j11, dx01, dx11, dy01, dy11, x, y, invz2)
    return dst


@numba.njit(error_model='numpy', cache=True)
def _write_reference_row(dst, i, f, j0, j1, dx0, dx1, dy0, dy1, x, y, invz2):
    # Row i of J = f * J_uv_xy @ J_xy_cam, differentiated w.r.t. the camera X and Y,
    # which only enter through x = X / Z and y = Y / Z.
    jim0 = f * j0
    jim1 = f * j1
    d_x0 = invz2 * f * dx0
    d_x1 = invz2 * f * dx1
    d_x2 = invz2 * (-f * dx0 * x - f * dx1 * y - jim0)
    d_y0 = invz2 * f * dy0
    d_y1 = invz2 * f * dy1
    d_y2 = invz2 * (-f * dy0 * x - f * dy1 * y - jim1)

    # Z acts through x and y (dx/dZ = -x / Z) and directly through J_xy_cam
    d_z0 = -d_x0 * x - d_y0 * y - jim0 * invz2
    d_z1 = -d_x1 * x - d_y1 * y - jim1 * invz2
    d_z2 = -d_x2 * x - d_y2 * y + (jim0 * x + jim1 * y) * invz2

    dst[i, 0, 0] = d_x0
    dst[i, 0, 1] = d_y0
    dst[i, 0, 2] = d_z0
    dst[i, 1, 0] = d_x1
    dst[i, 1, 1] = d_y1
    dst[i, 1, 2] = d_z1
    dst[i, 2, 0] = d_x2
    dst[i, 2, 1] = d_y2
    dst[i, 2, 2] = d_z2


@numba.njit(error_model='numpy', cache=True)
def _unproject(image_point, focal_length, principal_point, min_2d_norm, dst):
    if dst is None:
        dst = np.empty(3, dtype=image_point.dtype)

    u = (image_point[0] - principal_point[0]) / focal_length[0]
    v = (image_point[1] - principal_point[1]) / focal_length[1]
    theta = np.sqrt(u * u + v * v)
    if theta < min_2d_norm:
        # The image center looks straight ahead
        dst[0] = _0
        dst[1] = _0
        dst[2] = _1
        return dst

    s = np.sin(theta) / theta
    dst[0] = s * u
    dst[1] = s * v
    dst[2] = np.cos(theta)
    return dst


@numba.njit(error_model='numpy', cache=False)
def _unproject_distorted(
    image_point, focal_length, principal_point, radial_coeffs, min_2d_norm, max_theta, dst
):
    if dst is None:
        dst = np.empty(3, dtype=image_point.dtype)

    u = (image_point[0] - principal_point[0]) / focal_length[0]
    v = (image_point[1] - principal_point[1]) / focal_length[1]
    theta_d = np.sqrt(u * u + v * v)
    if theta_d < min_2d_norm:
        dst[0] = _0
        dst[1] = _0
        dst[2] = _1
        return dst, True

    theta, converged = undistortion(theta_d, radial_coeffs, max_theta)
    if not converged:
        dst[0] = _0
        dst[1] = _0
        dst[2] = _0
        return dst, False

    # (u, v) still has the distorted length theta_d
    s = np.sin(theta) / theta_d
    dst[0] = s * u
    dst[1] = s * v
    dst[2] = np.cos(theta)
    return dst, True
