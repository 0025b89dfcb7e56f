"""Fisheyecam: the equidistant fisheye camera model with radial distortion.

Maps camera-space points to pixels and pixels back to rays, and provides the
analytic Jacobian and Hessian of the projection with respect to the point. Every
function handles a single point and is compiled with numba, so it can also be
called from user kernels that loop over many points.

Example:
    >>> from fisheyecam import project, unproject
    >>> pixel = project([0.3, -0.2, 1.0], [300, 300], [320, 240])
    >>> unproject(pixel, [300, 300], [320, 240])
"""

try:
    from ._version import version as __version__
except ImportError:
    __version__ = "0.1.0"

__all__ = [
    # Camera
    "FisheyeCamera",
    # Projection
    "project",
    "project_distorted",
    "project_jac",
    "project_hess",
    "project_hess_reference",
    "unproject",
    "unproject_distorted",
    # Distortion
    "distortion",
    "distortion_jac",
    "undistortion",
    "monotonic_max_theta",
    "monotonic_max_theta_cached",
    "get_radial_coeffs",
    # Intrinsics
    "split_intrinsic_matrix",
    "intrinsic_matrix",
    "focal_length_from_fov",
    # Constants
    "FLT_MAX",
    "MIN_2D_NORM",
]

from fisheyecam.camera import FisheyeCamera

from fisheyecam.distortion import (
    FLT_MAX,
    distortion,
    distortion_jac,
    get_radial_coeffs,
    monotonic_max_theta,
    monotonic_max_theta_cached,
    undistortion,
)

from fisheyecam.intrinsics import (
    focal_length_from_fov,
    intrinsic_matrix,
    split_intrinsic_matrix,
)

from fisheyecam.projection import (
    MIN_2D_NORM,
    project,
    project_distorted,
    project_hess,
    project_hess_reference,
    project_jac,
    unproject,
    unproject_distorted,
)
