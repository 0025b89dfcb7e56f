import dataclasses
import logging
from typing import Optional

import numpy as np

from . import projection
from .distortion import FLT_MAX, get_radial_coeffs, monotonic_max_theta_cached
from .intrinsics import intrinsic_matrix, split_intrinsic_matrix

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, eq=False)
class FisheyeCamera:
    """Intrinsics and lens distortion of an equidistant fisheye camera.

    Bundles the parameters that the functions in :mod:`fisheyecam.projection` take
    separately. The monotonic bound of the distortion is computed once per
    coefficient set and reused for every point.
    """

    focal_length: np.ndarray  #: (fx, fy) in pixels (float32, [2,])
    principal_point: np.ndarray  #: (cx, cy) in pixels (float32, [2,])
    #: (k1, k2, k3, k4), or None for the ideal equidistant lens (float32, [4,])
    radial_coeffs: Optional[np.ndarray] = None
    #: Normalized radius below which the image center is treated as undistorted
    min_2d_norm: float = projection.MIN_2D_NORM

    def __post_init__(self):
        object.__setattr__(
            self, 'focal_length', projection._as_vector(self.focal_length, 2, 'focal_length'))
        object.__setattr__(
            self, 'principal_point',
            projection._as_vector(self.principal_point, 2, 'principal_point'))
        if self.radial_coeffs is not None:
            object.__setattr__(self, 'radial_coeffs', get_radial_coeffs(self.radial_coeffs))
        if not np.all(self.focal_length != 0):
            raise ValueError(f"Focal lengths must be nonzero, got {self.focal_length}")
        if not np.isfinite(self.min_2d_norm) or self.min_2d_norm < 0:
            raise ValueError(f"min_2d_norm must be finite and non-negative, got {self.min_2d_norm}")

    @classmethod
    def from_intrinsic_matrix(cls, intrinsic_matrix, radial_coeffs=None, **kwargs):
        focal_length, principal_point = split_intrinsic_matrix(intrinsic_matrix)
        logger.debug(
            'Fisheye camera with focal length %s, principal point %s, distortion %s',
            focal_length.tolist(), principal_point.tolist(),
            None if radial_coeffs is None else np.asarray(radial_coeffs).tolist())
        return cls(focal_length, principal_point, radial_coeffs, **kwargs)

    @property
    def intrinsic_matrix(self):
        return intrinsic_matrix(self.focal_length, self.principal_point)

    @property
    def has_distortion(self):
        return self.radial_coeffs is not None and np.any(self.radial_coeffs != 0)

    @property
    def max_theta(self):
        """Largest incidence angle for which the distortion stays invertible."""
        if not self.has_distortion:
            return FLT_MAX
        return monotonic_max_theta_cached(self.radial_coeffs)

    def project(self, camera_point):
        """Pixel coordinates of a camera-space point.

        Returns:
            (image_point, valid) tuple. Without distortion every point is valid.
        """
        if not self.has_distortion:
            return projection.project(
                camera_point, self.focal_length, self.principal_point, self.min_2d_norm), True
        return projection.project_distorted(
            camera_point, self.focal_length, self.principal_point, self.radial_coeffs,
            self.min_2d_norm, self.max_theta)

    def unproject(self, image_point):
        """Ray direction for a pixel.

        Returns:
            (direction, valid) tuple. Without distortion every pixel is valid.
        """
        if not self.has_distortion:
            return projection.unproject(
                image_point, self.focal_length, self.principal_point, self.min_2d_norm), True
        return projection.unproject_distorted(
            image_point, self.focal_length, self.principal_point, self.radial_coeffs,
            self.min_2d_norm, self.max_theta)

    def project_jac(self, camera_point):
        """Jacobian of the undistorted projection, shape (2, 3).

        The radial distortion is not included, even when the camera has one.
        """
        return projection.project_jac(camera_point, self.focal_length, self.min_2d_norm)

    def project_hess(self, camera_point):
        """Hessian of the undistorted projection, shape (2, 3, 3)."""
        return projection.project_hess(camera_point, self.focal_length, self.min_2d_norm)
