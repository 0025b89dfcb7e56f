"""Conversions between intrinsic matrices and (focal_length, principal_point) pairs."""

import numpy as np


def split_intrinsic_matrix(intrinsic_matrix):
    """Split a 3x3 intrinsic matrix into focal length and principal point.

    Args:
        intrinsic_matrix: Matrix of the form [[fx, 0, cx], [0, fy, cy], [0, 0, 1]].

    Returns:
        (focal_length, principal_point) as float32 arrays of shape (2,).

    Raises:
        ValueError: If the matrix is not 3x3, has skew, has a zero focal length or
            its last row is not [0, 0, 1].
    """
    K = np.asarray(intrinsic_matrix, dtype=np.float32)
    if K.shape != (3, 3):
        raise ValueError(f"Intrinsic matrix must have shape (3, 3), got {K.shape}")
    if K[0, 1] != 0 or K[1, 0] != 0:
        raise ValueError("Skewed intrinsic matrices are not supported")
    if not np.array_equal(K[2], [0, 0, 1]):
        raise ValueError(f"Last row of the intrinsic matrix must be [0, 0, 1], got {K[2]}")
    if K[0, 0] == 0 or K[1, 1] == 0:
        raise ValueError("Focal lengths must be nonzero")

    focal_length = np.array([K[0, 0], K[1, 1]], dtype=np.float32)
    principal_point = np.array([K[0, 2], K[1, 2]], dtype=np.float32)
    return focal_length, principal_point


def intrinsic_matrix(focal_length, principal_point):
    """3x3 intrinsic matrix [[fx, 0, cx], [0, fy, cy], [0, 0, 1]] as float32."""
    fx, fy = np.asarray(focal_length, dtype=np.float32)
    cx, cy = np.asarray(principal_point, dtype=np.float32)
    return np.array([
        [fx, 0, cx],
        [0, fy, cy],
        [0, 0, 1]
    ], dtype=np.float32)


def focal_length_from_fov(fov_degrees, size):
    """Focal length of an equidistant fisheye whose full field of view spans ``size`` pixels.

    In the equidistant model the image radius is f * theta, so a field of view
    of 2 * theta_max across ``size`` pixels gives f = size / (2 * theta_max).
    """
    fov = np.deg2rad(np.float64(fov_degrees))
    if not fov > 0:
        raise ValueError(f"Field of view must be positive, got {fov_degrees}")
    return np.float32(size / fov)
