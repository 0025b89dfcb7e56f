"""Shared fixtures and helpers for fisheyecam tests."""

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

import fisheyecam


# =============================================================================
# Sample distortion coefficients
# =============================================================================

# Kannala-Brandt 4-parameter model: k1, k2, k3, k4
FISHEYE_COEFFS = [
    # Non-monotonic beyond ~69 degrees
    np.array([0.1, -0.2, 0.05, -0.01], np.float32),
    # Mild, monotonic everywhere
    np.array([-0.05, 0.03, -0.01, 0.002], np.float32),
    # Strong, monotonic everywhere
    np.array([0.2, 0.1, 0.05, 0.02], np.float32),
]

# Only k1, so the monotonic bound has the closed form theta^2 = -1 / (3 * k1)
STRONG_BARREL_COEFFS = np.array([-0.3, 0, 0, 0], np.float32)

# (focal_length, principal_point)
INTRINSICS = [
    (np.array([500, 500], np.float32), np.array([320, 240], np.float32)),  # Square pixels
    (np.array([300, 320], np.float32), np.array([400, 300], np.float32)),  # Non-square pixels
    (np.array([1000, 1000], np.float32), np.array([960, 540], np.float32)),  # HD
]


# =============================================================================
# Helper functions
# =============================================================================

def random_camera_points(n, max_theta=1.4, min_theta=0.01, rng=None):
    """Sample camera-space points with incidence angles in [min_theta, max_theta].

    Returns:
        (n, 3) float32 array of points with positive depth.
    """
    rng = np.random.default_rng(0) if rng is None else rng
    theta = rng.uniform(min_theta, max_theta, n)
    phi = rng.uniform(-np.pi, np.pi, n)
    depth = rng.uniform(0.5, 5.0, n)
    r = np.tan(theta)
    points = np.stack([r * np.cos(phi), r * np.sin(phi), np.ones(n)], axis=1) * depth[:, None]
    return points.astype(np.float32)


def rotation_about_optical_axis(angle_deg):
    """Rotation matrix about the camera z axis."""
    return Rotation.from_rotvec([0, 0, np.deg2rad(angle_deg)]).as_matrix().astype(np.float32)


def normalized(v):
    v = np.asarray(v, np.float64)
    return v / np.linalg.norm(v)


def sampling_max_theta(d):
    """Largest incidence angle to sample for roundtrips with coefficients d."""
    return min(1.0, 0.8 * float(fisheyecam.monotonic_max_theta(d)))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def ideal_camera():
    """An equidistant fisheye camera without distortion."""
    return fisheyecam.FisheyeCamera(
        focal_length=[300, 300],
        principal_point=[320, 240],
    )


@pytest.fixture
def fisheye_camera():
    """A fisheye camera with non-monotonic distortion."""
    return fisheyecam.FisheyeCamera(
        focal_length=[300, 310],
        principal_point=[320, 240],
        radial_coeffs=FISHEYE_COEFFS[0],
    )
