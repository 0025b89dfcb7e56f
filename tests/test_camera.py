"""Tests for the FisheyeCamera value type and the intrinsics helpers."""

import dataclasses
import logging

import numpy as np
import pytest

import fisheyecam
from fisheyecam import FLT_MAX
from conftest import FISHEYE_COEFFS, normalized, random_camera_points, sampling_max_theta


class TestFisheyeCameraConstruction:
    """Test building cameras and reading back their parameters."""

    def test_from_intrinsic_matrix(self):
        K = [[300, 0, 320], [0, 310, 240], [0, 0, 1]]
        camera = fisheyecam.FisheyeCamera.from_intrinsic_matrix(K, FISHEYE_COEFFS[0])
        np.testing.assert_array_equal(camera.focal_length, [300, 310])
        np.testing.assert_array_equal(camera.principal_point, [320, 240])
        np.testing.assert_array_equal(camera.intrinsic_matrix, K)
        np.testing.assert_array_equal(camera.radial_coeffs, FISHEYE_COEFFS[0])

    def test_from_intrinsic_matrix_logs(self, caplog):
        caplog.set_level(logging.DEBUG, logger='fisheyecam.camera')
        fisheyecam.FisheyeCamera.from_intrinsic_matrix([[300, 0, 320], [0, 300, 240], [0, 0, 1]])
        assert 'Fisheye camera' in caplog.text

    def test_parameters_are_float32(self):
        camera = fisheyecam.FisheyeCamera([300, 300], [320, 240], [0.1])
        assert camera.focal_length.dtype == np.float32
        assert camera.principal_point.dtype == np.float32
        np.testing.assert_array_equal(camera.radial_coeffs, [0.1, 0, 0, 0])

    def test_frozen(self, ideal_camera):
        with pytest.raises(dataclasses.FrozenInstanceError):
            ideal_camera.min_2d_norm = 0.1

    def test_zero_focal_length(self):
        with pytest.raises(ValueError):
            fisheyecam.FisheyeCamera([0, 300], [320, 240])

    def test_negative_threshold(self):
        with pytest.raises(ValueError):
            fisheyecam.FisheyeCamera([300, 300], [320, 240], min_2d_norm=-1)

    def test_wrong_shape(self):
        with pytest.raises(ValueError, match="principal_point"):
            fisheyecam.FisheyeCamera([300, 300], [320, 240, 1])


class TestFisheyeCameraMaxTheta:
    def test_no_distortion(self, ideal_camera):
        assert not ideal_camera.has_distortion
        assert ideal_camera.max_theta == FLT_MAX

    def test_zero_distortion(self):
        camera = fisheyecam.FisheyeCamera([300, 300], [320, 240], np.zeros(4))
        assert not camera.has_distortion
        assert camera.max_theta == FLT_MAX

    def test_finite_bound(self, fisheye_camera):
        assert fisheye_camera.has_distortion
        assert fisheye_camera.max_theta == fisheyecam.monotonic_max_theta(FISHEYE_COEFFS[0])
        assert fisheye_camera.max_theta < np.pi / 2


class TestFisheyeCameraProjection:
    """Test that the camera dispatches to the right projection functions."""

    def test_ideal_roundtrip(self, ideal_camera):
        for p in random_camera_points(50):
            image_point, valid = ideal_camera.project(p)
            assert valid
            np.testing.assert_array_equal(
                image_point,
                fisheyecam.project(p, ideal_camera.focal_length, ideal_camera.principal_point))
            direction, valid = ideal_camera.unproject(image_point)
            assert valid
            np.testing.assert_allclose(direction, normalized(p), atol=1e-5)

    def test_distorted_roundtrip(self, fisheye_camera):
        points = random_camera_points(50, max_theta=sampling_max_theta(FISHEYE_COEFFS[0]))
        for p in points:
            image_point, valid = fisheye_camera.project(p)
            assert valid
            direction, valid = fisheye_camera.unproject(image_point)
            assert valid
            np.testing.assert_allclose(direction, normalized(p), atol=1e-4)

    def test_distorted_rejects_beyond_bound(self, fisheye_camera):
        theta = fisheye_camera.max_theta + 0.1
        image_point, valid = fisheye_camera.project([np.tan(theta), 0, 1])
        assert not valid
        np.testing.assert_array_equal(image_point, [0, 0])

    def test_rejects_rays_past_first_turning_point(self):
        # theta_d(theta) stops increasing at theta ~ 0.76, long before a second turning point
        camera = fisheyecam.FisheyeCamera(
            [300, 300], [320, 240], [-0.4717, -0.1503, 0.0341, 0.0147])
        assert camera.max_theta < 0.8
        theta = 1.124
        image_point, valid = camera.project([np.tan(theta), 0, 1])
        assert not valid

        # Inside the bound the camera still round-trips
        theta = 0.6
        image_point, valid = camera.project([np.tan(theta), 0, 1])
        assert valid
        direction, valid = camera.unproject(image_point)
        assert valid
        np.testing.assert_allclose(direction, [np.sin(theta), 0, np.cos(theta)], atol=1e-4)

    def test_derivatives_ignore_distortion(self, fisheye_camera):
        p = np.array([0.3, -0.1, 1.2], np.float32)
        f = fisheye_camera.focal_length
        np.testing.assert_array_equal(fisheye_camera.project_jac(p), fisheyecam.project_jac(p, f))
        np.testing.assert_array_equal(
            fisheye_camera.project_hess(p), fisheyecam.project_hess(p, f))

    def test_custom_threshold_is_used(self):
        camera = fisheyecam.FisheyeCamera([300, 300], [0, 0], min_2d_norm=0.5)
        image_point, _ = camera.project([0.2, 0, 1])
        np.testing.assert_allclose(image_point, [60, 0], rtol=1e-6)


class TestIntrinsics:
    """Test conversions of intrinsic parameters."""

    def test_split_and_join(self):
        K = np.array([[500, 0, 320], [0, 510, 240], [0, 0, 1]], np.float32)
        f, c = fisheyecam.split_intrinsic_matrix(K)
        np.testing.assert_array_equal(f, [500, 510])
        np.testing.assert_array_equal(c, [320, 240])
        np.testing.assert_array_equal(fisheyecam.intrinsic_matrix(f, c), K)

    @pytest.mark.parametrize("K", [
        np.eye(2),
        [[500, 1, 320], [0, 500, 240], [0, 0, 1]],
        [[500, 0, 320], [0, 500, 240], [0, 1, 1]],
        [[0, 0, 320], [0, 500, 240], [0, 0, 1]],
    ])
    def test_split_rejects_malformed(self, K):
        with pytest.raises(ValueError):
            fisheyecam.split_intrinsic_matrix(K)

    def test_intrinsic_matrix_from_lists(self):
        K = fisheyecam.intrinsic_matrix([500, 510], [320, 240])
        assert K.dtype == np.float32
        np.testing.assert_array_equal(K, [[500, 0, 320], [0, 510, 240], [0, 0, 1]])

    def test_version_is_set(self):
        assert isinstance(fisheyecam.__version__, str) and fisheyecam.__version__

    def test_focal_length_from_fov(self):
        f = fisheyecam.focal_length_from_fov(180, 1000)
        np.testing.assert_allclose(f, 1000 / np.pi, rtol=1e-6)

    def test_fov_edge_maps_to_image_edge(self):
        """A ray at half the field of view lands on the image border."""
        size = 1200
        f = fisheyecam.focal_length_from_fov(170, size)
        theta = np.deg2rad(85)
        image_point = fisheyecam.project(
            [np.sin(theta), 0, np.cos(theta)], [f, f], [size / 2, size / 2])
        np.testing.assert_allclose(image_point[0], size, rtol=1e-5)

    def test_focal_length_from_invalid_fov(self):
        with pytest.raises(ValueError):
            fisheyecam.focal_length_from_fov(0, 1000)
