"""
Tests for batch projection through a CameraSet.

These tests verify:
    - Measurement order and count
    - Stacked Jacobian shapes and per-camera row blocks
    - All-or-nothing failure on cheirality
    - Dimension checks across cameras
    - Pairwise equality
"""

import logging

import pytest
import numpy as np
from numpy.testing import assert_allclose

from camera_set.calibration import Intrinsics, DistortedIntrinsics
from camera_set.camera import CalibratedCamera, PinholeCamera, StereoCamera
from camera_set.collection import CameraSet, BatchProjection, ProjectionOutcome
from camera_set.exceptions import CheiralityError, InvalidConfigurationError
from camera_set.geometry import Pose
from camera_set.numerical import numerical_derivative

CAMERA_POSITIONS = [
    np.array([0.0, -5.0, 1.0]),
    np.array([5.0, 0.0, 1.0]),
    np.array([-4.0, -3.0, 2.0]),
    np.array([3.0, 4.0, 0.5]),
]


def make_poses():
    return [Pose.look_at(position, np.zeros(3)) for position in CAMERA_POSITIONS]


def make_pinhole_cameras():
    return [
        PinholeCamera(pose, Intrinsics(500.0 + 10 * i, 500.0, 320.0, 240.0 + i))
        for i, pose in enumerate(make_poses())
    ]


def make_distorted_cameras():
    return [
        PinholeCamera(pose, DistortedIntrinsics(500.0, 505.0, 320.0, 240.0, k1=-0.05 * i, p2=0.001))
        for i, pose in enumerate(make_poses())
    ]


def make_calibrated_cameras():
    return [CalibratedCamera(pose) for pose in make_poses()]


def make_stereo_cameras():
    K = Intrinsics(600.0, 600.0, 320.0, 240.0)
    return [StereoCamera(pose, K, baseline=0.12) for pose in make_poses()]


CAMERA_FACTORIES = {
    "pinhole": make_pinhole_cameras,
    "distorted": make_distorted_cameras,
    "calibrated": make_calibrated_cameras,
    "stereo": make_stereo_cameras,
}


@pytest.fixture
def point():
    return np.array([0.1, 0.2, 0.3])


@pytest.fixture(params=sorted(CAMERA_FACTORIES))
def cameras(request):
    return CAMERA_FACTORIES[request.param]()


@pytest.fixture
def camera_set(cameras):
    return CameraSet(cameras)


class TestAdd:

    def test_empty(self):
        assert CameraSet().size() == 0
        assert len(CameraSet()) == 0

    def test_add_preserves_order(self):
        cameras = make_pinhole_cameras()
        camera_set = CameraSet()
        for camera in cameras:
            camera_set.add(camera)

        assert camera_set.size() == len(cameras)
        assert list(camera_set) == cameras
        assert camera_set[2] is cameras[2]
        assert camera_set.cameras == tuple(cameras)

    def test_add_accepts_mixed_cameras(self):
        """Compatibility is checked when projecting, not when adding."""
        camera_set = CameraSet()
        camera_set.add(make_pinhole_cameras()[0])
        camera_set.add(make_stereo_cameras()[1])
        assert len(camera_set) == 2

    def test_add_logs_index_at_debug(self, caplog):
        caplog.set_level(logging.DEBUG, logger="camera_set.collection")
        CameraSet(make_calibrated_cameras()[:2])

        assert "Added camera 0: CalibratedCamera" in caplog.text
        assert "Added camera 1" in caplog.text

    def test_add_skips_repr_when_debug_disabled(self, caplog):
        """The camera is only formatted when the debug record is emitted."""
        caplog.set_level(logging.INFO, logger="camera_set.collection")
        calls = []

        class TracedCamera(CalibratedCamera):
            def __repr__(self):
                calls.append(self)
                return super().__repr__()

        CameraSet([TracedCamera(make_poses()[0])])
        assert calls == []


class TestProject:

    def test_empty_set(self, point):
        result = CameraSet().project(point, want_pose=True, want_point=True, want_calibration=True)

        assert result.measurements == []
        assert result.pose_jacobian.shape == (0, 6)
        assert result.point_jacobian.shape == (0, 3)
        assert result.calibration_jacobian.shape == (0, 0)
        assert result.stacked_measurements().shape == (0,)

    def test_measurements_in_insertion_order(self, camera_set, cameras, point):
        result = camera_set.project(point)

        assert len(result.measurements) == len(cameras)
        for z, camera in zip(result.measurements, cameras):
            assert_allclose(z, camera.project(point)[0])

    def test_jacobians_not_requested(self, camera_set, point):
        result = camera_set.project(point)

        assert result.pose_jacobian is None
        assert result.point_jacobian is None
        assert result.calibration_jacobian is None

    def test_only_requested_jacobians(self, camera_set, point):
        result = camera_set.project(point, want_point=True)

        assert result.pose_jacobian is None
        assert result.point_jacobian is not None
        assert result.calibration_jacobian is None

    def test_jacobian_shapes(self, camera_set, cameras, point):
        result = camera_set.project(point, want_pose=True, want_point=True, want_calibration=True)
        zdim = cameras[0].measurement_dim
        n_rows = zdim * len(cameras)

        assert result.pose_jacobian.shape == (n_rows, 6)
        assert result.point_jacobian.shape == (n_rows, 3)
        assert result.calibration_jacobian.shape == (n_rows, cameras[0].dim - 6)

    def test_blocks_match_individual_cameras(self, camera_set, cameras, point):
        result = camera_set.project(point, want_pose=True, want_point=True, want_calibration=True)
        zdim = cameras[0].measurement_dim

        for i, camera in enumerate(cameras):
            rows = slice(zdim * i, zdim * (i + 1))
            _, Fi, Ei, Hi = camera.project(point, True, True, True)

            assert_allclose(result.pose_jacobian[rows], Fi)
            assert_allclose(result.point_jacobian[rows], Ei)
            assert_allclose(result.calibration_jacobian[rows], Hi)

    def test_point_jacobian_matches_numerical(self, camera_set, point):
        result = camera_set.project(point, want_point=True)
        expected = numerical_derivative(
            lambda x: camera_set.project(x).stacked_measurements(), point
        )
        assert_allclose(result.point_jacobian, expected, atol=1e-6)

    def test_idempotent(self, camera_set, point):
        first = camera_set.project(point, want_pose=True, want_point=True, want_calibration=True)
        second = camera_set.project(point, want_pose=True, want_point=True, want_calibration=True)

        assert_allclose(first.stacked_measurements(), second.stacked_measurements())
        assert_allclose(first.pose_jacobian, second.pose_jacobian)
        assert_allclose(first.point_jacobian, second.point_jacobian)
        assert_allclose(first.calibration_jacobian, second.calibration_jacobian)

    def test_outputs_not_shared_between_calls(self, camera_set, point):
        first = camera_set.project(point, want_pose=True)
        second = camera_set.project(point, want_pose=True)
        assert first.pose_jacobian is not second.pose_jacobian


class TestDegenerateGeometry:
    """A single camera that cannot see the point fails the whole projection."""

    @pytest.fixture
    def camera_set(self):
        cameras = make_pinhole_cameras()
        # Looks away from the origin
        facing_away = PinholeCamera(
            Pose.look_at(np.array([0.0, -5.0, 0.0]), np.array([0.0, -10.0, 0.0])),
            Intrinsics(500.0, 500.0, 320.0, 240.0),
        )
        cameras.insert(2, facing_away)
        return CameraSet(cameras)

    def test_project_raises(self, camera_set, point):
        with pytest.raises(CheiralityError):
            camera_set.project(point, want_pose=True, want_point=True, want_calibration=True)

    def test_try_project_reports_failure(self, camera_set, point):
        outcome = camera_set.try_project(point, want_pose=True)

        assert isinstance(outcome, ProjectionOutcome)
        assert not outcome.ok
        assert outcome.projection is None
        assert isinstance(outcome.error, CheiralityError)
        with pytest.raises(CheiralityError):
            outcome.unwrap()

    def test_try_project_success(self, point):
        camera_set = CameraSet(make_pinhole_cameras())
        outcome = camera_set.try_project(point, want_pose=True)

        assert outcome.ok
        assert isinstance(outcome.unwrap(), BatchProjection)
        assert outcome.unwrap().pose_jacobian.shape == (8, 6)


class TestDimensions:

    def test_empty_dimensions(self):
        assert CameraSet().dimensions() == (0, 6)

    def test_homogeneous_dimensions(self):
        assert CameraSet(make_distorted_cameras()).dimensions() == (2, 15)
        assert CameraSet(make_stereo_cameras()).dimensions() == (3, 6)

    def test_mixed_calibration_dimension(self, point):
        camera_set = CameraSet(make_pinhole_cameras()[:2] + make_distorted_cameras()[2:])
        with pytest.raises(InvalidConfigurationError):
            camera_set.project(point)

    def test_mixed_measurement_dimension(self, point):
        camera_set = CameraSet(make_calibrated_cameras()[:2] + make_stereo_cameras()[2:])
        with pytest.raises(InvalidConfigurationError):
            camera_set.project(point, want_pose=True)


class TestReprojectionError:

    def test_zero_at_exact_measurements(self, camera_set, point):
        measured = camera_set.project(point).measurements
        residual, _ = camera_set.reprojection_error(point, measured)
        assert_allclose(residual, 0.0, atol=1e-12)

    def test_residual_is_prediction_minus_measurement(self, point):
        camera_set = CameraSet(make_pinhole_cameras())
        predicted = camera_set.project(point).measurements
        measured = [z + np.array([1.0, -2.0]) for z in predicted]

        residual, projection = camera_set.reprojection_error(point, measured, want_point=True)

        assert_allclose(residual, np.tile([-1.0, 2.0], len(predicted)), atol=1e-9)
        assert projection.point_jacobian.shape == (8, 3)

    def test_wrong_measurement_count(self, point):
        camera_set = CameraSet(make_pinhole_cameras())
        with pytest.raises(ValueError):
            camera_set.reprojection_error(point, [np.zeros(2)])

    def test_empty_set(self, point):
        residual, projection = CameraSet().reprojection_error(point, [])
        assert residual.shape == (0,)
        assert projection.measurements == []


class TestEquals:

    def test_same_cameras(self):
        assert CameraSet(make_pinhole_cameras()).equals(CameraSet(make_pinhole_cameras()))

    def test_empty_sets(self):
        assert CameraSet().equals(CameraSet())

    def test_different_length(self):
        cameras = make_pinhole_cameras()
        assert not CameraSet(cameras).equals(CameraSet(cameras[:-1]))
        assert not CameraSet(cameras[:-1]).equals(CameraSet(cameras))

    def test_different_order(self):
        cameras = make_pinhole_cameras()
        assert not CameraSet(cameras).equals(CameraSet(cameras[::-1]))

    def test_difference_after_first_camera(self):
        cameras = make_pinhole_cameras()
        changed = list(cameras)
        last = changed[-1]
        changed[-1] = PinholeCamera(last.pose.retract(np.full(6, 1e-4)), last.calibration)

        assert not CameraSet(cameras).equals(CameraSet(changed))
        assert CameraSet(cameras).equals(CameraSet(changed), tol=1e-2)

    def test_default_tolerance_from_constructor(self):
        cameras = make_pinhole_cameras()
        changed = list(cameras)
        last = changed[-1]
        changed[-1] = PinholeCamera(last.pose.retract(np.full(6, 1e-4)), last.calibration)

        loose = CameraSet(cameras, tolerance=1e-2)
        assert loose.tolerance == 1e-2
        assert loose.equals(CameraSet(changed))
        assert not loose.equals(CameraSet(changed), tol=1e-9)

    def test_not_a_camera_set(self):
        assert not CameraSet(make_pinhole_cameras()).equals(make_pinhole_cameras())


class TestPrint:

    def test_str_has_one_line_per_camera(self):
        text = str(CameraSet(make_calibrated_cameras()))
        lines = text.splitlines()

        assert lines[0].startswith("CameraSet")
        assert len(lines) == 1 + len(CAMERA_POSITIONS)
        assert "CalibratedCamera" in lines[1]

    def test_print_prefix(self, capsys):
        CameraSet(make_stereo_cameras()).print("landmark 7: ")
        out = capsys.readouterr().out

        assert out.startswith("landmark 7: CameraSet")
        assert out.count("StereoCamera") == len(CAMERA_POSITIONS)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
