"""
Camera models for projecting 3D world points to measurements.

Every camera exposes:
    - dim: number of camera parameters (6 pose parameters, then calibration)
    - measurement_dim: length of the measurement vector
    - project(point, want_pose, want_point, want_calibration)

Coordinate System:
    - Camera frame: X-right, Y-down, Z-forward (looking along +Z)
    - Image frame: u-right, v-down (origin at top-left corner)

Projection Model:
    1. World to camera frame: q = R^T (p - t)
    2. Perspective projection: x' = X/Z, y' = Y/Z
    3. Calibration: pixel mapping with optional distortion

A point with Z <= 0 in the camera frame cannot be projected and raises
CheiralityError.
"""

import numpy as np
from typing import Optional, Tuple
import logging

from .calibration import Intrinsics
from .exceptions import CheiralityError
from .geometry import Pose, POSE_DIM

logger = logging.getLogger(__name__)

# measurement, Dpose, Dpoint, Dcalibration
CameraProjection = Tuple[
    np.ndarray, Optional[np.ndarray], Optional[np.ndarray], Optional[np.ndarray]
]


def project_to_normalized(
    q: np.ndarray,
    want_jacobian: bool = False,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Perspective projection of a camera-frame point onto the plane Z=1.

    Args:
        q: 3D point in camera frame
        want_jacobian: Whether to compute the 2x3 Jacobian d(x', y')/d(X, Y, Z)

    Returns:
        Tuple of (pn, Dpn)

    Raises:
        CheiralityError: If the point is not in front of the camera
    """
    X, Y, Z = q

    if Z <= 0:
        logger.debug(f"Point behind camera: Z={Z}")
        raise CheiralityError(Z)

    inv_z = 1.0 / Z
    pn = np.array([X * inv_z, Y * inv_z])

    Dpn = None
    if want_jacobian:
        # du/dX = 1/Z, du/dY = 0, du/dZ = -X/Z²
        # dv/dX = 0, dv/dY = 1/Z, dv/dZ = -Y/Z²
        Dpn = np.array([
            [inv_z, 0.0, -pn[0] * inv_z],
            [0.0, inv_z, -pn[1] * inv_z]
        ])

    return pn, Dpn


class Camera:
    """
    Base class for cameras with a pose.

    Subclasses implement project() and define dim and measurement_dim.
    """

    dim = POSE_DIM
    measurement_dim = 2

    def __init__(self, pose: Optional[Pose] = None):
        self.pose = Pose() if pose is None else pose

    @property
    def calibration_dim(self) -> int:
        return self.dim - POSE_DIM

    def project(
        self,
        point: np.ndarray,
        want_pose: bool = False,
        want_point: bool = False,
        want_calibration: bool = False,
    ) -> CameraProjection:
        """
        Project a world point to a measurement.

        Args:
            point: 3D point in world frame
            want_pose: Whether to compute d(z)/d(pose), ZDim x 6
            want_point: Whether to compute d(z)/d(point), ZDim x 3
            want_calibration: Whether to compute d(z)/d(calibration), ZDim x (Dim-6)

        Returns:
            Tuple of (z, Dpose, Dpoint, Dcal); Jacobians are None unless requested

        Raises:
            CheiralityError: If the point is not in front of the camera
        """
        raise NotImplementedError

    def retract(self, xi: np.ndarray) -> "Camera":
        raise NotImplementedError

    def equals(self, other: "Camera", tol: float = 1e-9) -> bool:
        raise NotImplementedError

    def _no_calibration_jacobian(self, want_calibration: bool) -> Optional[np.ndarray]:
        if want_calibration:
            return np.zeros((self.measurement_dim, 0))
        return None


class CalibratedCamera(Camera):
    """
    Camera with identity calibration; measurements are normalized coordinates.

    Dim = 6, ZDim = 2
    """

    def project(
        self,
        point: np.ndarray,
        want_pose: bool = False,
        want_point: bool = False,
        want_calibration: bool = False,
    ) -> CameraProjection:
        q, Dq_pose, Dq_point = self.pose.transform_to(point, want_pose, want_point)
        pn, Dpn = project_to_normalized(q, want_pose or want_point)

        Dpose = Dpn @ Dq_pose if want_pose else None
        Dpoint = Dpn @ Dq_point if want_point else None

        return pn, Dpose, Dpoint, self._no_calibration_jacobian(want_calibration)

    def retract(self, xi: np.ndarray) -> "CalibratedCamera":
        return CalibratedCamera(self.pose.retract(xi))

    def equals(self, other: Camera, tol: float = 1e-9) -> bool:
        return type(other) is CalibratedCamera and self.pose.equals(other.pose, tol)

    def __repr__(self) -> str:
        return f"CalibratedCamera({self.pose!r})"


class PinholeCamera(Camera):
    """
    Camera with its own (optimizable) calibration.

    Dim = 6 + calibration.dim, ZDim = 2. The camera parameter vector is the
    pose tangent [omega, v] followed by the calibration vector.
    """

    def __init__(self, pose: Optional[Pose], calibration: Intrinsics):
        super().__init__(pose)
        self.calibration = calibration

    @property
    def dim(self) -> int:
        return POSE_DIM + self.calibration.dim

    def project(
        self,
        point: np.ndarray,
        want_pose: bool = False,
        want_point: bool = False,
        want_calibration: bool = False,
    ) -> CameraProjection:
        q, Dq_pose, Dq_point = self.pose.transform_to(point, want_pose, want_point)
        want_geometry = want_pose or want_point
        pn, Dpn = project_to_normalized(q, want_geometry)
        uv, Dcal, Duv_pn = self.calibration.uncalibrate(pn, want_calibration, want_geometry)

        Dpose = Dpoint = None
        if want_geometry:
            Duv_q = Duv_pn @ Dpn
            if want_pose:
                Dpose = Duv_q @ Dq_pose
            if want_point:
                Dpoint = Duv_q @ Dq_point

        return uv, Dpose, Dpoint, Dcal

    def backproject(self, uv: np.ndarray, depth: float) -> np.ndarray:
        """World point seen at pixel `uv` at the given depth along the optical axis."""
        pn = self.calibration.calibrate(uv)
        return self.pose.transform_from(np.array([pn[0] * depth, pn[1] * depth, depth]))

    def retract(self, xi: np.ndarray) -> "PinholeCamera":
        xi = np.asarray(xi, dtype=np.float64)
        return PinholeCamera(
            self.pose.retract(xi[:POSE_DIM]),
            self.calibration.retract(xi[POSE_DIM:]),
        )

    def equals(self, other: Camera, tol: float = 1e-9) -> bool:
        return (
            type(other) is PinholeCamera
            and self.pose.equals(other.pose, tol)
            and self.calibration.equals(other.calibration, tol)
        )

    def __repr__(self) -> str:
        return f"PinholeCamera({self.pose!r}, {self.calibration!r})"


class StereoCamera(Camera):
    """
    Rectified stereo pair with fixed calibration.

    The pose is that of the left camera; the right camera sits `baseline`
    meters along the left camera's +X axis.

    Measurement: (uL, uR, v)
        uL = fx * X/Z + cx
        uR = fx * (X - b)/Z + cx
        v  = fy * Y/Z + cy

    Dim = 6, ZDim = 3
    """

    measurement_dim = 3

    def __init__(self, pose: Optional[Pose], calibration: Intrinsics, baseline: float):
        super().__init__(pose)
        self.calibration = calibration
        self.baseline = float(baseline)

    def project(
        self,
        point: np.ndarray,
        want_pose: bool = False,
        want_point: bool = False,
        want_calibration: bool = False,
    ) -> CameraProjection:
        q, Dq_pose, Dq_point = self.pose.transform_to(point, want_pose, want_point)
        X, Y, Z = q

        if Z <= 0:
            logger.debug(f"Point behind stereo camera: Z={Z}")
            raise CheiralityError(Z)

        K = self.calibration
        inv_z = 1.0 / Z
        x_left = X * inv_z
        x_right = (X - self.baseline) * inv_z
        y = Y * inv_z

        z = np.array([
            K.fx * x_left + K.cx,
            K.fx * x_right + K.cx,
            K.fy * y + K.cy,
        ])

        Dpose = Dpoint = None
        if want_pose or want_point:
            Dz_q = np.array([
                [K.fx * inv_z, 0.0, -K.fx * x_left * inv_z],
                [K.fx * inv_z, 0.0, -K.fx * x_right * inv_z],
                [0.0, K.fy * inv_z, -K.fy * y * inv_z]
            ])
            if want_pose:
                Dpose = Dz_q @ Dq_pose
            if want_point:
                Dpoint = Dz_q @ Dq_point

        return z, Dpose, Dpoint, self._no_calibration_jacobian(want_calibration)

    def retract(self, xi: np.ndarray) -> "StereoCamera":
        return StereoCamera(self.pose.retract(xi), self.calibration, self.baseline)

    def equals(self, other: Camera, tol: float = 1e-9) -> bool:
        return (
            type(other) is StereoCamera
            and self.pose.equals(other.pose, tol)
            and self.calibration.equals(other.calibration, tol)
            and abs(self.baseline - other.baseline) <= tol
        )

    def __repr__(self) -> str:
        return f"StereoCamera({self.pose!r}, {self.calibration!r}, baseline={self.baseline})"
