"""
Rigid-body geometry for camera poses.

Coordinate System Definitions:
    - World: shared reference frame in which landmarks are expressed
    - Camera: X-right, Y-down, Z-forward (looking along +Z)

Pose Convention:
    A Pose stores the camera-to-world transform (R, t). The columns of R are
    the camera axes expressed in world coordinates and t is the camera center.
    A world point p maps into the camera frame as q = R^T (p - t).

Tangent Space:
    Pose perturbations are 6-vectors xi = [omega, v] (rotation first, then
    translation), both expressed in the camera frame:
        R' = R @ Exp(omega)
        t' = t + R @ v
"""

import numpy as np
from typing import Optional, Tuple
from scipy.spatial.transform import Rotation
import logging

logger = logging.getLogger(__name__)

POSE_DIM = 6


def skew(v: np.ndarray) -> np.ndarray:
    """
    Skew-symmetric cross-product matrix.

    skew(a) @ b == np.cross(a, b)
    """
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0]
    ])


def euler_to_rotation_matrix(
    roll: float, pitch: float, yaw: float
) -> np.ndarray:
    """
    Compute rotation matrix from Euler angles (ZYX convention).

    The combined rotation is: R = Rz(yaw) @ Ry(pitch) @ Rx(roll)

    Args:
        roll: Roll angle in radians (about X)
        pitch: Pitch angle in radians (about Y)
        yaw: Yaw angle in radians (about Z)

    Returns:
        3x3 rotation matrix
    """
    cr, sr = np.cos(roll), np.sin(roll)
    cp, sp = np.cos(pitch), np.sin(pitch)
    cy, sy = np.cos(yaw), np.sin(yaw)

    Rx = np.array([
        [1, 0, 0],
        [0, cr, -sr],
        [0, sr, cr]
    ])

    Ry = np.array([
        [cp, 0, sp],
        [0, 1, 0],
        [-sp, 0, cp]
    ])

    Rz = np.array([
        [cy, -sy, 0],
        [sy, cy, 0],
        [0, 0, 1]
    ])

    return Rz @ Ry @ Rx


def validate_rotation_matrix(R: np.ndarray, tol: float = 1e-6) -> bool:
    """
    Validate that a matrix is a proper rotation matrix.

    A proper rotation matrix must:
        1. Be orthogonal: R @ R.T = I
        2. Have determinant = +1 (not a reflection)

    Args:
        R: 3x3 matrix to validate
        tol: Numerical tolerance

    Returns:
        True if R is a valid rotation matrix
    """
    if R.shape != (3, 3):
        return False

    if not np.allclose(R @ R.T, np.eye(3), atol=tol):
        return False

    if not np.isclose(np.linalg.det(R), 1.0, atol=tol):
        return False

    return True


class Pose:
    """
    Camera pose in the world frame (camera-to-world rigid transform).

    Attributes:
        rotation: 3x3 rotation matrix, columns are camera axes in world frame
        translation: Camera center in world frame, shape (3,)
    """

    dim = POSE_DIM

    def __init__(
        self,
        rotation: Optional[np.ndarray] = None,
        translation: Optional[np.ndarray] = None,
    ):
        self.rotation = np.eye(3) if rotation is None else np.asarray(rotation, dtype=np.float64)
        self.translation = (
            np.zeros(3) if translation is None else np.asarray(translation, dtype=np.float64).reshape(3)
        )

    @classmethod
    def from_euler(
        cls,
        roll: float,
        pitch: float,
        yaw: float,
        position: np.ndarray,
    ) -> "Pose":
        """
        Build a pose from aerospace Euler angles in degrees and a camera center.
        """
        R = euler_to_rotation_matrix(*np.deg2rad([roll, pitch, yaw]))
        return cls(R, position)

    @classmethod
    def look_at(
        cls,
        position: np.ndarray,
        target: np.ndarray,
        up_world: Optional[np.ndarray] = None,
    ) -> "Pose":
        """
        Build a pose for a camera at `position` whose optical axis points at `target`.

        The camera's local coordinate system is defined as:
        - z_cam: points FROM camera TO target (optical axis)
        - x_cam: points to the right (perpendicular to up_world and z_cam)
        - y_cam: points down in the image (completes right-handed system)

        Args:
            position: Camera center in world coords, shape (3,)
            target: Point the camera looks at, shape (3,)
            up_world: World "up" direction (used to resolve roll), shape (3,);
                defaults to +Z

        Returns:
            Pose with the camera axes as rotation columns

        Raises:
            ValueError: If target coincides with position
        """
        if up_world is None:
            up_world = np.array([0.0, 0.0, 1.0])

        position = np.asarray(position, dtype=np.float64)
        z_cam = np.asarray(target, dtype=np.float64) - position
        z_norm = np.linalg.norm(z_cam)
        if z_norm < 1e-12:
            raise ValueError(f"Look-at target coincides with camera position {position}")
        z_cam = z_cam / z_norm

        x_cam = np.cross(z_cam, up_world)
        x_cam_norm = np.linalg.norm(x_cam)

        # Looking straight up/down: pick any right vector perpendicular to z_cam
        if x_cam_norm < 1e-6:
            logger.debug(f"Optical axis {z_cam} parallel to up vector, choosing arbitrary roll")
            if np.abs(z_cam[0]) < 0.9:
                x_cam = np.cross(z_cam, [1.0, 0.0, 0.0])
            else:
                x_cam = np.cross(z_cam, [0.0, 1.0, 0.0])
            x_cam = x_cam / np.linalg.norm(x_cam)
        else:
            x_cam = x_cam / x_cam_norm

        y_cam = np.cross(z_cam, x_cam)

        return cls(np.column_stack([x_cam, y_cam, z_cam]), position)

    def transform_to(
        self,
        point: np.ndarray,
        want_pose: bool = False,
        want_point: bool = False,
    ) -> Tuple[np.ndarray, Optional[np.ndarray], Optional[np.ndarray]]:
        """
        Transform a world point into the camera frame.

        Args:
            point: 3D point in world frame
            want_pose: Whether to compute d(q)/d(pose), 3x6
            want_point: Whether to compute d(q)/d(point), 3x3

        Returns:
            Tuple of (q, Dpose, Dpoint); Jacobians are None unless requested
        """
        Rt = self.rotation.T
        q = Rt @ (np.asarray(point, dtype=np.float64) - self.translation)

        Dpose = None
        if want_pose:
            Dpose = np.empty((3, POSE_DIM))
            Dpose[:, :3] = skew(q)
            Dpose[:, 3:] = -np.eye(3)

        Dpoint = Rt if want_point else None

        return q, Dpose, Dpoint

    def transform_from(self, point_camera: np.ndarray) -> np.ndarray:
        """Transform a camera-frame point into the world frame."""
        return self.rotation @ np.asarray(point_camera, dtype=np.float64) + self.translation

    def retract(self, xi: np.ndarray) -> "Pose":
        """
        Apply a tangent-space increment xi = [omega, v].
        """
        xi = np.asarray(xi, dtype=np.float64)
        dR = Rotation.from_rotvec(xi[:3]).as_matrix()
        return Pose(self.rotation @ dR, self.translation + self.rotation @ xi[3:])

    def equals(self, other: "Pose", tol: float = 1e-9) -> bool:
        """Equality of rotation and translation within absolute tolerance."""
        return (
            np.allclose(self.rotation, other.rotation, rtol=0.0, atol=tol)
            and np.allclose(self.translation, other.translation, rtol=0.0, atol=tol)
        )

    def __repr__(self) -> str:
        rpy = Rotation.from_matrix(self.rotation).as_euler("xyz", degrees=True)
        return (
            f"Pose(rpy_deg=[{rpy[0]:.3f}, {rpy[1]:.3f}, {rpy[2]:.3f}], "
            f"t=[{self.translation[0]:.4f}, {self.translation[1]:.4f}, {self.translation[2]:.4f}])"
        )
