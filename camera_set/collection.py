"""
Batch projection of one landmark into an ordered set of cameras.

This is the aggregation step of a smart factor: a landmark is projected into
every camera that observes it and the per-camera Jacobians are stacked into
block matrices, one row block of height ZDim per camera:

    F (ZDim*N x 6)        d(z)/d(pose_i), block-diagonal in the cameras
    E (ZDim*N x 3)        d(z)/d(point)
    H (ZDim*N x Dim-6)    d(z)/d(calibration_i)

Row block i always corresponds to the i-th camera added to the set.
"""

import numpy as np
from typing import Iterator, List, Optional, Sequence, Tuple
from dataclasses import dataclass
import logging

from .camera import Camera
from .exceptions import CheiralityError, InvalidConfigurationError
from .geometry import POSE_DIM

logger = logging.getLogger(__name__)

POINT_DIM = 3


@dataclass
class BatchProjection:
    """
    Stacked projection of one point into all cameras of a set.

    Jacobians that were not requested are None.
    """
    measurements: List[np.ndarray]
    pose_jacobian: Optional[np.ndarray] = None
    point_jacobian: Optional[np.ndarray] = None
    calibration_jacobian: Optional[np.ndarray] = None

    def stacked_measurements(self) -> np.ndarray:
        """All measurements concatenated into one vector of length ZDim*N."""
        if not self.measurements:
            return np.zeros(0)
        return np.concatenate(self.measurements)


@dataclass
class ProjectionOutcome:
    """
    Result of CameraSet.try_project: either a full projection or the error.

    A failed outcome never carries partial measurements or Jacobians.
    """
    projection: Optional[BatchProjection] = None
    error: Optional[CheiralityError] = None

    @property
    def ok(self) -> bool:
        """True when the projection succeeded."""
        return self.error is None

    def unwrap(self) -> BatchProjection:
        """Return the projection, re-raising the stored error on failure."""
        if self.error is not None:
            raise self.error
        return self.projection


class CameraSet:
    """
    An ordered, append-only set of cameras observing one landmark.

    All cameras must share the same parameter dimension (6 pose parameters
    followed by the calibration) and the same measurement dimension. This is
    checked when projecting, not when adding.

    Example usage:
        cameras = CameraSet()
        cameras.add(PinholeCamera(pose_a, Intrinsics(500, 500, 320, 240)))
        cameras.add(PinholeCamera(pose_b, Intrinsics(500, 500, 320, 240)))
        result = cameras.project(point, want_pose=True, want_point=True)
        F, E = result.pose_jacobian, result.point_jacobian
    """

    def __init__(
        self,
        cameras: Optional[Sequence[Camera]] = None,
        tolerance: float = 1e-9,
    ):
        self.tolerance = tolerance
        self._cameras: List[Camera] = []
        if cameras is not None:
            for camera in cameras:
                self.add(camera)

    def add(self, camera: Camera) -> None:
        """Append a camera; its index is its measurement row block."""
        self._cameras.append(camera)
        logger.debug("Added camera %d: %r", len(self._cameras) - 1, camera)

    def size(self) -> int:
        """Number of cameras in the set."""
        return len(self._cameras)

    def __len__(self) -> int:
        return len(self._cameras)

    def __iter__(self) -> Iterator[Camera]:
        return iter(self._cameras)

    def __getitem__(self, index: int) -> Camera:
        return self._cameras[index]

    @property
    def cameras(self) -> Tuple[Camera, ...]:
        return tuple(self._cameras)

    def dimensions(self) -> Tuple[int, int]:
        """
        Measurement and camera dimensions (ZDim, Dim) shared by all cameras.

        An empty set reports (0, 6).

        Raises:
            InvalidConfigurationError: If the cameras disagree on either dimension
        """
        if not self._cameras:
            return 0, POSE_DIM

        first = self._cameras[0]
        zdim, dim = first.measurement_dim, first.dim
        for i, camera in enumerate(self._cameras):
            if camera.measurement_dim != zdim or camera.dim != dim:
                raise InvalidConfigurationError(
                    f"Camera {i} has (ZDim={camera.measurement_dim}, Dim={camera.dim}), "
                    f"expected (ZDim={zdim}, Dim={dim}) as for camera 0"
                )
        return zdim, dim

    def project(
        self,
        point: np.ndarray,
        want_pose: bool = False,
        want_point: bool = False,
        want_calibration: bool = False,
    ) -> BatchProjection:
        """
        Project a world point into every camera, with stacked derivatives.

        Args:
            point: 3D point in world frame
            want_pose: Whether to compute the (ZDim*N x 6) pose Jacobian
            want_point: Whether to compute the (ZDim*N x 3) point Jacobian
            want_calibration: Whether to compute the (ZDim*N x Dim-6)
                calibration Jacobian; it has no columns when Dim == 6

        Returns:
            BatchProjection with N measurements in insertion order

        Raises:
            CheiralityError: If any camera cannot project the point; nothing
                is returned for the other cameras
            InvalidConfigurationError: If the cameras have different dimensions
        """
        zdim, dim = self.dimensions()
        n_cameras = len(self._cameras)
        n_rows = zdim * n_cameras
        calibration_dim = dim - POSE_DIM

        # Allocate full size up front, filled block by block below
        F = np.empty((n_rows, POSE_DIM)) if want_pose else None
        E = np.empty((n_rows, POINT_DIM)) if want_point else None
        H = np.empty((n_rows, calibration_dim)) if want_calibration else None
        fill_calibration = want_calibration and calibration_dim > 0

        measurements = []
        for i, camera in enumerate(self._cameras):
            z, Fi, Ei, Hi = camera.project(point, want_pose, want_point, fill_calibration)
            measurements.append(z)

            rows = slice(zdim * i, zdim * (i + 1))
            if want_pose:
                F[rows] = Fi
            if want_point:
                E[rows] = Ei
            if fill_calibration:
                H[rows] = Hi

        return BatchProjection(measurements, F, E, H)

    def try_project(
        self,
        point: np.ndarray,
        want_pose: bool = False,
        want_point: bool = False,
        want_calibration: bool = False,
    ) -> ProjectionOutcome:
        """
        Like project(), but reports a cheirality failure as a failed outcome.
        """
        try:
            projection = self.project(point, want_pose, want_point, want_calibration)
        except CheiralityError as e:
            return ProjectionOutcome(error=e)
        return ProjectionOutcome(projection=projection)

    def reprojection_error(
        self,
        point: np.ndarray,
        measured: Sequence[np.ndarray],
        want_pose: bool = False,
        want_point: bool = False,
        want_calibration: bool = False,
    ) -> Tuple[np.ndarray, BatchProjection]:
        """
        Stacked residual z(point) - measured, with the projection that produced it.

        Args:
            point: 3D point in world frame
            measured: One measurement per camera, in insertion order

        Returns:
            Tuple of (residual of length ZDim*N, BatchProjection)

        Raises:
            ValueError: If the number of measurements differs from the camera count
        """
        if len(measured) != len(self._cameras):
            raise ValueError(
                f"Got {len(measured)} measurements for {len(self._cameras)} cameras"
            )

        projection = self.project(point, want_pose, want_point, want_calibration)
        if not self._cameras:
            return np.zeros(0), projection

        residual = projection.stacked_measurements() - np.concatenate(
            [np.asarray(z, dtype=np.float64) for z in measured]
        )
        return residual, projection

    def equals(self, other: "CameraSet", tol: Optional[float] = None) -> bool:
        """
        Same number of cameras, pairwise equal within tolerance and in order.

        tol defaults to the tolerance the set was created with.
        """
        if tol is None:
            tol = self.tolerance
        if not isinstance(other, CameraSet) or len(other) != len(self):
            return False
        for mine, theirs in zip(self._cameras, other._cameras):
            if not mine.equals(theirs, tol):
                return False
        return True

    def __str__(self) -> str:
        lines = [f"CameraSet, cameras = {len(self._cameras)}"]
        lines.extend(f"  [{i}] {camera!r}" for i, camera in enumerate(self._cameras))
        return "\n".join(lines)

    def print(self, s: str = "") -> None:
        print(s + str(self))
