"""
Camera Set Projection Package

Projects a 3D landmark into an ordered set of calibrated cameras and stacks
the per-camera Jacobians needed to linearize a bundle-adjustment problem.

Projection Chain:
    Point (world) → Camera Frame → Normalized Plane → Image (u,v)

Conventions:
    - Pose: camera-to-world transform, tangent ordered [rotation, translation]
    - Camera frame: X-right, Y-down, Z-forward
    - Camera parameters: 6 pose parameters followed by the calibration vector

Supported Cameras:
    - CalibratedCamera: normalized coordinates, no calibration
    - PinholeCamera: pinhole or Brown-Conrady intrinsics
    - StereoCamera: rectified stereo pair with fixed calibration
"""

from .exceptions import ProjectionError, CheiralityError, InvalidConfigurationError
from .geometry import Pose, skew, euler_to_rotation_matrix, validate_rotation_matrix
from .calibration import Intrinsics, DistortedIntrinsics
from .camera import Camera, CalibratedCamera, PinholeCamera, StereoCamera
from .collection import CameraSet, BatchProjection, ProjectionOutcome
from .numerical import numerical_derivative
from .config import Config, CameraConfig, CameraIntrinsics, Orientation, setup_logging

__version__ = "1.0.0"
__all__ = [
    "ProjectionError",
    "CheiralityError",
    "InvalidConfigurationError",
    "Pose",
    "skew",
    "euler_to_rotation_matrix",
    "validate_rotation_matrix",
    "Intrinsics",
    "DistortedIntrinsics",
    "Camera",
    "CalibratedCamera",
    "PinholeCamera",
    "StereoCamera",
    "CameraSet",
    "BatchProjection",
    "ProjectionOutcome",
    "numerical_derivative",
    "Config",
    "CameraConfig",
    "CameraIntrinsics",
    "Orientation",
    "setup_logging",
]
