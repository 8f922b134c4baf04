"""
Configuration module for camera rigs.

Handles loading a camera rig description from YAML files and building the
corresponding CameraSet.
"""

import yaml
import sys
import numpy as np
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import logging

from .calibration import Intrinsics, DistortedIntrinsics
from .camera import Camera, CalibratedCamera, PinholeCamera, StereoCamera
from .collection import CameraSet
from .exceptions import InvalidConfigurationError
from .geometry import Pose, validate_rotation_matrix

logger = logging.getLogger(__name__)

CAMERA_MODELS = ('calibrated', 'pinhole', 'distorted', 'stereo')


def setup_logging(level: str = 'INFO') -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


@dataclass
class CameraIntrinsics:
    """Camera intrinsic parameters."""
    fx: float  # Focal length in x (pixels)
    fy: float  # Focal length in y (pixels)
    cx: float  # Principal point x (pixels)
    cy: float  # Principal point y (pixels)
    k1: float = 0.0  # Radial distortion coefficient
    k2: float = 0.0  # Radial distortion coefficient
    k3: float = 0.0  # Radial distortion coefficient
    p1: float = 0.0  # Tangential distortion coefficient
    p2: float = 0.0  # Tangential distortion coefficient
    baseline: float = 0.0  # Stereo baseline in meters


@dataclass
class Orientation:
    """Camera orientation as ZYX Euler angles in degrees."""
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0


@dataclass
class CameraConfig:
    """
    One camera of the rig.

    The orientation is taken from `target` (look-at), else from `rotation`
    (3x3 camera-to-world matrix), else from `orientation` angles.
    """
    model: str
    position: List[float]
    name: str = ''
    target: Optional[List[float]] = None
    rotation: Optional[List[List[float]]] = None
    orientation: Orientation = field(default_factory=Orientation)
    intrinsics: Optional[CameraIntrinsics] = None

    def pose(self) -> Pose:
        if self.target is not None:
            try:
                return Pose.look_at(self.position, self.target)
            except ValueError as e:
                raise InvalidConfigurationError(f"Camera '{self.name}': {e}") from e

        if self.rotation is not None:
            R = np.asarray(self.rotation, dtype=np.float64)
            if not validate_rotation_matrix(R):
                raise InvalidConfigurationError(
                    f"Camera '{self.name}': rotation is not a proper rotation matrix"
                )
            return Pose(R, self.position)

        return Pose.from_euler(
            self.orientation.roll,
            self.orientation.pitch,
            self.orientation.yaw,
            self.position,
        )

    def build(self) -> Camera:
        """Instantiate the camera described by this entry."""
        if self.model not in CAMERA_MODELS:
            raise InvalidConfigurationError(
                f"Camera '{self.name}': unknown model '{self.model}', "
                f"expected one of {CAMERA_MODELS}"
            )

        pose = self.pose()
        if self.model == 'calibrated':
            return CalibratedCamera(pose)

        if self.intrinsics is None:
            raise InvalidConfigurationError(
                f"Camera '{self.name}': model '{self.model}' requires intrinsics"
            )
        k = self.intrinsics

        if self.model == 'pinhole':
            return PinholeCamera(pose, Intrinsics(k.fx, k.fy, k.cx, k.cy))

        if self.model == 'distorted':
            return PinholeCamera(
                pose,
                DistortedIntrinsics(k.fx, k.fy, k.cx, k.cy, k.k1, k.k2, k.k3, k.p1, k.p2),
            )

        if k.baseline <= 0:
            raise InvalidConfigurationError(
                f"Camera '{self.name}': stereo baseline must be positive, got {k.baseline}"
            )
        return StereoCamera(pose, Intrinsics(k.fx, k.fy, k.cx, k.cy), k.baseline)


def _parse_camera(index: int, cam_data: Dict[str, Any]) -> CameraConfig:
    name = cam_data.get('name', f'camera_{index}')
    try:
        model = cam_data['model']
        position = [float(c) for c in cam_data['position']]
    except KeyError as e:
        raise InvalidConfigurationError(f"Camera '{name}': missing field {e}") from e

    intrinsics = None
    k_data = cam_data.get('intrinsics')
    if k_data is not None:
        if not isinstance(k_data, dict):
            raise InvalidConfigurationError(f"Camera '{name}': intrinsics must be a mapping")
        try:
            intrinsics = CameraIntrinsics(
                fx=k_data['fx'],
                fy=k_data['fy'],
                cx=k_data['cx'],
                cy=k_data['cy'],
                k1=k_data.get('k1', 0.0),
                k2=k_data.get('k2', 0.0),
                k3=k_data.get('k3', 0.0),
                p1=k_data.get('p1', 0.0),
                p2=k_data.get('p2', 0.0),
                baseline=k_data.get('baseline', 0.0),
            )
        except KeyError as e:
            raise InvalidConfigurationError(
                f"Camera '{name}': missing intrinsics field {e}"
            ) from e

    # Parse orientation angles (optional, may be left empty)
    orient_data = cam_data.get('orientation') or {}
    if not isinstance(orient_data, dict):
        raise InvalidConfigurationError(f"Camera '{name}': orientation must be a mapping")
    orientation = Orientation(
        roll=orient_data.get('roll', 0.0),
        pitch=orient_data.get('pitch', 0.0),
        yaw=orient_data.get('yaw', 0.0),
    )

    return CameraConfig(
        model=model,
        position=position,
        name=name,
        target=cam_data.get('target'),
        rotation=cam_data.get('rotation'),
        orientation=orientation,
        intrinsics=intrinsics,
    )


@dataclass
class Config:
    """
    Camera rig configuration.

    Attributes:
        cameras: Camera entries, in measurement order
        equality_tolerance: Default tolerance of the built CameraSet.equals
        log_level: Logging level name applied by Config.setup_logging
    """
    cameras: List[CameraConfig] = field(default_factory=list)
    equality_tolerance: float = 1e-9
    log_level: str = 'INFO'

    @classmethod
    def from_yaml(cls, config_path: str) -> "Config":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Config object with loaded parameters

        Example YAML structure:
            equality_tolerance: 1.0e-9
            log_level: INFO
            cameras:
              - name: left
                model: pinhole
                position: [-1.0, -5.0, 1.0]
                target: [0.0, 0.0, 0.0]
                intrinsics:
                  fx: 500.0
                  fy: 500.0
                  cx: 320.0
                  cy: 240.0
              - name: right
                model: pinhole
                position: [1.0, -5.0, 1.0]
                orientation:
                  roll: -90.0
                  pitch: 0.0
                  yaw: 0.0
                intrinsics: {fx: 500.0, fy: 500.0, cx: 320.0, cy: 240.0}
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        logger.info(f"Loading configuration from {config_path}")

        cameras = [
            _parse_camera(i, cam_data)
            for i, cam_data in enumerate(data.get('cameras', []))
        ]

        return cls(
            cameras=cameras,
            equality_tolerance=float(data.get('equality_tolerance', 1e-9)),
            log_level=data.get('log_level', 'INFO'),
        )

    def setup_logging(self) -> None:
        """Configure logging at the configured log_level."""
        setup_logging(self.log_level)

    def build_camera_set(self) -> CameraSet:
        """
        Build a CameraSet with one camera per entry, in file order.

        The set compares against others with equality_tolerance by default.
        """
        camera_set = CameraSet(tolerance=self.equality_tolerance)
        for cam_config in self.cameras:
            camera_set.add(cam_config.build())

        logger.info(f"Built camera set with {len(camera_set)} cameras")
        return camera_set
