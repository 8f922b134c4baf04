"""
Exceptions raised by camera projection and camera set configuration.
"""


class ProjectionError(Exception):
    """Base class for all errors raised by the camera_set package."""


class CheiralityError(ProjectionError):
    """
    Raised when a point has no valid projection in a camera.

    This happens when the point lies behind the camera or on the plane
    through the camera center (depth <= 0 in the camera frame).

    Attributes:
        depth: Z coordinate of the point in the camera frame
    """

    def __init__(self, depth: float, message: str = None):
        self.depth = depth
        if message is None:
            message = f"Point is not in front of the camera (depth={depth:.6g})"
        super().__init__(message)


class InvalidConfigurationError(ProjectionError, ValueError):
    """
    Raised for a camera set or rig configuration that cannot be used.

    Examples are cameras with different parameter or measurement dimensions
    in one collection, or an unknown camera model in a configuration file.
    """
