"""
Camera calibration models.

A calibration maps normalized image coordinates (x', y') = (X/Z, Y/Z) to
pixel coordinates and reports the derivatives of that mapping with respect
to its own parameters and to the normalized point.

Projection Model:
    1. Distortion (optional): Apply radial and tangential distortion
    2. Pixel mapping: u = fx*x'' + cx, v = fy*y'' + cy

Calibration parameters live in a vector space: retract(delta) is plain
addition and the calibration Jacobian is taken with respect to vector().
"""

import numpy as np
from typing import Optional, Tuple


class Intrinsics:
    """
    Pinhole intrinsics without distortion.

    Parameter vector: [fx, fy, cx, cy]
    """

    dim = 4

    def __init__(self, fx: float, fy: float, cx: float, cy: float):
        self.fx = float(fx)
        self.fy = float(fy)
        self.cx = float(cx)
        self.cy = float(cy)

    @classmethod
    def from_vector(cls, v: np.ndarray) -> "Intrinsics":
        return cls(*v)

    def vector(self) -> np.ndarray:
        return np.array([self.fx, self.fy, self.cx, self.cy])

    def K(self) -> np.ndarray:
        """3x3 camera matrix."""
        return np.array([
            [self.fx, 0, self.cx],
            [0, self.fy, self.cy],
            [0, 0, 1]
        ])

    def retract(self, delta: np.ndarray) -> "Intrinsics":
        return self.from_vector(self.vector() + np.asarray(delta, dtype=np.float64))

    def equals(self, other: "Intrinsics", tol: float = 1e-9) -> bool:
        if type(other) is not type(self):
            return False
        return np.allclose(self.vector(), other.vector(), rtol=0.0, atol=tol)

    def uncalibrate(
        self,
        p: np.ndarray,
        want_calibration: bool = False,
        want_point: bool = False,
    ) -> Tuple[np.ndarray, Optional[np.ndarray], Optional[np.ndarray]]:
        """
        Map a normalized point to pixel coordinates.

        Args:
            p: Normalized image coordinates (x', y')
            want_calibration: Whether to compute d(uv)/d(vector()), 2x4
            want_point: Whether to compute d(uv)/d(p), 2x2

        Returns:
            Tuple of (uv, Dcal, Dp); Jacobians are None unless requested
        """
        x, y = p
        uv = np.array([self.fx * x + self.cx, self.fy * y + self.cy])

        Dcal = None
        if want_calibration:
            Dcal = np.array([
                [x, 0.0, 1.0, 0.0],
                [0.0, y, 0.0, 1.0]
            ])

        Dp = None
        if want_point:
            Dp = np.array([
                [self.fx, 0.0],
                [0.0, self.fy]
            ])

        return uv, Dcal, Dp

    def calibrate(self, uv: np.ndarray) -> np.ndarray:
        """Map pixel coordinates back to normalized image coordinates."""
        u, v = uv
        return np.array([(u - self.cx) / self.fx, (v - self.cy) / self.fy])

    def __repr__(self) -> str:
        return f"Intrinsics(fx={self.fx}, fy={self.fy}, cx={self.cx}, cy={self.cy})"


class DistortedIntrinsics(Intrinsics):
    """
    Pinhole intrinsics with Brown-Conrady lens distortion.

    The distortion model follows OpenCV conventions:
        - Radial distortion: k1, k2, k3
        - Tangential distortion: p1, p2

    Distortion equations (applied to normalized coordinates x', y'):
        r² = x'² + y'²
        x'' = x'(1 + k1*r² + k2*r⁴ + k3*r⁶) + 2*p1*x'*y' + p2*(r² + 2*x'²)
        y'' = y'(1 + k1*r² + k2*r⁴ + k3*r⁶) + p1*(r² + 2*y'²) + 2*p2*x'*y'

    Parameter vector: [fx, fy, cx, cy, k1, k2, k3, p1, p2]
    """

    dim = 9

    def __init__(
        self,
        fx: float,
        fy: float,
        cx: float,
        cy: float,
        k1: float = 0.0,
        k2: float = 0.0,
        k3: float = 0.0,
        p1: float = 0.0,
        p2: float = 0.0,
    ):
        super().__init__(fx, fy, cx, cy)
        self.k1 = float(k1)
        self.k2 = float(k2)
        self.k3 = float(k3)
        self.p1 = float(p1)
        self.p2 = float(p2)

    def vector(self) -> np.ndarray:
        return np.array([
            self.fx, self.fy, self.cx, self.cy,
            self.k1, self.k2, self.k3, self.p1, self.p2,
        ])

    def _apply_distortion(
        self, x_norm: float, y_norm: float
    ) -> Tuple[float, float]:
        r2 = x_norm ** 2 + y_norm ** 2
        radial = 1 + self.k1 * r2 + self.k2 * r2 ** 2 + self.k3 * r2 ** 3

        x_tangential = 2 * self.p1 * x_norm * y_norm + self.p2 * (r2 + 2 * x_norm ** 2)
        y_tangential = self.p1 * (r2 + 2 * y_norm ** 2) + 2 * self.p2 * x_norm * y_norm

        return x_norm * radial + x_tangential, y_norm * radial + y_tangential

    def uncalibrate(
        self,
        p: np.ndarray,
        want_calibration: bool = False,
        want_point: bool = False,
    ) -> Tuple[np.ndarray, Optional[np.ndarray], Optional[np.ndarray]]:
        """
        Distort a normalized point and map it to pixel coordinates.

        Returns:
            Tuple of (uv, Dcal, Dp) with Dcal 2x9 and Dp 2x2 when requested
        """
        x, y = p
        r2 = x * x + y * y
        r4 = r2 * r2
        r6 = r4 * r2
        xy = x * y

        x_dist, y_dist = self._apply_distortion(x, y)
        uv = np.array([self.fx * x_dist + self.cx, self.fy * y_dist + self.cy])

        Dcal = None
        if want_calibration:
            Dcal = np.array([
                [x_dist, 0.0, 1.0, 0.0,
                 self.fx * x * r2, self.fx * x * r4, self.fx * x * r6,
                 self.fx * 2 * xy, self.fx * (r2 + 2 * x * x)],
                [0.0, y_dist, 0.0, 1.0,
                 self.fy * y * r2, self.fy * y * r4, self.fy * y * r6,
                 self.fy * (r2 + 2 * y * y), self.fy * 2 * xy],
            ])

        Dp = None
        if want_point:
            radial = 1 + self.k1 * r2 + self.k2 * r4 + self.k3 * r6
            # d(radial)/d(r²)
            dradial = self.k1 + 2 * self.k2 * r2 + 3 * self.k3 * r4

            dxd_dx = radial + 2 * x * x * dradial + 2 * self.p1 * y + 6 * self.p2 * x
            dxd_dy = 2 * xy * dradial + 2 * self.p1 * x + 2 * self.p2 * y
            dyd_dx = 2 * xy * dradial + 2 * self.p1 * x + 2 * self.p2 * y
            dyd_dy = radial + 2 * y * y * dradial + 6 * self.p1 * y + 2 * self.p2 * x

            Dp = np.array([
                [self.fx * dxd_dx, self.fx * dxd_dy],
                [self.fy * dyd_dx, self.fy * dyd_dy]
            ])

        return uv, Dcal, Dp

    def calibrate(
        self,
        uv: np.ndarray,
        max_iterations: int = 20,
        tolerance: float = 1e-10,
    ) -> np.ndarray:
        """
        Remove distortion from pixel coordinates (inverse distortion).

        Uses fixed-point iteration on the normalized coordinates.
        """
        x_dist = (uv[0] - self.cx) / self.fx
        y_dist = (uv[1] - self.cy) / self.fy

        x_norm, y_norm = x_dist, y_dist
        for _ in range(max_iterations):
            x_curr, y_curr = self._apply_distortion(x_norm, y_norm)

            dx = x_dist - x_curr
            dy = y_dist - y_curr

            if abs(dx) < tolerance and abs(dy) < tolerance:
                break

            x_norm += dx
            y_norm += dy

        return np.array([x_norm, y_norm])

    def __repr__(self) -> str:
        return (
            f"DistortedIntrinsics(fx={self.fx}, fy={self.fy}, cx={self.cx}, cy={self.cy}, "
            f"k1={self.k1}, k2={self.k2}, k3={self.k3}, p1={self.p1}, p2={self.p2})"
        )
