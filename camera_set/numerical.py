"""
Numerical differentiation on manifolds.

Used to check analytic projection Jacobians against central differences.
"""

import numpy as np
from typing import Callable, Optional


def _vector_retract(x: np.ndarray, delta: np.ndarray) -> np.ndarray:
    return np.asarray(x, dtype=np.float64) + delta


def numerical_derivative(
    f: Callable,
    x,
    dim: Optional[int] = None,
    retract: Optional[Callable] = None,
    delta: float = 1e-5,
) -> np.ndarray:
    """
    Central difference Jacobian of f at x.

    Args:
        f: Function returning a vector
        x: Evaluation point; a vector, or any value with a retract(xi) method
        dim: Tangent dimension of x (defaults to x.dim, or len(x) for vectors)
        retract: retract(x, xi) -> value; defaults to x.retract or vector addition
        delta: Step size

    Returns:
        Jacobian of shape (len(f(x)), dim)
    """
    if retract is None:
        if hasattr(x, "retract"):
            retract = lambda value, xi: value.retract(xi)
        else:
            retract = _vector_retract
    if dim is None:
        dim = x.dim if hasattr(x, "dim") else len(x)

    m = len(np.atleast_1d(f(x)))
    J = np.zeros((m, dim))
    for j in range(dim):
        step = np.zeros(dim)
        step[j] = delta
        f_plus = np.atleast_1d(f(retract(x, step)))
        f_minus = np.atleast_1d(f(retract(x, -step)))
        J[:, j] = (f_plus - f_minus) / (2 * delta)

    return J
