"""Gauss-Hermite quadrature for expectations under the standard normal law."""

from functools import lru_cache
from typing import Tuple

import numpy as np
from numpy.polynomial.hermite_e import hermegauss

from quantcore.errors import ConvergenceError, InvalidArgument

_SQRT_TWO_PI = float(np.sqrt(2.0 * np.pi))


@lru_cache(maxsize=32)
def _nodes(n: int) -> Tuple[np.ndarray, np.ndarray]:
    points, weights = hermegauss(n)
    weights = weights / _SQRT_TWO_PI
    if not np.all(np.isfinite(points)) or abs(weights.sum() - 1.0) > 1e-10:
        raise ConvergenceError(f"Gauss-Hermite quadrature failed for {n} points")
    points.setflags(write=False)
    weights.setflags(write=False)
    return points, weights


def gauss_hermite(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Nodes and weights such that sum(w * f(x)) approximates E[f(Z)], Z ~ N(0, 1).

    Args:
        n: Number of quadrature points

    Returns:
        (points, weights), both read-only arrays of length n; weights sum to 1
    """
    if n <= 0:
        raise InvalidArgument(f"Gauss-Hermite: number of points must be positive, got {n}")
    return _nodes(int(n))
