"""
One dimensional root finding.

Outward bracket expansion followed by scipy's Brent (hyperbolic) solver.
"""

from typing import Callable, Tuple
import logging

from scipy.optimize import brenth

from quantcore.errors import ConvergenceError, InvalidArgument
from quantcore.maths.step_searcher import MACHINE_EPSILON, machine_equality

logger = logging.getLogger(__name__)

BRACKET_FACTOR = 1.6
BRACKET_TRIES = 50

# Smallest relative tolerance accepted by scipy.optimize.brenth
MIN_RTOL = 4.0 * MACHINE_EPSILON


def bracket(
    f: Callable[[float], float],
    x1: float,
    x2: float
) -> Tuple[float, float, float, float]:
    """
    Expand [x1, x2] geometrically until f changes sign.

    Returns:
        (xa, fa, xb, fb) with fa * fb <= 0

    Raises:
        ConvergenceError: if no sign change is found after BRACKET_TRIES steps
    """
    if machine_equality(x1, x2):
        raise InvalidArgument(f"bracket: bad initial range [{x1}, {x2}]")

    xa, xb = x1, x2
    fa, fb = f(xa), f(xb)
    last, last_f = float("nan"), float("nan")
    for _ in range(BRACKET_TRIES):
        if fa * fb <= 0.0:
            # Tighten with the previous point when it lies inside the bracket
            if last_f * fa < 0.0:
                xb, fb = last, last_f
            elif last_f * fb < 0.0:
                xa, fa = last, last_f
            logger.debug(f"Root bracketed in [{xa}, {xb}]")
            return xa, fa, xb, fb
        if abs(fa) < abs(fb):
            last, last_f = xa, fa
            xa += BRACKET_FACTOR * (xa - xb)
            fa = f(xa)
        else:
            last, last_f = xb, fb
            xb += BRACKET_FACTOR * (xb - xa)
            fb = f(xb)
    raise ConvergenceError(f"Failed to bracket root from [{x1}, {x2}]")


def brent_solve(
    f: Callable[[float], float],
    xa: float,
    xb: float,
    xtol: float = 1e-12,
    rtol: float = MIN_RTOL,
    maxiter: int = 100
) -> float:
    """Root of f inside a sign-changing bracket [xa, xb]."""
    lo, hi = min(xa, xb), max(xa, xb)
    try:
        root, info = brenth(f, lo, hi, xtol=xtol, rtol=max(rtol, MIN_RTOL),
                            maxiter=maxiter, full_output=True, disp=False)
    except ValueError as e:
        raise ConvergenceError(f"Brent solver failed on [{lo}, {hi}]: {e}") from e
    if not info.converged:
        raise ConvergenceError(f"Brent solver did not converge on [{lo}, {hi}]: {info.flag}")
    return float(root)


def brent_with_bracket(
    f: Callable[[float], float],
    x1: float,
    x2: float,
    xtol: float = 1e-12,
    rtol: float = MIN_RTOL,
    maxiter: int = 100
) -> float:
    """Bracket from the initial guesses x1, x2 then solve."""
    xa, fa, xb, fb = bracket(f, x1, x2)
    if fa == 0.0:
        return xa
    if fb == 0.0:
        return xb
    return brent_solve(f, xa, xb, xtol, rtol, maxiter)
