"""
Black (lognormal forward) option formulae.

Features:
- Undiscounted call / put price, accurate far out of the money
- Implied volatility by bracketing + Brent on the total standard deviation
"""

import math
import logging

from scipy.special import log_ndtr

from quantcore.errors import ConvergenceError, InvalidArgument
from quantcore.maths.roots import MIN_RTOL, brent_solve

logger = logging.getLogger(__name__)


def _intrinsic(forward: float, strike: float, q: float) -> float:
    return max(q * (forward - strike), 0.0)


def _otm_price(forward: float, strike: float, stddev: float, q: float) -> float:
    """
    Out of the money option value for a total standard deviation.

    Computed as big_leg * (1 - small_leg / big_leg) in log space.
    """
    if stddev <= 0.0:
        return 0.0
    x = math.log(forward / strike)
    d1 = x / stddev + 0.5 * stddev
    d2 = d1 - stddev
    if q > 0.0:
        log_big = math.log(forward) + float(log_ndtr(d1))
        log_small = math.log(strike) + float(log_ndtr(d2))
    else:
        log_big = math.log(strike) + float(log_ndtr(-d2))
        log_small = math.log(forward) + float(log_ndtr(-d1))
    ratio = log_small - log_big
    if ratio >= 0.0:
        return 0.0
    return math.exp(log_big) * -math.expm1(ratio)


def _check(forward: float, strike: float, q: float) -> None:
    if forward <= 0.0 or strike <= 0.0:
        raise InvalidArgument(f"Black formula requires positive forward and strike, got {forward}, {strike}")
    if q not in (1.0, -1.0):
        raise InvalidArgument(f"Option type must be 1 (call) or -1 (put), got {q}")


def black_price(forward: float, strike: float, vol: float, maturity: float, q: float) -> float:
    """
    Undiscounted Black price.

    Args:
        forward: Forward of the underlying
        strike: Option strike
        vol: Lognormal volatility
        maturity: Time to expiry in years
        q: 1 for a call, -1 for a put

    Returns:
        Option value in forward terms
    """
    _check(forward, strike, q)
    stddev = vol * math.sqrt(max(maturity, 0.0))
    intrinsic = _intrinsic(forward, strike, q)
    # In the money options are priced through parity on the out of the money side
    otm_q = -q if q * (forward - strike) > 0.0 else q
    return intrinsic + _otm_price(forward, strike, stddev, otm_q)


def black_implied_vol(price: float, forward: float, strike: float, maturity: float, q: float) -> float:
    """
    Black volatility matching an undiscounted option price.

    Returns 0 when the price carries no time value.

    Raises:
        InvalidArgument: price below intrinsic or above the no-arbitrage bound
        ConvergenceError: if the root can not be bracketed
    """
    _check(forward, strike, q)
    if maturity <= 0.0:
        raise InvalidArgument(f"Implied vol requires a positive maturity, got {maturity}")
    intrinsic = _intrinsic(forward, strike, q)
    max_price = forward if q > 0.0 else strike
    if price >= max_price:
        raise InvalidArgument(f"Price {price} above maximum {max_price}")
    if price < intrinsic * (1.0 - MIN_RTOL):
        raise InvalidArgument(f"Price {price} below intrinsic {intrinsic}")

    otm_q = -q if q * (forward - strike) > 0.0 else q
    target = price - intrinsic
    if target <= 0.0:
        return 0.0

    def error(stddev: float) -> float:
        return _otm_price(forward, strike, stddev, otm_q) - target

    lo, hi = 0.5, 0.5
    while error(hi) < 0.0:
        hi *= 2.0
        if hi > 1e3:
            raise ConvergenceError(f"Implied vol: price {price} not reachable")
    while error(lo) > 0.0:
        lo *= 0.5
        if lo < 1e-12:
            return lo / math.sqrt(maturity)
    if lo == hi:
        lo = 0.5 * hi

    stddev = brent_solve(error, lo, hi, xtol=1e-300, rtol=MIN_RTOL, maxiter=200)
    return stddev / math.sqrt(maturity)
