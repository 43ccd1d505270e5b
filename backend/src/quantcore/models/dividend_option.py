"""
Vanilla options on an equity paying discrete affine dividends.

Black-Scholes dynamics between dividends; each dividend pays
cash + yield * spot. The price is computed with a two step quadrature: the
spot at mid maturity is integrated with Gauss-Hermite nodes and the residual
half is priced with a displaced Black formula at each node.

Features:
- Two step quadrature pricer (flat vol or terminal vol function)
- Lehman proxy: shifted forward / strike closed form
- Implied volatility inversion of the quadrature price
- Bootstrap of a volatility term structure from option prices
"""

from typing import Callable, List, Sequence, Tuple
import logging
import math

import numpy as np

from quantcore.core.time_measure import TimeMeasure
from quantcore.errors import InvalidArgument
from quantcore.market.dividends import DividendQuote, check_dividend_dates
from quantcore.market.rates import DiscountCurve
from quantcore.maths.black import black_implied_vol, black_price
from quantcore.maths.functions import StepFunction, linear_interpolation, zero
from quantcore.maths.quadrature import gauss_hermite
from quantcore.maths.roots import MIN_RTOL, brent_with_bracket
from quantcore.maths.step_searcher import machine_equality

logger = logging.getLogger(__name__)

IMPLIED_VOL_XTOL = 1.0e-15


class AffineDivCurveUtils:
    """
    Dividend curve quantities in model time.

    Cash dividends are expressed in basis point value of the asset: each
    cash amount divided by the asset growth at its date.
    """

    def __init__(
        self,
        dividends: Sequence[DividendQuote],
        discount_curve: DiscountCurve,
        time: TimeMeasure
    ) -> None:
        dividends = check_dividend_dates(dividends)
        self.discount_curve = discount_curve

        if dividends:
            div_dates = time.t([div.date for div in dividends])
            yield_growths = np.cumprod([1.0 - div.yield_ for div in dividends])
            self._spot_yield_growth = StepFunction(div_dates, yield_growths, 1.0)
            discounted_cash = [div.cash / self.asset_growth(t) for div, t in zip(dividends, div_dates)]
            self._cash_div_bpv = StepFunction(div_dates, np.cumsum(discounted_cash), 0.0)
            self._cash_bpv_integral = self._cash_div_bpv.integral(0.0)
        else:
            self._spot_yield_growth = StepFunction([0.0], [1.0], 1.0)
            self._cash_div_bpv = StepFunction([0.0], [0.0], 0.0)
            self._cash_bpv_integral = zero()

    def asset_growth(self, t: float) -> float:
        return self._spot_yield_growth.eval(t) / self.discount_curve.zc_time(t)

    def cash_div_bpv(self, t: float) -> float:
        return self._cash_div_bpv.eval(t)

    def cash_bpv_average(self, start: float, end: float) -> float:
        """Average of the cash dividend bpv over [start, end]."""
        if end > start:
            return (self._cash_bpv_integral.eval(end) - self._cash_bpv_integral.eval(start)) / (end - start)
        return self._cash_bpv_integral.eval(start)

    def lehman_proxy(self, maturity: float, spot: float) -> Tuple[float, float]:
        """
        Effective forward and strike shift of the Lehman approximation.

        Returns:
            (effective_forward, strike_shift)
        """
        growth = self.asset_growth(maturity)
        cash_bpv_avg = self.cash_bpv_average(0.0, maturity)
        return (spot - cash_bpv_avg) * growth, growth * (self.cash_div_bpv(maturity) - cash_bpv_avg)


class _BsDivPrice:
    """Two step quadrature for one maturity and strike."""

    def __init__(
        self,
        maturity: float,
        strike: float,
        spot: float,
        div_utils: AffineDivCurveUtils,
        points: np.ndarray,
        weights: np.ndarray
    ) -> None:
        if maturity <= 0.0:
            raise InvalidArgument(f"Option maturity must be positive, got {maturity}")
        self.maturity = maturity
        self.weights = weights
        self.mid_t = 0.5 * maturity
        self.dt = maturity - self.mid_t
        self.z = points * math.sqrt(self.mid_t)

        displacement1 = div_utils.cash_bpv_average(0.0, self.mid_t)
        displacement2 = div_utils.cash_bpv_average(self.mid_t, maturity)
        growth = div_utils.asset_growth(maturity)

        self.k = strike + growth * (div_utils.cash_div_bpv(maturity) - displacement2)
        self.a = growth * (spot - displacement1)
        self.b = growth * (displacement1 - displacement2)

    def price_two_vols(self, vol_before: float, vol_after: float, q: float) -> float:
        a_cvx = self.a * math.exp(-0.5 * vol_before * vol_before * self.mid_t)
        price = 0.0
        for z, w in zip(self.z, self.weights):
            x = a_cvx * math.exp(vol_before * z) + self.b
            if x > 0.0:
                node_price = black_price(x, self.k, vol_after, self.dt, q)
            else:
                node_price = 0.0 if q > 0.0 else self.k - x
            price += w * node_price
        return price

    def price(self, vol: float, q: float) -> float:
        return self.price_two_vols(vol, vol, q)

    def price_term_vol(self, terminal_vol: Callable[[float], float], q: float) -> float:
        vol_before = terminal_vol(self.mid_t)
        vol_maturity = terminal_vol(self.maturity)
        var_after = (vol_maturity * vol_maturity * self.maturity - vol_before * vol_before * self.mid_t) / self.dt
        return self.price_two_vols(vol_before, math.sqrt(max(var_after, 0.0)), q)


class BlackScholesWithDividendOption:
    """
    Vanilla option pricer for Black-Scholes with discrete dividends.

    Prices are forward (undiscounted) prices at maturity; q is 1 for a call
    and -1 for a put.
    """

    def __init__(self, spot: float, div_utils: AffineDivCurveUtils, quadrature_points: int = 10) -> None:
        self.spot = spot
        self.div_utils = div_utils
        self.points, self.weights = gauss_hermite(quadrature_points)

    @classmethod
    def build(
        cls,
        spot: float,
        dividends: Sequence[DividendQuote],
        discount_curve: DiscountCurve,
        time: TimeMeasure,
        quadrature_points: int = 10
    ) -> "BlackScholesWithDividendOption":
        return cls(spot, AffineDivCurveUtils(dividends, discount_curve, time), quadrature_points)

    def _pricer(self, maturity: float, strike: float) -> _BsDivPrice:
        return _BsDivPrice(maturity, strike, self.spot, self.div_utils, self.points, self.weights)

    def price(self, maturity: float, strike: float, vol: float, q: float) -> float:
        return self._pricer(maturity, strike).price(vol, q)

    def price_term_vol(
        self,
        maturity: float,
        strike: float,
        terminal_vol: Callable[[float], float],
        q: float
    ) -> float:
        """Price with vol(t) the quadratic average of the instantaneous vol over [0, t]."""
        return self._pricer(maturity, strike).price_term_vol(terminal_vol, q)

    def price_lehman(self, maturity: float, strike: float, vol: float, q: float) -> float:
        effective_forward, strike_shift = self.div_utils.lehman_proxy(maturity, self.spot)
        return black_price(effective_forward, strike + strike_shift, vol, maturity, q)

    def implied_vol(self, maturity: float, strike: float, price: float, q: float) -> float:
        """
        Volatility reproducing `price` with the quadrature formula.

        The search runs in Lehman implied vol space, starting from the Lehman
        implied vol of the target price.
        """
        proxy_fwd, proxy_dk = self.div_utils.lehman_proxy(maturity, self.spot)
        target = black_implied_vol(price, proxy_fwd, strike + proxy_dk, maturity, q)
        pricer = self._pricer(maturity, strike)

        def lehman_vol_error(v: float) -> float:
            return black_implied_vol(pricer.price(v, q), proxy_fwd, strike + proxy_dk, maturity, q) - target

        error0 = lehman_vol_error(target)
        if machine_equality(target, target - error0, MIN_RTOL):
            return target
        return brent_with_bracket(lehman_vol_error, target, target - error0,
                                  xtol=IMPLIED_VOL_XTOL, rtol=MIN_RTOL, maxiter=200)

    def calibrate_vol(
        self,
        maturities: Sequence[float],
        prices: Sequence[float],
        strikes: Sequence[float],
        option_types: Sequence[float]
    ) -> List[float]:
        """
        Bootstrap terminal vols matching each option price in turn.

        Total variance is linear between calibrated maturities. When even a
        zero forward vol on a step overprices the option, the step is
        saturated at zero forward vol.
        """
        if not len(maturities) == len(prices) == len(strikes) == len(option_types):
            raise InvalidArgument("calibrate_vol: maturities, prices, strikes and types must have the same size")
        if any(m2 <= m1 for m1, m2 in zip(maturities, maturities[1:])):
            raise InvalidArgument("calibrate_vol: maturities must be strictly increasing")

        variances = [0.0] * (len(maturities) + 1)
        var_pillars = [0.0] + list(maturities)
        calib_vols: List[float] = []

        for step, (maturity, price, strike, q) in enumerate(zip(maturities, prices, strikes, option_types)):
            proxy_fwd, proxy_dk = self.div_utils.lehman_proxy(maturity, self.spot)
            target = black_implied_vol(price, proxy_fwd, strike + proxy_dk, maturity, q)
            pricer = self._pricer(maturity, strike)

            def lehman_vol_error(v: float) -> float:
                variances[1 + step] = v * v * maturity
                var_func = linear_interpolation(var_pillars, variances)
                model_price = pricer.price_term_vol(lambda t: math.sqrt(var_func.eval(t) / t), q)
                return black_implied_vol(model_price, proxy_fwd, strike + proxy_dk, maturity, q) - target

            if step == 0:
                error0 = lehman_vol_error(target)
                if machine_equality(target, target - error0, MIN_RTOL):
                    calib_vols.append(target)
                    variances[1] = target * target * maturity
                    continue
                v2 = target - error0
            else:
                prev_vol, prev_mat = calib_vols[-1], maturities[step - 1]
                vol_if_zero = math.sqrt(prev_vol * prev_vol * prev_mat / maturity)
                if lehman_vol_error(vol_if_zero) > 0.0:
                    logger.warning(
                        f"Calibration saturated at maturity {maturity}: zero forward vol already "
                        f"overprices, using vol {vol_if_zero:.6f}"
                    )
                    calib_vols.append(vol_if_zero)
                    variances[1 + step] = vol_if_zero * vol_if_zero * maturity
                    continue
                v2 = vol_if_zero

            vol = brent_with_bracket(lehman_vol_error, target, v2,
                                     xtol=IMPLIED_VOL_XTOL, rtol=MIN_RTOL, maxiter=200)
            calib_vols.append(vol)
            variances[1 + step] = vol * vol * maturity
            logger.info(f"Calibrated vol {vol:.6f} at maturity {maturity}")

        return calib_vols

