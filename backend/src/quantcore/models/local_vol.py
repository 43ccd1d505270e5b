"""
Local volatility equity model.

Holds the implied volatility matrix the local volatility is derived from, and
the Dupire local variance of the interpolated total variance surface.
Path simulation is not available for this model.
"""

from typing import List, Sequence, Tuple
import math

import numpy as np

from quantcore.core.time_measure import TimeMeasure
from quantcore.errors import InvalidArgument, UnimplementedFeature
from quantcore.market.ids import AssetId
from quantcore.maths.functions import (
    RrFunction,
    constant,
    cubic_spline,
    linear_combination,
    linear_interpolation,
    zero,
)
from quantcore.maths.step_searcher import StepSearcher
from quantcore.models.base import EquityModel
from quantcore.models.dividends import DiscreteLocalDividend


class LocalVolatilityModel(EquityModel):
    """
    Attributes:
        maturities: Model times of the volatility matrix rows
        strikes: Strikes of the matrix columns
        vols: Implied volatilities [n_maturities, n_strikes]
        dividends: Discrete dividends
    """

    def __init__(
        self,
        time: TimeMeasure,
        asset: AssetId,
        maturities: Sequence[float],
        strikes: Sequence[float],
        vols: Sequence[Sequence[float]],
        dividends: Sequence[DiscreteLocalDividend] = ()
    ) -> None:
        super().__init__(time, asset)
        self.maturities = StepSearcher(maturities).pillars
        self.strikes = StepSearcher(strikes).pillars
        self.vols = np.asarray(vols, dtype=float)
        if self.vols.shape != (len(self.maturities), len(self.strikes)):
            raise InvalidArgument(
                f"LocalVolatilityModel: vol matrix shaped {self.vols.shape} for "
                f"{len(self.maturities)} maturities and {len(self.strikes)} strikes"
            )
        if np.any(self.maturities <= 0.0):
            raise InvalidArgument("LocalVolatilityModel: maturities must be positive")
        self.dividends = tuple(dividends)

    def total_variance(self, strike: float) -> RrFunction:
        """Implied total variance at a fixed strike, linear in maturity."""
        column = np.array([np.interp(strike, self.strikes, row) for row in self.vols])
        variances = column * column * self.maturities
        return linear_interpolation(np.concatenate(([0.0], self.maturities)),
                                    np.concatenate(([0.0], variances)),
                                    0.0, variances[-1] / self.maturities[-1])

    def variance_interpoler(self, forwards: Sequence[float]) -> "VarianceInterpoler":
        """
        Total variance surface in log-moneyness y = log(strike / forward).

        Args:
            forwards: Asset forward at each matrix maturity
        """
        forwards = np.asarray(forwards, dtype=float)
        if forwards.shape != self.maturities.shape or np.any(forwards <= 0.0):
            raise InvalidArgument("LocalVolatilityModel: one positive forward per maturity required")

        pillar_variances: List[RrFunction] = []
        for t, forward, row in zip(self.maturities, forwards, self.vols):
            variances = row * row * t
            if len(self.strikes) == 1:
                pillar_variances.append(constant(variances[0]))
            else:
                moneyness = np.log(self.strikes / forward)
                pillar_variances.append(cubic_spline(moneyness, variances, 0.0, 0.0))
        return VarianceInterpoler(self.maturities, pillar_variances)


class VarianceInterpoler:
    """
    Total implied variance v(t, y), linear in t between maturity pillars.

    Before the first pillar and after the last one the variance is
    proportional to t (constant implied vol).
    """

    def __init__(self, maturities: Sequence[float], pillar_variances: Sequence[RrFunction]) -> None:
        self._searcher = StepSearcher(maturities)
        self.maturities = self._searcher.pillars
        if len(pillar_variances) != len(self.maturities):
            raise InvalidArgument(
                f"VarianceInterpoler: {len(pillar_variances)} variances for {len(self.maturities)} maturities"
            )
        if np.any(self.maturities <= 0.0):
            raise InvalidArgument("VarianceInterpoler: maturities must be positive")
        self.pillar_variances = tuple(pillar_variances)

    def eval(self, t: float, y: float) -> float:
        idx = self._searcher.locate_left_index(t)
        if idx < 0:
            return t * self.pillar_variances[0].eval(y) / self.maturities[0]
        if idx == len(self.maturities) - 1:
            return t * self.pillar_variances[idx].eval(y) / self.maturities[idx]
        w = (t - self.maturities[idx]) / (self.maturities[idx + 1] - self.maturities[idx])
        return (1.0 - w) * self.pillar_variances[idx].eval(y) + w * self.pillar_variances[idx + 1].eval(y)

    def local_variance(self) -> "LocalVariance":
        return LocalVariance.build(self.maturities, self.pillar_variances)


class _LocalVarianceSlice(RrFunction):
    """
    Dupire local variance at a fixed time, as a function of log-moneyness.

    Built from v, dv/dy, d2v/dy2 (as weighted combinations of pillar
    functions) and dv/dt.
    """

    def __init__(
        self,
        v: RrFunction,
        dv_dy: RrFunction,
        d2v_dy2: RrFunction,
        dv_dt: RrFunction
    ) -> None:
        self.v = v
        self.dv_dy = dv_dy
        self.d2v_dy2 = d2v_dy2
        self.dv_dt = dv_dt

    def eval(self, x: float) -> float:
        return _dupire(x, self.v.eval(x), self.dv_dy.eval(x), self.d2v_dy2.eval(x), self.dv_dt.eval(x))

    def derivative(self) -> RrFunction:
        raise UnimplementedFeature("Derivative of a local variance slice")

    def integral(self, base_point: float) -> RrFunction:
        raise UnimplementedFeature("Integral of a local variance slice")


class _ShortLocalVariance(RrFunction):
    """Local variance limit at t = 0: sigma2 / (y * sigma2' / (2 sigma2) - 1)^2."""

    def __init__(self, sigma2: RrFunction) -> None:
        self.sigma2 = sigma2
        self.d_sigma2 = sigma2.derivative()

    def eval(self, x: float) -> float:
        sigma2 = self.sigma2.eval(x)
        denominator = 0.5 * x * self.d_sigma2.eval(x) / sigma2 - 1.0
        return sigma2 / (denominator * denominator)

    def derivative(self) -> RrFunction:
        raise UnimplementedFeature("Derivative of a local variance slice")

    def integral(self, base_point: float) -> RrFunction:
        raise UnimplementedFeature("Integral of a local variance slice")


def _dupire(y: float, v: float, dv_dy: float, d2v_dy2: float, dv_dt: float) -> float:
    #                                   dv/dt
    # ------------------------------------------------------------------------
    # (y v'/(2 v) - 1)^2 + v''/2 - (1/4 + 1/v) v'^2 / 4
    denominator = 0.5 * y * dv_dy / v - 1.0
    denominator = denominator * denominator + 0.5 * d2v_dy2 - 0.25 * (0.25 + 1.0 / v) * dv_dy * dv_dy
    return dv_dt / denominator


# Two point Gauss-Legendre nodes on [0, 1]
_GAUSS_LEGENDRE_NODES = (0.5 - 0.5 / math.sqrt(3.0), 0.5 + 0.5 / math.sqrt(3.0))
_SHORT_TIME = 1.0e-10


class LocalVariance:
    """
    Dupire local variance of a total variance surface v(t, y).

    The surface is linear in t between maturity pillars, so dv/dt is
    constant on each maturity step.
    """

    def __init__(
        self,
        maturities: np.ndarray,
        variances: Sequence[RrFunction],
        dv_dys: Sequence[RrFunction],
        d2v_dy2s: Sequence[RrFunction],
        dv_dts: Sequence[RrFunction]
    ) -> None:
        self.maturities = maturities
        self._searcher = StepSearcher(maturities)
        self._variances = tuple(variances)
        self._dv_dys = tuple(dv_dys)
        self._d2v_dy2s = tuple(d2v_dy2s)
        self._dv_dts = tuple(dv_dts)
        self._short = _ShortLocalVariance(variances[0] / maturities[0])

    @classmethod
    def build(cls, maturities: Sequence[float], pillar_variances: Sequence[RrFunction]) -> "LocalVariance":
        maturities = StepSearcher(maturities).pillars
        if np.any(maturities <= 0.0):
            raise InvalidArgument("LocalVariance: maturities must be positive")
        n = len(maturities)
        dv_dts = []
        for i in range(n):
            if i == n - 1:
                dv_dts.append(pillar_variances[i] / maturities[i])
            else:
                step = maturities[i + 1] - maturities[i]
                dv_dts.append((pillar_variances[i + 1] - pillar_variances[i]) / step)
        dv_dys = [v.derivative() for v in pillar_variances]
        d2v_dy2s = [dv.derivative() for dv in dv_dys]
        return cls(maturities, pillar_variances, dv_dys, d2v_dy2s, dv_dts)

    def _weights(self, t: float) -> List[Tuple[int, float]]:
        """Pillar indexes and weights interpolating the surface at t."""
        idx = self._searcher.locate_left_index(t)
        if idx < 0:
            return [(0, t / self.maturities[0])]
        if idx == len(self.maturities) - 1:
            return [(idx, t / self.maturities[idx])]
        w = (t - self.maturities[idx]) / (self.maturities[idx + 1] - self.maturities[idx])
        return [(idx, 1.0 - w), (idx + 1, w)]

    def _dv_dt(self, t: float) -> RrFunction:
        idx = self._searcher.locate_left_index(t)
        if idx < 0:
            return self._variances[0] / self.maturities[0]
        return self._dv_dts[idx]

    def eval(self, t: float, y: float) -> float:
        """Local variance at time t and log-moneyness y."""
        if abs(t / self.maturities[0]) < _SHORT_TIME:
            return self._short.eval(y)
        weights = self._weights(t)
        v = sum(w * self._variances[i].eval(y) for i, w in weights)
        dv_dy = sum(w * self._dv_dys[i].eval(y) for i, w in weights)
        d2v_dy2 = sum(w * self._d2v_dy2s[i].eval(y) for i, w in weights)
        return _dupire(y, v, dv_dy, d2v_dy2, self._dv_dt(t).eval(y))

    def time_slice(self, t: float) -> RrFunction:
        """Local variance at time t as a function of log-moneyness."""
        if abs(t / self.maturities[0]) < _SHORT_TIME:
            return self._short
        weights = self._weights(t)
        indexes = [i for i, _ in weights]
        coefficients = [w for _, w in weights]
        return _LocalVarianceSlice(
            linear_combination(coefficients, [self._variances[i] for i in indexes]),
            linear_combination(coefficients, [self._dv_dys[i] for i in indexes]),
            linear_combination(coefficients, [self._d2v_dy2s[i] for i in indexes]),
            self._dv_dt(t),
        )

    def _step_integral(self, start: float, end: float) -> RrFunction:
        dt = end - start
        if dt <= 0.0:
            return zero()
        slices = [self.time_slice(start + dt * node) for node in _GAUSS_LEGENDRE_NODES]
        return linear_combination([0.5 * dt, 0.5 * dt], slices)

    def time_average(self, start: float, end: float) -> RrFunction:
        """
        Local variance averaged over [start, end], as a function of log-moneyness.

        Each maturity step is integrated with a two point Gauss-Legendre rule.
        """
        if start >= end:
            raise InvalidArgument(f"LocalVariance.time_average: start {start} must be lower than end {end}")
        start_idx = self._searcher.locate_left_index(start)
        end_idx = self._searcher.locate_left_index(end)
        if start_idx == end_idx:
            return self._step_integral(start, end) / (end - start)

        steps = [self._step_integral(start, self.maturities[start_idx + 1])]
        steps += [self._step_integral(self.maturities[i], self.maturities[i + 1])
                  for i in range(start_idx + 1, end_idx)]
        steps.append(self._step_integral(self.maturities[end_idx], end))
        return linear_combination([1.0 / (end - start)] * len(steps), steps)
