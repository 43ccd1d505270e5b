"""
Hull-White one factor short rate model.

The short rate is r(t) = f(0, t) + x(t) with x an Ornstein-Uhlenbeck factor
started at zero. Zero-coupon bonds are exponential-affine in x:

    Zc(t, T) = Zc(0, T) / Zc(0, t) * exp(-0.5 c^2 V(t) + c x(t))

with c = zc_rate_coeff(T - t, k) and V the integrated factor variance.

Features:
- Forward measure drift for simulation under a terminal zero-coupon numeraire
- Exact OU discretisation through the shared generator
- Zero-coupon representation as a function of the simulated factor
"""

from datetime import date
from typing import Callable, Sequence
import logging
import math

import numpy as np

from quantcore.core.time_measure import TimeMeasure
from quantcore.errors import UnimplementedFeature
from quantcore.market.ids import FinancingId, PaymentInfo
from quantcore.maths.functions import RrFunction, affine, constant, exponential
from quantcore.maths.step_searcher import MACHINE_EPSILON, machine_equality
from quantcore.models.base import Model, ProcessPath, ProcessPathGenerator
from quantcore.models.ornstein_uhlenbeck import (
    OrnsteinUhlenbeck,
    OrnsteinUhlenbeck1DGenerator,
    integrated_variance,
)

logger = logging.getLogger(__name__)


def zc_rate_coeff_function(maturity: float, mean_reversion: float) -> RrFunction:
    """t -> -(1 - exp(-k (T - t))) / k, the zero-coupon log sensitivity to x."""
    k = mean_reversion
    if machine_equality(1.0, math.exp(-k * maturity)):
        return affine(1.0, -maturity)
    return exponential(k, math.exp(-k * maturity) / k) - constant(1.0 / k)


def zc_rate_coeff(duration: float, mean_reversion: float) -> float:
    """-(1 - exp(-k d)) / k, expanded to second order for small k d."""
    kd = duration * mean_reversion
    if kd * kd < 6.0 * MACHINE_EPSILON:
        return -duration * (1.0 - 0.5 * kd)
    return -(1.0 - math.exp(-kd)) / mean_reversion


class Hw1Model(Model):
    """
    Hull-White 1F model of one currency.

    Attributes:
        currency: Modelled currency, also the pivot currency
        mean_reversion: Constant mean reversion k
        sigma: Short rate volatility function of model time
    """

    def __init__(self, time: TimeMeasure, currency: str, mean_reversion: float, sigma: RrFunction) -> None:
        super().__init__(time, currency)
        self.currency = currency
        self.mean_reversion = float(mean_reversion)
        self.sigma = sigma

    def drift_term(self) -> RrFunction:
        """Variance of the factor under the risk-neutral measure, V(t)."""
        return integrated_variance(self.sigma, self.mean_reversion)


class Hw1ModelPathGenerator(ProcessPathGenerator):
    """Factor paths under the forward measure of `measure_date`."""

    def __init__(self, model: Hw1Model, dates: Sequence[float], measure_date: float) -> None:
        k = model.mean_reversion
        drift = model.drift_term()
        if measure_date > 0.0:
            sigma2 = model.sigma * model.sigma
            drift = drift + sigma2 * zc_rate_coeff_function(measure_date, k)

        generator = OrnsteinUhlenbeck1DGenerator(OrnsteinUhlenbeck(k, drift, model.sigma, 0.0), dates)
        super().__init__(generator.dates, generator.process_dim, generator.random_dim)
        self._generator = generator

    @classmethod
    def create(
        cls,
        model: Hw1Model,
        simulated_dates: Sequence[date],
        proba_measure: PaymentInfo
    ) -> "Hw1ModelPathGenerator":
        if proba_measure.financing != FinancingId.risk_free(model.currency):
            raise UnimplementedFeature(
                f"Hw1 simulation under {proba_measure.financing} numeraire for a {model.currency} model"
            )
        dates = model.time.t(simulated_dates)
        return cls(model, dates, model.time.t(proba_measure.date))

    def path(self, gaussians: np.ndarray) -> ProcessPath:
        return self._generator.path(gaussians)


class Hw1ZcRepresentation:
    """Zero-coupon prices as functions of the simulated HW factor."""

    def __init__(self, model: Hw1Model) -> None:
        self.model = model
        self._drift_term = model.drift_term()

    def zc(self, d: date, maturity: date, fwd_zc: float) -> Callable[[np.ndarray], np.ndarray]:
        time = self.model.time
        t = time.t(d)
        coeff = zc_rate_coeff(time.t(maturity) - t, self.model.mean_reversion)
        log_cvx = -0.5 * coeff * coeff * self._drift_term.eval(t)

        def zc_function(factors: np.ndarray) -> np.ndarray:
            return fwd_zc * np.exp(log_cvx + coeff * factors[:, 0])

        return zc_function
