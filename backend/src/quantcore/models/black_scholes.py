"""
Black-Scholes equity model with discrete affine dividends.

The simulated factor is the asset forward to the measure horizon H,

    x(t) = S(t) * Zc_asset(t) / Zc_asset(H)

driven by a lognormal diffusion between dividend dates. At each dividend the
forward drops by the dividend value expressed in forward units and is floored
at zero.

Features:
- Time dependent volatility through the function algebra
- Sub-steps at every dividend between two simulation dates
- Brownian bridge over all sub-step dates
"""

from datetime import date
from typing import Callable, List, Sequence
import logging
import math

import numpy as np

from quantcore.core.time_measure import TimeMeasure
from quantcore.errors import UnimplementedFeature
from quantcore.market.ids import AssetId, PaymentInfo
from quantcore.market.market import Market
from quantcore.market.rates import DiscountCurve
from quantcore.maths.brownian_bridge import BrownianBridge
from quantcore.maths.functions import RrFunction
from quantcore.maths.step_searcher import machine_equality
from quantcore.models.base import EquityModel, ProcessPath, ProcessPathGenerator
from quantcore.models.dividends import DiscreteLocalDividend

logger = logging.getLogger(__name__)


class BlackScholesModel(EquityModel):
    """
    Attributes:
        asset: Modelled asset
        sigma: Instantaneous volatility function of model time
        dividends: Discrete dividends sorted by time
    """

    def __init__(
        self,
        time: TimeMeasure,
        asset: AssetId,
        sigma: RrFunction,
        dividends: Sequence[DiscreteLocalDividend] = ()
    ) -> None:
        super().__init__(time, asset)
        self.sigma = sigma
        self.dividends = tuple(sorted(dividends, key=lambda div: div.time))


def asset_financing_for_measure(model: EquityModel, market: Market, proba_measure: PaymentInfo) -> DiscountCurve:
    """Asset financing curve consistent with a risk-free measure in the asset currency."""
    if proba_measure.financing.currency != proba_measure.currency:
        raise UnimplementedFeature(
            f"Measure financed on {proba_measure.financing} but paid in {proba_measure.currency}"
        )
    if proba_measure.currency != model.asset.currency:
        raise UnimplementedFeature(
            f"Quanto simulation of {model.asset} under a {proba_measure.currency} measure"
        )
    cash_curve = market.discount_curve(proba_measure.financing)
    return market.asset_market(model.asset).asset_financing_curve(cash_curve)


class BlackScholesModelPathGenerator(ProcessPathGenerator):
    """Forward paths of a single equity with discrete dividends."""

    def __init__(
        self,
        model: BlackScholesModel,
        dates: Sequence[float],
        asset_financing: DiscountCurve,
        horizon: float,
        spot: float
    ) -> None:
        dates = np.asarray(dates, dtype=float)
        variance = (model.sigma * model.sigma).integral(0.0)
        zc_horizon = asset_financing.zc_time(horizon)

        steps: List[List[DiscreteLocalDividend]] = []
        start = 0.0
        for end in dates:
            step = [div for div in model.dividends if start < div.time <= end]
            if not step or not machine_equality(step[-1].time, end):
                step.append(DiscreteLocalDividend.zero_div(float(end)))
            steps.append(step)
            start = end

        sub_dates = []
        vols, var_drifts, discounts = [], [], []
        previous = 0.0
        for step in steps:
            for div in step:
                length = div.time - previous
                dvar = variance.eval(div.time) - variance.eval(previous)
                vols.append(math.sqrt(max(dvar, 0.0) / length) if length > 0.0 else 0.0)
                var_drifts.append(-0.5 * dvar)
                discounts.append(zc_horizon / asset_financing.zc_time(div.time))
                sub_dates.append(div.time)
                previous = div.time

        bridge = BrownianBridge.create(sub_dates)
        super().__init__(dates, process_dim=1, random_dim=bridge.gaussian_size(1))
        self.model = model
        self.bridge = bridge
        self.steps = steps
        self.fwd0 = spot / zc_horizon
        self._sub_dates = np.array(sub_dates)
        self._vols = np.array(vols)
        self._var_drifts = np.array(var_drifts)
        self._discounts = np.array(discounts)

        logger.debug(f"Black-Scholes generator for {model.asset}: {len(dates)} dates, "
                     f"{len(sub_dates)} sub-steps")

    @classmethod
    def create(
        cls,
        model: BlackScholesModel,
        market: Market,
        simulated_dates: Sequence[date],
        proba_measure: PaymentInfo
    ) -> "BlackScholesModelPathGenerator":
        asset_financing = asset_financing_for_measure(model, market, proba_measure)
        spot = market.asset_market(model.asset).spot
        return cls(model, model.time.t(simulated_dates), asset_financing,
                   model.time.t(proba_measure.date), spot)

    @property
    def all_simulated_dates(self) -> np.ndarray:
        return self._sub_dates

    def path(self, gaussians: np.ndarray) -> ProcessPath:
        gaussians = self._check_gaussians(gaussians)
        increments = self.bridge.path_increments(gaussians, 1)[..., 0]

        values = np.empty((gaussians.shape[0], len(self.dates), 1))
        fwd = np.full(gaussians.shape[0], self.fwd0)
        sub_index = 0
        for i, step in enumerate(self.steps):
            for div in step:
                vol = self._vols[sub_index]
                disc = self._discounts[sub_index]
                fwd_before = fwd * np.exp(vol * increments[:, sub_index] + self._var_drifts[sub_index])
                fwd = np.maximum(0.0, fwd_before - div.value(fwd_before * disc) / disc)
                sub_index += 1
            values[:, i, 0] = fwd
        return ProcessPath(self.dates, 1, values)


class BlackScholesSpotRepresentation:
    """Spot as a function of the simulated forward: S(t) = x * Zc_asset(H) / Zc_asset(t)."""

    def __init__(self, time: TimeMeasure, asset_financing: DiscountCurve, horizon: date) -> None:
        self.time = time
        self.asset_financing = asset_financing
        self._zc_horizon = asset_financing.zc(horizon)

    def spot(self, d: date) -> Callable[[np.ndarray], np.ndarray]:
        ratio = self._zc_horizon / self.asset_financing.zc(d)

        def spot_function(factors: np.ndarray) -> np.ndarray:
            return ratio * factors[:, 0]

        return spot_function
