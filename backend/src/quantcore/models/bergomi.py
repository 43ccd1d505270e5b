"""
Two factor Bergomi forward variance model.

Forward variances are driven by two correlated OU factors with mean
reversions k1 and k2, mixed with weights (1 - theta, theta) and scaled by
the vol of vol nu. Only the analytics used for calibration and risk are
provided; path simulation is not supported.
"""

from typing import Sequence
import math

import numpy as np

from quantcore.core.time_measure import TimeMeasure
from quantcore.market.ids import AssetId
from quantcore.maths.functions import RrFunction, exponential, linear_interpolation
from quantcore.maths.step_searcher import MACHINE_EPSILON, equal_zero
from quantcore.models.base import EquityModel
from quantcore.models.dividends import DiscreteLocalDividend


class Bergomi2FModel(EquityModel):
    """
    Attributes:
        xi: Initial forward variance curve
        k1, k2: Factor mean reversions
        theta: Weight of the second factor
        nu: Vol of vol
        rho_xy: Correlation between the two variance factors
        rho_sx, rho_sy: Spot / factor correlations
    """

    def __init__(
        self,
        time: TimeMeasure,
        asset: AssetId,
        dividends: Sequence[DiscreteLocalDividend],
        xi: RrFunction,
        k1: float,
        k2: float,
        theta: float,
        nu: float,
        rho_xy: float,
        rho_sx: float,
        rho_sy: float
    ) -> None:
        super().__init__(time, asset)
        self.dividends = tuple(dividends)
        self.xi = xi
        self.k1 = k1
        self.k2 = k2
        self.theta = theta
        self.nu = nu
        self.rho_xy = rho_xy
        self.rho_sx = rho_sx
        self.rho_sy = rho_sy


def build_xi(maturities: Sequence[float], vols: Sequence[float]) -> RrFunction:
    """
    Forward variance curve from term volatilities.

    Total variances vol^2 * T are interpolated linearly in T (starting from 0
    at T = 0, flat variance before); xi is the derivative, a step function.
    """
    mat_vars = sorted((float(t), v * v * t) for t, v in zip(maturities, vols))
    if not equal_zero(mat_vars[0][0]):
        mat_vars.insert(0, (0.0, 0.0))
    mats = [m for m, _ in mat_vars]
    variances = [v for _, v in mat_vars]

    right_slope = 0.0
    if len(mats) > 1:
        right_slope = (variances[-1] - variances[-2]) / (mats[-1] - mats[-2])
    return linear_interpolation(mats, variances, 0.0, right_slope).derivative()


def _double_exp_int(k: float, t: float) -> float:
    """(k t - (1 - exp(-k t))) / (k t)^2, set to 1 for vanishing k t."""
    kt = k * t
    if abs(kt * kt) > MACHINE_EPSILON:
        return (kt - (1.0 - math.exp(-kt))) / (kt * kt)
    return 1.0


class Bergomi2FUtils:
    """Closed-form Bergomi 2F quantities."""

    def __init__(self, model: Bergomi2FModel) -> None:
        self.model = model
        self.correlation = np.array([[1.0, model.rho_xy], [model.rho_xy, 1.0]])
        theta_vect = np.array([1.0 - model.theta, model.theta])
        self.alpha = 1.0 / math.sqrt(theta_vect @ self.correlation @ theta_vect)

    def _var_swap_deformations(self, starts: Sequence[float], ends: Sequence[float]) -> np.ndarray:
        model = self.model
        init_curve = model.xi.integral(0.0)
        factor1 = (model.xi * exponential(-model.k1)).integral(0.0)
        factor2 = (model.xi * exponential(-model.k2)).integral(0.0)

        deformations = np.empty((len(starts), 2))
        for i, (start, end) in enumerate(zip(starts, ends)):
            init_fwd_variance = init_curve.eval(end) - init_curve.eval(start)
            def1 = factor1.eval(end) - factor1.eval(start)
            def2 = factor2.eval(end) - factor2.eval(start)
            scale = model.nu * self.alpha / init_fwd_variance
            deformations[i] = [(1.0 - model.theta) * def1 * scale, model.theta * def2 * scale]
        return deformations

    def fwd_vol_instant_vol(self, starts: Sequence[float], ends: Sequence[float]) -> np.ndarray:
        """Instantaneous volatility of the forward variance swaps over [start, end]."""
        deformations = self._var_swap_deformations(starts, ends)
        return np.sqrt(np.einsum("ni,ij,nj->n", deformations, self.correlation, deformations))

    def fwd_vol_instant_covariance(self, starts: Sequence[float], ends: Sequence[float]) -> np.ndarray:
        """Instantaneous covariance matrix of the forward variance swaps."""
        deformations = self._var_swap_deformations(starts, ends)
        return deformations @ self.correlation @ deformations.T

    def atmf_skew_approx(self, maturities: Sequence[float]) -> np.ndarray:
        """First order at-the-money-forward skew for each maturity."""
        model = self.model
        coeff_x = model.nu * self.alpha * (1.0 - model.theta) * model.rho_sx
        coeff_y = model.nu * self.alpha * model.theta * model.rho_sy
        return np.array([
            coeff_x * _double_exp_int(model.k1, t) + coeff_y * _double_exp_int(model.k2, t)
            for t in maturities
        ])
