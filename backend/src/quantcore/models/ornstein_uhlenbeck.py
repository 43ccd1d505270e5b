"""
Ornstein-Uhlenbeck process with time dependent drift and volatility.

    dX = (drift(t) - k X) dt + vol(t) dW

Integrated moments are built with the function algebra, so the
discretisation on simulation dates is exact.
"""

from typing import Sequence
import logging
import math

import numpy as np

from quantcore.maths.brownian_bridge import BrownianBridge
from quantcore.maths.functions import RrFunction, exponential
from quantcore.models.base import ProcessPath, ProcessPathGenerator

logger = logging.getLogger(__name__)


def integrated_drift(drift: RrFunction, mean_reversion: float, start: float) -> RrFunction:
    """t -> integral over [start, t] of exp(-k (t - s)) drift(s) ds."""
    return (drift * exponential(mean_reversion)).integral(start) * exponential(-mean_reversion)


def integrated_covariance(
    covariance: RrFunction,
    mean_reversion1: float,
    mean_reversion2: float,
    start: float = 0.0
) -> RrFunction:
    """t -> integral over [start, t] of exp(-(k1 + k2) (t - s)) cov(s) ds."""
    k = mean_reversion1 + mean_reversion2
    return (covariance * exponential(k)).integral(start) * exponential(-k)


def integrated_variance(volatility: RrFunction, mean_reversion: float, start: float = 0.0) -> RrFunction:
    return integrated_covariance(volatility * volatility, mean_reversion, mean_reversion, start)


class OrnsteinUhlenbeck:
    """
    One dimensional OU process description.

    Attributes:
        mean_reversion: Constant mean reversion speed k
        drift: Instantaneous drift function
        volatility: Instantaneous volatility function
        value0: Initial value
    """

    def __init__(
        self,
        mean_reversion: float,
        drift: RrFunction,
        volatility: RrFunction,
        value0: float = 0.0
    ) -> None:
        self.mean_reversion = float(mean_reversion)
        self.drift = drift
        self.volatility = volatility
        self.value0 = float(value0)


class OrnsteinUhlenbeck1DGenerator(ProcessPathGenerator):
    """
    Exact OU discretisation driven by Brownian bridge increments.

    On each step [t_prev, t] (t_prev = 0 for the first date):
        x <- exp(-k dt) x + drift_i + vol_i dW
    with vol_i^2 dt equal to the exact conditional variance.
    """

    def __init__(self, process: OrnsteinUhlenbeck, dates: Sequence[float]) -> None:
        bridge = BrownianBridge.create(dates)
        super().__init__(dates, process_dim=1, random_dim=bridge.gaussian_size(1))
        self.process = process
        self.bridge = bridge

        k = process.mean_reversion
        n = len(self.dates)
        self.slopes = np.empty(n)
        self.drifts = np.empty(n)
        self.vols = np.empty(n)
        previous = 0.0
        for i, t in enumerate(self.dates):
            dt = t - previous
            self.slopes[i] = math.exp(-k * dt)
            self.drifts[i] = integrated_drift(process.drift, k, previous).eval(t)
            variance = integrated_variance(process.volatility, k, previous).eval(t)
            self.vols[i] = math.sqrt(max(variance, 0.0) / dt) if dt > 0.0 else 0.0
            previous = t

        logger.debug(f"OU generator on {n} dates, mean reversion {k}")

    def path(self, gaussians: np.ndarray) -> ProcessPath:
        gaussians = self._check_gaussians(gaussians)
        increments = self.bridge.path_increments(gaussians, 1)[..., 0]

        values = np.empty((gaussians.shape[0], len(self.dates), 1))
        x = np.full(gaussians.shape[0], self.process.value0)
        for i in range(len(self.dates)):
            x = self.slopes[i] * x + self.drifts[i] + self.vols[i] * increments[:, i]
            values[:, i, 0] = x
        return ProcessPath(self.dates, 1, values)
