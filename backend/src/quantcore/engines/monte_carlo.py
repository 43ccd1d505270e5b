"""
Monte Carlo engine.

Simulates factor paths batch by batch, evaluates the coupons of a product on
each path, rebases every flow to the simulation numeraire and averages.

Features:
- Measure: risk-free zero-coupon of the pivot currency maturing at the last
  simulated date
- Pseudo random or Sobol gaussians, Brownian bridge path construction
- Fixed path order accumulation for reproducible results
- Cooperative cancellation between batches
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple
import logging
import threading

import numpy as np

from quantcore.config import MonteCarloConfig
from quantcore.errors import InvalidArgument, RunCancelled, UnimplementedFeature
from quantcore.market.ids import PaymentInfo
from quantcore.market.market import Market
from quantcore.maths.random import RandomGenerator
from quantcore.models.base import Model, ProcessPath, ProcessPathGenerator
from quantcore.models.factor_representation import FactorRepresentation
from quantcore.models.factory import build_factor_representation
from quantcore.models.factory import build_path_generator as build_model_path_generator
from quantcore.engines.base import PathFlows
from quantcore.products.coupons import CouponLeg
from quantcore.products.observations import Zc

logger = logging.getLogger(__name__)


def _simulation_dates(dates: Sequence[date], ref_date: date) -> List[date]:
    dates = sorted(set(dates))
    if not dates:
        raise InvalidArgument("Monte Carlo: no simulation date")
    if dates[0] < ref_date:
        raise InvalidArgument(f"Monte Carlo: simulation date {dates[0]} before market date {ref_date}")
    return dates


def proba_measure(model: Model, simulated_dates: Sequence[date]) -> PaymentInfo:
    """Risk-free zero-coupon numeraire of the pivot currency at the last date."""
    return PaymentInfo(model.pivot_currency, max(simulated_dates))


def build_path_generator(model: Model, market: Market, simulated_dates: Sequence[date]) -> ProcessPathGenerator:
    """Process path generator the engine would use for these dates."""
    dates = _simulation_dates(simulated_dates, market.ref_date)
    return build_model_path_generator(model, market, dates, proba_measure(model, dates))


@dataclass(frozen=True)
class McModel:
    """
    Everything needed to simulate a model.

    Attributes:
        factor_representation: Observations as functions of the factors
        simulated_dates: Sorted simulation dates
        random_generator: Gaussian source of the generator dimension
        process_path_generator: Factor discretisation
        proba_measure: Simulation numeraire payment
        numeraire0: Today's value of the numeraire
    """

    factor_representation: FactorRepresentation
    simulated_dates: List[date]
    random_generator: RandomGenerator
    process_path_generator: ProcessPathGenerator
    proba_measure: PaymentInfo
    numeraire0: float


class McModelFactory:
    """Builds McModel instances from a configuration."""

    def __init__(self, config: Optional[MonteCarloConfig] = None) -> None:
        self.config = config or MonteCarloConfig()

    def build(self, model: Model, market: Market, simulated_dates: Sequence[date]) -> McModel:
        dates = _simulation_dates(simulated_dates, market.ref_date)
        measure = proba_measure(model, dates)
        numeraire0 = market.discount_curve(measure.financing).zc(measure.date)

        path_generator = build_model_path_generator(model, market, dates, measure)
        factor_representation = build_factor_representation(model, market, measure)
        random_generator = self.config.build_random_generator(path_generator.random_dim)

        logger.debug(f"McModel on {len(dates)} dates, random dimension {path_generator.random_dim}")
        return McModel(factor_representation, dates, random_generator, path_generator, measure, numeraire0)


FactorFunction = Callable[[np.ndarray], np.ndarray]


class ProductPathFlowCalculator:
    """
    Rebased coupon flows of a leg on simulated paths.

    Each coupon pays amount * numeraire0 / Zc(pay date, horizon) where the
    zero-coupon is read from the factors at the payment date.
    """

    def __init__(self, leg: CouponLeg, mc_model: McModel) -> None:
        self.leg = leg
        self.numeraire0 = mc_model.numeraire0
        date_index = {d: i for i, d in enumerate(mc_model.simulated_dates)}
        representation = mc_model.factor_representation
        measure = mc_model.proba_measure

        self._fixings: List[List[Tuple[int, FactorFunction]]] = []
        self._rebasements: List[Tuple[int, FactorFunction]] = []
        for coupon in leg.coupons:
            fixings = []
            for obs in coupon.observations:
                fixings.append((self._index(date_index, obs.date), representation[obs]))
            self._fixings.append(fixings)

            payment = coupon.payment
            self._check_rebasement(payment, measure)
            zc = Zc(payment.date, measure.date, payment.currency, payment.financing)
            self._rebasements.append((self._index(date_index, payment.date), representation[zc]))

    @staticmethod
    def _index(date_index: dict, d: date) -> int:
        try:
            return date_index[d]
        except KeyError:
            raise InvalidArgument(f"Date {d} is not a simulated date") from None

    @staticmethod
    def _check_rebasement(payment: PaymentInfo, measure: PaymentInfo) -> None:
        if measure.date < payment.date:
            raise UnimplementedFeature(f"Payment on {payment.date} after the measure date {measure.date}")
        if payment.currency != measure.currency:
            raise UnimplementedFeature(f"Payment in {payment.currency} under a {measure.currency} measure")
        if payment.financing != measure.financing:
            raise UnimplementedFeature(f"Payment financed on {payment.financing} under {measure.financing}")

    @property
    def labels(self) -> List[PaymentInfo]:
        return self.leg.payments

    def compute(self, path: ProcessPath) -> np.ndarray:
        """Rebased flows shaped [n_paths, n_coupons]."""
        n = path.num_paths
        flows = np.empty((n, len(self.leg.coupons)))
        for j, coupon in enumerate(self.leg.coupons):
            fixings = [func(path.process_value(idx)) for idx, func in self._fixings[j]]
            pay_index, zc_function = self._rebasements[j]
            rebasement = self.numeraire0 / zc_function(path.process_value(pay_index))
            flows[:, j] = coupon.amount(fixings, n) * rebasement
        return flows


class PriceFlowsAggregator:
    """Running sum of path flows, averaged on demand."""

    def __init__(self, labels: Sequence[PaymentInfo]) -> None:
        self.labels = list(labels)
        self._sums = np.zeros(len(self.labels))
        self.num_paths = 0

    def accumulate(self, flows: np.ndarray) -> None:
        self._sums += flows.sum(axis=0)
        self.num_paths += flows.shape[0]

    def result(self) -> PathFlows:
        if self.num_paths == 0:
            raise InvalidArgument("PriceFlowsAggregator: no path accumulated")
        return PathFlows(self._sums / self.num_paths, self.labels)


class CancellationToken:
    """Thread-safe cancellation flag checked by the engine between batches."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("Monte Carlo run cancelled")


class McEngine:
    """
    Batch loop of a Monte Carlo run.

    Attributes:
        num_paths: Number of Monte Carlo paths
        block_size: Paths per batch (memory control)
    """

    def __init__(self, num_paths: int, block_size: int) -> None:
        if num_paths <= 0 or block_size <= 0:
            raise InvalidArgument(f"McEngine: invalid path count {num_paths} or block size {block_size}")
        self.num_paths = num_paths
        self.block_size = block_size

    def run(
        self,
        mc_model: McModel,
        calculator: ProductPathFlowCalculator,
        cancellation: Optional[CancellationToken] = None
    ) -> PathFlows:
        aggregator = PriceFlowsAggregator(calculator.labels)
        remaining = self.num_paths
        while remaining > 0:
            if cancellation is not None:
                cancellation.raise_if_cancelled()
            batch = min(self.block_size, remaining)
            gaussians = mc_model.random_generator.next_gaussians(batch)
            path = mc_model.process_path_generator.path(gaussians)
            aggregator.accumulate(calculator.compute(path))
            remaining -= batch
        return aggregator.result()
