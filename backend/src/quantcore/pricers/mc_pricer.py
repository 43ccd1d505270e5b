"""
Monte Carlo pricer: ties together product, model, market and engine.

This is the main entry point for pricing coupon legs by simulation.
"""

from typing import Dict, Optional
import logging
import time

from quantcore.config import MonteCarloConfig
from quantcore.engines.base import Price, PriceResult
from quantcore.engines.monte_carlo import (
    CancellationToken,
    McEngine,
    McModelFactory,
    ProductPathFlowCalculator,
)
from quantcore.market.ids import PaymentInfo
from quantcore.market.market import Market
from quantcore.models.base import Model
from quantcore.products.coupons import CouponLeg

logger = logging.getLogger(__name__)


class McPricer:
    """
    Prices a coupon leg under a model.

    Orchestrates:
    1. Simulation dates from the product events
    2. Model discretisation and random source
    3. Batch simulation and flow aggregation
    4. Conversion of each flow to the product currency
    """

    def __init__(self, config: Optional[MonteCarloConfig] = None) -> None:
        self.config = config or MonteCarloConfig()

    def price(
        self,
        product: CouponLeg,
        model: Model,
        market: Market,
        cancellation: Optional[CancellationToken] = None
    ) -> PriceResult:
        """
        Price a coupon leg.

        Args:
            product: Coupons to price
            model: Model simulated for the underlying factors
            market: Market snapshot the model was built on
            cancellation: Optional token stopping the run between batches

        Returns:
            PriceResult with the total price and the price of each payment

        Raises:
            RunCancelled: if the token is cancelled before the run completes
        """
        start_time = time.perf_counter()

        mc_model = McModelFactory(self.config).build(model, market, product.event_dates())
        calculator = ProductPathFlowCalculator(product, mc_model)
        engine = McEngine(self.config.num_paths, self.config.block_size)
        path_flows = engine.run(mc_model, calculator, cancellation)

        details: Dict[PaymentInfo, Price] = {}
        for payment, flow in zip(path_flows.labels, path_flows.flows):
            price = Price(float(flow), payment.currency).convert(product.currency)
            details[payment] = details[payment] + price if payment in details else price
        total = Price(0.0, product.currency)
        for price in details.values():
            total = total + price

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Priced {len(product.coupons)} coupons on {self.config.num_paths} paths: "
            f"{total.value:.8f} {total.currency} in {elapsed_ms:.1f} ms"
        )
        return PriceResult(
            price=total,
            details=details,
            num_paths=self.config.num_paths,
            valuation_date=market.ref_date,
            computation_time_ms=elapsed_ms,
        )
