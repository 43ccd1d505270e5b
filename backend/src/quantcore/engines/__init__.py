"""Monte Carlo engine: model setup, path flows, aggregation and results."""

from quantcore.engines.base import PathFlows, Price, PriceResult
from quantcore.engines.monte_carlo import (
    CancellationToken,
    McEngine,
    McModel,
    McModelFactory,
    PriceFlowsAggregator,
    ProductPathFlowCalculator,
    build_path_generator,
)

__all__ = [
    "PathFlows",
    "Price",
    "PriceResult",
    "CancellationToken",
    "McEngine",
    "McModel",
    "McModelFactory",
    "PriceFlowsAggregator",
    "ProductPathFlowCalculator",
    "build_path_generator",
]
