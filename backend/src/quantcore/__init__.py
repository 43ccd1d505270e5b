"""
quantcore - Quantitative model simulation and calibration library.

Turns stochastic model descriptions into simulated factor paths and prices,
and calibrates them against option prices:
- Real function algebra for volatility and variance term structures
- Brownian bridge path construction
- Hull-White 1F, Black-Scholes with discrete dividends, Bergomi 2F analytics
- Monte Carlo pricing of coupon legs with per-payment breakdown
- Two step quadrature pricer for options on dividend paying equities

Example:
    >>> from quantcore import McPricer, MonteCarloConfig, build_model
    >>> model = build_model(Hw1ModelDescription(**description), market)
    >>> result = McPricer(MonteCarloConfig(num_paths=2 ** 14)).price(leg, model, market)
    >>> print(f"PV: {result.price.value:.6f}")
"""

__version__ = "0.1.0"

from quantcore.config import DividendOptionConfig, MonteCarloConfig, RandomGeneratorType
from quantcore.errors import (
    ConvergenceError,
    InvalidArgument,
    MissingDataError,
    QuantError,
    RunCancelled,
    UnimplementedFeature,
)
from quantcore.engines import CancellationToken, Price, PriceResult, build_path_generator
from quantcore.models import (
    Bergomi2FModelDescription,
    BlackScholesModelCalibDesc,
    BlackScholesModelDescription,
    BlackScholesWithDividendOption,
    ExplicitCalibration,
    Hw1ModelDescription,
    LocalVolModelDescription,
    build_model,
    calibrate,
)
from quantcore.pricers.mc_pricer import McPricer

__all__ = [
    "__version__",
    # Configuration
    "DividendOptionConfig",
    "MonteCarloConfig",
    "RandomGeneratorType",
    # Errors
    "ConvergenceError",
    "InvalidArgument",
    "MissingDataError",
    "QuantError",
    "RunCancelled",
    "UnimplementedFeature",
    # Monte Carlo
    "CancellationToken",
    "McPricer",
    "Price",
    "PriceResult",
    "build_path_generator",
    # Models
    "Bergomi2FModelDescription",
    "BlackScholesModelCalibDesc",
    "BlackScholesModelDescription",
    "BlackScholesWithDividendOption",
    "ExplicitCalibration",
    "Hw1ModelDescription",
    "LocalVolModelDescription",
    "build_model",
    "calibrate",
]
