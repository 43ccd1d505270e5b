"""
Model calibration: turn a calibration description into a model description.
"""

from typing import List
import logging
import math

from quantcore.core.time_measure import DateOrDuration, act365
from quantcore.errors import UnimplementedFeature
from quantcore.market.ids import FinancingId
from quantcore.market.market import Market
from quantcore.models.descriptions import (
    BlackScholesModelCalibDesc,
    BlackScholesModelDescription,
    CalibrationDescription,
    ExplicitCalibration,
    ModelDescription,
)
from quantcore.models.dividend_option import BlackScholesWithDividendOption

logger = logging.getLogger(__name__)


def forward_vols(maturities: List[float], term_vols: List[float]) -> List[float]:
    """Piecewise constant vols matching the terminal vols at each maturity."""
    result = []
    prev_var, prev_mat = 0.0, 0.0
    for mat, vol in zip(maturities, term_vols):
        var = vol * vol * mat
        result.append(math.sqrt(max(var - prev_var, 0.0) / (mat - prev_mat)))
        prev_var, prev_mat = var, mat
    return result


def calibrate_black_scholes(
    description: BlackScholesModelCalibDesc,
    market: Market,
    quadrature_points: int = 10
) -> BlackScholesModelDescription:
    """
    Fit a Black-Scholes vol term structure to target implied vols.

    Target prices are computed with the dividend option pricer at the target
    vols (out of the money options), the pricer is then inverted maturity by
    maturity and the resulting terminal vols are converted to forward vols.
    """
    asset_market = market.asset_market_from_name(description.asset)
    time = act365(market.ref_date)
    cash_curve = market.discount_curve(FinancingId.risk_free(asset_market.asset.currency))
    dividends = asset_market.dividends if description.with_divs else ()
    pricer = BlackScholesWithDividendOption.build(asset_market.spot, dividends,
                                                  asset_market.asset_financing_curve(cash_curve),
                                                  time, quadrature_points)
    forward = asset_market.forward(cash_curve)

    dates = [DateOrDuration(m).to_date(market.ref_date) for m in description.maturities]
    maturities = [float(t) for t in time.t(dates)]
    option_types, target_prices = [], []
    for d, mat, strike, vol in zip(dates, maturities, description.strikes, description.target_vols):
        q = 1.0 if strike > forward.fwd(d) else -1.0
        option_types.append(q)
        target_prices.append(pricer.price(mat, strike, vol, q))

    term_vols = pricer.calibrate_vol(maturities, target_prices, description.strikes, option_types)
    sigma = list(zip(description.maturities, forward_vols(maturities, term_vols)))
    logger.info(f"Black-Scholes calibration of {description.asset} on {len(maturities)} maturities")
    return BlackScholesModelDescription(asset=description.asset, sigma=sigma, with_divs=description.with_divs)


def calibrate(description: CalibrationDescription, market: Market) -> ModelDescription:
    if isinstance(description, ExplicitCalibration):
        return description.model
    if isinstance(description, BlackScholesModelCalibDesc):
        return calibrate_black_scholes(description, market)
    raise UnimplementedFeature(f"No calibration for {type(description).__name__}")
