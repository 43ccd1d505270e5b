"""
Model factories.

Each entry point dispatches over the closed set of supported description or
model types; anything else raises UnimplementedFeature.
"""

from datetime import date
from typing import Sequence
import logging

from quantcore.core.time_measure import DateOrDuration, act365
from quantcore.errors import UnimplementedFeature
from quantcore.market.ids import PaymentInfo
from quantcore.market.market import Market
from quantcore.models.base import EquityModel, Model, ProcessPathGenerator
from quantcore.models.bergomi import Bergomi2FModel, build_xi
from quantcore.models.black_scholes import (
    BlackScholesModel,
    BlackScholesModelPathGenerator,
    BlackScholesSpotRepresentation,
    asset_financing_for_measure,
)
from quantcore.models.descriptions import (
    Bergomi2FModelDescription,
    BlackScholesModelDescription,
    Hw1ModelDescription,
    LocalVolModelDescription,
    ModelDescription,
    piecewise_vol_function,
    pillar_times,
)
from quantcore.models.dividends import local_dividends
from quantcore.models.factor_representation import DeterministicZcRepresentation, FactorRepresentation
from quantcore.models.hull_white import Hw1Model, Hw1ModelPathGenerator, Hw1ZcRepresentation
from quantcore.models.local_vol import LocalVolatilityModel

logger = logging.getLogger(__name__)


def build_model(description: ModelDescription, market: Market) -> Model:
    """Instantiate the model of a description against a market."""
    time = act365(market.ref_date)

    if isinstance(description, Hw1ModelDescription):
        return Hw1Model(time, description.currency, description.mean_reversion,
                        piecewise_vol_function(description.sigma, time))

    if isinstance(description, BlackScholesModelDescription):
        asset_market = market.asset_market_from_name(description.asset)
        dividends = local_dividends(asset_market.dividends, time) if description.with_divs else []
        return BlackScholesModel(time, asset_market.asset,
                                 piecewise_vol_function(description.sigma, time), dividends)

    if isinstance(description, Bergomi2FModelDescription):
        asset_market = market.asset_market_from_name(description.asset)
        dividends = local_dividends(asset_market.dividends, time) if description.with_divs else []
        xi = build_xi(pillar_times(description.sigma, time), [v for _, v in description.sigma])
        return Bergomi2FModel(time, asset_market.asset, dividends, xi,
                              description.k1, description.k2, description.theta, description.nu,
                              description.rho_xy, description.rho_sx, description.rho_sy)

    if isinstance(description, LocalVolModelDescription):
        asset_market = market.asset_market_from_name(description.asset)
        dividends = local_dividends(asset_market.dividends, time) if description.with_divs else []
        maturities = time.t([DateOrDuration(m).to_date(time.ref_date) for m in description.maturities])
        return LocalVolatilityModel(time, asset_market.asset, maturities, description.strikes,
                                    description.vols, dividends)

    raise UnimplementedFeature(f"No model factory for {type(description).__name__}")


def build_path_generator(
    model: Model,
    market: Market,
    simulated_dates: Sequence[date],
    proba_measure: PaymentInfo
) -> ProcessPathGenerator:
    """Discretisation of `model` on `simulated_dates` under `proba_measure`."""
    if isinstance(model, Hw1Model):
        return Hw1ModelPathGenerator.create(model, simulated_dates, proba_measure)
    if isinstance(model, BlackScholesModel):
        return BlackScholesModelPathGenerator.create(model, market, simulated_dates, proba_measure)
    if isinstance(model, Bergomi2FModel):
        raise UnimplementedFeature("Bergomi 2F path simulation")
    if isinstance(model, LocalVolatilityModel):
        raise UnimplementedFeature("Local volatility path simulation")
    raise UnimplementedFeature(f"No path generator for {type(model).__name__}")


def build_factor_representation(model: Model, market: Market, proba_measure: PaymentInfo) -> FactorRepresentation:
    """Observation functions of the factors simulated under `proba_measure`."""
    if isinstance(model, Hw1Model):
        return FactorRepresentation(market, {model.currency: Hw1ZcRepresentation(model)})

    if isinstance(model, EquityModel):
        asset_financing = asset_financing_for_measure(model, market, proba_measure)
        spot_representation = BlackScholesSpotRepresentation(model.time, asset_financing, proba_measure.date)
        return FactorRepresentation(market,
                                    {model.pivot_currency: DeterministicZcRepresentation()},
                                    {model.asset: spot_representation})

    raise UnimplementedFeature(f"No factor representation for {type(model).__name__}")
