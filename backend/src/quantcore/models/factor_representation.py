"""
Factor representation: observations as functions of simulated factors.

A model exposes one zero-coupon representation per simulated currency and
one spot representation per simulated asset. Observations are turned into
callables taking the factor values of one date ([n_paths, process_dim]) and
returning the observed value on each path.
"""

from datetime import date
from typing import Callable, Dict, Mapping, Optional, Protocol

import numpy as np

from quantcore.errors import MissingDataError, UnimplementedFeature
from quantcore.market.ids import AssetId
from quantcore.market.market import Market
from quantcore.products.observations import EquitySpot, Observation, Zc

FactorFunction = Callable[[np.ndarray], np.ndarray]


class ZcRepresentation(Protocol):
    def zc(self, d: date, maturity: date, fwd_zc: float) -> FactorFunction:
        ...


class EquitySpotRepresentation(Protocol):
    def spot(self, d: date) -> FactorFunction:
        ...


class DeterministicZcRepresentation:
    """Zero-coupon prices equal to today's forward discount factors."""

    def zc(self, d: date, maturity: date, fwd_zc: float) -> FactorFunction:
        def zc_function(factors: np.ndarray) -> np.ndarray:
            return np.full(factors.shape[0], fwd_zc)

        return zc_function


class FactorRepresentation:
    """Dispatches observations to the representation of their currency or asset."""

    def __init__(
        self,
        market: Market,
        zc_representations: Mapping[str, ZcRepresentation],
        equity_representations: Optional[Mapping[AssetId, EquitySpotRepresentation]] = None
    ) -> None:
        self.market = market
        self.zc_representations: Dict[str, ZcRepresentation] = dict(zc_representations)
        self.equity_representations: Dict[AssetId, EquitySpotRepresentation] = dict(
            equity_representations or {}
        )

    def _zc(self, obs: Zc) -> FactorFunction:
        try:
            representation = self.zc_representations[obs.currency]
        except KeyError:
            raise MissingDataError(f"No zero-coupon representation for currency {obs.currency}") from None
        curve = self.market.discount_curve(obs.financing)
        fwd_zc = curve.zc(obs.pay_date) / curve.zc(obs.date)
        return representation.zc(obs.date, obs.pay_date, fwd_zc)

    def _spot(self, obs: EquitySpot) -> FactorFunction:
        try:
            representation = self.equity_representations[obs.asset]
        except KeyError:
            raise UnimplementedFeature(f"Asset {obs.asset} is not simulated by the model") from None
        return representation.spot(obs.date)

    def __getitem__(self, observation: Observation) -> FactorFunction:
        if isinstance(observation, Zc):
            return self._zc(observation)
        if isinstance(observation, EquitySpot):
            return self._spot(observation)
        raise UnimplementedFeature(f"Unsupported observation {type(observation).__name__}")
