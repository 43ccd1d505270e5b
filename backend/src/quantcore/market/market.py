"""Market snapshot: discount curves and asset markets at a common date."""

from datetime import date
from typing import Dict, List, Mapping, Optional
import logging

from quantcore.errors import InvalidArgument, MissingDataError
from quantcore.market.dividends import AssetMarket
from quantcore.market.ids import AssetId, FinancingId
from quantcore.market.rates import DiscountCurve

logger = logging.getLogger(__name__)


class Market:
    """
    Immutable market data container.

    Raises InvalidArgument at construction when curves or assets disagree on
    the reference date.
    """

    def __init__(
        self,
        discount_curves: Mapping[FinancingId, DiscountCurve],
        asset_markets: Optional[Mapping[AssetId, AssetMarket]] = None
    ) -> None:
        if not discount_curves:
            raise InvalidArgument("Market: at least one discount curve is required")
        self._discount_curves: Dict[FinancingId, DiscountCurve] = dict(discount_curves)
        self._asset_markets: Dict[AssetId, AssetMarket] = dict(asset_markets or {})

        self.ref_date: date = next(iter(self._discount_curves.values())).ref_date
        if any(c.ref_date != self.ref_date for c in self._discount_curves.values()):
            raise InvalidArgument("Market: discount curves with different reference dates")
        if any(m.ref_date != self.ref_date for m in self._asset_markets.values()):
            raise InvalidArgument("Market: asset markets with different reference dates")

        logger.debug(
            f"Market {self.ref_date}: {len(self._discount_curves)} curves, "
            f"{len(self._asset_markets)} assets"
        )

    @property
    def discount_curve_ids(self) -> List[FinancingId]:
        return list(self._discount_curves)

    @property
    def asset_ids(self) -> List[AssetId]:
        return list(self._asset_markets)

    def discount_curve(self, financing_id: FinancingId) -> DiscountCurve:
        try:
            return self._discount_curves[financing_id]
        except KeyError:
            raise MissingDataError(f"Missing discount curve : {financing_id}") from None

    def asset_market(self, asset: AssetId) -> AssetMarket:
        try:
            return self._asset_markets[asset]
        except KeyError:
            raise MissingDataError(f"Missing market asset : {asset}") from None

    def asset_market_from_name(self, name: str) -> AssetMarket:
        ids = [a for a in self._asset_markets if a.name == name]
        if not ids:
            raise MissingDataError(f"Missing market asset : {name}")
        if len(ids) > 1:
            raise InvalidArgument(f"Ambiguous asset name : {name}")
        return self._asset_markets[ids[0]]
