"""
Pydantic schema for market snapshots.

Plain JSON-friendly descriptions of discount curves and equity assets,
validated then turned into a Market with build().
"""

from datetime import date
from enum import Enum
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from quantcore.core.time_measure import DateOrDuration, TimeMeasure, act365
from quantcore.errors import InvalidArgument
from quantcore.market.dividends import AssetMarket, DividendQuote
from quantcore.market.ids import AssetId, FinancingId
from quantcore.market.market import Market
from quantcore.market.rates import DiscountCurve, FlatRateCurve, LinearZcRateInterpolation

PillarKey = Union[date, str]


class CurveType(str, Enum):
    """Discount curve kinds."""
    FLAT = "flat"
    ZC_PILLARS = "zc_pillars"


def _check_key(key: PillarKey) -> PillarKey:
    try:
        DateOrDuration(key)
    except InvalidArgument as e:
        raise ValueError(str(e)) from e
    return key


class CurveDescription(BaseModel):
    """Discount curve specification."""
    type: CurveType = CurveType.FLAT
    flat_rate: Optional[float] = Field(default=None, ge=-0.1, le=0.5, description="Flat continuous rate")
    pillars: Optional[List[Tuple[PillarKey, float]]] = Field(
        default=None,
        description="(date or tenor, discount factor) pairs"
    )

    @model_validator(mode='after')
    def validate_curve(self) -> 'CurveDescription':
        """Validate curve has required data."""
        if self.type == CurveType.FLAT:
            if self.flat_rate is None:
                raise ValueError("flat_rate required for flat curve")
        elif not self.pillars:
            raise ValueError("pillars required for zc_pillars curve")
        else:
            for key, _ in self.pillars:
                _check_key(key)
        return self

    def build(self, time: TimeMeasure) -> DiscountCurve:
        if self.type == CurveType.FLAT:
            return FlatRateCurve(self.flat_rate, time)
        dates = [DateOrDuration(key).to_date(time.ref_date) for key, _ in self.pillars]
        return LinearZcRateInterpolation(dates, [zc for _, zc in self.pillars], time)


class FinancingCurveDescription(CurveDescription):
    """Discount curve of a financing, e.g. "RiskFree.EUR"."""
    financing: str

    @field_validator('financing')
    @classmethod
    def validate_financing(cls, v: str) -> str:
        try:
            FinancingId.parse(v)
        except InvalidArgument as e:
            raise ValueError(str(e)) from e
        return v


class DividendDescription(BaseModel):
    """A single affine discrete dividend."""
    ex_date: PillarKey
    cash: float = Field(default=0.0, ge=0)
    yield_: float = Field(default=0.0, ge=0, lt=1, alias="yield")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('ex_date')
    @classmethod
    def validate_date(cls, v: PillarKey) -> PillarKey:
        return _check_key(v)


class AssetDescription(BaseModel):
    """Equity asset specification."""
    name: str = Field(..., min_length=1)
    currency: str = Field(..., min_length=3, max_length=3)
    spot: float = Field(..., gt=0, description="Current spot price")
    repo: CurveDescription = Field(default_factory=lambda: CurveDescription(flat_rate=0.0))
    dividends: List[DividendDescription] = Field(default_factory=list)

    def build(self, time: TimeMeasure) -> AssetMarket:
        quotes = [
            DividendQuote(DateOrDuration(d.ex_date).to_date(time.ref_date), d.cash, d.yield_)
            for d in self.dividends
        ]
        quotes.sort(key=lambda q: q.date)
        asset = AssetId(self.name, self.currency.upper())
        return AssetMarket(asset, time.ref_date, time, self.spot, self.repo.build(time), quotes)


class MarketDescription(BaseModel):
    """Market snapshot specification."""
    ref_date: date
    curves: List[FinancingCurveDescription] = Field(..., min_length=1)
    assets: List[AssetDescription] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_unique(self) -> 'MarketDescription':
        financings = [FinancingId.parse(c.financing) for c in self.curves]
        if len(set(financings)) != len(financings):
            raise ValueError("duplicate financing curves")
        assets = [(a.name, a.currency.upper()) for a in self.assets]
        if len(set(assets)) != len(assets):
            raise ValueError("duplicate assets")
        return self

    def build(self) -> Market:
        time = act365(self.ref_date)
        curves = {FinancingId.parse(c.financing): c.build(time) for c in self.curves}
        assets = {}
        for description in self.assets:
            asset_market = description.build(time)
            assets[asset_market.asset] = asset_market
        return Market(curves, assets)
