"""
Equity asset market data and forward curve.

Dividends are affine in the spot: each quote pays cash + yield * spot on its
date. The forward is

    Fwd(d) = (spot - cumulated discounted cash(d)) * growth(d)

with growth(d) = prod(1 - yield_i, t_i <= d) / Zc_asset(d).
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Sequence

import numpy as np

from quantcore.core.time_measure import TimeMeasure
from quantcore.errors import InvalidArgument
from quantcore.market.ids import AssetId, FinancingId
from quantcore.market.rates import DiscountCurve, ProductDiscount
from quantcore.maths.functions import StepFunction


@dataclass(frozen=True)
class DividendQuote:
    """
    Discrete dividend paying cash + yield_ * spot on its date.

    Attributes:
        date: Ex-dividend date
        cash: Cash amount
        yield_: Proportional amount (fraction of spot)
    """

    date: date
    cash: float
    yield_: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.yield_ < 1.0:
            raise InvalidArgument(f"Dividend yield must lie in [0, 1), got {self.yield_}")
        if self.cash < 0.0:
            raise InvalidArgument(f"Dividend cash must be non-negative, got {self.cash}")


def check_dividend_dates(dividends: Sequence[DividendQuote]) -> List[DividendQuote]:
    dividends = list(dividends)
    for prev, cur in zip(dividends, dividends[1:]):
        if cur.date <= prev.date:
            raise InvalidArgument(f"Dividends must be sorted by date: {prev.date} then {cur.date}")
    return dividends


class AssetForwardCurve:
    """Forward of an asset paying affine discrete dividends."""

    def __init__(
        self,
        spot: float,
        dividends: Sequence[DividendQuote],
        asset_financing_curve: DiscountCurve,
        time: TimeMeasure
    ) -> None:
        dividends = check_dividend_dates(dividends)
        self.spot = spot
        self.time = time
        self.asset_financing_curve = asset_financing_curve

        if dividends:
            div_dates = time.t([div.date for div in dividends])
            yield_growths = np.cumprod([1.0 - div.yield_ for div in dividends])
            discounted_cash = [
                div.cash / g * asset_financing_curve.zc(div.date)
                for div, g in zip(dividends, yield_growths)
            ]
            self._yield_growth = StepFunction(div_dates, yield_growths, 1.0)
            self._cumulated_dividends = StepFunction(div_dates, np.cumsum(discounted_cash), 0.0)
        else:
            self._yield_growth = StepFunction([0.0], [1.0], 1.0)
            self._cumulated_dividends = StepFunction([0.0], [0.0], 0.0)

    @property
    def ref_date(self) -> date:
        return self.time.ref_date

    def asset_growth(self, d: date) -> float:
        return self._yield_growth.eval(self.time.t(d)) / self.asset_financing_curve.zc(d)

    def cumulated_dividends(self, d: date) -> float:
        return self._cumulated_dividends.eval(self.time.t(d))

    def fwd(self, d: date) -> float:
        return (self.spot - self.cumulated_dividends(d)) * self.asset_growth(d)


class AssetMarket:
    """
    Market data of a single equity.

    Attributes:
        asset: Asset identifier
        ref_date: Market reference date
        time: Time measure of the market
        spot: Spot price
        repo_curve: Repo discount curve
        dividends: Sorted dividend quotes
    """

    def __init__(
        self,
        asset: AssetId,
        ref_date: date,
        time: TimeMeasure,
        spot: float,
        repo_curve: DiscountCurve,
        dividends: Sequence[DividendQuote] = ()
    ) -> None:
        if ref_date != repo_curve.ref_date or ref_date != time.ref_date:
            raise InvalidArgument(f"AssetMarket {asset}: incompatible reference dates")
        if spot <= 0.0:
            raise InvalidArgument(f"AssetMarket {asset}: spot must be positive, got {spot}")
        self.asset = asset
        self.ref_date = ref_date
        self.time = time
        self.spot = float(spot)
        self.repo_curve = repo_curve
        self.dividends = tuple(check_dividend_dates(dividends))

    @property
    def financing_id(self) -> FinancingId:
        return FinancingId.asset_collat(self.asset)

    def asset_financing_curve(self, cash_financing_curve: DiscountCurve) -> DiscountCurve:
        return ProductDiscount(self.repo_curve, cash_financing_curve)

    def forward(self, cash_financing_curve: DiscountCurve) -> AssetForwardCurve:
        return AssetForwardCurve(self.spot, self.dividends,
                                 self.asset_financing_curve(cash_financing_curve), self.time)
