"""Market data: identifiers, discount curves, equity markets."""

from quantcore.market.ids import AssetId, FinancingId, PaymentInfo
from quantcore.market.rates import (
    DiscountCurve,
    FlatRateCurve,
    LinearZcRateInterpolation,
    ProductDiscount,
)
from quantcore.market.dividends import AssetForwardCurve, AssetMarket, DividendQuote
from quantcore.market.market import Market
from quantcore.market.schema import (
    AssetDescription,
    CurveDescription,
    DividendDescription,
    FinancingCurveDescription,
    MarketDescription,
)

__all__ = [
    "AssetId",
    "FinancingId",
    "PaymentInfo",
    "DiscountCurve",
    "FlatRateCurve",
    "LinearZcRateInterpolation",
    "ProductDiscount",
    "AssetForwardCurve",
    "AssetMarket",
    "DividendQuote",
    "Market",
    "AssetDescription",
    "CurveDescription",
    "DividendDescription",
    "FinancingCurveDescription",
    "MarketDescription",
]
