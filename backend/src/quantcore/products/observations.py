"""
Market observations a payoff can depend on.

An observation is fixed at `date` and read from the simulated factors
through a model factor representation.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from quantcore.market.ids import AssetId, FinancingId


@dataclass(frozen=True)
class Zc:
    """
    Zero-coupon price seen at `date` for a payment at `pay_date`.

    Attributes:
        date: Observation date
        pay_date: Zero-coupon maturity
        currency: Currency of the bond
        financing: Discount curve (risk free by default)
    """

    date: date
    pay_date: date
    currency: str
    financing: Optional[FinancingId] = None

    def __post_init__(self) -> None:
        if self.financing is None:
            object.__setattr__(self, "financing", FinancingId.risk_free(self.currency))


@dataclass(frozen=True)
class EquitySpot:
    """Spot price of `asset` at `date`."""

    date: date
    asset: AssetId


Observation = Union[Zc, EquitySpot]
