"""
Market identifiers: financing curves, payments and assets.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from quantcore.errors import InvalidArgument

RISK_FREE = "RiskFree"
ASSET_COLLAT = "AssetCollat"


@dataclass(frozen=True)
class FinancingId:
    """
    Identifier of a discount (financing) curve.

    Attributes:
        id: Financing kind, e.g. "RiskFree"
        currency: ISO currency code
    """

    id: str
    currency: str

    @classmethod
    def risk_free(cls, currency: str) -> "FinancingId":
        return cls(RISK_FREE, currency.upper())

    @classmethod
    def asset_collat(cls, asset: "AssetId") -> "FinancingId":
        """Financing of positions collateralised by the asset itself."""
        return cls(f"{ASSET_COLLAT}:{asset.name}", asset.currency)

    @classmethod
    def parse(cls, text: str) -> "FinancingId":
        """Parse "RiskFree.EUR" style identifiers."""
        parts = text.split(".")
        if len(parts) != 2 or len(parts[1].strip()) != 3:
            raise InvalidArgument(f"Not a valid financing curve id: {text!r}")
        kind, currency = parts[0].strip(), parts[1].strip()
        if kind.lower() != RISK_FREE.lower():
            raise InvalidArgument(f"Unable to parse financing curve id: {text!r}")
        return cls.risk_free(currency)

    def __str__(self) -> str:
        return f"{self.id}.{self.currency}"


@dataclass(frozen=True)
class AssetId:
    """Asset name and quotation currency."""

    name: str
    currency: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class PaymentInfo:
    """
    Cash payment characteristics.

    Attributes:
        currency: Payment currency
        date: Payment date
        financing: Curve the payment is discounted on (risk free by default)
    """

    currency: str
    date: date
    financing: Optional[FinancingId] = None

    def __post_init__(self) -> None:
        if self.financing is None:
            object.__setattr__(self, "financing", FinancingId.risk_free(self.currency))
