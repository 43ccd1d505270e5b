"""
Pricing result structures.

Defines currency-tagged prices, aggregated path flows and the pricer result.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import numpy as np

from quantcore.errors import InvalidArgument, UnimplementedFeature
from quantcore.market.ids import PaymentInfo


@dataclass(frozen=True)
class Price:
    """
    Amount in a currency.

    Attributes:
        value: Present value
        currency: ISO currency of the value
    """

    value: float
    currency: str

    def convert(self, currency: str) -> "Price":
        if currency == self.currency:
            return self
        raise UnimplementedFeature(f"FX conversion from {self.currency} to {currency}")

    def __add__(self, other: "Price") -> "Price":
        if other.currency != self.currency:
            raise InvalidArgument(f"Cannot add prices in {self.currency} and {other.currency}")
        return Price(self.value + other.value, self.currency)


@dataclass
class PathFlows:
    """
    Flows averaged over paths, one per label.

    Attributes:
        flows: Mean rebased flow of each label [n_labels]
        labels: Payment of each flow
    """

    flows: np.ndarray
    labels: List[PaymentInfo]

    def __post_init__(self) -> None:
        if len(self.flows) != len(self.labels):
            raise InvalidArgument(f"PathFlows: {len(self.flows)} flows for {len(self.labels)} labels")


@dataclass
class PriceResult:
    """
    Pricer output.

    Attributes:
        price: Total price in the product currency
        details: Price of each payment, keyed by payment
        num_paths: Number of simulated paths
        valuation_date: Market reference date
        computation_time_ms: Wall clock time of the run
    """

    price: Price
    details: Dict[PaymentInfo, Price] = field(default_factory=dict)
    num_paths: int = 0
    valuation_date: Optional[date] = None
    computation_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize result to dictionary."""
        return {
            "price": self.price.value,
            "currency": self.price.currency,
            "details": [
                {
                    "currency": payment.currency,
                    "date": payment.date.isoformat(),
                    "financing": str(payment.financing),
                    "price": p.value,
                }
                for payment, p in self.details.items()
            ],
            "num_paths": self.num_paths,
            "valuation_date": self.valuation_date.isoformat() if self.valuation_date else None,
            "computation_time_ms": self.computation_time_ms,
        }
