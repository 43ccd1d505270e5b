"""
Coupon legs: the product interface accepted by the Monte Carlo engine.

Payoff compilation happens upstream; each coupon arrives as a payment, the
observations it fixes on and a vectorised payoff of the observed values.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Sequence, Tuple

import numpy as np

from quantcore.errors import InvalidArgument
from quantcore.market.ids import AssetId, PaymentInfo
from quantcore.products.observations import EquitySpot, Observation

# Maps one array per observation (each shaped [n_paths]) to amounts [n_paths]
Payoff = Callable[..., np.ndarray]


@dataclass(frozen=True)
class Coupon:
    """
    Single payment of a product.

    Attributes:
        payment: Currency, date and financing of the payment
        observations: Observations fixed by the payoff
        payoff: Amount as a function of the observed values
    """

    payment: PaymentInfo
    observations: Tuple[Observation, ...]
    payoff: Payoff

    def __post_init__(self) -> None:
        object.__setattr__(self, "observations", tuple(self.observations))
        late = [obs for obs in self.observations if obs.date > self.payment.date]
        if late:
            raise InvalidArgument(
                f"Coupon paid on {self.payment.date} observes {late[0]} after payment"
            )

    def amount(self, fixings: Sequence[np.ndarray], num_paths: int) -> np.ndarray:
        values = np.asarray(self.payoff(*fixings), dtype=float)
        return np.broadcast_to(values, (num_paths,))


@dataclass
class CouponLeg:
    """
    Ordered set of coupons sharing a currency.

    Attributes:
        coupons: Coupons in payment order
        currency: Currency the leg is priced in
        name: Optional label for reporting
    """

    coupons: List[Coupon]
    currency: str
    name: str = field(default="")

    def __post_init__(self) -> None:
        if not self.coupons:
            raise InvalidArgument("CouponLeg: at least one coupon is required")

    @property
    def payments(self) -> List[PaymentInfo]:
        return [c.payment for c in self.coupons]

    def fixing_dates(self) -> List[date]:
        return sorted({obs.date for c in self.coupons for obs in c.observations})

    def event_dates(self) -> List[date]:
        """Sorted fixing and payment dates."""
        dates = set(self.fixing_dates())
        dates.update(c.payment.date for c in self.coupons)
        return sorted(dates)


def fixed_coupon(payment: PaymentInfo, amount: float) -> Coupon:
    """Deterministic amount paid at payment.date."""
    return Coupon(payment, (), lambda: np.asarray(amount, dtype=float))


def spot_coupon(
    payment: PaymentInfo,
    asset: AssetId,
    fixing_date: date,
    payoff: Callable[[np.ndarray], np.ndarray] = lambda spot: spot
) -> Coupon:
    """Coupon paying a function of one spot fixing (the spot itself by default)."""
    return Coupon(payment, (EquitySpot(fixing_date, asset),), payoff)
