"""Products at the engine boundary: observations and coupon legs."""

from quantcore.products.coupons import Coupon, CouponLeg, fixed_coupon, spot_coupon
from quantcore.products.observations import EquitySpot, Observation, Zc

__all__ = [
    "Coupon",
    "CouponLeg",
    "fixed_coupon",
    "spot_coupon",
    "EquitySpot",
    "Observation",
    "Zc",
]
