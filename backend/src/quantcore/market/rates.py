"""
Discount curves.

Supports linear zero-rate interpolation on pillars, flat rate curves and
products of curves (asset financing = repo x cash financing).
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Sequence
import math

import numpy as np

from quantcore.core.time_measure import TimeMeasure
from quantcore.errors import InvalidArgument
from quantcore.maths.step_searcher import StepSearcher, machine_equality


class DiscountCurve(ABC):
    """Zero-coupon prices seen from the curve reference date."""

    def __init__(self, time: TimeMeasure) -> None:
        self.time = time

    @property
    def ref_date(self) -> date:
        return self.time.ref_date

    @abstractmethod
    def zc_time(self, t: float) -> float:
        """Discount factor at model time t."""

    def zc(self, d: date) -> float:
        """Discount factor for a payment at date d."""
        return self.zc_time(self.time.t(d))

    def zc_between(self, start: date, end: date) -> float:
        """Forward discount factor from start to end."""
        return self.zc(end) / self.zc(start)

    def zero_rate(self, d: date) -> float:
        """Continuously compounded zero rate to d."""
        t = self.time.t(d)
        if t == 0.0:
            return 0.0
        return -math.log(self.zc_time(t)) / t


class LinearZcRateInterpolation(DiscountCurve):
    """
    Zero rates linearly interpolated between pillars, flat outside.

    A pillar on the reference date must carry a discount factor of 1.
    """

    def __init__(self, pillars: Sequence[date], zcs: Sequence[float], time: TimeMeasure) -> None:
        super().__init__(time)
        if len(pillars) != len(zcs):
            raise InvalidArgument(
                f"LinearZcRateInterpolation: {len(pillars)} pillars for {len(zcs)} discount factors"
            )
        if any(z <= 0.0 for z in zcs):
            raise InvalidArgument("LinearZcRateInterpolation: discount factors must be positive")
        self.pillars = list(pillars)
        self.dates = time.t(self.pillars)
        self.searcher = StepSearcher(self.dates)

        rates = np.empty(len(zcs))
        for i, (t, z) in enumerate(zip(self.dates, zcs)):
            if t == 0.0:
                if not machine_equality(1.0, z):
                    raise InvalidArgument(
                        "LinearZcRateInterpolation: discount for the reference date must equal 1"
                    )
                rates[i] = 0.0
            else:
                rates[i] = -math.log(z) / t
        self.zc_rates = rates

    def zc_time(self, t: float) -> float:
        idx = self.searcher.locate_left_index(t)
        if idx < 0:
            rate = self.zc_rates[0]
        elif idx >= len(self.dates) - 1:
            rate = self.zc_rates[-1]
        else:
            w = (t - self.dates[idx]) / (self.dates[idx + 1] - self.dates[idx])
            rate = (1.0 - w) * self.zc_rates[idx] + w * self.zc_rates[idx + 1]
        return math.exp(-rate * t)


class FlatRateCurve(DiscountCurve):
    """Constant continuously compounded rate."""

    def __init__(self, rate: float, time: TimeMeasure) -> None:
        super().__init__(time)
        self.rate = float(rate)

    def zc_time(self, t: float) -> float:
        return math.exp(-self.rate * t)


class ProductDiscount(DiscountCurve):
    """Pointwise product of two curves with the same reference date."""

    def __init__(self, first: DiscountCurve, second: DiscountCurve) -> None:
        if first.ref_date != second.ref_date:
            raise InvalidArgument(
                f"ProductDiscount: incompatible reference dates {first.ref_date} and {second.ref_date}"
            )
        super().__init__(first.time)
        self.first = first
        self.second = second

    def zc_time(self, t: float) -> float:
        return self.first.zc_time(t) * self.second.zc_time(t)
