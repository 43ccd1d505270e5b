"""
Time measure and tenor arithmetic.

Features:
- Signed ACT/365F (or ACT/360) year fractions from a reference date
- Vectorised conversion of date sequences to numpy arrays
- Tenor strings ("10D", "2W", "6M", "5Y") resolved against a reference date
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional, Union
import calendar
import re

import numpy as np

from quantcore.errors import InvalidArgument


class DayCountConvention(str, Enum):
    """Supported day count conventions for model time."""

    ACT_365F = "ACT/365F"
    ACT_360 = "ACT/360"


_DAYS_PER_YEAR = {
    DayCountConvention.ACT_365F: 365.0,
    DayCountConvention.ACT_360: 360.0,
}


class TimeMeasure:
    """
    Maps calendar dates to model time.

    Attributes:
        ref_date: Date mapped to time 0
        convention: Day count convention
    """

    def __init__(
        self,
        ref_date: date,
        convention: DayCountConvention = DayCountConvention.ACT_365F
    ) -> None:
        self.ref_date = ref_date
        self.convention = DayCountConvention(convention)
        self._days_per_year = _DAYS_PER_YEAR[self.convention]

    def t(self, d: Union[date, Iterable[date]]) -> Union[float, np.ndarray]:
        """
        Signed year fraction from the reference date.

        Args:
            d: A date, or a sequence of dates

        Returns:
            float for a single date, numpy array for a sequence
        """
        if isinstance(d, date):
            return (d - self.ref_date).days / self._days_per_year
        return np.array([(x - self.ref_date).days for x in d], dtype=float) / self._days_per_year

    def __call__(self, d: Union[date, Iterable[date]]) -> Union[float, np.ndarray]:
        return self.t(d)

    def to_date(self, t: float) -> date:
        """Calendar date closest to model time t."""
        return self.ref_date + timedelta(days=int(round(t * self._days_per_year)))

    def __repr__(self) -> str:
        return f"TimeMeasure({self.ref_date.isoformat()}, {self.convention.value})"


def act365(ref_date: date) -> TimeMeasure:
    """Default model time measure."""
    return TimeMeasure(ref_date, DayCountConvention.ACT_365F)


def add_months(d: date, months: int) -> date:
    """Add months to a date, clamping to the end of month."""
    year = d.year + (d.month + months - 1) // 12
    month = (d.month + months - 1) % 12 + 1
    max_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, max_day))


_TENOR_PATTERN = re.compile(r"^\s*(\d+)\s*([dDwWmMyY])\s*$")


@dataclass(frozen=True)
class Tenor:
    """Calendar duration: a count of days, weeks, months or years."""

    count: int
    unit: str

    @classmethod
    def parse(cls, text: str) -> "Tenor":
        match = _TENOR_PATTERN.match(text)
        if match is None:
            raise InvalidArgument(f"Failed to parse tenor: {text!r}")
        return cls(int(match.group(1)), match.group(2).upper())

    def add_to(self, d: date) -> date:
        if self.unit == "D":
            return d + timedelta(days=self.count)
        if self.unit == "W":
            return d + timedelta(weeks=self.count)
        if self.unit == "M":
            return add_months(d, self.count)
        return add_months(d, 12 * self.count)

    def __str__(self) -> str:
        return f"{self.count}{self.unit}"


class DateOrDuration:
    """A pillar given either as a calendar date or as a tenor."""

    def __init__(self, value: Union[date, str, Tenor]) -> None:
        if isinstance(value, date):
            self.date: Optional[date] = value
            self.tenor: Optional[Tenor] = None
        elif isinstance(value, Tenor):
            self.date, self.tenor = None, value
        elif isinstance(value, str):
            self.date, self.tenor = None, _parse_date_or_tenor(value)
            if isinstance(self.tenor, date):
                self.date, self.tenor = self.tenor, None
        else:
            raise InvalidArgument(f"Cannot build DateOrDuration from {value!r}")

    @property
    def is_date(self) -> bool:
        return self.date is not None

    def to_date(self, ref_date: date) -> date:
        if self.date is not None:
            return self.date
        return self.tenor.add_to(ref_date)

    def __repr__(self) -> str:
        return f"DateOrDuration({self.date.isoformat() if self.date else str(self.tenor)})"


def _parse_date_or_tenor(text: str) -> Union[date, Tenor]:
    try:
        return date.fromisoformat(text.strip())
    except ValueError:
        return Tenor.parse(text)
