"""Discrete local dividends used by equity path generators."""

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from quantcore.core.time_measure import TimeMeasure
from quantcore.market.dividends import DividendQuote


@dataclass(frozen=True)
class DiscreteLocalDividend:
    """
    Dividend paid at model time `time`, affine in the spot just before it.

    Attributes:
        time: Model time of the ex-dividend date
        yield_: Proportional part
        cash: Cash part
    """

    time: float
    yield_: float
    cash: float

    @classmethod
    def zero_div(cls, time: float) -> "DiscreteLocalDividend":
        return cls(time, 0.0, 0.0)

    def value(self, spot: np.ndarray) -> np.ndarray:
        return self.yield_ * spot + self.cash


def local_dividends(quotes: Sequence[DividendQuote], time: TimeMeasure) -> List[DiscreteLocalDividend]:
    return [DiscreteLocalDividend(time.t(q.date), q.yield_, q.cash) for q in quotes]
