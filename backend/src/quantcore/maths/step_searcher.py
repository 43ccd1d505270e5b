"""
Pillar search on sorted grids.

Locates the interval of a query inside a strictly increasing pillar array by
bisection. Used by every step / interpolated function and by the discount
curves.
"""

from typing import Sequence, Tuple

import numpy as np

from quantcore.errors import InvalidArgument

MACHINE_EPSILON = float(np.finfo(float).eps)


def machine_equality(x: float, y: float, precision: float = MACHINE_EPSILON) -> bool:
    """Relative equality: |x - y| <= max(|x|, |y|) * precision."""
    return abs(x - y) <= max(abs(x), abs(y)) * precision


def equal_zero(x: float) -> bool:
    """True when x is zero up to machine precision."""
    return abs(x) <= MACHINE_EPSILON


class StepSearcher:
    """
    Bisection search over a strictly increasing pillar array.

    Attributes:
        pillars: Sorted pillar abscissae (read-only numpy array)
    """

    def __init__(self, pillars: Sequence[float]) -> None:
        arr = np.array(pillars, dtype=float)
        if arr.ndim != 1 or arr.size == 0:
            raise InvalidArgument("StepSearcher: pillars must be a non-empty 1d array")
        if np.any(np.isnan(arr)):
            raise InvalidArgument("StepSearcher: pillars contain NaN")
        if np.any(np.diff(arr) <= 0.0):
            raise InvalidArgument(f"StepSearcher: pillars must be strictly increasing, got {arr.tolist()}")
        arr.setflags(write=False)
        self.pillars = arr
        self._values = arr.tolist()

    def __len__(self) -> int:
        return len(self._values)

    def locate_left_index(self, x: float) -> int:
        """
        Index of the greatest pillar lower or equal to x.

        Returns:
            -1 when x is below the first pillar, the last index when x is at
            or above the last pillar.
        """
        pillars = self._values
        if x < pillars[0]:
            return -1
        last = len(pillars) - 1
        if x >= pillars[last]:
            return last

        lo, hi = 0, last
        while hi - lo > 1:
            mid = (lo + hi) // 2
            if pillars[mid] <= x:
                lo = mid
            else:
                hi = mid
        return lo

    def try_find_pillar_index(
        self,
        x: float,
        precision: float = MACHINE_EPSILON
    ) -> Tuple[bool, int]:
        """
        Look for a pillar equal to x up to a relative precision.

        Returns:
            (found, index); index is -1 when nothing matches.
        """
        left = self.locate_left_index(x)
        candidates = (left, left + 1) if left >= 0 else (0,)
        for idx in candidates:
            if idx < len(self._values) and machine_equality(x, self._values[idx], precision):
                return True, idx
        return False, -1

