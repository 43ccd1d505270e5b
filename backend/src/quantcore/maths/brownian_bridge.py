"""
Brownian bridge path construction.

Features:
- Dates filled by decreasing conditional variance (priority dates first)
- Interpolation from the nearest already simulated neighbours
- Multi-dimensional paths with independent coordinates
- Vectorised over any leading batch axes of the gaussian input
"""

from typing import Optional, Sequence
import logging

import numpy as np

from quantcore.errors import InvalidArgument
from quantcore.maths.step_searcher import machine_equality

logger = logging.getLogger(__name__)


class BrownianBridge:
    """
    Brownian motion sampled at fixed dates out of temporal order.

    The k-th gaussian drives the k-th simulated date of the construction
    order, so the first gaussians (the best distributed ones for low
    discrepancy sequences) carry most of the path variance.
    """

    def __init__(
        self,
        dates: np.ndarray,
        simulation_indexes: np.ndarray,
        std_devs: np.ndarray,
        left_indexes: np.ndarray,
        right_indexes: np.ndarray,
        left_weights: np.ndarray,
        right_weights: np.ndarray
    ) -> None:
        self.dates = dates
        self.simulation_indexes = simulation_indexes
        self.std_devs = std_devs
        self.left_indexes = left_indexes
        self.right_indexes = right_indexes
        self.left_weights = left_weights
        self.right_weights = right_weights

    @classmethod
    def create(
        cls,
        dates: Sequence[float],
        important_indexes: Optional[Sequence[int]] = None
    ) -> "BrownianBridge":
        """
        Build the construction order.

        Args:
            dates: Sorted, non-negative simulation times
            important_indexes: Indexes of dates simulated before all others

        Raises:
            InvalidArgument: on unsorted or negative dates, or out of range indexes
        """
        dates = np.asarray(dates, dtype=float)
        n = len(dates)
        if n == 0:
            raise InvalidArgument("BrownianBridge: dates must not be empty")
        if np.any(np.diff(dates) < 0.0):
            raise InvalidArgument("BrownianBridge: dates must be sorted")
        if dates[0] < 0.0:
            raise InvalidArgument("BrownianBridge: first date must be positive")

        if important_indexes is None:
            priority = list(range(n))
        else:
            priority = list(dict.fromkeys(int(i) for i in important_indexes))
        if any(i < 0 or i >= n for i in priority):
            raise InvalidArgument("BrownianBridge: important index out of range")

        simulation_indexes = np.zeros(n, dtype=int)
        variances = np.zeros(n)
        left = np.full(n, -1, dtype=int)
        right = np.full(n, n, dtype=int)
        conditional_var = dates.copy()
        prioritised = set(priority)
        remaining = [i for i in range(n) if i not in prioritised]

        for k in range(n):
            pool = priority if priority else remaining
            max_var = max(conditional_var[i] for i in pool)
            current = min(i for i in pool if machine_equality(conditional_var[i], max_var))
            pool.remove(current)

            simulation_indexes[k] = current
            variances[k] = conditional_var[current]

            current_left, current_right = left[current], right[current]
            left_date = 0.0 if current_left == -1 else dates[current_left]
            current_date = dates[current]

            for j in range(current_left + 1, current):
                span = current_date - left_date
                conditional_var[j] = (dates[j] - left_date) * (current_date - dates[j]) / span if span > 0.0 else 0.0
                right[j] = current
            conditional_var[current] = 0.0
            for j in range(current + 1, current_right):
                if current_right == n:
                    conditional_var[j] = dates[j] - current_date
                else:
                    right_date = dates[current_right]
                    span = right_date - current_date
                    conditional_var[j] = (right_date - dates[j]) * (dates[j] - current_date) / span if span > 0.0 else 0.0
                left[j] = current

        left_weights = np.ones(n)
        right_weights = np.zeros(n)
        for k, current in enumerate(simulation_indexes):
            r = right[current]
            if r != n:
                left_date = 0.0 if left[current] == -1 else dates[left[current]]
                span = dates[r] - left_date
                if span > 0.0:
                    left_weights[k] = (dates[r] - dates[current]) / span
                    right_weights[k] = (dates[current] - left_date) / span

        logger.debug(f"Brownian bridge built on {n} dates")
        return cls(dates, simulation_indexes, np.sqrt(np.maximum(variances, 0.0)),
                   left, right, left_weights, right_weights)

    def gaussian_size(self, dimension: int = 1) -> int:
        return len(self.dates) * dimension

    def path(self, gaussians: np.ndarray, dimension: Optional[int] = None) -> np.ndarray:
        """
        Brownian values at the bridge dates.

        Args:
            gaussians: Array whose last axis holds gaussian_size(dimension)
                draws, consumed position-major (all coordinates of the first
                simulated date, then the second, ...)
            dimension: Number of independent coordinates; None for a scalar
                motion

        Returns:
            Array shaped (..., n_dates) when dimension is None, otherwise
            (..., n_dates, dimension)
        """
        gaussians = np.asarray(gaussians, dtype=float)
        n = len(self.dates)
        dim = 1 if dimension is None else dimension
        if gaussians.shape[-1] != n * dim:
            raise InvalidArgument(
                f"BrownianBridge: expected {n * dim} gaussians, got {gaussians.shape[-1]}"
            )
        batch_shape = gaussians.shape[:-1]
        draws = gaussians.reshape(batch_shape + (n, dim))
        values = np.zeros(batch_shape + (n, dim))

        for k, current in enumerate(self.simulation_indexes):
            value = draws[..., k, :] * self.std_devs[k]
            l, r = self.left_indexes[current], self.right_indexes[current]
            if l != -1:
                value = value + self.left_weights[k] * values[..., l, :]
            if r != n:
                value = value + self.right_weights[k] * values[..., r, :]
            values[..., current, :] = value

        if dimension is None:
            return values[..., 0]
        return values

    def path_increments(self, gaussians: np.ndarray, dimension: int) -> np.ndarray:
        """Increments between consecutive dates, the first from the origin."""
        values = self.path(gaussians, dimension)
        increments = values.copy()
        increments[..., 1:, :] = values[..., 1:, :] - values[..., :-1, :]
        return increments
