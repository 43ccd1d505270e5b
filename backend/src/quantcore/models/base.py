"""
Model and process path base types.

Defines the abstract model, the path generator protocol shared by every
model discretisation and the simulated path container.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from quantcore.core.time_measure import TimeMeasure
from quantcore.errors import InvalidArgument
from quantcore.market.ids import AssetId


class Model(ABC):
    """
    Base class for stochastic models.

    Attributes:
        time: Time measure converting dates to model time
        pivot_currency: Currency whose risk-free measure the model is written in
    """

    def __init__(self, time: TimeMeasure, pivot_currency: str) -> None:
        self.time = time
        self.pivot_currency = pivot_currency


class EquityModel(Model):
    """Single-asset equity model quoted in the asset currency."""

    def __init__(self, time: TimeMeasure, asset: AssetId) -> None:
        super().__init__(time, asset.currency)
        self.asset = asset


@dataclass
class ProcessPath:
    """
    Simulated factor values.

    Attributes:
        dates: Model times of the simulated dates [n_dates]
        dimension: Number of factors
        values: Factor values [n_paths, n_dates, dimension]
    """

    dates: np.ndarray
    dimension: int
    values: np.ndarray

    def __post_init__(self) -> None:
        if self.values.ndim != 3 or self.values.shape[1:] != (len(self.dates), self.dimension):
            raise InvalidArgument(
                f"ProcessPath: values shaped {self.values.shape} for "
                f"{len(self.dates)} dates and dimension {self.dimension}"
            )

    @property
    def num_paths(self) -> int:
        return self.values.shape[0]

    def process_value(self, date_index: int) -> np.ndarray:
        """Factor values at one simulated date, shaped [n_paths, dimension]."""
        return self.values[:, date_index, :]


def check_simulation_dates(dates: Sequence[float]) -> np.ndarray:
    """Validate simulated model times: non-empty, non-negative, sorted."""
    dates = np.asarray(dates, dtype=float)
    if dates.ndim != 1 or len(dates) == 0:
        raise InvalidArgument("Simulation dates must be a non-empty sequence")
    if dates[0] < 0.0:
        raise InvalidArgument(f"Simulation dates must be non-negative, got {dates[0]}")
    if np.any(np.diff(dates) < 0.0):
        raise InvalidArgument("Simulation dates must be sorted")
    return dates


class ProcessPathGenerator(ABC):
    """
    Turns gaussian draws into factor paths on fixed simulation dates.

    Gaussians are shaped [n_paths, random_dim]; the resulting ProcessPath
    holds process_dim factors on `dates`.
    """

    def __init__(self, dates: Sequence[float], process_dim: int, random_dim: int) -> None:
        self.dates = check_simulation_dates(dates)
        self.process_dim = process_dim
        self.random_dim = random_dim

    @property
    def all_simulated_dates(self) -> np.ndarray:
        """Every date the discretisation steps through, sub-steps included."""
        return self.dates

    def _check_gaussians(self, gaussians: np.ndarray) -> np.ndarray:
        gaussians = np.asarray(gaussians, dtype=float)
        if gaussians.ndim != 2 or gaussians.shape[1] != self.random_dim:
            raise InvalidArgument(
                f"{type(self).__name__}: expected gaussians shaped (n, {self.random_dim}), "
                f"got {gaussians.shape}"
            )
        return gaussians

    @abstractmethod
    def path(self, gaussians: np.ndarray) -> ProcessPath:
        """Simulate one batch of paths."""
