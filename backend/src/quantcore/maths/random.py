"""
Gaussian draw generators for Monte Carlo.

Features:
- Pseudo random normals from numpy's default generator
- Sobol low discrepancy normals (scipy.stats.qmc) mapped through ndtri
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging

import numpy as np
from numpy.random import default_rng
from scipy.special import ndtri
from scipy.stats import qmc

from quantcore.errors import InvalidArgument

logger = logging.getLogger(__name__)

# Uniforms are kept away from 0 and 1 before inversion
_UNIFORM_FLOOR = 1e-12


class RandomGenerator(ABC):
    """Source of gaussian vectors of a fixed dimension."""

    def __init__(self, dimension: int) -> None:
        if dimension <= 0:
            raise InvalidArgument(f"Random dimension must be positive, got {dimension}")
        self.dimension = dimension

    @abstractmethod
    def next_gaussians(self, num_paths: int) -> np.ndarray:
        """Array shaped (num_paths, dimension) of independent N(0, 1) draws."""


class PseudoRandomGenerator(RandomGenerator):
    """numpy PCG64 normals."""

    def __init__(self, dimension: int, seed: Optional[int] = None) -> None:
        super().__init__(dimension)
        self._rng = default_rng(seed)

    def next_gaussians(self, num_paths: int) -> np.ndarray:
        return self._rng.standard_normal((num_paths, self.dimension))


class SobolGenerator(RandomGenerator):
    """Sobol sequence normals; draw blocks of a power of two for balance."""

    def __init__(self, dimension: int, scramble: bool = True, seed: Optional[int] = None) -> None:
        super().__init__(dimension)
        self._engine = qmc.Sobol(d=dimension, scramble=scramble, seed=seed)

    def next_gaussians(self, num_paths: int) -> np.ndarray:
        uniforms = self._engine.random(num_paths)
        return ndtri(np.clip(uniforms, _UNIFORM_FLOOR, 1.0 - _UNIFORM_FLOOR))
