"""
Numerical method configuration.

Validated pydantic models shared by the Monte Carlo pricer, the dividend
option pricer and the HTTP layer.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from quantcore.maths.random import PseudoRandomGenerator, RandomGenerator, SobolGenerator


class RandomGeneratorType(str, Enum):
    """Gaussian draw sources."""
    SOBOL = "sobol"
    PSEUDO = "pseudo"


class MonteCarloConfig(BaseModel):
    """Monte Carlo run configuration."""

    model_config = ConfigDict(frozen=True)

    num_paths: int = Field(default=2 ** 14, gt=0, description="Number of simulated paths")
    random_generator: RandomGeneratorType = RandomGeneratorType.SOBOL
    scramble: bool = Field(default=True, description="Owen scrambling of the Sobol sequence")
    seed: Optional[int] = None
    block_size: int = Field(default=2 ** 12, gt=0, description="Paths per batch")

    def build_random_generator(self, dimension: int) -> RandomGenerator:
        if self.random_generator == RandomGeneratorType.SOBOL:
            return SobolGenerator(dimension, scramble=self.scramble, seed=self.seed)
        return PseudoRandomGenerator(dimension, seed=self.seed)


class DividendOptionConfig(BaseModel):
    """Two step quadrature settings of the dividend option pricer."""

    model_config = ConfigDict(frozen=True)

    quadrature_points: int = Field(default=10, gt=0, le=200)
