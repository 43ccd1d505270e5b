"""
Plain-data model and calibration descriptions.

Descriptions are validated, immutable pydantic models. Pillars are given as
(date-or-tenor, value) pairs, e.g. ("1Y", 0.2) or ("2026-06-19", 0.2), and
are resolved against the market reference date when the model is built.
"""

from datetime import date
from typing import List, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from quantcore.core.time_measure import DateOrDuration, TimeMeasure
from quantcore.errors import InvalidArgument
from quantcore.maths.functions import RrFunction, StepFunction, constant

PillarKey = Union[date, str]
Pillars = List[Tuple[PillarKey, float]]


def _check_pillar_keys(pillars: Pillars) -> Pillars:
    if not pillars:
        raise ValueError("at least one pillar is required")
    for key, _ in pillars:
        try:
            DateOrDuration(key)
        except InvalidArgument as e:
            raise ValueError(str(e)) from e
    return pillars


def pillar_times(pillars: Pillars, time: TimeMeasure) -> np.ndarray:
    return time.t([DateOrDuration(key).to_date(time.ref_date) for key, _ in pillars])


def piecewise_vol_function(pillars: Pillars, time: TimeMeasure) -> RrFunction:
    """
    Instantaneous vol from pillars.

    Each value applies from the previous pillar up to its own pillar; the
    first value also applies before the first pillar and the last one is
    held after the last pillar.
    """
    times = pillar_times(pillars, time)
    values = [v for _, v in pillars]
    if np.any(np.diff(times) <= 0.0):
        raise InvalidArgument("Volatility pillars must be strictly increasing")
    if len(values) == 1:
        return constant(values[0])
    return StepFunction(times[:-1], values[1:], values[0])


class ModelDescription(BaseModel):
    """Base of all model descriptions."""

    model_config = ConfigDict(frozen=True)


class Hw1ModelDescription(ModelDescription):
    """Hull-White 1F short rate model of one currency."""

    currency: str = Field(..., min_length=3, max_length=3)
    mean_reversion: float
    sigma: Pillars = Field(..., description="Short rate normal vol pillars")

    @field_validator("sigma")
    @classmethod
    def validate_sigma(cls, v: Pillars) -> Pillars:
        return _check_pillar_keys(v)


class BlackScholesModelDescription(ModelDescription):
    """Black-Scholes equity model, optionally with the market discrete dividends."""

    asset: str = Field(..., min_length=1)
    sigma: Pillars = Field(..., description="Lognormal vol pillars")
    with_divs: bool = True

    @field_validator("sigma")
    @classmethod
    def validate_sigma(cls, v: Pillars) -> Pillars:
        _check_pillar_keys(v)
        if any(vol < 0.0 for _, vol in v):
            raise ValueError("volatilities must be non-negative")
        return v


class Bergomi2FModelDescription(ModelDescription):
    """Two factor Bergomi model; sigma pillars are term volatilities."""

    asset: str = Field(..., min_length=1)
    with_divs: bool = True
    sigma: Pillars
    k1: float = Field(..., gt=0)
    k2: float = Field(..., gt=0)
    theta: float = Field(..., ge=0, le=1)
    nu: float = Field(..., ge=0)
    rho_xy: float = Field(..., ge=-1, le=1)
    rho_sx: float = Field(..., ge=-1, le=1)
    rho_sy: float = Field(..., ge=-1, le=1)

    @field_validator("sigma")
    @classmethod
    def validate_sigma(cls, v: Pillars) -> Pillars:
        return _check_pillar_keys(v)


class LocalVolModelDescription(ModelDescription):
    """Local volatility model built from an implied volatility matrix."""

    asset: str = Field(..., min_length=1)
    with_divs: bool = True
    maturities: List[PillarKey]
    strikes: List[float]
    vols: List[List[float]]

    @model_validator(mode="after")
    def validate_matrix(self) -> "LocalVolModelDescription":
        if len(self.vols) != len(self.maturities):
            raise ValueError(f"{len(self.vols)} vol rows for {len(self.maturities)} maturities")
        if any(len(row) != len(self.strikes) for row in self.vols):
            raise ValueError("every vol row must have one value per strike")
        return self


class CalibrationDescription(BaseModel):
    """Base of all calibration descriptions."""

    model_config = ConfigDict(frozen=True)


class ExplicitCalibration(CalibrationDescription):
    """Calibration returning an already known model description."""

    model: Union[
        Hw1ModelDescription,
        BlackScholesModelDescription,
        Bergomi2FModelDescription,
        LocalVolModelDescription,
    ]


class BlackScholesModelCalibDesc(CalibrationDescription):
    """Black-Scholes vol term structure fitted to target implied vols."""

    asset: str = Field(..., min_length=1)
    with_divs: bool = True
    maturities: List[PillarKey] = Field(..., min_length=1)
    strikes: List[float]
    target_vols: List[float]

    @model_validator(mode="after")
    def validate_sizes(self) -> "BlackScholesModelCalibDesc":
        if not len(self.maturities) == len(self.strikes) == len(self.target_vols):
            raise ValueError("maturities, strikes and target_vols must have the same size")
        if any(k <= 0.0 for k in self.strikes):
            raise ValueError("strikes must be positive")
        if any(v <= 0.0 for v in self.target_vols):
            raise ValueError("target vols must be positive")
        return self
