"""Stochastic models: descriptions, factories, path generators and analytics."""

from quantcore.models.base import EquityModel, Model, ProcessPath, ProcessPathGenerator
from quantcore.models.bergomi import Bergomi2FModel, Bergomi2FUtils
from quantcore.models.black_scholes import BlackScholesModel, BlackScholesModelPathGenerator
from quantcore.models.calibration import calibrate
from quantcore.models.descriptions import (
    Bergomi2FModelDescription,
    BlackScholesModelCalibDesc,
    BlackScholesModelDescription,
    ExplicitCalibration,
    Hw1ModelDescription,
    LocalVolModelDescription,
)
from quantcore.models.dividend_option import AffineDivCurveUtils, BlackScholesWithDividendOption
from quantcore.models.dividends import DiscreteLocalDividend
from quantcore.models.factor_representation import FactorRepresentation
from quantcore.models.factory import build_factor_representation, build_model, build_path_generator
from quantcore.models.hull_white import Hw1Model, Hw1ModelPathGenerator
from quantcore.models.local_vol import LocalVariance, LocalVolatilityModel, VarianceInterpoler
from quantcore.models.ornstein_uhlenbeck import OrnsteinUhlenbeck, OrnsteinUhlenbeck1DGenerator

__all__ = [
    "EquityModel",
    "Model",
    "ProcessPath",
    "ProcessPathGenerator",
    "Bergomi2FModel",
    "Bergomi2FUtils",
    "BlackScholesModel",
    "BlackScholesModelPathGenerator",
    "calibrate",
    "Bergomi2FModelDescription",
    "BlackScholesModelCalibDesc",
    "BlackScholesModelDescription",
    "ExplicitCalibration",
    "Hw1ModelDescription",
    "LocalVolModelDescription",
    "AffineDivCurveUtils",
    "BlackScholesWithDividendOption",
    "DiscreteLocalDividend",
    "FactorRepresentation",
    "build_factor_representation",
    "build_model",
    "build_path_generator",
    "Hw1Model",
    "Hw1ModelPathGenerator",
    "LocalVariance",
    "LocalVolatilityModel",
    "VarianceInterpoler",
    "OrnsteinUhlenbeck",
    "OrnsteinUhlenbeck1DGenerator",
]
