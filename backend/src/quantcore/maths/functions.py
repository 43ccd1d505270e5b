"""
Real to real function algebra.

Closed-form functions used for volatility and variance term structures:
- Constant, exponential and affine functions
- Step functions (right-continuous, with a value below the first pillar)
- Step functions weighted by another function
- Piecewise polynomial interpolation (linear and cubic spline)
- Linear combinations and products

Derivative, integral, sum and product are computed analytically whenever the
result stays in one of the closed families above.
"""

from abc import ABC, abstractmethod
from math import factorial
from numbers import Real
from typing import List, Optional, Sequence, Tuple, Union
import math

import numpy as np
from numpy.polynomial import Polynomial

from quantcore.errors import InvalidArgument, UnimplementedFeature
from quantcore.maths.step_searcher import StepSearcher

FunctionLike = Union["RrFunction", float]


def _as_function(f: FunctionLike) -> "RrFunction":
    if isinstance(f, RrFunction):
        return f
    if isinstance(f, Real):
        return constant(float(f))
    raise TypeError(f"Cannot convert {type(f).__name__} to RrFunction")


class RrFunction(ABC):
    """Immutable function from the real line to the real line."""

    @abstractmethod
    def eval(self, x: float) -> float:
        """Evaluate the function at x."""

    @abstractmethod
    def derivative(self) -> "RrFunction":
        """First derivative."""

    @abstractmethod
    def integral(self, base_point: float) -> "RrFunction":
        """Primitive vanishing at base_point."""

    def add(self, other: "RrFunction") -> "RrFunction":
        return LinearCombination([1.0, 1.0], [self, other])

    def mult(self, other: "RrFunction") -> "RrFunction":
        return ProductFunction(1.0, [self, other])

    def inverse(self) -> "RrFunction":
        raise UnimplementedFeature(f"Inverse not available for {type(self).__name__}")

    def __call__(self, x: float) -> float:
        return self.eval(x)

    def __add__(self, other: FunctionLike) -> "RrFunction":
        return self.add(_as_function(other))

    def __radd__(self, other: FunctionLike) -> "RrFunction":
        return _as_function(other).add(self)

    def __neg__(self) -> "RrFunction":
        return self.mult(constant(-1.0))

    def __sub__(self, other: FunctionLike) -> "RrFunction":
        return self.add(-_as_function(other))

    def __rsub__(self, other: FunctionLike) -> "RrFunction":
        return _as_function(other).add(-self)

    def __mul__(self, other: FunctionLike) -> "RrFunction":
        return self.mult(_as_function(other))

    def __rmul__(self, other: FunctionLike) -> "RrFunction":
        return _as_function(other).mult(self)

    def __truediv__(self, other: FunctionLike) -> "RrFunction":
        if isinstance(other, Real):
            if other == 0.0:
                raise ZeroDivisionError("RrFunction divided by zero")
            return self.mult(constant(1.0 / float(other)))
        return self.mult(_as_function(other).inverse())

    def __rtruediv__(self, other: FunctionLike) -> "RrFunction":
        return _as_function(other).mult(self.inverse())


# ============================================================================
# Constant and exponential
# ============================================================================

class ConstantFunction(RrFunction):
    """f(x) = value."""

    def __init__(self, value: float) -> None:
        self.value = float(value)

    def eval(self, x: float) -> float:
        return self.value

    def derivative(self) -> RrFunction:
        return zero()

    def integral(self, base_point: float) -> RrFunction:
        return linear_interpolation([base_point], [0.0], self.value, self.value)

    def inverse(self) -> RrFunction:
        if self.value == 0.0:
            raise ZeroDivisionError("Inverse of the zero function")
        return constant(1.0 / self.value)

    def add(self, other: RrFunction) -> RrFunction:
        if isinstance(other, ConstantFunction):
            return constant(self.value + other.value)
        if self.value == 0.0:
            return other
        if isinstance(other, (StepFunction, SplineInterpolation, LinearCombination)):
            return other.add(self)
        return super().add(other)

    def mult(self, other: RrFunction) -> RrFunction:
        if isinstance(other, ConstantFunction):
            return constant(self.value * other.value)
        if self.value == 0.0:
            return zero()
        if self.value == 1.0:
            return other
        if isinstance(other, (ExpFunction, StepFunction, WeightedStepFunction,
                              SplineInterpolation, LinearCombination, ProductFunction)):
            return other.mult(self)
        return ProductFunction(self.value, [other])

    def __repr__(self) -> str:
        return f"ConstantFunction({self.value})"


class ExpFunction(RrFunction):
    """f(x) = weight * exp(slope * x), with non-zero weight and slope."""

    def __init__(self, weight: float, slope: float) -> None:
        self.weight = float(weight)
        self.slope = float(slope)

    @staticmethod
    def create(weight: float, slope: float) -> RrFunction:
        """Build weight * exp(slope * x), degenerating to constants when possible."""
        if weight == 0.0:
            return zero()
        if slope == 0.0:
            return constant(weight)
        return ExpFunction(weight, slope)

    def eval(self, x: float) -> float:
        return self.weight * math.exp(self.slope * x)

    def derivative(self) -> RrFunction:
        return ExpFunction.create(self.weight * self.slope, self.slope)

    def integral(self, base_point: float) -> RrFunction:
        primitive = ExpFunction.create(self.weight / self.slope, self.slope)
        return primitive.add(constant(-primitive.eval(base_point)))

    def inverse(self) -> RrFunction:
        return ExpFunction.create(1.0 / self.weight, -self.slope)

    def mult(self, other: RrFunction) -> RrFunction:
        if isinstance(other, ExpFunction):
            return ExpFunction.create(self.weight * other.weight, self.slope + other.slope)
        if isinstance(other, ConstantFunction):
            return ExpFunction.create(self.weight * other.value, self.slope)
        if isinstance(other, (StepFunction, WeightedStepFunction, LinearCombination)):
            return other.mult(self)
        return super().mult(other)

    def __repr__(self) -> str:
        return f"ExpFunction(weight={self.weight}, slope={self.slope})"


# ============================================================================
# Combinators
# ============================================================================

class LinearCombination(RrFunction):
    """f(x) = sum_i weights[i] * functions[i](x)."""

    def __init__(self, weights: Sequence[float], functions: Sequence[RrFunction]) -> None:
        if len(weights) != len(functions):
            raise InvalidArgument(
                f"LinearCombination: {len(weights)} weights for {len(functions)} functions"
            )
        self.weights = tuple(float(w) for w in weights)
        self.functions = tuple(functions)

    def eval(self, x: float) -> float:
        return sum(w * f.eval(x) for w, f in zip(self.weights, self.functions))

    def derivative(self) -> RrFunction:
        return linear_combination(self.weights, [f.derivative() for f in self.functions])

    def integral(self, base_point: float) -> RrFunction:
        return linear_combination(self.weights, [f.integral(base_point) for f in self.functions])

    def add(self, other: RrFunction) -> RrFunction:
        if isinstance(other, LinearCombination):
            return LinearCombination(self.weights + other.weights, self.functions + other.functions)
        return LinearCombination(self.weights + (1.0,), self.functions + (other,))

    def mult(self, other: RrFunction) -> RrFunction:
        if isinstance(other, ConstantFunction):
            return linear_combination([w * other.value for w in self.weights], self.functions)
        return linear_combination(self.weights, [f.mult(other) for f in self.functions])


class ProductFunction(RrFunction):
    """f(x) = weight * prod_i functions[i](x). Evaluation only."""

    def __init__(self, weight: float, functions: Sequence[RrFunction]) -> None:
        self.weight = float(weight)
        self.functions = tuple(functions)

    def eval(self, x: float) -> float:
        result = self.weight
        for f in self.functions:
            result *= f.eval(x)
        return result

    def derivative(self) -> RrFunction:
        raise UnimplementedFeature("Derivative of a generic product")

    def integral(self, base_point: float) -> RrFunction:
        raise UnimplementedFeature("Integral of a generic product")

    def mult(self, other: RrFunction) -> RrFunction:
        if isinstance(other, ConstantFunction):
            return ProductFunction(self.weight * other.value, self.functions)
        if isinstance(other, ProductFunction):
            return ProductFunction(self.weight * other.weight, self.functions + other.functions)
        return ProductFunction(self.weight, self.functions + (other,))


# ============================================================================
# Step functions
# ============================================================================

def _check_pillars(name: str, abscissae: Sequence[float], values: Sequence[float]) -> StepSearcher:
    if len(abscissae) != len(values):
        raise InvalidArgument(f"{name}: {len(abscissae)} abscissae but {len(values)} values")
    return StepSearcher(abscissae)


class StepFunction(RrFunction):
    """
    Piecewise constant function.

    f(x) = left_value for x < pillars[0], values[i] on [pillars[i], pillars[i+1])
    and values[-1] at and above the last pillar.
    """

    def __init__(self, pillars: Sequence[float], values: Sequence[float], left_value: float) -> None:
        self.searcher = _check_pillars("StepFunction", pillars, values)
        self.pillars = self.searcher.pillars
        self.values = tuple(float(v) for v in values)
        self.left_value = float(left_value)

    def eval(self, x: float) -> float:
        idx = self.searcher.locate_left_index(x)
        if idx < 0:
            return self.left_value
        return self.values[idx]

    def derivative(self) -> RrFunction:
        raise UnimplementedFeature("Derivative of a step function")

    def integral(self, base_point: float) -> RrFunction:
        pillars = self.pillars
        cumulated = [0.0]
        for i in range(len(pillars) - 1):
            cumulated.append(cumulated[-1] + self.values[i] * (pillars[i + 1] - pillars[i]))
        primitive = linear_interpolation(pillars, cumulated, self.left_value, self.values[-1])
        return primitive.add(constant(-primitive.eval(base_point)))

    def _merge(self, other: "StepFunction", op) -> "StepFunction":
        pillars = np.union1d(self.pillars, other.pillars)
        values = [op(self.eval(p), other.eval(p)) for p in pillars]
        return StepFunction(pillars, values, op(self.left_value, other.left_value))

    def as_spline(self) -> "SplineInterpolation":
        """Same function as a degree zero piecewise polynomial."""
        pieces = [Polynomial([self.left_value])] + [Polynomial([v]) for v in self.values]
        return SplineInterpolation(self.pillars, pieces)

    def add(self, other: RrFunction) -> RrFunction:
        if isinstance(other, ConstantFunction):
            c = other.value
            return StepFunction(self.pillars, [v + c for v in self.values], self.left_value + c)
        if isinstance(other, StepFunction):
            return self._merge(other, lambda a, b: a + b)
        if isinstance(other, SplineInterpolation):
            return other.add(self)
        return super().add(other)

    def mult(self, other: RrFunction) -> RrFunction:
        if isinstance(other, ConstantFunction):
            c = other.value
            return StepFunction(self.pillars, [v * c for v in self.values], self.left_value * c)
        if isinstance(other, StepFunction):
            return self._merge(other, lambda a, b: a * b)
        if isinstance(other, SplineInterpolation):
            return other.mult(self)
        if isinstance(other, WeightedStepFunction):
            return other.mult(self)
        return WeightedStepFunction(other, self.pillars, self.values, self.left_value)

    def __repr__(self) -> str:
        return f"StepFunction(pillars={self.pillars.tolist()}, values={list(self.values)}, left_value={self.left_value})"


class WeightedStepFunction(RrFunction):
    """f(x) = step(x) * weight(x)."""

    def __init__(
        self,
        weight: RrFunction,
        pillars: Sequence[float],
        values: Sequence[float],
        left_value: float
    ) -> None:
        self.weight = weight
        self.step = StepFunction(pillars, values, left_value)

    def eval(self, x: float) -> float:
        return self.step.eval(x) * self.weight.eval(x)

    def derivative(self) -> RrFunction:
        raise UnimplementedFeature("Derivative of a weighted step function")

    def integral(self, base_point: float) -> RrFunction:
        step = self.step
        weight_integral = self.weight.integral(base_point)

        # Jumps of the weighted part are compensated by a plain step function
        compensation = []
        total = 0.0
        previous = step.left_value
        for pillar, value in zip(step.pillars, step.values):
            total -= weight_integral.eval(pillar) * (value - previous)
            compensation.append(total)
            previous = value

        weighted = WeightedStepFunction(weight_integral, step.pillars, step.values, step.left_value)
        primitive = weighted.add(StepFunction(step.pillars, compensation, 0.0))
        return primitive.add(constant(-primitive.eval(base_point)))

    def mult(self, other: RrFunction) -> RrFunction:
        if isinstance(other, StepFunction):
            merged = self.step.mult(other)
            return WeightedStepFunction(self.weight, merged.pillars, merged.values, merged.left_value)
        return WeightedStepFunction(self.weight.mult(other), self.step.pillars,
                                    self.step.values, self.step.left_value)


# ============================================================================
# Piecewise polynomials
# ============================================================================

def _taylor_shift(poly: Polynomial, shift: float) -> Polynomial:
    """Polynomial q with q(h) = poly(h + shift)."""
    if shift == 0.0:
        return poly
    degree = poly.degree()
    coeffs = [float(poly(shift))]
    for k in range(1, degree + 1):
        coeffs.append(float(poly.deriv(k)(shift)) / factorial(k))
    return Polynomial(coeffs)


def _slope(poly: Polynomial) -> float:
    coeffs = poly.coef
    return float(coeffs[1]) if len(coeffs) > 1 else 0.0


class SplineInterpolation(RrFunction):
    """
    Piecewise polynomial function.

    pieces[0] is the left extrapolation, expressed in h = x - pillars[0];
    pieces[i + 1] holds on [pillars[i], pillars[i+1]) in h = x - pillars[i];
    the last piece is the right extrapolation.
    """

    def __init__(self, pillars: Sequence[float], pieces: Sequence[Polynomial]) -> None:
        self.searcher = StepSearcher(pillars)
        self.pillars = self.searcher.pillars
        if len(pieces) != len(self.pillars) + 1:
            raise InvalidArgument(
                f"SplineInterpolation: {len(pieces)} pieces for {len(self.pillars)} pillars"
            )
        self.pieces = tuple(pieces)

    def _locate(self, x: float) -> Tuple[int, float]:
        idx = self.searcher.locate_left_index(x)
        if idx < 0:
            return 0, self.pillars[0]
        return idx + 1, self.pillars[idx]

    def _piece_at(self, x: float, anchor: float) -> Polynomial:
        """Polynomial active at x, re-based on anchor."""
        piece_idx, origin = self._locate(x)
        return _taylor_shift(self.pieces[piece_idx], anchor - origin)

    def eval(self, x: float) -> float:
        piece_idx, origin = self._locate(x)
        return float(self.pieces[piece_idx](x - origin))

    def max_degree(self) -> int:
        return max(p.degree() for p in self.pieces)

    def derivative(self) -> RrFunction:
        if self.max_degree() <= 1:
            slopes = [_slope(p) for p in self.pieces]
            return StepFunction(self.pillars, slopes[1:], slopes[0])
        return SplineInterpolation(self.pillars, [p.deriv() for p in self.pieces])

    def integral(self, base_point: float) -> RrFunction:
        pillars = self.pillars
        pieces = [self.pieces[0].integ()]
        offset = 0.0
        for i in range(len(pillars)):
            primitive = self.pieces[i + 1].integ()
            pieces.append(primitive + offset)
            if i + 1 < len(pillars):
                offset += float(primitive(pillars[i + 1] - pillars[i]))
        result = SplineInterpolation(pillars, pieces)
        return result.add(constant(-result.eval(base_point)))

    def _map(self, func) -> "SplineInterpolation":
        return SplineInterpolation(self.pillars, [func(p) for p in self.pieces])

    def _merge(self, other: "SplineInterpolation", op) -> "SplineInterpolation":
        pillars = np.union1d(self.pillars, other.pillars)
        first = pillars[0]
        pieces = [op(self._piece_at(first - 1.0, first), other._piece_at(first - 1.0, first))]
        for p in pillars:
            pieces.append(op(self._piece_at(p, p), other._piece_at(p, p)))
        return SplineInterpolation(pillars, pieces)

    def add(self, other: RrFunction) -> RrFunction:
        if isinstance(other, ConstantFunction):
            return self._map(lambda p: p + other.value)
        if isinstance(other, StepFunction):
            return self._merge(other.as_spline(), lambda a, b: a + b)
        if isinstance(other, SplineInterpolation):
            return self._merge(other, lambda a, b: a + b)
        return super().add(other)

    def mult(self, other: RrFunction) -> RrFunction:
        if isinstance(other, ConstantFunction):
            return self._map(lambda p: p * other.value)
        if isinstance(other, StepFunction):
            return self._merge(other.as_spline(), lambda a, b: a * b)
        if isinstance(other, SplineInterpolation):
            return self._merge(other, lambda a, b: a * b)
        return super().mult(other)


def _natural_or_clamped_second_derivatives(
    x: np.ndarray,
    y: np.ndarray,
    left_derivative: float,
    right_derivative: float
) -> np.ndarray:
    """Second derivatives at the knots of a cubic spline (tridiagonal sweep)."""
    n = len(x)
    y2 = np.zeros(n)
    u = np.zeros(n)

    if math.isnan(left_derivative):
        y2[0] = u[0] = 0.0
    else:
        y2[0] = -0.5
        u[0] = (3.0 / (x[1] - x[0])) * ((y[1] - y[0]) / (x[1] - x[0]) - left_derivative)

    for i in range(1, n - 1):
        sig = (x[i] - x[i - 1]) / (x[i + 1] - x[i - 1])
        p = sig * y2[i - 1] + 2.0
        y2[i] = (sig - 1.0) / p
        u[i] = (y[i + 1] - y[i]) / (x[i + 1] - x[i]) - (y[i] - y[i - 1]) / (x[i] - x[i - 1])
        u[i] = (6.0 * u[i] / (x[i + 1] - x[i - 1]) - sig * u[i - 1]) / p

    if math.isnan(right_derivative):
        qn = un = 0.0
    else:
        h = x[n - 1] - x[n - 2]
        qn = 0.5
        un = (3.0 / h) * (right_derivative - (y[n - 1] - y[n - 2]) / h)

    y2[n - 1] = (un - qn * u[n - 2]) / (qn * y2[n - 2] + 1.0)
    for k in range(n - 2, -1, -1):
        y2[k] = y2[k] * y2[k + 1] + u[k]
    return y2


# ============================================================================
# Factories
# ============================================================================

_ZERO = ConstantFunction(0.0)


def zero() -> RrFunction:
    return _ZERO


def constant(value: float) -> RrFunction:
    if value == 0.0:
        return _ZERO
    return ConstantFunction(value)


def exponential(slope: float, weight: float = 1.0) -> RrFunction:
    """weight * exp(slope * x)."""
    return ExpFunction.create(weight, slope)


def affine(slope: float, origin: float) -> RrFunction:
    """slope * x + origin."""
    if slope == 0.0:
        return constant(origin)
    return constant(slope).integral(-origin / slope)


def linear_combination(weights: Sequence[float], functions: Sequence[RrFunction]) -> RrFunction:
    if len(weights) != len(functions):
        raise InvalidArgument(
            f"linear_combination: {len(weights)} weights for {len(functions)} functions"
        )
    if len(functions) == 0:
        return zero()
    if len(functions) == 1:
        return functions[0].mult(constant(weights[0]))
    return LinearCombination(weights, functions)


def sum_of(*functions: FunctionLike) -> RrFunction:
    result: Optional[RrFunction] = None
    for f in functions:
        f = _as_function(f)
        result = f if result is None else result.add(f)
    return result if result is not None else zero()


def product(*functions: FunctionLike) -> RrFunction:
    result: RrFunction = constant(1.0)
    for f in functions:
        result = result.mult(_as_function(f))
    return result


def linear_interpolation(
    abscissae: Sequence[float],
    values: Sequence[float],
    left_slope: float = 0.0,
    right_slope: float = 0.0
) -> SplineInterpolation:
    """Piecewise linear interpolation with linear extrapolation on both sides."""
    _check_pillars("linear_interpolation", abscissae, values)
    x = np.asarray(abscissae, dtype=float)
    y = [float(v) for v in values]

    pieces: List[Polynomial] = [Polynomial([y[0], left_slope])]
    for i in range(len(x) - 1):
        pieces.append(Polynomial([y[i], (y[i + 1] - y[i]) / (x[i + 1] - x[i])]))
    pieces.append(Polynomial([y[-1], right_slope]))
    return SplineInterpolation(x, pieces)


def cubic_spline(
    abscissae: Sequence[float],
    values: Sequence[float],
    left_derivative: float = float("nan"),
    right_derivative: float = float("nan")
) -> SplineInterpolation:
    """
    Cubic spline interpolation.

    A NaN end derivative gives the natural end condition (zero second
    derivative), otherwise the first derivative is clamped. Extrapolation is
    linear with the end slopes.
    """
    _check_pillars("cubic_spline", abscissae, values)
    if len(abscissae) < 2:
        raise InvalidArgument("cubic_spline: at least two pillars required")
    x = np.asarray(abscissae, dtype=float)
    y = np.asarray(values, dtype=float)
    m = _natural_or_clamped_second_derivatives(x, y, left_derivative, right_derivative)

    cubics: List[Polynomial] = []
    for i in range(len(x) - 1):
        h = x[i + 1] - x[i]
        b = (y[i + 1] - y[i]) / h - h * m[i] / 3.0 - h * m[i + 1] / 6.0
        cubics.append(Polynomial([y[i], b, 0.5 * m[i], (m[i + 1] - m[i]) / (6.0 * h)]))

    left = Polynomial([y[0], _slope(cubics[0])])
    last_step = x[-1] - x[-2]
    right = Polynomial([y[-1], float(cubics[-1].deriv()(last_step))])
    return SplineInterpolation(x, [left] + cubics + [right])
