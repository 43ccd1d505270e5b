"""
Error types raised by the quantcore library.

Each error also derives from the matching builtin so callers can keep
catching ValueError / KeyError / NotImplementedError.
"""


class QuantError(Exception):
    """Base class for all library errors."""


class InvalidArgument(QuantError, ValueError):
    """Construction-time validation failure (sizes, ordering, signs)."""


class MissingDataError(QuantError, KeyError):
    """A requested curve, asset market or key is not available."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class UnimplementedFeature(QuantError, NotImplementedError):
    """Feature known to the model layer but not supported yet."""


class ConvergenceError(QuantError, ArithmeticError):
    """Numerical routine failed to converge or to bracket a root."""


class RunCancelled(QuantError):
    """Monte Carlo run stopped through its cancellation token."""
