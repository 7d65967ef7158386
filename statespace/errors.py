"""
Exceptions raised by the statespace package.

``DimensionMismatch`` is a kind of ``ConfigurationError``: shape disagreements
between regimes, data and initial conditions are configuration problems the
caller has to fix. ``NumericalError`` is reserved for inputs the linear algebra
cannot digest (non-finite entries, failed decompositions).
"""


class StateSpaceError(Exception):
    """Base class for all errors raised by statespace."""
    pass


class ConfigurationError(StateSpaceError, ValueError):
    """Malformed regime schedule or model configuration."""
    pass


class DimensionMismatch(ConfigurationError):
    """Data, regime schedule and system matrices disagree in shape."""
    pass


class ValidationError(ConfigurationError):
    """A YAML model description failed schema validation."""
    pass


class NumericalError(StateSpaceError, ArithmeticError):
    """A required decomposition or inverse could not be computed."""
    pass


__all__ = [
    "StateSpaceError",
    "ConfigurationError",
    "DimensionMismatch",
    "ValidationError",
    "NumericalError",
]
