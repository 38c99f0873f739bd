"""Error taxonomy for the simulation engine.

Every validation error is raised before any path work starts. Errors raised
inside pool workers are pickled back to the parent process, so subclasses
carrying extra attributes implement ``__reduce__``.
"""


class SimulationError(Exception):
    """Base class for all engine errors."""


class ConfigValidationError(SimulationError, ValueError):
    """Malformed configuration: weights, barrier ordering, model parameters."""


class InvalidParameter(ConfigValidationError):
    """Model parameters violate the model's invariants."""


class InvalidCorrelation(ConfigValidationError):
    """Correlation matrix is not a valid correlation matrix."""

    def __init__(self, message: str, property: str | None = None):
        super().__init__(message)
        self.property = property

    def __reduce__(self):
        return (self.__class__, (str(self), self.property))


class NonPositiveSemiDefinite(InvalidCorrelation):
    """Cholesky sweep hit a negative pivot."""

    def __init__(self, message: str, property: str | None = "positive_semi_definite"):
        super().__init__(message, property)


class ShapeMismatch(SimulationError, ValueError):
    """Shock, path, or matrix dimensions disagree."""


class NumericInstability(SimulationError, ArithmeticError):
    """NaN or infinity produced while generating a path."""

    def __init__(self, message: str, symbol: str | None = None, path_index: int | None = None):
        super().__init__(message)
        self.symbol = symbol
        self.path_index = path_index

    def __reduce__(self):
        return (self.__class__, (str(self), self.symbol, self.path_index))
