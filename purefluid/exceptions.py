"""
Exceptions raised when setting or evaluating the state of a pure fluid.

All of them derive from ``ValueError`` so that callers catching the errors
raised by the property helpers keep working.
"""


class PureFluidError(ValueError):
    """Base exception for all purefluid errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class InvalidTarget(PureFluidError):
    """Requested property values cannot correspond to a physical state.

    Raised before any iteration starts (e.g., negative temperature, pressure or
    specific volume, vapor fraction outside [0, 1], saturation request above
    the critical point).
    """

    def __init__(self, message: str, pair: str = None, values: tuple = None):
        super().__init__(message, {"pair": pair, "values": values})
        self.pair = pair
        self.values = values


class ConvergenceFailure(PureFluidError):
    """The state solver did not find a state matching the requested values."""

    def __init__(self, message: str, iterations: int = None, residual: float = None):
        super().__init__(message, {"iterations": iterations, "residual": residual})
        self.iterations = iterations
        self.residual = residual


class OracleEvaluationError(PureFluidError):
    """
    The substance cannot evaluate its properties at a temperature-density point.
    Usually from CoolProp failing outside the validity range of the equation of state.
    """

    def __init__(self, message: str, fluid: str = None, temperature: float = None, density: float = None):
        super().__init__(message, {"fluid": fluid, "temperature": temperature, "density": density})
        self.fluid = fluid
        self.temperature = temperature
        self.density = density


__all__ = [
    "PureFluidError",
    "InvalidTarget",
    "ConvergenceFailure",
    "OracleEvaluationError",
]
