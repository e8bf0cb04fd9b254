"""The force field engine and its actions."""

from .engine import ForceField
from .minimizer import (
    DEFAULT_TOLERANCE,
    MinimizationResult,
    lbfgs,
    minimize,
    steepest_descent,
)
from .thermalizer import (
    degrees_of_freedom,
    remove_angular_momentum,
    remove_linear_momentum,
    thermalize,
)

__all__ = [
    "DEFAULT_TOLERANCE",
    "ForceField",
    "MinimizationResult",
    "degrees_of_freedom",
    "lbfgs",
    "minimize",
    "remove_angular_momentum",
    "remove_linear_momentum",
    "steepest_descent",
    "thermalize",
]
