"""
mm4core - The MM4 molecular mechanics force field engine.

Design Principles:
- Parameters derived once from bond topology, immutable and shareable
- Force evaluation as a pure function of positions
- Deterministic reductions across serial and parallel backends
- Engine actions that leave a consistent state on failure

Quick Start:
    >>> from mm4core import ForceField, Parameters
    >>> parameters = Parameters.build(atomic_numbers, bonds)
    >>> forcefield = ForceField(parameters, positions)
    >>> forcefield.minimize()
    >>> print(f"Energy: {forcefield.potential_energy:.3f} kJ/mol")
"""

__version__ = "0.1.0"

from .config import ForceFieldOptions
from .engines import ForceField, MinimizationResult
from .errors import (
    ConvergenceFailure,
    InvalidConfiguration,
    InvalidTopology,
    MM4Error,
    NumericalInstability,
    UnsupportedAtomType,
)
from .forcefields import ForceEvaluator
from .neighborlists import VerletList
from .parameters import Parameters
from .system import RigidBodyPartition, State
from .topology import TopologyGraph

__all__ = [
    "ConvergenceFailure",
    "ForceEvaluator",
    "ForceField",
    "ForceFieldOptions",
    "InvalidConfiguration",
    "InvalidTopology",
    "MM4Error",
    "MinimizationResult",
    "NumericalInstability",
    "Parameters",
    "RigidBodyPartition",
    "State",
    "TopologyGraph",
    "UnsupportedAtomType",
    "VerletList",
]
