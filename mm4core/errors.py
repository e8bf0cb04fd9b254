"""Exception hierarchy for force field construction and actions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class MM4Error(Exception):
    """Base class for all errors raised by mm4core."""


class InvalidTopology(MM4Error, ValueError):
    """Bond graph is malformed: bad indices, self bonds, duplicates, bad valence."""


class UnsupportedAtomType(MM4Error, ValueError):
    """
    No parameter rule covers an atom, bond, angle or torsion.

    Attributes:
        atoms: Indices of the atoms in the offending term.
    """

    def __init__(self, message: str, atoms: Sequence[int] = ()) -> None:
        super().__init__(message)
        self.atoms = tuple(int(a) for a in atoms)


class InvalidConfiguration(MM4Error, ValueError):
    """Option value out of range or array size mismatch."""


class ConvergenceFailure(MM4Error, RuntimeError):
    """
    Minimization hit its iteration cap before meeting the tolerance.

    Attributes:
        result: The MinimizationResult at the best point reached.
    """

    def __init__(self, message: str, result: Any = None) -> None:
        super().__init__(message)
        self.result = result


class NumericalInstability(MM4Error, RuntimeError):
    """
    Non-finite positions or velocities appeared during simulation.

    Attributes:
        time: Simulated time (ps) of the last consistent state.
    """

    def __init__(self, message: str, time: float = 0.0) -> None:
        super().__init__(message)
        self.time = time
