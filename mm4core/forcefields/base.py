"""Base interface for force providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from ..neighborlists import NeighborList


class ForceProvider(ABC):
    """
    Abstract base class for all force computation modules.

    Every energy term of the force field implements this interface. A
    provider is a pure function of the positions: it holds only immutable
    parameters, so it can be shipped to worker processes.
    """

    @abstractmethod
    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """
        Compute forces and potential energy.

        Args:
            positions: Atomic positions in nm, shape (N, 3).
            neighbors: Optional neighbor list for nonbonded interactions.

        Returns:
            Tuple of (forces in kJ/mol/nm with shape (N, 3), energy in kJ/mol).
        """
        ...

    def compute(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> NDArray[np.floating]:
        """
        Compute forces on all atoms.

        Args:
            positions: Atomic positions in nm, shape (N, 3).
            neighbors: Optional neighbor list for nonbonded interactions.

        Returns:
            Forces array of shape (N, 3).
        """
        forces, _ = self.compute_with_energy(positions, neighbors)
        return forces

    def energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> float:
        """Compute the potential energy only."""
        _, energy = self.compute_with_energy(positions, neighbors)
        return energy
