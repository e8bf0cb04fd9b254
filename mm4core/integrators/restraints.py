"""Anchor springs and constant external forces applied by the engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..forcefields.base import ForceProvider

if TYPE_CHECKING:
    from ..neighborlists import NeighborList


class AnchorRestraint(ForceProvider):
    """
    Harmonic springs tying anchored atoms to reference positions.

    Energy: E = 0.5 * k * |x - x_ref|^2 summed over anchored atoms.

    Attributes:
        reference_positions: Positions recorded when the anchors were set,
            shape (N, 3).
        mask: Anchored atoms, bool mask of shape (N,).
        stiffness: Spring constant in kJ/mol/nm^2.
    """

    def __init__(
        self,
        reference_positions: ArrayLike,
        mask: ArrayLike,
        stiffness: float,
    ) -> None:
        self.reference_positions = np.array(reference_positions, dtype=np.float64)
        self.mask = np.array(mask, dtype=bool)
        self.stiffness = float(stiffness)

        if self.mask.shape != (len(self.reference_positions),):
            raise ValueError(
                f"anchor mask length {self.mask.size} != number of atoms "
                f"{len(self.reference_positions)}"
            )

    @property
    def n_anchors(self) -> int:
        """Return number of anchored atoms."""
        return int(np.count_nonzero(self.mask))

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        positions = np.asarray(positions, dtype=np.float64)
        forces = np.zeros_like(positions)
        if self.n_anchors == 0:
            return forces, 0.0

        displacement = positions[self.mask] - self.reference_positions[self.mask]
        forces[self.mask] = -self.stiffness * displacement
        energy = 0.5 * self.stiffness * float(np.sum(displacement**2))
        return forces, energy


class ExternalForce(ForceProvider):
    """
    Constant per-atom forces.

    The matching potential is E = -sum(F . x), so that the total energy
    stays conserved while the forces act.

    Attributes:
        forces: External force on each atom in kJ/mol/nm, shape (N, 3).
    """

    def __init__(self, forces: ArrayLike) -> None:
        self.forces = np.array(forces, dtype=np.float64)
        if self.forces.ndim != 2 or self.forces.shape[1] != 3:
            raise ValueError(f"external forces shape {self.forces.shape} is not (N, 3)")

    @property
    def is_zero(self) -> bool:
        """Whether every external force vanishes."""
        return not np.any(self.forces)

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        positions = np.asarray(positions, dtype=np.float64)
        energy = -float(np.sum(self.forces * positions))
        return self.forces.copy(), energy
