"""Morse bond stretching force."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..base import ForceProvider
from .geometry import distances

if TYPE_CHECKING:
    from ...neighborlists import NeighborList
    from ...parameters import Parameters


class MorseBondForce(ForceProvider):
    """
    Morse bond stretching force.

    V(r) = D * (1 - exp(-beta * (r - r0)))^2

    Attributes:
        bond_indices: Bond atom pairs, shape (N_bonds, 2).
        well_depths: Dissociation energies D in kJ/mol, shape (N_bonds,).
        betas: Well widths beta in 1/nm, shape (N_bonds,).
        equilibrium_lengths: Equilibrium distances r0 in nm, shape (N_bonds,).
    """

    def __init__(
        self,
        bond_indices: ArrayLike,
        well_depths: ArrayLike,
        betas: ArrayLike,
        equilibrium_lengths: ArrayLike,
    ) -> None:
        """
        Initialize Morse bond force.

        Args:
            bond_indices: Bond atom pairs, shape (N_bonds, 2).
            well_depths: Dissociation energies in kJ/mol, shape (N_bonds,).
            betas: Well widths in 1/nm, shape (N_bonds,).
            equilibrium_lengths: Equilibrium distances in nm, shape (N_bonds,).
        """
        self.bond_indices = np.asarray(bond_indices, dtype=np.int64).reshape(-1, 2)
        self.well_depths = np.asarray(well_depths, dtype=np.float64)
        self.betas = np.asarray(betas, dtype=np.float64)
        self.equilibrium_lengths = np.asarray(equilibrium_lengths, dtype=np.float64)

        n_bonds = len(self.bond_indices)
        for name in ("well_depths", "betas", "equilibrium_lengths"):
            values = getattr(self, name)
            if len(values) != n_bonds:
                raise ValueError(
                    f"{name} length {len(values)} != number of bonds {n_bonds}"
                )

    @classmethod
    def from_parameters(cls, parameters: Parameters) -> MorseBondForce:
        """Create from resolved force field parameters."""
        return cls(
            parameters.bonds,
            parameters.bond_well_depths,
            parameters.bond_betas,
            parameters.bond_lengths,
        )

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """Compute bond forces and potential energy."""
        forces = np.zeros((len(positions), 3), dtype=np.float64)

        if len(self.bond_indices) == 0:
            return forces, 0.0

        i_indices = self.bond_indices[:, 0]
        j_indices = self.bond_indices[:, 1]
        bond = distances(positions, i_indices, j_indices)

        decay = np.exp(-self.betas * (bond.r - self.equilibrium_lengths))
        energy = float(np.sum(self.well_depths * (1.0 - decay) ** 2))

        # dV/dr = 2 * D * beta * exp(-beta dr) * (1 - exp(-beta dr))
        d_energy = 2.0 * self.well_depths * self.betas * decay * (1.0 - decay)

        # Force on j pulls it back toward i when stretched
        force_vectors = -d_energy[:, np.newaxis] * bond.unit
        np.add.at(forces, j_indices, force_vectors)
        np.add.at(forces, i_indices, -force_vectors)

        return forces, energy
