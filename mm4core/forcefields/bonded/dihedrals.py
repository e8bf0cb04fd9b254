"""MM4 torsion and torsion-stretch forces."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..base import ForceProvider
from .geometry import Dihedrals, dihedrals

if TYPE_CHECKING:
    from ...neighborlists import NeighborList
    from ...parameters import Parameters


def _dihedral_geometry(
    positions: NDArray[np.floating], indices: NDArray[np.integer]
) -> Dihedrals:
    return dihedrals(
        positions, indices[:, 0], indices[:, 1], indices[:, 2], indices[:, 3]
    )


def _accumulate(
    forces: NDArray[np.floating],
    indices: NDArray[np.integer],
    geometry: Dihedrals,
    torque: NDArray[np.floating],
) -> None:
    """Add -dV/dphi * dphi/dx to the four atoms of each dihedral."""
    torque = torque[:, np.newaxis]
    np.add.at(forces, indices[:, 0], -torque * geometry.grad_i)
    np.add.at(forces, indices[:, 1], -torque * geometry.grad_j)
    np.add.at(forces, indices[:, 2], -torque * geometry.grad_k)
    np.add.at(forces, indices[:, 3], -torque * geometry.grad_l)


class MM4TorsionForce(ForceProvider):
    """
    MM4 Fourier torsion force.

    V(w) = V1 (1 + cos w) + Vn (1 - cos n w) + V3 (1 + cos 3w)
           + V4 (1 - cos 4w) + V6 (1 - cos 6w)

    where w is the dihedral i-j-k-l (180 degrees for trans). The barriers
    are stored already halved.

    Attributes:
        dihedral_indices: Dihedral atom quads (i, j, k, l), shape (N_dihedrals, 4).
        V1, Vn, V3, V4, V6: Halved barriers in kJ/mol, shape (N_dihedrals,).
        periodicities: Periodicity n of the Vn term, shape (N_dihedrals,).
    """

    def __init__(
        self,
        dihedral_indices: ArrayLike,
        V1: ArrayLike,
        Vn: ArrayLike,
        V3: ArrayLike,
        periodicities: ArrayLike,
        V4: ArrayLike | None = None,
        V6: ArrayLike | None = None,
    ) -> None:
        """
        Initialize torsion force.

        Args:
            dihedral_indices: Dihedral atom quads (i, j, k, l).
            V1: One-fold halved barriers in kJ/mol.
            Vn: n-fold halved barriers in kJ/mol.
            V3: Three-fold halved barriers in kJ/mol.
            periodicities: Periodicity n of the Vn term (even integer).
            V4: Four-fold halved barriers. Defaults to zero.
            V6: Six-fold halved barriers. Defaults to zero.
        """
        self.dihedral_indices = np.asarray(dihedral_indices, dtype=np.int64).reshape(
            -1, 4
        )
        n_dihedrals = len(self.dihedral_indices)
        self.V1 = np.asarray(V1, dtype=np.float64)
        self.Vn = np.asarray(Vn, dtype=np.float64)
        self.V3 = np.asarray(V3, dtype=np.float64)
        self.V4 = np.zeros(n_dihedrals) if V4 is None else np.asarray(V4, np.float64)
        self.V6 = np.zeros(n_dihedrals) if V6 is None else np.asarray(V6, np.float64)
        self.periodicities = np.asarray(periodicities, dtype=np.int64)

        for name in ("V1", "Vn", "V3", "V4", "V6", "periodicities"):
            values = getattr(self, name)
            if len(values) != n_dihedrals:
                raise ValueError(
                    f"{name} length {len(values)} != number of dihedrals {n_dihedrals}"
                )
        if np.any(self.periodicities % 2 != 0):
            raise ValueError("periodicities must be even integers")

    @classmethod
    def from_parameters(cls, parameters: Parameters) -> MM4TorsionForce:
        """Create from resolved force field parameters."""
        return cls(
            parameters.torsions,
            parameters.torsion_V1,
            parameters.torsion_Vn,
            parameters.torsion_V3,
            parameters.torsion_n,
            parameters.torsion_V4,
            parameters.torsion_V6,
        )

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """Compute torsion forces and potential energy."""
        forces = np.zeros((len(positions), 3), dtype=np.float64)

        if len(self.dihedral_indices) == 0:
            return forces, 0.0

        geometry = _dihedral_geometry(positions, self.dihedral_indices)
        phi = geometry.phi
        n = self.periodicities.astype(np.float64)

        energy = float(
            np.sum(
                self.V1 * (1.0 + np.cos(phi))
                + self.Vn * (1.0 - np.cos(n * phi))
                + self.V3 * (1.0 + np.cos(3.0 * phi))
                + self.V4 * (1.0 - np.cos(4.0 * phi))
                + self.V6 * (1.0 - np.cos(6.0 * phi))
            )
        )
        torque = (
            -self.V1 * np.sin(phi)
            + n * self.Vn * np.sin(n * phi)
            - 3.0 * self.V3 * np.sin(3.0 * phi)
            + 4.0 * self.V4 * np.sin(4.0 * phi)
            + 6.0 * self.V6 * np.sin(6.0 * phi)
        )
        _accumulate(forces, self.dihedral_indices, geometry, torque)

        return forces, energy


class TorsionStretchForce(ForceProvider):
    """
    Coupling between a torsion and the length of its central bond.

    V = Kts * (r_jk - r0) * (1 + cos 3w)

    Attributes:
        dihedral_indices: Dihedral atom quads (i, j, k, l), shape (N_dihedrals, 4).
        force_constants: Kts in kJ/mol/nm, shape (N_dihedrals,).
        equilibrium_lengths: Central bond r0 in nm, shape (N_dihedrals,).
    """

    def __init__(
        self,
        dihedral_indices: ArrayLike,
        force_constants: ArrayLike,
        equilibrium_lengths: ArrayLike,
    ) -> None:
        self.dihedral_indices = np.asarray(dihedral_indices, dtype=np.int64).reshape(
            -1, 4
        )
        self.force_constants = np.asarray(force_constants, dtype=np.float64)
        self.equilibrium_lengths = np.asarray(equilibrium_lengths, dtype=np.float64)

        n_dihedrals = len(self.dihedral_indices)
        if len(self.force_constants) != n_dihedrals:
            raise ValueError(
                f"force_constants length {len(self.force_constants)} != "
                f"number of dihedrals {n_dihedrals}"
            )
        if len(self.equilibrium_lengths) != n_dihedrals:
            raise ValueError(
                f"equilibrium_lengths length {len(self.equilibrium_lengths)} != "
                f"number of dihedrals {n_dihedrals}"
            )

    @classmethod
    def from_parameters(cls, parameters: Parameters) -> TorsionStretchForce:
        """Create from resolved force field parameters."""
        return cls(
            parameters.torsions,
            parameters.torsion_stretch,
            parameters.torsion_bond_lengths,
        )

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """Compute torsion-stretch forces and potential energy."""
        forces = np.zeros((len(positions), 3), dtype=np.float64)

        if len(self.dihedral_indices) == 0:
            return forces, 0.0

        geometry = _dihedral_geometry(positions, self.dihedral_indices)
        phi = geometry.phi
        stretch = geometry.central.r - self.equilibrium_lengths
        fourier = 1.0 + np.cos(3.0 * phi)

        energy = float(np.sum(self.force_constants * stretch * fourier))

        torque = -3.0 * self.force_constants * stretch * np.sin(3.0 * phi)
        _accumulate(forces, self.dihedral_indices, geometry, torque)

        # Central bond: dV/dr pulls k toward j when positive
        d_length = (self.force_constants * fourier)[:, np.newaxis]
        bond_forces = d_length * geometry.central.unit
        np.add.at(forces, self.dihedral_indices[:, 2], -bond_forces)
        np.add.at(forces, self.dihedral_indices[:, 1], bond_forces)

        return forces, energy
