"""Partial-charge electrostatics with a reaction field."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ...constants import COULOMB_CONSTANT, DEFAULT_CUTOFF, DEFAULT_DIELECTRIC
from ..base import ForceProvider
from .pairs import accumulate_pair_forces, as_pair_array, select_pairs

if TYPE_CHECKING:
    from ...neighborlists import NeighborList
    from ...parameters import Parameters


class ReactionFieldForce(ForceProvider):
    """
    Coulomb interaction with a reaction field beyond the cutoff.

    V(r) = k_e * q_i * q_j * (1/r + k_rf r^2 - c_rf)

    with k_rf = (eps - 1) / ((2 eps + 1) rc^3) and c_rf = 3 eps / ((2 eps + 1) rc),
    so the pair energy vanishes at the cutoff. 1-2 and 1-3 pairs are
    excluded and 1-4 pairs are kept at full strength.

    Attributes:
        charges: Partial charges in e, shape (N,).
        cutoff: Cutoff distance in nm.
        dielectric: Dielectric constant of the surrounding continuum.
        exclusions: Excluded pairs, shape (N_excl, 2).
        coulomb_constant: 1/(4 pi eps0) in kJ nm/(mol e^2).
    """

    def __init__(
        self,
        charges: ArrayLike,
        cutoff: float = DEFAULT_CUTOFF,
        dielectric: float = DEFAULT_DIELECTRIC,
        exclusions: ArrayLike | None = None,
        coulomb_constant: float = COULOMB_CONSTANT,
    ) -> None:
        self.charges = np.asarray(charges, dtype=np.float64)
        self.cutoff = float(cutoff)
        self.dielectric = float(dielectric)
        self.exclusions = as_pair_array(exclusions)
        self.coulomb_constant = coulomb_constant

        self.k_rf = (self.dielectric - 1.0) / (
            (2.0 * self.dielectric + 1.0) * self.cutoff**3
        )
        self.c_rf = (
            3.0 * self.dielectric / ((2.0 * self.dielectric + 1.0) * self.cutoff)
        )

    @classmethod
    def from_parameters(
        cls,
        parameters: Parameters,
        cutoff: float = DEFAULT_CUTOFF,
        dielectric: float = DEFAULT_DIELECTRIC,
    ) -> ReactionFieldForce:
        """Create from resolved force field parameters."""
        return cls(
            parameters.charges,
            cutoff=cutoff,
            dielectric=dielectric,
            exclusions=parameters.exclusions,
        )

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """Compute electrostatic forces and potential energy."""
        forces = np.zeros((len(positions), 3), dtype=np.float64)

        if not np.any(self.charges):
            return forces, 0.0

        pairs = select_pairs(positions, self.cutoff, self.exclusions, neighbors)
        if len(pairs) == 0:
            return forces, 0.0

        charges = self.charges
        prefactor = self.coulomb_constant * charges[pairs.i] * charges[pairs.j]
        r = np.maximum(pairs.r, 1e-10)

        energy = float(np.sum(prefactor * (1.0 / r + self.k_rf * r**2 - self.c_rf)))
        d_energy = prefactor * (-1.0 / r**2 + 2.0 * self.k_rf * r)

        accumulate_pair_forces(forces, pairs, d_energy)
        return forces, energy
