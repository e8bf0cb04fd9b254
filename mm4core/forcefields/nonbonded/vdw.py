"""MM4 exp-6 van der Waals force."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ...constants import DEFAULT_CUTOFF
from ..base import ForceProvider
from .pairs import (
    PairGeometry,
    accumulate_pair_forces,
    as_pair_array,
    pair_keys,
    select_pairs,
)

if TYPE_CHECKING:
    from ...neighborlists import NeighborList
    from ...parameters import Parameters

DISPERSION_COEFFICIENT = 2.25
REPULSION_COEFFICIENT = 1.84e5
REPULSION_EXPONENT = 12.0

# Dispersion scale for atoms separated by three bonds
DISPERSION_14_SCALE = 0.550

# Switching starts at cutoff * (1/3)^(1/6)
SWITCH_RATIO = (1.0 / 3.0) ** (1.0 / 6.0)


class MM4VanDerWaalsForce(ForceProvider):
    """
    Buckingham exp-6 van der Waals force with MM4 combining rules.

    V(r) = eps * (-2.25 (R/r)^6 + 1.84e5 exp(-12 r / R))

    Pairs of heavy atoms, or of two hydrogens, use the geometric mean of
    the heteroatom epsilons and the sum of the heteroatom radii. A pair with
    exactly one hydrogen uses the larger of the two hydrogen-specific
    values. A quintic switch takes the energy smoothly to zero at the
    cutoff.

    Attributes:
        epsilons: (heteroatom, hydrogen) well depths in kJ/mol, shape (N, 2).
        radii: (heteroatom, hydrogen) radii in nm, shape (N, 2).
        is_hydrogen: Hydrogen mask, shape (N,).
        cutoff: Cutoff distance in nm.
        switch_distance: Start of the switching region in nm.
        exclusions: Excluded 1-2 and 1-3 pairs, shape (N_excl, 2).
        pairs_14: 1-4 pairs with scaled dispersion, shape (N_14, 2).
    """

    def __init__(
        self,
        epsilons: ArrayLike,
        radii: ArrayLike,
        is_hydrogen: ArrayLike,
        cutoff: float = DEFAULT_CUTOFF,
        exclusions: ArrayLike | None = None,
        pairs_14: ArrayLike | None = None,
    ) -> None:
        self.epsilons = np.asarray(epsilons, dtype=np.float64).reshape(-1, 2)
        self.radii = np.asarray(radii, dtype=np.float64).reshape(-1, 2)
        self.is_hydrogen = np.asarray(is_hydrogen, dtype=bool)
        self.cutoff = float(cutoff)
        self.switch_distance = self.cutoff * SWITCH_RATIO
        self.exclusions = as_pair_array(exclusions)
        self.pairs_14 = as_pair_array(pairs_14)

        if len(self.radii) != len(self.epsilons):
            raise ValueError(
                f"radii length {len(self.radii)} != "
                f"epsilons length {len(self.epsilons)}"
            )
        if len(self.is_hydrogen) != len(self.epsilons):
            raise ValueError(
                f"is_hydrogen length {len(self.is_hydrogen)} != "
                f"epsilons length {len(self.epsilons)}"
            )

    @classmethod
    def from_parameters(
        cls, parameters: Parameters, cutoff: float = DEFAULT_CUTOFF
    ) -> MM4VanDerWaalsForce:
        """Create from resolved force field parameters."""
        return cls(
            parameters.epsilons,
            parameters.radii,
            parameters.atomic_numbers == 1,
            cutoff=cutoff,
            exclusions=parameters.exclusions,
            pairs_14=parameters.pairs_14,
        )

    def _get_pair_params(
        self, pairs: PairGeometry
    ) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """
        Combine per-atom parameters into pair epsilons and radii.

        Returns:
            Tuple of (epsilon_ij, radius_ij) arrays.
        """
        i, j = pairs.i, pairs.j
        epsilon = np.sqrt(self.epsilons[i, 0] * self.epsilons[j, 0])
        radius = self.radii[i, 0] + self.radii[j, 0]

        mixed = self.is_hydrogen[i] != self.is_hydrogen[j]
        epsilon = np.where(
            mixed, np.maximum(self.epsilons[i, 1], self.epsilons[j, 1]), epsilon
        )
        radius = np.where(mixed, np.maximum(self.radii[i, 1], self.radii[j, 1]), radius)
        return epsilon, radius

    def _switch(
        self, r: NDArray[np.floating]
    ) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """Quintic switching function and its derivative."""
        width = self.cutoff - self.switch_distance
        x = np.clip((r - self.switch_distance) / width, 0.0, 1.0)
        switch = 1.0 + x**3 * (-10.0 + x * (15.0 - 6.0 * x))
        d_switch = x**2 * (-30.0 + x * (60.0 - 30.0 * x)) / width
        return switch, d_switch

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """Compute van der Waals forces and potential energy."""
        forces = np.zeros((len(positions), 3), dtype=np.float64)

        pairs = select_pairs(positions, self.cutoff, self.exclusions, neighbors)
        if len(pairs) == 0:
            return forces, 0.0

        epsilon, radius = self._get_pair_params(pairs)

        dispersion_scale = np.ones(len(pairs))
        if len(self.pairs_14) > 0:
            n_atoms = len(positions)
            is_14 = np.isin(
                pairs.i * n_atoms + pairs.j, pair_keys(self.pairs_14, n_atoms)
            )
            dispersion_scale[is_14] = DISPERSION_14_SCALE

        r = np.maximum(pairs.r, 1e-10)
        ratio6 = (radius / r) ** 6
        repulsion = REPULSION_COEFFICIENT * np.exp(-REPULSION_EXPONENT * r / radius)

        pair_energy = epsilon * (
            -DISPERSION_COEFFICIENT * dispersion_scale * ratio6 + repulsion
        )
        d_pair_energy = epsilon * (
            6.0 * DISPERSION_COEFFICIENT * dispersion_scale * ratio6 / r
            - REPULSION_EXPONENT * repulsion / radius
        )

        switch, d_switch = self._switch(r)
        energy = float(np.sum(switch * pair_energy))
        d_energy = switch * d_pair_energy + d_switch * pair_energy

        accumulate_pair_forces(forces, pairs, d_energy)
        return forces, energy
