"""Atomic masses with hydrogen mass repartitioning."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..errors import InvalidConfiguration, UnsupportedAtomType
from .elements import ATOMIC_MASSES

if TYPE_CHECKING:
    from ..topology import TopologyGraph

DEFAULT_HYDROGEN_MASS_REPARTITIONING = 1.0

# Grid the transferred mass is snapped to, in amu. On this grid every
# per-atom gain and loss is exact in double precision.
MASS_TRANSFER_RESOLUTION = 2.0**-40


def base_masses(atomic_numbers: NDArray[np.integer]) -> NDArray[np.floating]:
    """
    Standard atomic weights in amu.

    Raises:
        UnsupportedAtomType: If an element has no tabulated mass.
    """
    masses = np.empty(len(atomic_numbers), dtype=np.float64)
    for atom, atomic_number in enumerate(atomic_numbers.tolist()):
        try:
            masses[atom] = ATOMIC_MASSES[atomic_number]
        except KeyError:
            raise UnsupportedAtomType(
                f"atom {atom}: no mass for element {atomic_number}", [atom]
            ) from None
    return masses


def repartition_masses(
    topology: TopologyGraph,
    hydrogen_mass_repartitioning: float = DEFAULT_HYDROGEN_MASS_REPARTITIONING,
) -> NDArray[np.floating]:
    """
    Shift mass from each heavy atom onto its bonded hydrogens.

    Every hydrogen gains ``hydrogen_mass_repartitioning`` amu and its bonded
    heavy atom loses the same amount, so the total mass is unchanged. The
    amount is first rounded to a multiple of ``MASS_TRANSFER_RESOLUTION``,
    which keeps each change exact in floating point.

    Args:
        topology: Validated bond graph.
        hydrogen_mass_repartitioning: Mass moved per hydrogen, in [0, 1] amu.

    Returns:
        Per-atom masses in amu, shape (N,).

    Raises:
        InvalidConfiguration: If the amount is out of range, a hydrogen does not
            have exactly one heavy-atom partner, or a mass ends up non-positive.
    """
    amount = float(hydrogen_mass_repartitioning)
    if not math.isfinite(amount) or amount < 0.0 or amount > 1.0:
        raise InvalidConfiguration(
            f"hydrogen_mass_repartitioning must be in [0, 1] amu, got {amount}"
        )
    amount = round(amount / MASS_TRANSFER_RESOLUTION) * MASS_TRANSFER_RESOLUTION

    masses = base_masses(topology.atomic_numbers)
    hydrogens = np.flatnonzero(topology.atomic_numbers == 1)

    for hydrogen in hydrogens.tolist():
        partners = topology.adjacency[hydrogen]
        if len(partners) != 1:
            raise InvalidConfiguration(
                f"hydrogen {hydrogen} has {len(partners)} bonds, expected exactly 1"
            )
        partner = partners[0]
        if topology.atomic_numbers[partner] == 1:
            raise InvalidConfiguration(
                f"hydrogen {hydrogen} is bonded to hydrogen {partner}"
            )
        masses[hydrogen] += amount
        masses[partner] -= amount

    if np.any(masses <= 0.0):
        atom = int(np.flatnonzero(masses <= 0.0)[0])
        raise InvalidConfiguration(
            f"atom {atom} has non-positive mass {masses[atom]} after repartitioning"
        )
    return masses


def carbon_hydrogen_radius(hydrogen_mass_repartitioning: float) -> float:
    """C-H van der Waals radius in angstrom, tuned for the repartitioned mass."""
    return 3.440 + hydrogen_mass_repartitioning * (3.410 - 3.440)
