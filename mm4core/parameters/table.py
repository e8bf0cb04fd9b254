"""Resolve typed terms into numeric arrays in engine units."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..constants import (
    E_ANGSTROM_PER_DEBYE,
    KJ_PER_KCAL,
    KJ_PER_MOL_PER_AJ,
    NM_PER_ANGSTROM,
)
from .masses import carbon_hydrogen_radius

if TYPE_CHECKING:
    from .typer import TypedAngle, TypedBond, TypedTorsion

_SIXTH_POWER_SCALE = (1.0 / 0.94**3) ** 2

# (heteroatom, hydrogen) epsilon in kcal/mol and radius in angstrom.
# Carbon's hydrogen radius depends on hydrogen mass repartitioning.
NONBONDED_PARAMETERS: dict[int, tuple[tuple[float, float], tuple[float, float] | None]]
NONBONDED_PARAMETERS = {
    1: ((0.017, 0.017), (1.640, 1.640)),
    6: ((0.037, 0.024), None),
    7: ((0.054, 0.110), (1.860, 3.110)),
    8: ((0.059, 0.098), (1.820, 3.010)),
    9: ((0.075, 0.092), (1.710, 2.870)),
    14: ((0.140, 0.0488), (2.290, 3.930 * 0.94)),
    15: ((0.168, 0.053 * _SIXTH_POWER_SCALE), (2.220, 3.860 * 0.94)),
    16: ((0.196, 0.0577 * _SIXTH_POWER_SCALE), (2.090, 3.730 * 0.94)),
}


def bond_arrays(
    bonds: tuple[TypedBond, ...],
) -> dict[str, NDArray[np.floating]]:
    """
    Morse stretch arrays.

    Returns:
        Dict with ``well_depths`` (kJ/mol), ``betas`` (1/nm) and
        ``lengths`` (nm), each shape (N_bonds,).
    """
    well_depths = np.array([b.rule.well_depth for b in bonds], dtype=np.float64)
    stiffnesses = np.array([b.rule.stiffness for b in bonds], dtype=np.float64)
    lengths = np.array([b.rule.length for b in bonds], dtype=np.float64)

    # beta = sqrt(ks / 2 De) with ks in aJ/A^2 and De in aJ gives 1/A
    betas = np.sqrt(stiffnesses / (2.0 * well_depths)) if len(bonds) else stiffnesses

    return {
        "well_depths": well_depths * KJ_PER_MOL_PER_AJ,
        "betas": betas / NM_PER_ANGSTROM,
        "lengths": lengths * NM_PER_ANGSTROM,
    }


def angle_arrays(
    angles: tuple[TypedAngle, ...],
    bond_lengths: dict[tuple[int, int], float],
) -> dict[str, NDArray[np.floating]]:
    """
    Bend and stretch-bend arrays.

    Args:
        angles: Typed angles.
        bond_lengths: Equilibrium length in nm keyed by sorted atom pair.

    Returns:
        Dict with ``stiffnesses`` (kJ/mol/rad^2, already halved),
        ``equilibria`` (rad), ``stretch_bend`` (kJ/mol/nm/rad),
        ``bend_bend`` (kJ/mol/rad^2, already halved) and ``bond_lengths``
        (nm, shape (N_angles, 2)).
    """
    stiffnesses = np.array([a.stiffness for a in angles], dtype=np.float64)
    equilibria = np.array([a.equilibrium_angle for a in angles], dtype=np.float64)
    stretch_bend = np.array([a.stretch_bend for a in angles], dtype=np.float64)
    bend_bend = np.array([a.bend_bend for a in angles], dtype=np.float64)

    lengths = np.empty((len(angles), 2), dtype=np.float64)
    for index, angle in enumerate(angles):
        i, j, k = angle.atoms
        lengths[index, 0] = bond_lengths[(min(i, j), max(i, j))]
        lengths[index, 1] = bond_lengths[(min(j, k), max(j, k))]

    return {
        "stiffnesses": stiffnesses * KJ_PER_MOL_PER_AJ / 2.0,
        "equilibria": np.radians(equilibria),
        "stretch_bend": stretch_bend * KJ_PER_MOL_PER_AJ / NM_PER_ANGSTROM,
        "bend_bend": bend_bend * KJ_PER_MOL_PER_AJ / 2.0,
        "bond_lengths": lengths,
    }


def torsion_arrays(
    torsions: tuple[TypedTorsion, ...],
    bond_lengths: NDArray[np.floating],
    bond_stiffnesses: NDArray[np.floating],
) -> dict[str, NDArray]:
    """
    Fourier and torsion-stretch arrays.

    Args:
        torsions: Typed torsions.
        bond_lengths: Equilibrium bond lengths in nm, indexed like the bonds.
        bond_stiffnesses: Stretching stiffness in mdyn/angstrom per bond.

    Returns:
        Dict with halved barriers ``V1``, ``Vn``, ``V3``, ``V4``, ``V6``
        (kJ/mol), integer ``n``, ``torsion_stretch`` (kJ/mol/nm) and
        central ``bond_lengths`` (nm).
    """
    def column(name: str) -> NDArray[np.floating]:
        values = np.array([getattr(t.rule, name) for t in torsions], dtype=np.float64)
        return values * KJ_PER_KCAL / 2.0

    bond_index = np.array([t.bond_index for t in torsions], dtype=np.int64)
    kts = np.array([t.torsion_stretch for t in torsions], dtype=np.float64)
    if len(torsions):
        stiffness = bond_stiffnesses[bond_index]
        torsion_stretch = kts * KJ_PER_KCAL / NM_PER_ANGSTROM / stiffness
        central = bond_lengths[bond_index]
    else:
        torsion_stretch = kts
        central = np.empty(0, dtype=np.float64)

    return {
        "V1": column("V1"),
        "Vn": column("Vn"),
        "V3": column("V3"),
        "V4": column("V4"),
        "V6": column("V6"),
        "n": np.array([t.rule.n for t in torsions], dtype=np.int64),
        "torsion_stretch": torsion_stretch,
        "bond_lengths": central,
    }


def nonbonded_arrays(
    atomic_numbers: NDArray[np.integer],
    hydrogen_mass_repartitioning: float,
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """
    Per-atom van der Waals parameters.

    Returns:
        Tuple of (epsilons, radii), each shape (N, 2) with columns
        (heteroatom, hydrogen), in kJ/mol and nm.
    """
    n_atoms = len(atomic_numbers)
    epsilons = np.empty((n_atoms, 2), dtype=np.float64)
    radii = np.empty((n_atoms, 2), dtype=np.float64)

    for atom, atomic_number in enumerate(atomic_numbers.tolist()):
        epsilon, radius = NONBONDED_PARAMETERS[atomic_number]
        if radius is None:
            radius = (1.960, carbon_hydrogen_radius(hydrogen_mass_repartitioning))
        epsilons[atom] = epsilon
        radii[atom] = radius

    return epsilons * KJ_PER_KCAL, radii * NM_PER_ANGSTROM


def partial_charges(n_atoms: int, bonds: tuple[TypedBond, ...]) -> NDArray[np.floating]:
    """
    Project bond dipoles onto atom-centered partial charges.

    A dipole of mu debye along a bond of length r places
    ``+mu * 0.2082 / r`` on the first atom of the sorted code pair and the
    opposite charge on the second, so every bond is neutral.

    Returns:
        Charges in elementary charges, shape (N,).
    """
    charges = np.zeros(n_atoms, dtype=np.float64)
    for bond in bonds:
        if bond.rule.dipole is None:
            continue
        charge = bond.rule.dipole * E_ANGSTROM_PER_DEBYE / bond.rule.length
        first, second = bond.atoms
        charges[first] += charge
        charges[second] -= charge
    return charges
