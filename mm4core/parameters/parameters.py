"""Immutable force field parameters derived from a bond topology."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..topology import TopologyGraph
from .masses import DEFAULT_HYDROGEN_MASS_REPARTITIONING, repartition_masses
from .table import (
    angle_arrays,
    bond_arrays,
    nonbonded_arrays,
    partial_charges,
    torsion_arrays,
)
from .typer import TypedTopology, assign_types

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Parameters:
    """
    Every numeric parameter of a molecular system, in engine units.

    Instances are immutable: the dataclass is frozen and every array is
    flagged read-only, so one object can back any number of force fields.
    Build with ``Parameters.build``.

    Attributes:
        atomic_numbers: Element of each atom, shape (N,).
        atom_codes: MM4 atom code of each atom, shape (N,).
        masses: Repartitioned masses in amu, shape (N,).
        hydrogen_mass_repartitioning: Mass moved onto each hydrogen, in amu.
        bonds: Bonded atom pairs, shape (N_bonds, 2).
        bond_well_depths: Morse well depths in kJ/mol.
        bond_betas: Morse widths in 1/nm.
        bond_lengths: Equilibrium lengths in nm.
        bond_stiffnesses: Stretching stiffness in mdyn/angstrom.
        angles: Angle atoms with the center in column 1, shape (N_angles, 3).
        angle_stiffnesses: Halved bending stiffness in kJ/mol/rad^2.
        angle_equilibria: Equilibrium angles in rad.
        stretch_bend_stiffnesses: Stretch-bend coupling in kJ/mol/nm/rad.
        bend_bend_stiffnesses: Halved bend-bend coupling in kJ/mol/rad^2.
        angle_bond_lengths: Equilibrium lengths of the two angle bonds in nm,
            shape (N_angles, 2).
        torsions: Torsion atoms, shape (N_torsions, 4).
        torsion_V1, torsion_Vn, torsion_V3, torsion_V4, torsion_V6: Halved
            Fourier barriers in kJ/mol.
        torsion_n: Periodicity of the Vn term.
        torsion_stretch: Torsion-stretch coupling in kJ/mol/nm.
        torsion_bond_lengths: Equilibrium length of the central bond in nm.
        epsilons: (heteroatom, hydrogen) well depths in kJ/mol, shape (N, 2).
        radii: (heteroatom, hydrogen) radii in nm, shape (N, 2).
        charges: Partial charges in e, shape (N,).
        exclusions: 1-2 and 1-3 pairs, shape (N_excl, 2).
        pairs_14: 1-4 pairs, shape (N_14, 2).
        topology: Validated bond graph.
        typed: Typed bonded terms, for inspection.
    """

    atomic_numbers: NDArray[np.integer]
    atom_codes: NDArray[np.integer]
    masses: NDArray[np.floating]
    hydrogen_mass_repartitioning: float

    bonds: NDArray[np.integer]
    bond_well_depths: NDArray[np.floating]
    bond_betas: NDArray[np.floating]
    bond_lengths: NDArray[np.floating]
    bond_stiffnesses: NDArray[np.floating]

    angles: NDArray[np.integer]
    angle_stiffnesses: NDArray[np.floating]
    angle_equilibria: NDArray[np.floating]
    stretch_bend_stiffnesses: NDArray[np.floating]
    bend_bend_stiffnesses: NDArray[np.floating]
    angle_bond_lengths: NDArray[np.floating]

    torsions: NDArray[np.integer]
    torsion_V1: NDArray[np.floating]
    torsion_Vn: NDArray[np.floating]
    torsion_V3: NDArray[np.floating]
    torsion_V4: NDArray[np.floating]
    torsion_V6: NDArray[np.floating]
    torsion_n: NDArray[np.integer]
    torsion_stretch: NDArray[np.floating]
    torsion_bond_lengths: NDArray[np.floating]

    epsilons: NDArray[np.floating]
    radii: NDArray[np.floating]
    charges: NDArray[np.floating]
    exclusions: NDArray[np.integer]
    pairs_14: NDArray[np.integer]

    topology: TopologyGraph
    typed: TypedTopology

    def __post_init__(self) -> None:
        """Make arrays read-only."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, np.ndarray):
                value.flags.writeable = False

    @classmethod
    def build(
        cls,
        atomic_numbers: ArrayLike,
        bonds: ArrayLike,
        bond_orders: ArrayLike | None = None,
        hydrogen_mass_repartitioning: float = DEFAULT_HYDROGEN_MASS_REPARTITIONING,
    ) -> Parameters:
        """
        Derive all parameters from elements and bonds.

        Args:
            atomic_numbers: Element of each atom, shape (N,).
            bonds: Bonded atom pairs, shape (N_bonds, 2).
            bond_orders: Order of each bond. Defaults to single bonds.
            hydrogen_mass_repartitioning: Mass moved from each heavy atom onto
                each of its hydrogens, in [0, 1] amu.

        Returns:
            New Parameters instance.

        Raises:
            InvalidTopology: If the bond graph is malformed.
            InvalidConfiguration: If a size or option is out of range.
            UnsupportedAtomType: If any atom or term has no MM4 rule.
        """
        topology = TopologyGraph.from_bonds(atomic_numbers, bonds, bond_orders)
        masses = repartition_masses(topology, hydrogen_mass_repartitioning)
        typed = assign_types(topology)
        n_atoms = topology.n_atoms

        bond_data = bond_arrays(typed.bonds)
        bond_stiffnesses = np.array(
            [b.rule.stiffness for b in typed.bonds], dtype=np.float64
        )
        length_by_pair = {
            (int(i), int(j)): float(length)
            for (i, j), length in zip(topology.bonds, bond_data["lengths"])
        }
        angle_data = angle_arrays(typed.angles, length_by_pair)
        torsion_data = torsion_arrays(
            typed.torsions, bond_data["lengths"], bond_stiffnesses
        )
        epsilons, radii = nonbonded_arrays(
            topology.atomic_numbers, hydrogen_mass_repartitioning
        )

        parameters = cls(
            atomic_numbers=topology.atomic_numbers.copy(),
            atom_codes=np.array([int(c) for c in typed.codes], dtype=np.int64),
            masses=masses,
            hydrogen_mass_repartitioning=float(hydrogen_mass_repartitioning),
            bonds=topology.bonds.copy(),
            bond_well_depths=bond_data["well_depths"],
            bond_betas=bond_data["betas"],
            bond_lengths=bond_data["lengths"],
            bond_stiffnesses=bond_stiffnesses,
            angles=_index_array([a.atoms for a in typed.angles], 3),
            angle_stiffnesses=angle_data["stiffnesses"],
            angle_equilibria=angle_data["equilibria"],
            stretch_bend_stiffnesses=angle_data["stretch_bend"],
            bend_bend_stiffnesses=angle_data["bend_bend"],
            angle_bond_lengths=angle_data["bond_lengths"],
            torsions=_index_array([t.atoms for t in typed.torsions], 4),
            torsion_V1=torsion_data["V1"],
            torsion_Vn=torsion_data["Vn"],
            torsion_V3=torsion_data["V3"],
            torsion_V4=torsion_data["V4"],
            torsion_V6=torsion_data["V6"],
            torsion_n=torsion_data["n"],
            torsion_stretch=torsion_data["torsion_stretch"],
            torsion_bond_lengths=torsion_data["bond_lengths"],
            epsilons=epsilons,
            radii=radii,
            charges=partial_charges(n_atoms, typed.bonds),
            exclusions=topology.exclusions(2).copy(),
            pairs_14=topology.pairs_14.copy(),
            topology=topology,
            typed=typed,
        )
        logger.info(
            "Built parameters for %d atoms: %d bonds, %d angles, %d torsions",
            n_atoms,
            parameters.n_bonds,
            parameters.n_angles,
            parameters.n_torsions,
        )
        return parameters

    @property
    def n_atoms(self) -> int:
        """Return number of atoms."""
        return len(self.atomic_numbers)

    @property
    def n_bonds(self) -> int:
        """Return number of bonds."""
        return len(self.bonds)

    @property
    def n_angles(self) -> int:
        """Return number of angles."""
        return len(self.angles)

    @property
    def n_torsions(self) -> int:
        """Return number of torsions."""
        return len(self.torsions)

    @property
    def total_mass(self) -> float:
        """Total mass in amu."""
        return float(np.sum(self.masses))


def _index_array(rows: list[tuple[int, ...]], width: int) -> NDArray[np.integer]:
    if not rows:
        return np.empty((0, width), dtype=np.int64)
    return np.array(rows, dtype=np.int64)
