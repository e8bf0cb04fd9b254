"""Bond graph with derived angle, torsion and exclusion lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import InvalidConfiguration, InvalidTopology
from .rings import RingInfo, find_small_rings

VALID_BOND_ORDERS = (1.0, 1.5, 2.0, 3.0)
MAX_NEIGHBORS = 4


def _read_only(array: NDArray) -> NDArray:
    array.flags.writeable = False
    return array


@dataclass
class TopologyGraph:
    """
    Undirected bond graph of a molecular system.

    Index-based: atoms are positions in ``atomic_numbers`` and bonds are
    index pairs. Validation is eager, so an instance is always well formed.
    The arrays are copied on construction and read-only afterwards.

    Attributes:
        atomic_numbers: Element of each atom, shape (N,).
        bonds: Bond pairs stored as (min, max), shape (N_bonds, 2).
        bond_orders: Order of each bond, shape (N_bonds,). Defaults to 1.
    """

    atomic_numbers: NDArray[np.integer]
    bonds: NDArray[np.integer] = field(
        default_factory=lambda: np.empty((0, 2), dtype=np.int64)
    )
    bond_orders: NDArray[np.floating] | None = None

    def __post_init__(self) -> None:
        """Validate and normalize arrays, then make them read-only."""
        atomic_numbers = np.array(self.atomic_numbers, dtype=np.int64)
        self.atomic_numbers = atomic_numbers.reshape(-1)
        bonds = np.array(self.bonds, dtype=np.int64)
        if bonds.size > 0:
            self.bonds = bonds.reshape(-1, 2)
        else:
            self.bonds = np.empty((0, 2), dtype=np.int64)

        n_atoms = self.n_atoms
        bad = (self.atomic_numbers < 1) | (self.atomic_numbers > 118)
        if np.any(bad):
            index = int(np.flatnonzero(bad)[0])
            raise InvalidTopology(
                f"atom {index} has invalid atomic number {self.atomic_numbers[index]}"
            )

        if self.bond_orders is None:
            self.bond_orders = np.ones(self.n_bonds, dtype=np.float64)
        else:
            orders = np.array(self.bond_orders, dtype=np.float64)
            self.bond_orders = orders.reshape(-1)
            if len(self.bond_orders) != self.n_bonds:
                raise InvalidConfiguration(
                    f"bond_orders length {len(self.bond_orders)} != "
                    f"number of bonds {self.n_bonds}"
                )

        seen: set[tuple[int, int]] = set()
        for index, (i, j) in enumerate(self.bonds):
            i, j = int(i), int(j)
            for atom in (i, j):
                if atom < 0 or atom >= n_atoms:
                    raise InvalidTopology(
                        f"bond {index} references atom {atom} outside [0, {n_atoms})"
                    )
            if i == j:
                raise InvalidTopology(f"bond {index} connects atom {i} to itself")
            key = (min(i, j), max(i, j))
            if key in seen:
                raise InvalidTopology(f"bond {index} duplicates bond {key}")
            seen.add(key)
            if self.bond_orders[index] not in VALID_BOND_ORDERS:
                raise InvalidTopology(
                    f"bond {index} has invalid order {self.bond_orders[index]}"
                )

        if self.n_bonds > 0:
            self.bonds = np.sort(self.bonds, axis=1)

        degrees = np.bincount(self.bonds.reshape(-1), minlength=n_atoms)
        if n_atoms > 0 and np.any(degrees > MAX_NEIGHBORS):
            index = int(np.flatnonzero(degrees > MAX_NEIGHBORS)[0])
            raise InvalidTopology(
                f"atom {index} has {degrees[index]} bonds, more than {MAX_NEIGHBORS}"
            )

        for array in (self.atomic_numbers, self.bonds, self.bond_orders):
            array.flags.writeable = False

    @classmethod
    def from_bonds(
        cls,
        atomic_numbers: ArrayLike,
        bonds: ArrayLike,
        bond_orders: ArrayLike | None = None,
    ) -> TopologyGraph:
        """Create a graph from plain sequences."""
        return cls(
            atomic_numbers=np.asarray(atomic_numbers),
            bonds=np.asarray(bonds),
            bond_orders=None if bond_orders is None else np.asarray(bond_orders),
        )

    @property
    def n_atoms(self) -> int:
        """Return number of atoms."""
        return len(self.atomic_numbers)

    @property
    def n_bonds(self) -> int:
        """Return number of bonds."""
        return len(self.bonds)

    @cached_property
    def adjacency(self) -> tuple[tuple[int, ...], ...]:
        """Sorted neighbor indices of every atom."""
        neighbors: list[set[int]] = [set() for _ in range(self.n_atoms)]
        for i, j in self.bonds:
            neighbors[int(i)].add(int(j))
            neighbors[int(j)].add(int(i))
        return tuple(tuple(sorted(n)) for n in neighbors)

    def neighbors(self, atom_index: int) -> tuple[int, ...]:
        """Return the sorted neighbors of an atom."""
        self._validate_atom_index(atom_index)
        return self.adjacency[atom_index]

    def degree(self, atom_index: int) -> int:
        """Return the number of bonds of an atom."""
        return len(self.neighbors(atom_index))

    def bonded_within(self, atom_index: int, depth: int) -> set[int]:
        """
        Atoms reachable from ``atom_index`` in at most ``depth`` bonds.

        Args:
            atom_index: Starting atom.
            depth: Maximum bond distance, 1 to 3.

        Returns:
            Set of atom indices, excluding the starting atom.
        """
        if depth < 1 or depth > 3:
            raise ValueError(f"depth must be between 1 and 3, got {depth}")
        self._validate_atom_index(atom_index)

        visited = {atom_index}
        current_level = {atom_index}
        for _ in range(depth):
            next_level: set[int] = set()
            for atom in current_level:
                for neighbor in self.adjacency[atom]:
                    if neighbor not in visited:
                        visited.add(neighbor)
                        next_level.add(neighbor)
            current_level = next_level
        visited.discard(atom_index)
        return visited

    @cached_property
    def angles(self) -> NDArray[np.integer]:
        """Angle triplets (i, j, k) with j central and i < k, shape (N_angles, 3)."""
        angles = []
        for center, neighbors in enumerate(self.adjacency):
            for a, first in enumerate(neighbors):
                for second in neighbors[a + 1 :]:
                    angles.append((first, center, second))
        if not angles:
            return _read_only(np.empty((0, 3), dtype=np.int64))
        return _read_only(np.array(angles, dtype=np.int64))

    @cached_property
    def torsions(self) -> NDArray[np.integer]:
        """Torsion quads (i, j, k, l) along bond j-k, shape (N_torsions, 4)."""
        torsions = []
        for j, k in self.bonds:
            j, k = int(j), int(k)
            for i in self.adjacency[j]:
                if i == k:
                    continue
                for l in self.adjacency[k]:
                    if l == j or l == i:
                        continue
                    torsions.append((i, j, k, l))
        if not torsions:
            return _read_only(np.empty((0, 4), dtype=np.int64))
        return _read_only(np.array(torsions, dtype=np.int64))

    @property
    def n_angles(self) -> int:
        """Return number of angles."""
        return len(self.angles)

    @property
    def n_torsions(self) -> int:
        """Return number of torsions."""
        return len(self.torsions)

    def exclusions(self, depth: int = 2) -> NDArray[np.integer]:
        """
        Pairs separated by at most ``depth`` bonds.

        Args:
            depth: 1 for 1-2 pairs, 2 adds 1-3 pairs, 3 adds 1-4 pairs.

        Returns:
            Sorted (i, j) pairs with i < j, shape (N_pairs, 2).
        """
        pairs = []
        for start in range(self.n_atoms):
            for other in sorted(self.bonded_within(start, depth)):
                if other > start:
                    pairs.append((start, other))
        if not pairs:
            return np.empty((0, 2), dtype=np.int64)
        return np.array(pairs, dtype=np.int64)

    @cached_property
    def pairs_14(self) -> NDArray[np.integer]:
        """Torsion end pairs not already 1-2 or 1-3 neighbors, shape (N_pairs, 2)."""
        excluded = {tuple(p) for p in self.exclusions(2).tolist()}
        pairs = set()
        for i, _, _, l in self.torsions.tolist():
            key = (min(i, l), max(i, l))
            if key not in excluded:
                pairs.add(key)
        if not pairs:
            return _read_only(np.empty((0, 2), dtype=np.int64))
        return _read_only(np.array(sorted(pairs), dtype=np.int64))

    @cached_property
    def rings(self) -> RingInfo:
        """Rings of three to five atoms."""
        return RingInfo(self.n_atoms, find_small_rings(self.adjacency, max_size=5))

    def _validate_atom_index(self, index: int) -> None:
        """Validate that atom index is in range."""
        if index < 0 or index >= self.n_atoms:
            raise IndexError(f"Atom index {index} out of range [0, {self.n_atoms})")
