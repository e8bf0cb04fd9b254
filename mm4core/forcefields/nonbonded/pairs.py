"""Nonbonded pair enumeration with exclusions and a cutoff."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

if TYPE_CHECKING:
    from ...neighborlists import NeighborList


@dataclass
class PairGeometry:
    """
    Interacting pairs inside the cutoff.

    Attributes:
        i: First atom of each pair, shape (M,).
        j: Second atom of each pair, i < j, shape (M,).
        r: Pair distances, shape (M,).
        unit: Unit vectors from i to j, shape (M, 3).
    """

    i: NDArray[np.integer]
    j: NDArray[np.integer]
    r: NDArray[np.floating]
    unit: NDArray[np.floating]

    def __len__(self) -> int:
        return len(self.i)


def as_pair_array(pairs: ArrayLike | None) -> NDArray[np.integer]:
    """Normalize a pair collection to sorted (i, j) rows with i < j."""
    if pairs is None:
        return np.empty((0, 2), dtype=np.int64)
    if isinstance(pairs, (set, frozenset)):
        pairs = sorted(pairs)
    array = np.asarray(pairs, dtype=np.int64)
    if array.size == 0:
        return np.empty((0, 2), dtype=np.int64)
    return np.sort(array.reshape(-1, 2), axis=1)


def pair_keys(pairs: NDArray[np.integer], n_atoms: int) -> NDArray[np.integer]:
    """Encode (i, j) rows as unique integers for set membership tests."""
    return pairs[:, 0] * n_atoms + pairs[:, 1]


def select_pairs(
    positions: NDArray[np.floating],
    cutoff: float,
    exclusions: NDArray[np.integer],
    neighbors: NeighborList | None = None,
) -> PairGeometry:
    """
    Enumerate non-excluded pairs closer than the cutoff.

    Candidates come from the neighbor list when one is given, otherwise
    from every pair of atoms. Exclusions are applied after enumeration.

    Args:
        positions: Atomic positions, shape (N, 3).
        cutoff: Interaction cutoff in nm.
        exclusions: Excluded (i, j) pairs with i < j.
        neighbors: Optional neighbor list.

    Returns:
        PairGeometry of the interacting pairs.
    """
    n_atoms = len(positions)
    if neighbors is not None:
        candidates = neighbors.get_pairs()
        i_indices = candidates[:, 0].astype(np.int64)
        j_indices = candidates[:, 1].astype(np.int64)
    else:
        i_indices, j_indices = np.triu_indices(n_atoms, k=1)

    if len(exclusions) > 0 and len(i_indices) > 0:
        keys = i_indices * n_atoms + j_indices
        mask = ~np.isin(keys, pair_keys(exclusions, n_atoms))
        i_indices = i_indices[mask]
        j_indices = j_indices[mask]

    dr = positions[j_indices] - positions[i_indices]
    r = np.linalg.norm(dr, axis=1)

    mask = r < cutoff
    i_indices = i_indices[mask]
    j_indices = j_indices[mask]
    dr = dr[mask]
    r = r[mask]

    r_safe = np.maximum(r, 1e-10)
    return PairGeometry(
        i=i_indices, j=j_indices, r=r, unit=dr / r_safe[:, np.newaxis]
    )


def accumulate_pair_forces(
    forces: NDArray[np.floating], pairs: PairGeometry, d_energy: NDArray[np.floating]
) -> None:
    """Add -dV/dr along each pair axis, equal and opposite on i and j."""
    force_vectors = -d_energy[:, np.newaxis] * pairs.unit
    np.add.at(forces, pairs.j, force_vectors)
    np.add.at(forces, pairs.i, -force_vectors)
