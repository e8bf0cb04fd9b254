"""Verlet neighbor list implementation."""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .base import NeighborList

logger = logging.getLogger(__name__)


class VerletList(NeighborList):
    """
    Verlet neighbor list with skin distance.

    Pairs are collected within cutoff + skin, so the list stays valid while
    no atom has moved more than skin/2 since the last build.

    Attributes:
        skin: Additional buffer distance in nm.
        n_builds: Number of times the list was built.
    """

    def __init__(self, cutoff: float, skin: float = 0.1) -> None:
        """
        Initialize Verlet neighbor list.

        Args:
            cutoff: Interaction cutoff distance in nm.
            skin: Buffer distance for neighbor list validity.
        """
        if cutoff <= 0.0:
            raise ValueError(f"cutoff must be positive, got {cutoff}")
        if skin < 0.0:
            raise ValueError(f"skin must be non-negative, got {skin}")
        self._cutoff = float(cutoff)
        self.skin = float(skin)
        self._list_cutoff = self._cutoff + self.skin
        self.n_builds = 0

        self._pairs: NDArray[np.integer] = np.empty((0, 2), dtype=np.int64)
        self._neighbors: list[NDArray[np.integer]] = []
        self._positions_at_build: NDArray[np.floating] | None = None

    @property
    def cutoff(self) -> float:
        """Return the interaction cutoff distance."""
        return self._cutoff

    @property
    def list_cutoff(self) -> float:
        """Return the neighbor list cutoff (cutoff + skin)."""
        return self._list_cutoff

    @property
    def n_pairs(self) -> int:
        """Return the number of neighbor pairs."""
        return len(self._pairs)

    @property
    def is_built(self) -> bool:
        """Whether build() has been called."""
        return self._positions_at_build is not None

    def build(self, positions: ArrayLike) -> None:
        """
        Build the neighbor list from scratch with O(N^2) distances.

        Args:
            positions: Atomic positions, shape (N, 3).
        """
        positions = np.asarray(positions, dtype=np.float64)
        n_atoms = len(positions)
        self._positions_at_build = positions.copy()

        i_indices, j_indices = np.triu_indices(n_atoms, k=1)
        dr = positions[j_indices] - positions[i_indices]
        r2 = np.einsum("ij,ij->i", dr, dr)
        mask = r2 < self._list_cutoff**2

        self._pairs = np.stack([i_indices[mask], j_indices[mask]], axis=1).astype(
            np.int64
        )

        neighbors: list[list[int]] = [[] for _ in range(n_atoms)]
        for i, j in self._pairs.tolist():
            neighbors[i].append(j)
            neighbors[j].append(i)
        self._neighbors = [np.array(nbrs, dtype=np.int64) for nbrs in neighbors]

        self.n_builds += 1
        logger.debug("Built Verlet list: %d atoms, %d pairs", n_atoms, self.n_pairs)

    def update_if_needed(self, positions: ArrayLike) -> bool:
        """
        Rebuild neighbor list if atoms have moved too far.

        The list is built on first use, and rebuilt if any atom has moved
        more than skin/2 since the last build or the atom count changed.

        Args:
            positions: Current atomic positions.

        Returns:
            True if the list was rebuilt.
        """
        positions = np.asarray(positions, dtype=np.float64)
        if self._positions_at_build is None or len(positions) != len(
            self._positions_at_build
        ):
            self.build(positions)
            return True

        dr = positions - self._positions_at_build
        max_displacement = np.max(np.linalg.norm(dr, axis=1)) if len(dr) else 0.0

        # Two atoms could move toward each other
        if max_displacement > self.skin / 2:
            self.build(positions)
            return True

        return False

    def get_pairs(self) -> NDArray[np.integer]:
        """
        Get all neighbor pairs.

        Returns:
            Array of shape (N_pairs, 2) with (i, j) pairs where i < j.
        """
        return self._pairs

    def get_neighbors(self, atom_index: int) -> NDArray[np.integer]:
        """
        Get neighbors of a specific atom.

        Args:
            atom_index: Index of the atom to query.

        Returns:
            Array of neighbor atom indices.
        """
        if not self._neighbors:
            return np.array([], dtype=np.int64)
        return self._neighbors[atom_index]
