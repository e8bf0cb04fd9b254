"""Base interface for neighbor lists."""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import ArrayLike, NDArray


class NeighborList(ABC):
    """
    Abstract base class for neighbor list implementations.

    A neighbor list caches the atom pairs that may interact within the
    nonbonded cutoff. Evaluating with a list gives the same forces as
    enumerating every pair, only faster.
    """

    @abstractmethod
    def build(self, positions: ArrayLike) -> None:
        """
        Build the neighbor list from scratch.

        Args:
            positions: Atomic positions, shape (N, 3).
        """
        ...

    @abstractmethod
    def update_if_needed(self, positions: ArrayLike) -> bool:
        """
        Rebuild the list if atoms have moved significantly.

        Args:
            positions: Current atomic positions, shape (N, 3).

        Returns:
            True if the list was rebuilt, False if it was still valid.
        """
        ...

    @abstractmethod
    def get_pairs(self) -> NDArray[np.integer]:
        """
        Get all neighbor pairs.

        Returns:
            Array of shape (N_pairs, 2) containing (i, j) indices
            where i < j for all pairs.
        """
        ...

    @abstractmethod
    def get_neighbors(self, atom_index: int) -> NDArray[np.integer]:
        """Get neighbors of a specific atom."""
        ...

    @property
    @abstractmethod
    def n_pairs(self) -> int:
        """Return the number of neighbor pairs."""
        ...

    @property
    @abstractmethod
    def cutoff(self) -> float:
        """Return the cutoff distance."""
        ...
