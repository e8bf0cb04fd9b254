"""Abstract base class for parallel backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np
from numpy.typing import NDArray


class ParallelBackend(ABC):
    """
    Abstract base class for parallelization backends.

    Force evaluation maps independent energy terms over the backend and
    sums the partial results in the caller, in submission order, so the
    reduction is deterministic for any worker count.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return backend name."""
        ...

    @property
    @abstractmethod
    def n_workers(self) -> int:
        """Return number of parallel workers."""
        ...

    def parallel_map(
        self,
        func: Callable[..., Any],
        items: Sequence[Any],
    ) -> list[Any]:
        """
        Apply function to items, preserving order.

        Default implementation is serial; backends can override.

        Args:
            func: Function to apply.
            items: Items to process.

        Returns:
            Results for each item, in the order of ``items``.
        """
        return [func(item) for item in items]

    def reduce_forces(
        self,
        partial_forces: Sequence[NDArray[np.floating]],
        n_atoms: int,
    ) -> NDArray[np.floating]:
        """
        Sum per-term force arrays in a fixed order.

        Args:
            partial_forces: Force contributions, each shape (n_atoms, 3).
            n_atoms: Total number of atoms.

        Returns:
            Total forces, shape (n_atoms, 3).
        """
        total = np.zeros((n_atoms, 3), dtype=np.float64)
        for forces in partial_forces:
            total += forces
        return total

    def close(self) -> None:
        """Release worker resources. No-op by default."""

    def __enter__(self) -> ParallelBackend:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
