"""Composite force evaluator combining the MM4 energy terms."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..config import ForceFieldOptions
from ..neighborlists import VerletList
from ..parallel import SerialBackend
from .base import ForceProvider
from .bonded import (
    BendBendForce,
    MM4BendForce,
    MM4TorsionForce,
    MorseBondForce,
    StretchBendForce,
    TorsionStretchForce,
)
from .nonbonded import MM4VanDerWaalsForce, ReactionFieldForce

if TYPE_CHECKING:
    from ..neighborlists import NeighborList
    from ..parallel import ParallelBackend
    from ..parameters import Parameters

logger = logging.getLogger(__name__)


def _evaluate_term(
    task: tuple[ForceProvider, NDArray[np.floating], NeighborList | None],
) -> tuple[NDArray[np.floating], float]:
    term, positions, neighbors = task
    return term.compute_with_energy(positions, neighbors)


class ForceEvaluator(ForceProvider):
    """
    Composite of force providers evaluated through a parallel backend.

    A ForceEvaluator is itself a ForceProvider. Each term is evaluated
    independently (in worker processes with a multiprocessing backend) and
    the partial results are summed in term order, so the totals do not
    depend on the number of workers.

    Example:
        evaluator = ForceEvaluator.from_parameters(parameters)
        forces, energy = evaluator.compute_with_energy(positions)

    Attributes:
        terms: Force providers, summed in list order.
        backend: Parallel backend used to map over terms.
        neighbor_list: Optional neighbor list shared by the nonbonded terms.
    """

    def __init__(
        self,
        terms: list[ForceProvider] | None = None,
        backend: ParallelBackend | None = None,
        neighbor_list: NeighborList | None = None,
    ) -> None:
        """
        Initialize composite force evaluator.

        Args:
            terms: List of force providers to combine.
            backend: Parallel backend. Defaults to a new SerialBackend.
            neighbor_list: Neighbor list for nonbonded pairs. Defaults to
                brute-force enumeration.
        """
        self.terms: list[ForceProvider] = terms if terms is not None else []
        self.backend = backend if backend is not None else SerialBackend()
        self.neighbor_list = neighbor_list

    @classmethod
    def from_parameters(
        cls,
        parameters: Parameters,
        options: ForceFieldOptions | None = None,
        backend: ParallelBackend | None = None,
    ) -> ForceEvaluator:
        """
        Create the full MM4 evaluator for a parameter set.

        Args:
            parameters: Resolved force field parameters.
            options: Cutoff, dielectric and neighbor list settings.
            backend: Parallel backend.

        Returns:
            ForceEvaluator with the bonded and nonbonded MM4 terms.
        """
        options = options if options is not None else ForceFieldOptions()
        terms: list[ForceProvider] = [
            MorseBondForce.from_parameters(parameters),
            MM4BendForce.from_parameters(parameters),
            StretchBendForce.from_parameters(parameters),
            BendBendForce.from_parameters(parameters),
            MM4TorsionForce.from_parameters(parameters),
            TorsionStretchForce.from_parameters(parameters),
            MM4VanDerWaalsForce.from_parameters(
                parameters, cutoff=options.cutoff_distance
            ),
            ReactionFieldForce.from_parameters(
                parameters,
                cutoff=options.cutoff_distance,
                dielectric=options.dielectric_constant,
            ),
        ]
        neighbor_list = None
        if options.use_neighbor_list:
            neighbor_list = VerletList(options.cutoff_distance, options.neighbor_skin)
        logger.debug(
            "Created evaluator with %d terms, neighbor list %s",
            len(terms),
            "on" if neighbor_list is not None else "off",
        )
        return cls(terms, backend=backend, neighbor_list=neighbor_list)

    def add_term(self, term: ForceProvider) -> None:
        """Add a force term to the evaluator."""
        self.terms.append(term)

    def remove_term(self, term: ForceProvider) -> None:
        """Remove a force term from the evaluator."""
        self.terms.remove(term)

    def _neighbors(self, positions: NDArray[np.floating]) -> NeighborList | None:
        if self.neighbor_list is not None:
            self.neighbor_list.update_if_needed(positions)
        return self.neighbor_list

    def compute_per_term(
        self, positions: ArrayLike, neighbors: NeighborList | None = None
    ) -> list[tuple[NDArray[np.floating], float]]:
        """
        Compute forces and energies from each term separately.

        Useful for debugging and analysis.

        Args:
            positions: Atomic positions in nm, shape (N, 3).
            neighbors: Neighbor list. Defaults to the evaluator's own list.

        Returns:
            List of (forces, energy) tuples, one per term.
        """
        positions = np.asarray(positions, dtype=np.float64)
        if neighbors is None:
            neighbors = self._neighbors(positions)
        tasks = [(term, positions, neighbors) for term in self.terms]
        return self.backend.parallel_map(_evaluate_term, tasks)

    def compute_with_energy(
        self, positions: ArrayLike, neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """
        Compute total forces and potential energy from all terms.

        Args:
            positions: Atomic positions in nm, shape (N, 3).
            neighbors: Neighbor list. Defaults to the evaluator's own list.

        Returns:
            Tuple of (total forces array, total potential energy).
        """
        positions = np.asarray(positions, dtype=np.float64)
        results = self.compute_per_term(positions, neighbors)

        total_forces = self.backend.reduce_forces(
            [forces for forces, _ in results], len(positions)
        )
        total_energy = 0.0
        for _, energy in results:
            total_energy += energy

        return total_forces, total_energy
