"""Base interface for integrators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from ..system import MDState

ForceFunction = Callable[[NDArray[np.floating]], NDArray[np.floating]]


class Integrator(ABC):
    """
    Abstract base class for time integration algorithms.

    Integrators advance the system state forward in time given the forces at
    the current positions and a function that evaluates forces at new ones.
    """

    @abstractmethod
    def full_step(
        self,
        state: MDState,
        forces: NDArray[np.floating],
        force_fn: ForceFunction,
        dt: float | None = None,
        stationary: NDArray[np.bool_] | None = None,
    ) -> MDState:
        """
        Advance the system by one time step.

        Args:
            state: Current MD state.
            forces: Forces at the current positions, shape (N, 3).
            force_fn: Maps positions to forces.
            dt: Length of this step. Defaults to the integrator timestep.
            stationary: Atoms held fixed, bool mask of shape (N,).

        Returns:
            New MDState after integration step.
        """
        ...

    @property
    @abstractmethod
    def timestep(self) -> float:
        """Return the integration timestep."""
        ...
