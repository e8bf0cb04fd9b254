"""Velocity Verlet integrator with stationary atoms."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..errors import InvalidConfiguration
from .base import ForceFunction, Integrator

if TYPE_CHECKING:
    from ..system import MDState


class VelocityVerletIntegrator(Integrator):
    """
    Velocity Verlet integrator (kick-drift-kick formulation).

    Algorithm:
        v(t + dt/2) = v(t) + 0.5 * dt * a(t)
        r(t + dt) = r(t) + dt * v(t + dt/2)
        v(t + dt) = v(t + dt/2) + 0.5 * dt * a(t + dt)

    Forces are evaluated once per step at the new positions; the forces at
    the old positions are carried over from the previous step. Stationary
    atoms feel no acceleration, keep zero velocity, and have their positions
    copied back from the input so they stay bit-identical.

    Attributes:
        dt: Default integration timestep in ps.
    """

    def __init__(self, dt: float) -> None:
        """
        Initialize Velocity Verlet integrator.

        Args:
            dt: Integration timestep in ps.

        Raises:
            InvalidConfiguration: If dt is not positive.
        """
        if not np.isfinite(dt) or dt <= 0.0:
            raise InvalidConfiguration(f"time step must be positive, got {dt}")
        self._dt = float(dt)

    @property
    def timestep(self) -> float:
        """Return the integration timestep."""
        return self._dt

    def full_step(
        self,
        state: MDState,
        forces: NDArray[np.floating],
        force_fn: ForceFunction,
        dt: float | None = None,
        stationary: NDArray[np.bool_] | None = None,
    ) -> MDState:
        """
        Perform a complete Velocity Verlet step.

        Args:
            state: Current MD state with synchronized velocities v(t).
            forces: Forces at current positions r(t), shape (N, 3).
            force_fn: Function that computes forces given positions.
            dt: Length of this step. Defaults to the integrator timestep.
            stationary: Atoms held fixed, bool mask of shape (N,).

        Returns:
            New MDState with r(t+dt) and synchronized v(t+dt).
        """
        dt = self._dt if dt is None else float(dt)
        masses = state.masses[:, np.newaxis]
        accel = forces / masses
        if stationary is not None:
            accel[stationary] = 0.0

        velocities_half = state.velocities + 0.5 * dt * accel
        if stationary is not None:
            velocities_half[stationary] = 0.0

        positions_new = state.positions + dt * velocities_half
        if stationary is not None:
            positions_new[stationary] = state.positions[stationary]

        forces_new = force_fn(positions_new)
        accel_new = forces_new / masses
        if stationary is not None:
            accel_new[stationary] = 0.0

        velocities_new = velocities_half + 0.5 * dt * accel_new

        new_state = state.copy()
        new_state.positions = positions_new
        new_state.velocities = velocities_new
        new_state.forces = np.array(forces_new, dtype=np.float64)
        new_state.time = state.time + dt
        new_state.step = state.step + 1

        return new_state
