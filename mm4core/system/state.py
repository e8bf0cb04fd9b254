"""Dynamic state of a force field and its immutable snapshots."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import InvalidConfiguration


@dataclass
class MDState:
    """
    Mutable positions, velocities and forces advanced by the integrator.

    Attributes:
        positions: Atomic positions in nm, shape (N, 3).
        velocities: Atomic velocities in nm/ps, shape (N, 3).
        forces: Atomic forces in kJ/mol/nm, shape (N, 3).
        masses: Atomic masses in amu, shape (N,).
        time: Simulated time in ps.
        step: Number of integration steps taken.
    """

    positions: NDArray[np.floating]
    velocities: NDArray[np.floating]
    forces: NDArray[np.floating]
    masses: NDArray[np.floating]
    time: float = 0.0
    step: int = 0

    def __post_init__(self) -> None:
        """Validate and convert arrays."""
        self.positions = np.asarray(self.positions, dtype=np.float64)
        self.velocities = np.asarray(self.velocities, dtype=np.float64)
        self.forces = np.asarray(self.forces, dtype=np.float64)
        self.masses = np.asarray(self.masses, dtype=np.float64)

        n_atoms = len(self.masses)
        for name in ("positions", "velocities", "forces"):
            shape = getattr(self, name).shape
            if shape != (n_atoms, 3):
                raise InvalidConfiguration(
                    f"{name} shape {shape} incompatible with {n_atoms} atoms"
                )

    @property
    def n_atoms(self) -> int:
        """Return number of atoms."""
        return len(self.masses)

    @classmethod
    def create(
        cls,
        positions: ArrayLike,
        masses: ArrayLike,
        velocities: ArrayLike | None = None,
        forces: ArrayLike | None = None,
        time: float = 0.0,
        step: int = 0,
    ) -> MDState:
        """
        Create an MDState with optional velocity/force initialization.

        Args:
            positions: Atomic positions, shape (N, 3).
            masses: Atomic masses, shape (N,).
            velocities: Atomic velocities, shape (N, 3). Defaults to zeros.
            forces: Atomic forces, shape (N, 3). Defaults to zeros.
            time: Current simulation time.
            step: Current step number.

        Returns:
            New MDState instance.
        """
        positions = np.array(positions, dtype=np.float64)
        masses = np.array(masses, dtype=np.float64)
        n_atoms = len(masses)

        if velocities is None:
            velocities = np.zeros((n_atoms, 3), dtype=np.float64)
        if forces is None:
            forces = np.zeros((n_atoms, 3), dtype=np.float64)

        return cls(
            positions=positions,
            velocities=np.array(velocities, dtype=np.float64),
            forces=np.array(forces, dtype=np.float64),
            masses=masses,
            time=time,
            step=step,
        )

    def copy(self) -> MDState:
        """Create a deep copy of this state."""
        return MDState(
            positions=self.positions.copy(),
            velocities=self.velocities.copy(),
            forces=self.forces.copy(),
            masses=self.masses.copy(),
            time=self.time,
            step=self.step,
        )

    @property
    def kinetic_energy(self) -> float:
        """Compute total kinetic energy: sum(0.5 * m * v^2)."""
        return float(0.5 * np.sum(self.masses[:, np.newaxis] * self.velocities**2))

    @property
    def momentum(self) -> NDArray[np.floating]:
        """Total linear momentum in amu nm/ps."""
        return np.sum(self.masses[:, np.newaxis] * self.velocities, axis=0)

    @property
    def center_of_mass(self) -> NDArray[np.floating]:
        """Compute center of mass position."""
        total_mass = np.sum(self.masses)
        return np.sum(self.masses[:, np.newaxis] * self.positions, axis=0) / total_mass

    def is_finite(self) -> bool:
        """Whether every position and velocity is finite."""
        return bool(
            np.all(np.isfinite(self.positions)) and np.all(np.isfinite(self.velocities))
        )


@dataclass(frozen=True)
class State:
    """
    Immutable snapshot of a force field.

    Fields that were not requested are None. Arrays are read-only copies.

    Attributes:
        positions: Atomic positions in nm, shape (N, 3).
        velocities: Atomic velocities in nm/ps, shape (N, 3).
        forces: Total atomic forces in kJ/mol/nm, shape (N, 3).
        potential_energy: Potential energy in kJ/mol.
        kinetic_energy: Kinetic energy in kJ/mol.
        time: Simulated time in ps.
    """

    positions: NDArray[np.floating] | None = None
    velocities: NDArray[np.floating] | None = None
    forces: NDArray[np.floating] | None = None
    potential_energy: float | None = None
    kinetic_energy: float | None = None
    time: float = 0.0

    def __post_init__(self) -> None:
        """Make arrays read-only."""
        for array in (self.positions, self.velocities, self.forces):
            if array is not None:
                array.flags.writeable = False

    @property
    def total_energy(self) -> float | None:
        """Potential plus kinetic energy, when both were captured."""
        if self.potential_energy is None or self.kinetic_energy is None:
            return None
        return self.potential_energy + self.kinetic_energy
