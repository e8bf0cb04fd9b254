"""MM4 angle bending, stretch-bend and bend-bend forces."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ...constants import DEGREES_PER_RADIAN
from ..base import ForceProvider
from .geometry import angles

if TYPE_CHECKING:
    from ...neighborlists import NeighborList
    from ...parameters import Parameters

# Anharmonic bend coefficients for a deviation measured in degrees
_CUBIC = -0.014
_QUARTIC = 5.6e-5
_QUINTIC = -7.0e-7
_SEXTIC = 2.2e-8


def _split(angle_indices: NDArray[np.integer]) -> tuple[NDArray, NDArray, NDArray]:
    return angle_indices[:, 0], angle_indices[:, 1], angle_indices[:, 2]


class MM4BendForce(ForceProvider):
    """
    Sextic angle bending force.

    V(theta) = k * dt^2 * (1 - 0.014 d + 5.6e-5 d^2 - 7.0e-7 d^3 + 2.2e-8 d^4)

    where dt = theta - theta0 in radians and d is the same deviation in
    degrees. The angle i-j-k has j as the central atom.

    Attributes:
        angle_indices: Angle atom triplets (i, j, k), shape (N_angles, 3).
        force_constants: Bending constants k in kJ/mol/rad^2, shape (N_angles,).
        equilibrium_angles: Equilibrium angles theta0 in radians.
    """

    def __init__(
        self,
        angle_indices: ArrayLike,
        force_constants: ArrayLike,
        equilibrium_angles: ArrayLike,
    ) -> None:
        self.angle_indices = np.asarray(angle_indices, dtype=np.int64).reshape(-1, 3)
        self.force_constants = np.asarray(force_constants, dtype=np.float64)
        self.equilibrium_angles = np.asarray(equilibrium_angles, dtype=np.float64)

        n_angles = len(self.angle_indices)
        if len(self.force_constants) != n_angles:
            raise ValueError(
                f"force_constants length {len(self.force_constants)} != "
                f"number of angles {n_angles}"
            )
        if len(self.equilibrium_angles) != n_angles:
            raise ValueError(
                f"equilibrium_angles length {len(self.equilibrium_angles)} != "
                f"number of angles {n_angles}"
            )

    @classmethod
    def from_parameters(cls, parameters: Parameters) -> MM4BendForce:
        """Create from resolved force field parameters."""
        return cls(
            parameters.angles,
            parameters.angle_stiffnesses,
            parameters.angle_equilibria,
        )

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """Compute bending forces and potential energy."""
        forces = np.zeros((len(positions), 3), dtype=np.float64)

        if len(self.angle_indices) == 0:
            return forces, 0.0

        i_indices, j_indices, k_indices = _split(self.angle_indices)
        geometry = angles(positions, i_indices, j_indices, k_indices)

        delta = geometry.theta - self.equilibrium_angles
        d = delta * DEGREES_PER_RADIAN
        poly = 1.0 + d * (_CUBIC + d * (_QUARTIC + d * (_QUINTIC + d * _SEXTIC)))
        d_poly = DEGREES_PER_RADIAN * (
            _CUBIC + d * (2.0 * _QUARTIC + d * (3.0 * _QUINTIC + d * 4.0 * _SEXTIC))
        )

        energy = float(np.sum(self.force_constants * delta**2 * poly))
        torque = self.force_constants * (2.0 * delta * poly + delta**2 * d_poly)

        np.add.at(forces, i_indices, -torque[:, np.newaxis] * geometry.grad_i)
        np.add.at(forces, j_indices, -torque[:, np.newaxis] * geometry.grad_j)
        np.add.at(forces, k_indices, -torque[:, np.newaxis] * geometry.grad_k)

        return forces, energy


class StretchBendForce(ForceProvider):
    """
    Stretch-bend coupling between an angle and its two bonds.

    V = k_sb * (theta - theta0) * ((r_ij - r1) + (r_kj - r2))

    Attributes:
        angle_indices: Angle atom triplets (i, j, k), shape (N_angles, 3).
        force_constants: Coupling constants in kJ/mol/nm/rad, shape (N_angles,).
        equilibrium_angles: Equilibrium angles in radians, shape (N_angles,).
        equilibrium_lengths: Equilibrium lengths of bonds i-j and j-k in nm,
            shape (N_angles, 2).
    """

    def __init__(
        self,
        angle_indices: ArrayLike,
        force_constants: ArrayLike,
        equilibrium_angles: ArrayLike,
        equilibrium_lengths: ArrayLike,
    ) -> None:
        self.angle_indices = np.asarray(angle_indices, dtype=np.int64).reshape(-1, 3)
        self.force_constants = np.asarray(force_constants, dtype=np.float64)
        self.equilibrium_angles = np.asarray(equilibrium_angles, dtype=np.float64)
        self.equilibrium_lengths = np.asarray(
            equilibrium_lengths, dtype=np.float64
        ).reshape(-1, 2)

        n_angles = len(self.angle_indices)
        for name in ("force_constants", "equilibrium_angles", "equilibrium_lengths"):
            values = getattr(self, name)
            if len(values) != n_angles:
                raise ValueError(
                    f"{name} length {len(values)} != number of angles {n_angles}"
                )

    @classmethod
    def from_parameters(cls, parameters: Parameters) -> StretchBendForce:
        """Create from resolved force field parameters."""
        return cls(
            parameters.angles,
            parameters.stretch_bend_stiffnesses,
            parameters.angle_equilibria,
            parameters.angle_bond_lengths,
        )

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """Compute stretch-bend forces and potential energy."""
        forces = np.zeros((len(positions), 3), dtype=np.float64)

        if len(self.angle_indices) == 0:
            return forces, 0.0

        i_indices, j_indices, k_indices = _split(self.angle_indices)
        geometry = angles(positions, i_indices, j_indices, k_indices)

        delta_theta = geometry.theta - self.equilibrium_angles
        stretch = (geometry.d_ji - self.equilibrium_lengths[:, 0]) + (
            geometry.d_jk - self.equilibrium_lengths[:, 1]
        )
        energy = float(np.sum(self.force_constants * delta_theta * stretch))

        d_theta = (self.force_constants * stretch)[:, np.newaxis]
        d_length = (self.force_constants * delta_theta)[:, np.newaxis]

        f_i = -d_theta * geometry.grad_i - d_length * geometry.u_ji
        f_k = -d_theta * geometry.grad_k - d_length * geometry.u_jk
        f_j = -(f_i + f_k)

        np.add.at(forces, i_indices, f_i)
        np.add.at(forces, j_indices, f_j)
        np.add.at(forces, k_indices, f_k)

        return forces, energy


def shared_center_pairs(angle_indices: ArrayLike) -> NDArray[np.integer]:
    """
    Pairs of angles that share a central atom.

    Args:
        angle_indices: Angle atom triplets (i, j, k), shape (N_angles, 3).

    Returns:
        Angle index pairs (a, b) with a < b, grouped by center in order of
        first appearance, shape (N_pairs, 2).
    """
    angle_indices = np.asarray(angle_indices, dtype=np.int64).reshape(-1, 3)
    by_center: dict[int, list[int]] = {}
    for index, center in enumerate(angle_indices[:, 1]):
        by_center.setdefault(int(center), []).append(index)

    pairs = [
        (members[a], members[b])
        for members in by_center.values()
        for a in range(len(members))
        for b in range(a + 1, len(members))
    ]
    if not pairs:
        return np.empty((0, 2), dtype=np.int64)
    return np.array(pairs, dtype=np.int64)


class BendBendForce(ForceProvider):
    """
    Coupling between pairs of angles around one center.

    V = -k_ab * (theta_a - theta_a0) * (theta_b - theta_b0)

    summed over every pair of angles sharing a central atom, which leaves
    3 pairs around trivalent and 15 around tetravalent centers. Each angle
    carries its own constant and a pair uses the mean of its two.

    Attributes:
        angle_indices: Angle atom triplets (i, j, k), shape (N_angles, 3).
        force_constants: Per-angle constants in kJ/mol/rad^2, shape (N_angles,).
        equilibrium_angles: Equilibrium angles in radians, shape (N_angles,).
        pairs: Coupled angle index pairs, shape (N_pairs, 2).
    """

    def __init__(
        self,
        angle_indices: ArrayLike,
        force_constants: ArrayLike,
        equilibrium_angles: ArrayLike,
    ) -> None:
        self.angle_indices = np.asarray(angle_indices, dtype=np.int64).reshape(-1, 3)
        self.force_constants = np.asarray(force_constants, dtype=np.float64)
        self.equilibrium_angles = np.asarray(equilibrium_angles, dtype=np.float64)

        n_angles = len(self.angle_indices)
        for name in ("force_constants", "equilibrium_angles"):
            values = getattr(self, name)
            if len(values) != n_angles:
                raise ValueError(
                    f"{name} length {len(values)} != number of angles {n_angles}"
                )

        self.pairs = shared_center_pairs(self.angle_indices)
        self.pair_constants = 0.5 * (
            self.force_constants[self.pairs[:, 0]]
            + self.force_constants[self.pairs[:, 1]]
        )

    @classmethod
    def from_parameters(cls, parameters: Parameters) -> BendBendForce:
        """Create from resolved force field parameters."""
        return cls(
            parameters.angles,
            parameters.bend_bend_stiffnesses,
            parameters.angle_equilibria,
        )

    def compute_with_energy(
        self, positions: NDArray[np.floating], neighbors: NeighborList | None = None
    ) -> tuple[NDArray[np.floating], float]:
        """Compute bend-bend forces and potential energy."""
        forces = np.zeros((len(positions), 3), dtype=np.float64)

        if len(self.pairs) == 0:
            return forces, 0.0

        i_indices, j_indices, k_indices = _split(self.angle_indices)
        geometry = angles(positions, i_indices, j_indices, k_indices)
        delta = geometry.theta - self.equilibrium_angles

        first, second = self.pairs[:, 0], self.pairs[:, 1]
        energy = -float(np.sum(self.pair_constants * delta[first] * delta[second]))

        # dV/d(theta) of every angle, gathered over the pairs it belongs to
        torque = np.zeros(len(self.angle_indices), dtype=np.float64)
        np.add.at(torque, first, -self.pair_constants * delta[second])
        np.add.at(torque, second, -self.pair_constants * delta[first])

        np.add.at(forces, i_indices, -torque[:, np.newaxis] * geometry.grad_i)
        np.add.at(forces, j_indices, -torque[:, np.newaxis] * geometry.grad_j)
        np.add.at(forces, k_indices, -torque[:, np.newaxis] * geometry.grad_k)

        return forces, energy
