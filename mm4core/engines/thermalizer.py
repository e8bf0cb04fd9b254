"""Maxwell-Boltzmann velocity initialization per rigid body."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..constants import BOLTZMANN
from ..errors import InvalidConfiguration

if TYPE_CHECKING:
    from ..system import RigidBodyPartition

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 298.15


def remove_linear_momentum(
    velocities: NDArray[np.floating], masses: NDArray[np.floating]
) -> NDArray[np.floating]:
    """Subtract the center-of-mass velocity."""
    com_velocity = np.sum(masses[:, np.newaxis] * velocities, axis=0) / np.sum(masses)
    return velocities - com_velocity


def remove_angular_momentum(
    positions: NDArray[np.floating],
    velocities: NDArray[np.floating],
    masses: NDArray[np.floating],
) -> NDArray[np.floating]:
    """
    Subtract the rigid rotation about the center of mass.

    The angular velocity is L solved against the inertia tensor with a
    pseudo-inverse, so collinear groups (singular tensor) are handled.
    """
    com = np.sum(masses[:, np.newaxis] * positions, axis=0) / np.sum(masses)
    r = positions - com
    angular_momentum = np.sum(masses[:, np.newaxis] * np.cross(r, velocities), axis=0)

    r_sq = np.sum(r * r, axis=1)
    inertia = np.eye(3) * np.sum(masses * r_sq) - np.einsum(
        "i,ij,ik->jk", masses, r, r
    )
    omega = np.linalg.pinv(inertia) @ angular_momentum
    return velocities - np.cross(omega, r)


def bulk_velocities(
    positions: NDArray[np.floating],
    velocities: NDArray[np.floating],
    masses: NDArray[np.floating],
) -> NDArray[np.floating]:
    """
    Per-atom velocity of the group's rigid translation and rotation.

    The rotation is included only for three or more atoms, matching the
    momentum removal in ``thermalize``.
    """
    internal = remove_linear_momentum(velocities, masses)
    if len(masses) >= 3:
        internal = remove_angular_momentum(positions, internal, masses)
    return velocities - internal


def degrees_of_freedom(n_movable: int) -> int:
    """Degrees of freedom left after momentum removal in one rigid body."""
    if n_movable == 0:
        return 0
    removed = 3 + (3 if n_movable >= 3 else 0)
    return max(3 * n_movable - removed, 0)


def thermalize(
    positions: NDArray[np.floating],
    masses: NDArray[np.floating],
    rigid_bodies: RigidBodyPartition,
    temperature: float = DEFAULT_TEMPERATURE,
    stationary: NDArray[np.bool_] | None = None,
    selected: NDArray[np.integer] | None = None,
    velocities: NDArray[np.floating] | None = None,
    seed: int | np.random.Generator | None = None,
) -> NDArray[np.floating]:
    """
    Draw Maxwell-Boltzmann velocities for a set of rigid bodies.

    Each velocity component of a movable atom is drawn from a normal
    distribution with variance kT/m. The sample's net linear momentum and,
    with three or more movable atoms, its net angular momentum are removed
    per rigid body, and the body's existing bulk translation and rotation
    are added back. Stationary atoms get zero velocity.

    Args:
        positions: Atomic positions in nm, shape (N, 3).
        masses: Atomic masses in amu, shape (N,).
        rigid_bodies: Partition of the atoms.
        temperature: Target temperature in K.
        stationary: Atoms held fixed, bool mask of shape (N,).
        selected: Indices of the rigid bodies to thermalize. Defaults to all.
        velocities: Current velocities. Bodies that are not selected keep
            them and selected bodies keep their bulk motion. Defaults to zeros.
        seed: Seed or generator for numpy's default random generator.

    Returns:
        New velocities in nm/ps, shape (N, 3).

    Raises:
        InvalidConfiguration: If the temperature is negative or a selected
            rigid body does not exist.
    """
    if not np.isfinite(temperature) or temperature < 0.0:
        raise InvalidConfiguration(f"temperature must be >= 0 K, got {temperature}")

    n_atoms = len(masses)
    if velocities is None:
        new_velocities = np.zeros((n_atoms, 3), dtype=np.float64)
    else:
        new_velocities = np.array(velocities, dtype=np.float64)
    if stationary is None:
        stationary = np.zeros(n_atoms, dtype=bool)

    if selected is None:
        bodies = list(range(len(rigid_bodies)))
    else:
        bodies = [int(b) for b in np.asarray(selected).reshape(-1)]
        for body in bodies:
            if body < 0 or body >= len(rigid_bodies):
                raise InvalidConfiguration(
                    f"rigid body {body} out of range [0, {len(rigid_bodies)})"
                )

    rng = np.random.default_rng(seed)
    kt = BOLTZMANN * temperature
    total_dof = 0

    for body in bodies:
        lower, upper = rigid_bodies[body]
        atoms = np.arange(lower, upper)
        new_velocities[atoms[stationary[atoms]]] = 0.0
        movable = atoms[~stationary[atoms]]
        if len(movable) == 0:
            continue

        body_masses = masses[movable]
        body_positions = positions[movable]
        bulk = bulk_velocities(body_positions, new_velocities[movable], body_masses)

        sigma = np.sqrt(kt / body_masses)[:, np.newaxis]
        sampled = rng.normal(0.0, 1.0, size=(len(movable), 3)) * sigma
        sampled = remove_linear_momentum(sampled, body_masses)
        if len(movable) >= 3:
            sampled = remove_angular_momentum(body_positions, sampled, body_masses)
        new_velocities[movable] = bulk + sampled
        total_dof += degrees_of_freedom(len(movable))

    logger.debug(
        "Thermalized %d rigid bodies at %.2f K (%d degrees of freedom)",
        len(bodies),
        temperature,
        total_dof,
    )
    return new_velocities
