"""Internal coordinates and their Cartesian gradients."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

# Floors for distances, sines and squared cross products
_MIN_DISTANCE = 1e-10
_MIN_SIN = 1e-8
_MIN_CROSS_SQ = 1e-12


@dataclass
class Distances:
    """
    Bond lengths with unit vectors.

    Attributes:
        r: Lengths, shape (M,).
        unit: Unit vectors from the first to the second atom, shape (M, 3).
    """

    r: NDArray[np.floating]
    unit: NDArray[np.floating]


@dataclass
class Angles:
    """
    Bend angles i-j-k with gradients of theta.

    Attributes:
        theta: Angles in radians, shape (M,).
        d_ji: Length of j-i, shape (M,).
        d_jk: Length of j-k, shape (M,).
        u_ji: Unit vector from j to i, shape (M, 3).
        u_jk: Unit vector from j to k, shape (M, 3).
        grad_i: d(theta)/d(x_i), shape (M, 3).
        grad_k: d(theta)/d(x_k), shape (M, 3).
    """

    theta: NDArray[np.floating]
    d_ji: NDArray[np.floating]
    d_jk: NDArray[np.floating]
    u_ji: NDArray[np.floating]
    u_jk: NDArray[np.floating]
    grad_i: NDArray[np.floating]
    grad_k: NDArray[np.floating]

    @property
    def grad_j(self) -> NDArray[np.floating]:
        """d(theta)/d(x_j), by translation invariance."""
        return -(self.grad_i + self.grad_k)


@dataclass
class Dihedrals:
    """
    Dihedral angles i-j-k-l with gradients of phi.

    Attributes:
        phi: Dihedral angles in (-pi, pi], 180 degrees for trans.
        central: Central bond j-k geometry.
        grad_i, grad_j, grad_k, grad_l: d(phi)/d(x), each shape (M, 3).
    """

    phi: NDArray[np.floating]
    central: Distances
    grad_i: NDArray[np.floating]
    grad_j: NDArray[np.floating]
    grad_k: NDArray[np.floating]
    grad_l: NDArray[np.floating]


def distances(
    positions: NDArray[np.floating],
    i_indices: NDArray[np.integer],
    j_indices: NDArray[np.integer],
) -> Distances:
    """Distances and unit vectors from atoms i to atoms j."""
    dr = positions[j_indices] - positions[i_indices]
    r = np.linalg.norm(dr, axis=1)
    r_safe = np.maximum(r, _MIN_DISTANCE)
    return Distances(r=r, unit=dr / r_safe[:, np.newaxis])


def angles(
    positions: NDArray[np.floating],
    i_indices: NDArray[np.integer],
    j_indices: NDArray[np.integer],
    k_indices: NDArray[np.integer],
) -> Angles:
    """
    Bend angles with j as the central atom.

    Returns:
        Angles with theta and the gradients of theta.
    """
    ji = distances(positions, j_indices, i_indices)
    jk = distances(positions, j_indices, k_indices)
    d_ji = np.maximum(ji.r, _MIN_DISTANCE)
    d_jk = np.maximum(jk.r, _MIN_DISTANCE)

    cos_theta = np.clip(np.sum(ji.unit * jk.unit, axis=1), -1.0, 1.0)
    theta = np.arccos(cos_theta)
    sin_theta = np.maximum(np.sin(theta), _MIN_SIN)

    # d(theta)/d(x_i) = (cos(theta) * u_ji - u_jk) / (d_ji * sin(theta))
    grad_i = (
        (cos_theta[:, np.newaxis] * ji.unit - jk.unit)
        / (d_ji * sin_theta)[:, np.newaxis]
    )
    grad_k = (
        (cos_theta[:, np.newaxis] * jk.unit - ji.unit)
        / (d_jk * sin_theta)[:, np.newaxis]
    )
    return Angles(
        theta=theta,
        d_ji=ji.r,
        d_jk=jk.r,
        u_ji=ji.unit,
        u_jk=jk.unit,
        grad_i=grad_i,
        grad_k=grad_k,
    )


def dihedrals(
    positions: NDArray[np.floating],
    i_indices: NDArray[np.integer],
    j_indices: NDArray[np.integer],
    k_indices: NDArray[np.integer],
    l_indices: NDArray[np.integer],
) -> Dihedrals:
    """
    Dihedral angles about the j-k bond.

    Returns:
        Dihedrals with phi and the gradients of phi.
    """
    b1 = positions[j_indices] - positions[i_indices]
    b2 = positions[k_indices] - positions[j_indices]
    b3 = positions[l_indices] - positions[k_indices]

    # Normal vectors to the planes
    m = np.cross(b1, b2)
    n = np.cross(b2, b3)

    b2_norm = np.maximum(np.linalg.norm(b2, axis=1), _MIN_DISTANCE)
    m_sq = np.maximum(np.sum(m * m, axis=1), _MIN_CROSS_SQ)
    n_sq = np.maximum(np.sum(n * n, axis=1), _MIN_CROSS_SQ)

    x = np.sum(m * n, axis=1)
    y = b2_norm * np.sum(b1 * n, axis=1)
    phi = np.arctan2(y, x)

    grad_i = -(b2_norm / m_sq)[:, np.newaxis] * m
    grad_l = (b2_norm / n_sq)[:, np.newaxis] * n

    # Projections of the outer bonds onto the central bond
    p = (np.sum(b1 * b2, axis=1) / b2_norm**2)[:, np.newaxis]
    q = (np.sum(b3 * b2, axis=1) / b2_norm**2)[:, np.newaxis]
    grad_j = q * grad_l - (1.0 + p) * grad_i
    grad_k = p * grad_i - (1.0 + q) * grad_l

    central = Distances(
        r=np.linalg.norm(b2, axis=1), unit=b2 / b2_norm[:, np.newaxis]
    )
    return Dihedrals(
        phi=phi,
        central=central,
        grad_i=grad_i,
        grad_j=grad_j,
        grad_k=grad_k,
        grad_l=grad_l,
    )
