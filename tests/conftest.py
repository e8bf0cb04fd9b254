"""Shared molecule fixtures and numerical helpers."""

import numpy as np
import pytest

from mm4core import ForceField, Parameters

CC_LENGTH = 0.1530
CH_LENGTH = 0.1110
CF_LENGTH = 0.1386
TETRAHEDRAL = np.arccos(-1.0 / 3.0)


def _unit(v):
    return v / np.linalg.norm(v)


def _perpendicular(u):
    trial = np.array([1.0, 0.0, 0.0]) if abs(u[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    return _unit(np.cross(u, trial))


def substituent_directions(center, neighbors, count):
    """Unit vectors for ``count`` new bonds on an sp3 center."""
    bonds = [_unit(n - center) for n in neighbors]
    if len(bonds) == 1:
        axis = -bonds[0]
        p = _perpendicular(axis)
        q = np.cross(axis, p)
        sin_t = np.sin(np.pi - TETRAHEDRAL)
        cos_t = np.cos(np.pi - TETRAHEDRAL)
        directions = [
            cos_t * axis + sin_t * (np.cos(a) * p + np.sin(a) * q)
            for a in (0.0, 2.0 * np.pi / 3.0, 4.0 * np.pi / 3.0)
        ]
        return directions[:count]
    if len(bonds) == 2:
        bisector = -_unit(bonds[0] + bonds[1])
        normal = _unit(np.cross(bonds[0], bonds[1]))
        half = TETRAHEDRAL / 2.0
        directions = [
            np.cos(half) * bisector + np.sin(half) * normal,
            np.cos(half) * bisector - np.sin(half) * normal,
        ]
        return directions[:count]
    if len(bonds) == 3:
        return [-_unit(bonds[0] + bonds[1] + bonds[2])]
    raise ValueError(f"cannot place {count} substituents on {len(bonds)} neighbors")


def add_hydrogens(heavy_positions, heavy_bonds, heavy_elements):
    """
    Saturate sp3 carbons with hydrogens.

    Args:
        heavy_positions: Heavy atom positions in nm, shape (M, 3).
        heavy_bonds: Heavy atom bonds.
        heavy_elements: Atomic numbers of the heavy atoms.

    Returns:
        Tuple of (atomic_numbers, bonds, positions) for the full molecule.
    """
    heavy_positions = np.asarray(heavy_positions, dtype=np.float64)
    n_heavy = len(heavy_positions)
    neighbors = [[] for _ in range(n_heavy)]
    for i, j in heavy_bonds:
        neighbors[i].append(j)
        neighbors[j].append(i)

    atomic_numbers = list(heavy_elements)
    bonds = [tuple(b) for b in heavy_bonds]
    positions = list(heavy_positions)
    for atom in range(n_heavy):
        if heavy_elements[atom] != 6:
            continue
        count = 4 - len(neighbors[atom])
        if count == 0:
            continue
        center = heavy_positions[atom]
        directions = substituent_directions(
            center, [heavy_positions[n] for n in neighbors[atom]], count
        )
        for direction in directions:
            bonds.append((atom, len(positions)))
            positions.append(center + CH_LENGTH * direction)
            atomic_numbers.append(1)
    return atomic_numbers, bonds, np.array(positions)


def zigzag_chain(n_carbons, angle_degrees=111.0):
    """All-trans carbon backbone in the xy plane."""
    half = np.radians(angle_degrees) / 2.0
    dx = CC_LENGTH * np.sin(half)
    dy = CC_LENGTH * np.cos(half)
    return np.array([[i * dx, (i % 2) * dy, 0.0] for i in range(n_carbons)])


def build_alkane(n_carbons):
    """Atomic numbers, bonds and positions of a linear alkane."""
    heavy = zigzag_chain(n_carbons)
    bonds = [(i, i + 1) for i in range(n_carbons - 1)]
    return add_hydrogens(heavy, bonds, [6] * n_carbons)


def build_cyclopentane():
    """Planar cyclopentane ring with its hydrogens."""
    radius = CC_LENGTH / (2.0 * np.sin(np.pi / 5.0))
    angles = 2.0 * np.pi * np.arange(5) / 5.0
    heavy = np.column_stack(
        [radius * np.cos(angles), radius * np.sin(angles), np.zeros(5)]
    )
    bonds = [(i, (i + 1) % 5) for i in range(5)]
    return add_hydrogens(heavy, bonds, [6] * 5)


def build_fluoroethane():
    """CH3-CH2F with the fluorine placed like a hydrogen."""
    atomic_numbers, bonds, positions = build_alkane(2)
    # The last hydrogen of the second carbon becomes fluorine
    fluorine = len(atomic_numbers) - 1
    atomic_numbers[fluorine] = 9
    carbon = positions[1]
    direction = _unit(positions[fluorine] - carbon)
    positions[fluorine] = carbon + CF_LENGTH * direction
    return atomic_numbers, bonds, positions


def finite_difference_forces(energy_fn, positions, h=1e-6):
    """Central difference forces -dE/dx."""
    positions = np.array(positions, dtype=np.float64)
    forces = np.zeros_like(positions)
    for atom in range(len(positions)):
        for axis in range(3):
            plus = positions.copy()
            minus = positions.copy()
            plus[atom, axis] += h
            minus[atom, axis] -= h
            forces[atom, axis] = -(energy_fn(plus) - energy_fn(minus)) / (2.0 * h)
    return forces


@pytest.fixture
def ethane():
    """Ethane topology and geometry."""
    return build_alkane(2)


@pytest.fixture
def butane():
    """n-Butane topology and geometry."""
    return build_alkane(4)


@pytest.fixture
def cyclopentane():
    """Cyclopentane topology and geometry."""
    return build_cyclopentane()


@pytest.fixture
def fluoroethane():
    """Fluoroethane topology and geometry."""
    return build_fluoroethane()


@pytest.fixture
def butane_parameters(butane):
    """Resolved parameters for n-butane."""
    atomic_numbers, bonds, _ = butane
    return Parameters.build(atomic_numbers, bonds)


@pytest.fixture
def butane_forcefield(butane, butane_parameters):
    """Force field for n-butane at its built geometry."""
    _, _, positions = butane
    return ForceField(butane_parameters, positions)


@pytest.fixture
def finite_difference():
    """Central difference force helper."""
    return finite_difference_forces


@pytest.fixture
def alkane():
    """Builder for linear alkanes."""
    return build_alkane
