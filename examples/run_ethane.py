#!/usr/bin/env python
"""
Example: Minimizing and simulating ethane under MM4.

This script demonstrates how to:
1. Build parameters from atomic numbers and bonds
2. Minimize the energy
3. Thermalize and run NVE dynamics
4. Read immutable state snapshots

Units: nm, ps, amu, kJ/mol, K.

Usage:
    python examples/run_ethane.py
"""

import logging

import numpy as np

from mm4core import ForceField, Parameters


def build_ethane() -> tuple[list[int], list[tuple[int, int]], np.ndarray]:
    """
    Staggered ethane with ideal tetrahedral hydrogens.

    Returns:
        Tuple of (atomic_numbers, bonds, positions in nm).
    """
    cc = 0.153
    ch = 0.111
    tilt = np.arccos(-1.0 / 3.0) - np.pi / 2.0
    axial = ch * np.sin(tilt)
    radial = ch * np.cos(tilt)

    positions = [[0.0, 0.0, 0.0], [cc, 0.0, 0.0]]
    bonds = [(0, 1)]
    for carbon, sign, offset in ((0, -1.0, 0.0), (1, 1.0, np.pi / 3.0)):
        for k in range(3):
            angle = offset + 2.0 * np.pi * k / 3.0
            positions.append(
                [
                    positions[carbon][0] + sign * axial,
                    radial * np.cos(angle),
                    radial * np.sin(angle),
                ]
            )
            bonds.append((carbon, len(positions) - 1))

    atomic_numbers = [6, 6] + [1] * 6
    return atomic_numbers, bonds, np.array(positions)


def main(temperature: float = 300.0, time: float = 1.0, print_every: float = 0.1):
    """
    Run the ethane example.

    Args:
        temperature: Thermalization temperature in K.
        time: Total simulated time in ps.
        print_every: Reporting interval in ps.
    """
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("=" * 60)
    print("Ethane under MM4")
    print("=" * 60)

    atomic_numbers, bonds, positions = build_ethane()
    parameters = Parameters.build(atomic_numbers, bonds)
    print(f"\nAtoms: {parameters.n_atoms}, bonds: {parameters.n_bonds}")
    print(f"Angles: {parameters.n_angles}, torsions: {parameters.n_torsions}")
    print(f"Charges: {np.round(parameters.charges, 4)}")

    forcefield = ForceField(parameters, positions)
    print(f"\nInitial energy: {forcefield.potential_energy:.4f} kJ/mol")

    result = forcefield.minimize(method="lbfgs")
    print(
        f"Minimized energy: {result.energy:.4f} kJ/mol "
        f"({result.iterations} iterations, max force {result.max_force:.2e})"
    )

    forcefield.thermalize(temperature=temperature, seed=2024)

    print(f"\n{'Time (ps)':>10} {'PE':>12} {'KE':>12} {'Total':>12}")
    print("-" * 50)
    n_reports = int(round(time / print_every))
    totals = []
    for _ in range(n_reports):
        forcefield.simulate(print_every)
        snapshot = forcefield.state(positions=False, velocities=False, energy=True)
        totals.append(snapshot.total_energy)
        print(
            f"{snapshot.time:10.3f} {snapshot.potential_energy:12.4f} "
            f"{snapshot.kinetic_energy:12.4f} {snapshot.total_energy:12.4f}"
        )

    fluctuation = np.std(totals)
    print(f"\nTotal energy fluctuation: {fluctuation:.4f} kJ/mol")
    print("=" * 60)


if __name__ == "__main__":
    main()
