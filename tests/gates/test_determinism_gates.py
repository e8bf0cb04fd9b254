"""
Determinism Gates.

These tests verify that simulations are reproducible.

Gates:
1. Serial determinism: identical results with same seed
2. Parallel determinism: serial == parallel results
"""

import numpy as np

from mm4core import ForceField, Parameters
from mm4core.parallel import MultiprocessingBackend, SerialBackend


def run_trajectory(parameters, positions, seed, backend=None, n_chunks=5):
    """Thermalize, simulate and return positions and energies."""
    forcefield = ForceField(parameters, positions, backend=backend)
    forcefield.thermalize(temperature=300.0, seed=seed)

    energies = []
    for _ in range(n_chunks):
        forcefield.simulate(0.01)
        energies.append(forcefield.potential_energy)
    return forcefield.positions, np.array(energies)


class TestSerialDeterminism:
    """
    Gate: Serial runs must be bit-reproducible.

    Same seed + same input = identical trajectory.
    """

    def test_trajectory_determinism(self, butane, butane_parameters):
        """Gate: two runs with the same seed are identical."""
        _, _, positions = butane

        pos1, e1 = run_trajectory(butane_parameters, positions, seed=42)
        pos2, e2 = run_trajectory(butane_parameters, positions, seed=42)

        np.testing.assert_array_equal(pos1, pos2)
        np.testing.assert_array_equal(e1, e2)

    def test_force_determinism(self, cyclopentane):
        """Gate: repeated force evaluations are identical."""
        atomic_numbers, bonds, positions = cyclopentane
        forcefield = ForceField(Parameters.build(atomic_numbers, bonds), positions)
        evaluator = forcefield.evaluator

        results = [evaluator.compute_with_energy(positions) for _ in range(5)]

        for forces, energy in results[1:]:
            np.testing.assert_array_equal(forces, results[0][0])
            assert energy == results[0][1]

    def test_minimize_determinism(self, butane, butane_parameters):
        """Gate: minimization is deterministic."""
        _, _, positions = butane
        a = ForceField(butane_parameters, positions)
        b = ForceField(butane_parameters, positions)

        a.minimize()
        b.minimize()

        np.testing.assert_array_equal(a.positions, b.positions)


class TestParallelDeterminism:
    """
    Gate: Parallel execution must match serial.

    Terms are summed in a fixed order, so results are identical.
    """

    def test_backend_consistency(self, butane, butane_parameters):
        """Gate: serial and multiprocessing trajectories are identical."""
        _, _, positions = butane

        pos_serial, e_serial = run_trajectory(
            butane_parameters, positions, seed=7, backend=SerialBackend(), n_chunks=2
        )
        with MultiprocessingBackend(n_workers=2) as backend:
            pos_parallel, e_parallel = run_trajectory(
                butane_parameters, positions, seed=7, backend=backend, n_chunks=2
            )

        np.testing.assert_array_equal(pos_parallel, pos_serial)
        np.testing.assert_array_equal(e_parallel, e_serial)

