"""
Numerical Regression Gates.

These tests verify numerical correctness of forces and dynamics.
Any regression here blocks PR merge.

Gates:
1. Force agreement: analytic forces match finite differences
2. Energy conservation: NVE total energy fluctuation < 5% of kinetic energy
3. Energy drift: |drift| < 5% of kinetic energy over the run
"""

import numpy as np
import pytest

from mm4core import ForceField, ForceFieldOptions, Parameters


class TestForceAgreement:
    """
    Gate: Forces must be the negative gradient of the energy.

    This catches:
    - Sign errors in individual terms
    - Missing chain-rule factors
    - Switching and cutoff handling bugs
    """

    @pytest.mark.parametrize("n_carbons", [3, 5])
    def test_alkane_gradient(self, alkane, finite_difference, n_carbons):
        """Gate: forces match central differences on a perturbed alkane."""
        atomic_numbers, bonds, positions = alkane(n_carbons)
        forcefield = ForceField(Parameters.build(atomic_numbers, bonds), positions)

        rng = np.random.default_rng(n_carbons)
        perturbed = positions + rng.normal(0.0, 0.005, positions.shape)
        forcefield.positions = perturbed

        def energy(x):
            return forcefield.evaluator.energy(x)

        reference = finite_difference(energy, perturbed)
        error = forcefield.forces - reference
        rms = np.sqrt(np.mean(error**2))
        scale = np.sqrt(np.mean(reference**2))

        assert rms < 1e-5 * max(scale, 1.0)

    def test_short_cutoff_gradient(self, alkane, finite_difference):
        """Gate: forces stay conservative with a cutoff inside the molecule."""
        atomic_numbers, bonds, positions = alkane(6)
        options = ForceFieldOptions(cutoff_distance=0.45, use_neighbor_list=True)
        forcefield = ForceField(
            Parameters.build(atomic_numbers, bonds), positions, options=options
        )

        reference = finite_difference(forcefield.evaluator.energy, positions)

        assert np.allclose(forcefield.forces, reference, rtol=1e-4, atol=1e-2)


class TestEnergyConservation:
    """
    Gate: Velocity Verlet must conserve total energy.

    Runs short NVE trajectories from a thermalized minimum.
    """

    @pytest.fixture
    def equilibrated(self, butane, butane_parameters):
        """Minimized butane with 300 K velocities."""
        _, _, positions = butane
        forcefield = ForceField(butane_parameters, positions)
        forcefield.minimize(method="lbfgs")
        forcefield.thermalize(temperature=300.0, seed=17)
        return forcefield

    def _trajectory(self, forcefield, n_samples=100, interval=0.002, dt=0.0005):
        totals = []
        kinetics = []
        for _ in range(n_samples):
            forcefield.simulate(interval, maximum_time_step=dt)
            snapshot = forcefield.state(positions=False, velocities=False, energy=True)
            totals.append(snapshot.total_energy)
            kinetics.append(snapshot.kinetic_energy)
        return np.array(totals), np.array(kinetics)

    def test_energy_conservation_relative(self, equilibrated):
        """Gate: total energy fluctuation is small against kinetic energy."""
        totals, kinetics = self._trajectory(equilibrated)

        assert np.all(np.isfinite(totals))
        assert np.std(totals) < 0.05 * np.mean(kinetics)

    def test_nve_energy_drift(self, equilibrated):
        """Gate: no systematic drift over the run."""
        totals, kinetics = self._trajectory(equilibrated)

        first = np.mean(totals[:10])
        last = np.mean(totals[-10:])
        assert abs(last - first) < 0.05 * np.mean(kinetics)

    def test_external_force_conserves(self, equilibrated):
        """Gate: constant external forces keep the total energy conserved."""
        external = np.zeros((equilibrated.n_atoms, 3))
        external[0] = [50.0, 0.0, 0.0]
        external[3] = [-50.0, 0.0, 0.0]
        equilibrated.external_forces = external

        totals, kinetics = self._trajectory(equilibrated, n_samples=50)

        assert np.std(totals) < 0.05 * np.mean(kinetics)
