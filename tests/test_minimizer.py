"""Tests for energy minimization."""

import numpy as np
import pytest

from mm4core import ConvergenceFailure, ForceField, Parameters
from mm4core.engines.minimizer import (
    MinimizationResult,
    lbfgs,
    minimize,
    steepest_descent,
)
from mm4core.errors import InvalidConfiguration


def _springs(center, k=50.0):
    """Independent springs pulling every atom to ``center``."""

    def energy_fn(positions):
        displacement = positions - center
        return -k * displacement, 0.5 * k * float(np.sum(displacement**2))

    return energy_fn


@pytest.fixture
def start():
    """Three atoms away from the origin."""
    return np.array([[0.1, 0.0, 0.0], [0.0, -0.2, 0.05], [0.03, 0.03, 0.03]])


class TestSteepestDescent:
    """Test steepest descent."""

    def test_energies_never_increase(self, start):
        """Test that accepted energies are non-increasing."""
        result = steepest_descent(_springs(np.zeros(3)), start, tolerance=1e-4)

        assert result.converged
        assert np.all(np.diff(result.energies) <= 0.0)
        assert result.energies[-1] == result.energy

    def test_reaches_minimum(self, start):
        """Test convergence to the spring minimum."""
        result = steepest_descent(
            _springs(np.zeros(3)), start, tolerance=1e-5, max_iterations=5000
        )

        assert result.energy < 1e-8
        assert result.max_force < 1e-2

    def test_stationary_bit_identical(self, start):
        """Test that stationary atoms keep their exact coordinates."""
        stationary = np.array([False, True, False])

        result = steepest_descent(
            _springs(np.zeros(3)), start, stationary=stationary, tolerance=1e-4
        )

        assert np.array_equal(result.positions[1], start[1])
        assert not np.array_equal(result.positions[0], start[0])

    def test_zero_force_start(self):
        """Test that a minimum needs no iterations."""
        result = steepest_descent(_springs(np.zeros(3)), np.zeros((2, 3)))

        assert result.converged
        assert result.iterations == 0

    def test_iteration_cap(self, start):
        """Test that the cap stops the run unconverged."""
        result = steepest_descent(
            _springs(np.zeros(3)), start, tolerance=1e-14, max_iterations=3
        )

        assert not result.converged
        assert result.iterations == 3


class TestLBFGS:
    """Test L-BFGS."""

    def test_reaches_minimum(self, start):
        """Test convergence to the spring minimum."""
        result = lbfgs(_springs(np.zeros(3)), start, tolerance=1e-6)

        assert result.converged
        assert result.energy < 1e-8
        assert np.all(np.diff(result.energies) <= 0.0)

    def test_stationary_bit_identical(self, start):
        """Test that stationary atoms are outside the search space."""
        stationary = np.array([True, False, False])

        result = lbfgs(
            _springs(np.zeros(3)), start, stationary=stationary, tolerance=1e-6
        )

        assert np.array_equal(result.positions[0], start[0])
        assert np.allclose(result.positions[1:], 0.0, atol=1e-4)

    def test_all_stationary(self, start):
        """Test that nothing moves when every atom is stationary."""
        result = lbfgs(_springs(np.zeros(3)), start, stationary=np.ones(3, dtype=bool))

        assert result.converged
        assert np.array_equal(result.positions, start)

    def test_tolerance_stops_early(self):
        """Test that a loose force tolerance ends the run in fewer iterations."""
        rng = np.random.default_rng(3)
        positions = rng.uniform(-0.1, 0.1, size=(30, 3))
        stiffness = np.logspace(0.0, 3.0, 30)[:, np.newaxis]

        def energy_fn(x):
            return -stiffness * x, 0.5 * float(np.sum(stiffness * x**2))

        initial = np.sqrt(np.mean(np.sum((stiffness * positions) ** 2, axis=1)))
        loose = 0.1 * initial

        tight_result = lbfgs(energy_fn, positions, tolerance=1e-6)
        loose_result = lbfgs(energy_fn, positions, tolerance=loose)

        assert loose_result.converged
        assert loose_result.rms_force <= loose
        assert loose_result.iterations < tight_result.iterations

    def test_converged_start(self, start):
        """Test that a start already within tolerance needs no iterations."""
        result = lbfgs(_springs(np.zeros(3)), start, tolerance=100.0)

        assert result.converged
        assert result.iterations == 0
        assert np.array_equal(result.positions, start)


class TestMinimizeDispatch:
    """Test method dispatch and argument checks."""

    @pytest.mark.parametrize("method", ["steepest_descent", "lbfgs"])
    def test_methods(self, start, method):
        """Test that both methods return a result."""
        result = minimize(_springs(np.zeros(3)), start, tolerance=1e-3, method=method)

        assert isinstance(result, MinimizationResult)
        assert result.energy < result.energies[0]

    def test_unknown_method(self, start):
        """Test that an unknown method name is rejected."""
        with pytest.raises(InvalidConfiguration, match="Unknown minimization method"):
            minimize(_springs(np.zeros(3)), start, method="newton")

    @pytest.mark.parametrize(
        "kwargs", [{"tolerance": 0.0}, {"tolerance": -1.0}, {"max_iterations": 0}]
    )
    def test_invalid_arguments(self, start, kwargs):
        """Test that non-positive limits are rejected."""
        with pytest.raises(InvalidConfiguration):
            minimize(_springs(np.zeros(3)), start, **kwargs)


class TestEngineMinimize:
    """Test minimization of real molecules."""

    @pytest.mark.parametrize("method", ["steepest_descent", "lbfgs"])
    def test_molecule_energies_decrease(self, cyclopentane, method):
        """Test monotone energies on cyclopentane."""
        atomic_numbers, bonds, positions = cyclopentane
        forcefield = ForceField(Parameters.build(atomic_numbers, bonds), positions)

        try:
            result = forcefield.minimize(method=method)
        except ConvergenceFailure as error:
            result = error.result

        assert np.all(np.diff(result.energies) <= 0.0)
        assert forcefield.potential_energy == pytest.approx(result.energy)

    def test_convergence_failure(self, butane_forcefield):
        """Test that the iteration cap raises and keeps the best positions."""
        before = butane_forcefield.potential_energy

        with pytest.raises(ConvergenceFailure) as info:
            butane_forcefield.minimize(tolerance=1e-12, max_iterations=2)

        result = info.value.result
        assert isinstance(result, MinimizationResult)
        assert not result.converged
        assert butane_forcefield.potential_energy == pytest.approx(result.energy)
        assert result.energy <= before

    def test_default_relaxes_perturbed_molecule(self, butane, butane_parameters):
        """Test that the default settings bring the forces down."""
        _, _, positions = butane
        noise = np.random.default_rng(21).normal(0.0, 0.01, size=positions.shape)
        forcefield = ForceField(butane_parameters, positions + noise)
        before = forcefield.state(forces=True).forces

        result = forcefield.minimize()

        n_atoms = forcefield.n_atoms
        assert result.converged
        assert result.rms_force <= 10.0
        # Per-atom RMS bounds the largest atomic force
        assert result.max_force <= 10.0 * np.sqrt(n_atoms)
        assert result.max_force < np.max(np.linalg.norm(before, axis=1))
