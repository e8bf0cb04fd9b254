"""Tests for the Velocity Verlet integrator and engine restraints."""

import numpy as np
import pytest

from mm4core.errors import InvalidConfiguration
from mm4core.integrators import (
    AnchorRestraint,
    ExternalForce,
    Integrator,
    VelocityVerletIntegrator,
)
from mm4core.system import MDState


def _harmonic(k=100.0):
    """Force function of independent springs to the origin."""
    return lambda positions: -k * positions


class TestVelocityVerlet:
    """Test Velocity Verlet integrator."""

    def test_is_integrator(self):
        """Test that the integrator implements the interface."""
        assert isinstance(VelocityVerletIntegrator(0.001), Integrator)

    @pytest.mark.parametrize("dt", [0.0, -0.001, float("nan")])
    def test_invalid_timestep(self, dt):
        """Test that a non-positive step is rejected."""
        with pytest.raises(InvalidConfiguration):
            VelocityVerletIntegrator(dt)

    def test_free_particle(self):
        """Test straight-line motion without forces."""
        state = MDState.create([[0.0, 0.0, 0.0]], [2.0], velocities=[[1.0, 2.0, 0.0]])
        integrator = VelocityVerletIntegrator(0.01)

        new = integrator.full_step(state, np.zeros((1, 3)), lambda x: np.zeros((1, 3)))

        assert np.allclose(new.positions, [[0.01, 0.02, 0.0]])
        assert np.allclose(new.velocities, state.velocities)
        assert new.time == pytest.approx(0.01)
        assert new.step == 1

    def test_does_not_mutate_input(self):
        """Test that the input state is left untouched."""
        state = MDState.create([[0.1, 0.0, 0.0]], [1.0])
        force_fn = _harmonic()
        forces = force_fn(state.positions)

        VelocityVerletIntegrator(0.01).full_step(state, forces, force_fn)

        assert np.array_equal(state.positions, [[0.1, 0.0, 0.0]])
        assert state.step == 0

    def test_harmonic_energy_conservation(self):
        """Test that a harmonic oscillator conserves energy."""
        k = 100.0
        force_fn = _harmonic(k)
        state = MDState.create([[0.1, 0.0, 0.0]], [1.0])
        forces = force_fn(state.positions)
        integrator = VelocityVerletIntegrator(0.001)

        def total(s):
            return s.kinetic_energy + 0.5 * k * float(np.sum(s.positions**2))

        initial = total(state)
        for _ in range(2000):
            state = integrator.full_step(state, forces, force_fn)
            forces = state.forces

        assert total(state) == pytest.approx(initial, rel=1e-4)

    def test_time_reversibility(self):
        """Test that reversing velocities retraces the trajectory."""
        force_fn = _harmonic()
        start = MDState.create([[0.1, 0.0, 0.0]], [1.0], velocities=[[0.0, 0.3, 0.0]])
        integrator = VelocityVerletIntegrator(0.002)

        state = start
        forces = force_fn(state.positions)
        for _ in range(50):
            state = integrator.full_step(state, forces, force_fn)
            forces = state.forces
        state.velocities = -state.velocities
        for _ in range(50):
            state = integrator.full_step(state, forces, force_fn)
            forces = state.forces

        assert np.allclose(state.positions, start.positions, atol=1e-10)

    def test_stationary_atoms(self):
        """Test that stationary atoms keep identical positions and zero velocity."""
        positions = np.array([[0.1, 0.2, 0.3], [0.5, 0.1, 0.0]])
        state = MDState.create(positions, [1.0, 1.0], velocities=[[1.0, 0, 0]] * 2)
        stationary = np.array([True, False])
        force_fn = _harmonic()
        integrator = VelocityVerletIntegrator(0.01)

        forces = force_fn(state.positions)
        for _ in range(10):
            state = integrator.full_step(state, forces, force_fn, stationary=stationary)
            forces = state.forces

        assert np.array_equal(state.positions[0], positions[0])
        assert np.array_equal(state.velocities[0], [0.0, 0.0, 0.0])
        assert not np.array_equal(state.positions[1], positions[1])

    def test_step_override(self):
        """Test a shorter final step."""
        state = MDState.create([[0.0, 0.0, 0.0]], [1.0], velocities=[[1.0, 0, 0]])
        integrator = VelocityVerletIntegrator(0.01)

        new = integrator.full_step(
            state, np.zeros((1, 3)), lambda x: np.zeros((1, 3)), dt=0.004
        )

        assert new.time == pytest.approx(0.004)
        assert new.positions[0, 0] == pytest.approx(0.004)


class TestAnchorRestraint:
    """Test harmonic anchors."""

    def test_force_and_energy(self, finite_difference):
        """Test spring forces on anchored atoms only."""
        reference = np.zeros((3, 3))
        anchor = AnchorRestraint(reference, [True, False, True], stiffness=500.0)
        positions = np.array([[0.01, 0.0, 0.0], [0.3, 0.0, 0.0], [0.0, -0.02, 0.0]])

        forces, energy = anchor.compute_with_energy(positions)

        assert np.allclose(forces, [[-5.0, 0, 0], [0, 0, 0], [0, 10.0, 0]])
        assert energy == pytest.approx(0.5 * 500.0 * (0.01**2 + 0.02**2))
        assert np.allclose(
            forces, finite_difference(anchor.energy, positions), atol=1e-6
        )
        assert anchor.n_anchors == 2

    def test_no_anchors(self):
        """Test that an empty mask contributes nothing."""
        anchor = AnchorRestraint(np.zeros((2, 3)), [False, False], 500.0)
        forces, energy = anchor.compute_with_energy(np.ones((2, 3)))

        assert energy == 0.0
        assert np.all(forces == 0.0)

    def test_mask_length(self):
        """Test that the mask must cover every atom."""
        with pytest.raises(ValueError, match="anchor mask"):
            AnchorRestraint(np.zeros((2, 3)), [True], 500.0)


class TestExternalForce:
    """Test constant external forces."""

    def test_forces_and_potential(self, finite_difference):
        """Test that the potential is minus the work of the force."""
        external = ExternalForce([[1.0, 0.0, 0.0], [0.0, -2.0, 0.0]])
        positions = np.array([[0.5, 0.0, 0.0], [0.0, 0.25, 0.0]])

        forces, energy = external.compute_with_energy(positions)

        assert np.allclose(forces, external.forces)
        assert energy == pytest.approx(-0.5 + 0.5)
        assert np.allclose(forces, finite_difference(external.energy, positions))

    def test_is_zero(self):
        """Test detecting an all-zero force set."""
        assert ExternalForce(np.zeros((2, 3))).is_zero
        assert not ExternalForce([[0.0, 0.0, 1.0]]).is_zero

    def test_shape(self):
        """Test that forces must be (N, 3)."""
        with pytest.raises(ValueError, match="shape"):
            ExternalForce([1.0, 2.0, 3.0])
