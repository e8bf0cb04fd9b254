"""Tests for the ForceField engine."""

import copy
import threading

import numpy as np
import pytest

from mm4core import ForceField, ForceFieldOptions, Parameters, State
from mm4core.errors import InvalidConfiguration, NumericalInstability
from mm4core.forcefields import ForceProvider


class FailingForce(ForceProvider):
    """Zero force that turns non-finite after a number of calls."""

    def __init__(self, finite_calls):
        self.finite_calls = finite_calls
        self.calls = 0

    def compute_with_energy(self, positions, neighbors=None):
        self.calls += 1
        forces = np.zeros((len(positions), 3))
        if self.calls > self.finite_calls:
            forces[0, 0] = np.nan
        return forces, 0.0


class BlockingForce(ForceProvider):
    """Zero force that waits on an event, to hold the engine busy."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def compute_with_energy(self, positions, neighbors=None):
        self.entered.set()
        self.release.wait(timeout=10.0)
        return np.zeros((len(positions), 3)), 0.0


class TestForceFieldConstruction:
    """Test construction and validation."""

    def test_defaults(self, butane_forcefield, butane):
        """Test default velocities, masks and rigid bodies."""
        _, _, positions = butane
        n_atoms = len(positions)

        assert butane_forcefield.n_atoms == n_atoms
        assert np.array_equal(butane_forcefield.positions, positions)
        assert np.all(butane_forcefield.velocities == 0.0)
        assert not butane_forcefield.stationary_atoms.any()
        assert not butane_forcefield.anchors.any()
        assert np.all(butane_forcefield.external_forces == 0.0)
        assert list(butane_forcefield.rigid_bodies) == [(0, n_atoms)]
        assert butane_forcefield.time == 0.0

    def test_wrong_positions_shape(self, butane_parameters):
        """Test that positions must match the atom count."""
        with pytest.raises(InvalidConfiguration, match="positions"):
            ForceField(butane_parameters, np.zeros((3, 3)))

    def test_non_finite_positions(self, butane, butane_parameters):
        """Test that NaN positions are rejected."""
        _, _, positions = butane
        positions = positions.copy()
        positions[2, 1] = np.nan

        with pytest.raises(InvalidConfiguration, match="non-finite"):
            ForceField(butane_parameters, positions)

    def test_rigid_bodies_must_cover(self, butane, butane_parameters):
        """Test that rigid bodies must partition every atom."""
        _, _, positions = butane
        with pytest.raises(InvalidConfiguration):
            ForceField(butane_parameters, positions, rigid_bodies=[(0, 4)])

    def test_cannot_copy(self, butane_forcefield):
        """Test that copying raises TypeError."""
        with pytest.raises(TypeError):
            copy.copy(butane_forcefield)
        with pytest.raises(TypeError):
            copy.deepcopy(butane_forcefield)


class TestForceFieldProperties:
    """Test getters, setters and update."""

    def test_getters_return_copies(self, butane_forcefield):
        """Test that mutating a returned array leaves the engine alone."""
        positions = butane_forcefield.positions
        positions[0, 0] = 100.0
        velocities = butane_forcefield.velocities
        velocities[0, 0] = 100.0

        assert butane_forcefield.positions[0, 0] != 100.0
        assert butane_forcefield.velocities[0, 0] == 0.0

    def test_setter_invalidates_energy(self, butane_forcefield):
        """Test that new positions give a new potential energy."""
        before = butane_forcefield.potential_energy
        positions = butane_forcefield.positions
        positions[0] += 0.01

        butane_forcefield.positions = positions

        assert butane_forcefield.potential_energy != before

    def test_forces_match_evaluator(self, butane_forcefield):
        """Test that engine forces are the evaluator forces without restraints."""
        expected = butane_forcefield.evaluator.compute(butane_forcefield.positions)

        assert np.allclose(butane_forcefield.forces, expected)

    def test_failed_update_changes_nothing(self, butane_forcefield):
        """Test that a rejected batch is not partially applied."""
        n_atoms = butane_forcefield.n_atoms
        before = butane_forcefield.positions

        with pytest.raises(InvalidConfiguration):
            butane_forcefield.update(
                positions=before + 0.01, velocities=np.zeros((n_atoms + 1, 3))
            )

        assert np.array_equal(butane_forcefield.positions, before)

    def test_mask_must_be_boolean(self, butane_forcefield):
        """Test that integer masks are rejected."""
        with pytest.raises(InvalidConfiguration, match="boolean"):
            butane_forcefield.stationary_atoms = np.zeros(butane_forcefield.n_atoms)

    def test_stationary_and_anchor_conflict(self, butane_forcefield):
        """Test that an atom cannot be both stationary and anchored."""
        mask = np.zeros(butane_forcefield.n_atoms, dtype=bool)
        mask[0] = True
        butane_forcefield.stationary_atoms = mask

        with pytest.raises(InvalidConfiguration, match="both stationary and anchored"):
            butane_forcefield.anchors = mask
        assert not butane_forcefield.anchors.any()

    def test_stationary_zeroes_velocity(self, butane_forcefield):
        """Test that making an atom stationary clears its velocity."""
        n_atoms = butane_forcefield.n_atoms
        mask = np.zeros(n_atoms, dtype=bool)
        mask[1] = True

        butane_forcefield.update(
            velocities=np.ones((n_atoms, 3)), stationary_atoms=mask
        )

        assert np.all(butane_forcefield.velocities[1] == 0.0)
        assert np.all(butane_forcefield.velocities[0] == 1.0)

    def test_anchor_positions_recorded(self, butane_forcefield):
        """Test that anchors record the positions at the time they are set."""
        mask = np.zeros(butane_forcefield.n_atoms, dtype=bool)
        mask[0] = True
        butane_forcefield.anchors = mask
        reference = butane_forcefield.anchor_positions

        positions = butane_forcefield.positions
        positions[0, 0] += 0.01
        butane_forcefield.positions = positions

        assert np.array_equal(butane_forcefield.anchor_positions, reference)

    def test_anchor_adds_energy(self, butane_forcefield):
        """Test the anchor spring energy after moving an anchored atom."""
        stiffness = butane_forcefield.options.anchor_stiffness
        mask = np.zeros(butane_forcefield.n_atoms, dtype=bool)
        mask[0] = True
        butane_forcefield.anchors = mask

        positions = butane_forcefield.positions
        positions[0, 0] += 0.01
        unanchored = butane_forcefield.evaluator.energy(positions)
        butane_forcefield.positions = positions

        assert butane_forcefield.potential_energy == pytest.approx(
            unanchored + 0.5 * stiffness * 0.01**2
        )

    def test_external_forces(self, butane_forcefield):
        """Test that external forces add to the total force."""
        internal = butane_forcefield.forces
        external = np.zeros((butane_forcefield.n_atoms, 3))
        external[3] = [1.0, 2.0, 3.0]

        butane_forcefield.external_forces = external

        assert np.allclose(butane_forcefield.forces, internal + external)


class TestForceFieldState:
    """Test immutable snapshots."""

    def test_default_fields(self, butane_forcefield):
        """Test that forces and energy are omitted by default."""
        snapshot = butane_forcefield.state()

        assert isinstance(snapshot, State)
        assert snapshot.positions is not None
        assert snapshot.velocities is not None
        assert snapshot.forces is None
        assert snapshot.potential_energy is None

    def test_energy_fields(self, butane_forcefield):
        """Test the requested energies."""
        snapshot = butane_forcefield.state(forces=True, energy=True)

        assert snapshot.potential_energy == pytest.approx(
            butane_forcefield.potential_energy
        )
        assert snapshot.kinetic_energy == 0.0
        assert np.allclose(snapshot.forces, butane_forcefield.forces)

    def test_snapshot_detached(self, butane_forcefield):
        """Test that later changes do not reach an earlier snapshot."""
        snapshot = butane_forcefield.state()
        before = snapshot.positions.copy()

        butane_forcefield.simulate(0.01)

        assert np.array_equal(snapshot.positions, before)
        assert not snapshot.positions.flags.writeable


class TestSimulate:
    """Test molecular dynamics."""

    def test_exact_time(self, butane_forcefield):
        """Test that the clock advances by exactly the requested time."""
        butane_forcefield.simulate(0.01, maximum_time_step=0.003)

        assert butane_forcefield.time == pytest.approx(0.01, abs=1e-15)

    @pytest.mark.parametrize(
        "time, step, n_steps",
        [(0.01, 0.003, 4), (0.03, 0.01, 3), (0.006 * (1.0 + 1e-12), 0.002, 4)],
    )
    def test_steps_within_maximum(
        self, butane_forcefield, monkeypatch, time, step, n_steps
    ):
        """Test the step count and that no step is longer than the maximum."""
        integrator = butane_forcefield._integrator
        full_step = integrator.full_step
        steps = []

        def recording_step(*args, dt, **kwargs):
            steps.append(dt)
            return full_step(*args, dt=dt, **kwargs)

        monkeypatch.setattr(integrator, "full_step", recording_step)
        butane_forcefield.simulate(time, maximum_time_step=step)

        assert len(steps) == n_steps
        assert max(steps) <= step
        assert sum(steps) == pytest.approx(time, rel=1e-12)

    def test_zero_time(self, butane_forcefield):
        """Test that zero time is a no-op."""
        before = butane_forcefield.positions

        butane_forcefield.simulate(0.0)

        assert np.array_equal(butane_forcefield.positions, before)
        assert butane_forcefield.time == 0.0

    @pytest.mark.parametrize("time, step", [(-1.0, None), (1.0, 0.0), (1.0, -0.1)])
    def test_invalid_arguments(self, butane_forcefield, time, step):
        """Test that negative times and steps are rejected."""
        with pytest.raises(InvalidConfiguration):
            butane_forcefield.simulate(time, maximum_time_step=step)

    def test_moves_from_strained_geometry(self, butane_forcefield):
        """Test that a non-equilibrium geometry starts moving."""
        butane_forcefield.simulate(0.02)

        assert butane_forcefield.kinetic_energy > 0.0

    def test_stationary_atoms_fixed(self, butane_forcefield):
        """Test that stationary atoms keep bit-identical positions."""
        mask = np.zeros(butane_forcefield.n_atoms, dtype=bool)
        mask[[0, 5]] = True
        butane_forcefield.stationary_atoms = mask
        before = butane_forcefield.positions

        butane_forcefield.thermalize(temperature=300.0, seed=2)
        butane_forcefield.simulate(0.05)

        after = butane_forcefield.positions
        assert np.array_equal(after[mask], before[mask])
        assert np.all(butane_forcefield.velocities[mask] == 0.0)

    def test_instability_keeps_last_state(self, butane, butane_parameters):
        """Test NumericalInstability with the last consistent time."""
        _, _, positions = butane
        forcefield = ForceField(butane_parameters, positions)
        dt = forcefield.options.time_step
        # One evaluation for the initial forces plus three good steps
        forcefield.evaluator.add_term(FailingForce(finite_calls=4))

        with pytest.raises(NumericalInstability) as info:
            forcefield.simulate(10 * dt)

        assert info.value.time == pytest.approx(3 * dt)
        assert forcefield.time == pytest.approx(3 * dt)
        assert np.all(np.isfinite(forcefield.positions))

    def test_busy_instance_raises(self, butane, butane_parameters):
        """Test that a concurrent mutating call raises instead of waiting."""
        _, _, positions = butane
        forcefield = ForceField(butane_parameters, positions)
        blocker = BlockingForce()
        forcefield.evaluator.add_term(blocker)

        worker = threading.Thread(target=forcefield.simulate, args=(0.004,))
        worker.start()
        try:
            assert blocker.entered.wait(timeout=10.0)
            with pytest.raises(RuntimeError, match="busy"):
                forcefield.minimize()
        finally:
            blocker.release.set()
            worker.join()

    def test_neighbor_list_matches_brute_force(self, butane, butane_parameters):
        """Test that trajectories agree with and without a Verlet list."""
        _, _, positions = butane
        brute = ForceField(butane_parameters, positions)
        listed = ForceField(
            butane_parameters,
            positions,
            options=ForceFieldOptions(use_neighbor_list=True),
        )

        brute.simulate(0.05)
        listed.simulate(0.05)

        assert np.allclose(brute.positions, listed.positions, atol=1e-10)


class TestMinimize:
    """Test minimization through the engine."""

    def test_lowers_energy(self, butane_forcefield):
        """Test that minimization lowers the potential energy."""
        before = butane_forcefield.potential_energy

        result = butane_forcefield.minimize()

        assert result.converged
        assert butane_forcefield.potential_energy == pytest.approx(result.energy)
        assert result.energy < before

    def test_velocities_unchanged(self, butane_forcefield):
        """Test that minimization leaves velocities alone."""
        velocities = np.full((butane_forcefield.n_atoms, 3), 0.1)
        butane_forcefield.velocities = velocities

        butane_forcefield.minimize(method="lbfgs")

        assert np.array_equal(butane_forcefield.velocities, velocities)

    def test_stationary_atoms_fixed(self, butane_forcefield):
        """Test that stationary atoms do not move during minimization."""
        mask = np.zeros(butane_forcefield.n_atoms, dtype=bool)
        mask[:2] = True
        butane_forcefield.stationary_atoms = mask
        before = butane_forcefield.positions

        butane_forcefield.minimize()

        assert np.array_equal(butane_forcefield.positions[mask], before[mask])


class TestThermalize:
    """Test velocity initialization through the engine."""

    def test_reproducible(self, butane, butane_parameters):
        """Test that equal seeds give equal velocities."""
        _, _, positions = butane
        a = ForceField(butane_parameters, positions)
        b = ForceField(butane_parameters, positions)

        a.thermalize(temperature=300.0, seed=11)
        b.thermalize(temperature=300.0, seed=11)

        assert np.array_equal(a.velocities, b.velocities)

    def test_selected_bodies(self, butane, butane_parameters):
        """Test that unselected rigid bodies keep their velocities."""
        _, _, positions = butane
        n_atoms = len(positions)
        forcefield = ForceField(
            butane_parameters, positions, rigid_bodies=[(0, 4), (4, n_atoms)]
        )

        forcefield.thermalize(temperature=300.0, rigid_bodies=[1], seed=3)

        assert np.all(forcefield.velocities[:4] == 0.0)
        assert np.any(forcefield.velocities[4:] != 0.0)

    def test_invalid_body(self, butane_forcefield):
        """Test that a missing rigid body index is rejected."""
        with pytest.raises(InvalidConfiguration, match="rigid body"):
            butane_forcefield.thermalize(rigid_bodies=[3])

    def test_keeps_center_of_mass_velocity(self, butane_forcefield):
        """Test that a translating molecule keeps drifting after thermalizing."""
        n_atoms = butane_forcefield.n_atoms
        masses = butane_forcefield.parameters.masses
        butane_forcefield.velocities = np.tile([1.0, 0.0, 0.0], (n_atoms, 1))

        butane_forcefield.thermalize(temperature=300.0, seed=0)

        velocities = butane_forcefield.velocities
        com_velocity = np.sum(masses[:, np.newaxis] * velocities, axis=0) / np.sum(
            masses
        )
        assert np.allclose(com_velocity, [1.0, 0.0, 0.0], atol=1e-10)


class TestAnchors:
    """Test that anchored atoms stay near their reference positions."""

    def test_bounded_during_simulation(self, butane_forcefield):
        """Test the anchor displacement bound set by the injected energy."""
        butane_forcefield.minimize()
        n_atoms = butane_forcefield.n_atoms
        stiffness = butane_forcefield.options.anchor_stiffness
        butane_forcefield.anchors = np.ones(n_atoms, dtype=bool)
        reference = butane_forcefield.anchor_positions

        butane_forcefield.thermalize(temperature=300.0, seed=6)
        injected = butane_forcefield.kinetic_energy

        largest = 0.0
        for _ in range(20):
            butane_forcefield.simulate(0.01)
            displacement = butane_forcefield.positions - reference
            largest = max(largest, np.max(np.linalg.norm(displacement, axis=1)))

        # The anchor springs can hold at most the kinetic energy put in,
        # plus the small gap left above the minimum
        bound = np.sqrt(2.0 * (injected + 5.0) / stiffness)
        assert 0.0 < largest < bound

    def test_bounded_during_minimization(self, butane_forcefield):
        """Test that minimization moves anchors no further than the energy allows."""
        n_atoms = butane_forcefield.n_atoms
        stiffness = butane_forcefield.options.anchor_stiffness
        mask = np.zeros(n_atoms, dtype=bool)
        mask[:4] = True
        butane_forcefield.anchors = mask
        reference = butane_forcefield.anchor_positions
        before = butane_forcefield.potential_energy

        butane_forcefield.minimize()

        positions = butane_forcefield.positions
        field_energy = butane_forcefield.evaluator.energy(positions)
        displacement = np.linalg.norm(positions[mask] - reference[mask], axis=1)
        # Anchor energy cannot exceed the drop in force field energy
        anchor_energy = 0.5 * stiffness * np.sum(displacement**2)
        assert anchor_energy <= before - field_energy
        bound = np.sqrt(2.0 * (before - field_energy) / stiffness)
        assert np.max(displacement) <= bound


def test_shared_parameters(butane, butane_parameters):
    """Test that two engines can share one parameter object."""
    _, _, positions = butane
    a = ForceField(butane_parameters, positions)
    b = ForceField(butane_parameters, positions + 0.5)

    assert a.parameters is b.parameters
    assert isinstance(a.parameters, Parameters)
    assert a.potential_energy == pytest.approx(b.potential_energy, rel=1e-10)
