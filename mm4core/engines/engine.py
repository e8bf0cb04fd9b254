"""The MM4 force field engine: mutable state plus simulate, minimize, thermalize."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..config import ForceFieldOptions
from ..errors import ConvergenceFailure, InvalidConfiguration, NumericalInstability
from ..forcefields import ForceEvaluator
from ..integrators import AnchorRestraint, ExternalForce, VelocityVerletIntegrator
from ..system import MDState, RigidBodyPartition, State
from .minimizer import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    MinimizationMethod,
    MinimizationResult,
    minimize,
)
from .thermalizer import DEFAULT_TEMPERATURE, thermalize

if TYPE_CHECKING:
    from ..parallel import ParallelBackend
    from ..parameters import Parameters

logger = logging.getLogger(__name__)

RigidBodiesLike = RigidBodyPartition | Iterable[Sequence[int]]


class ForceField:
    """
    A molecular system under the MM4 force field.

    Owns one immutable Parameters object and the mutable per-atom state:
    positions, velocities, external forces, stationary atoms and anchors.
    Evaluation is pure in the positions; anchors and external forces are
    added on top of the evaluator output, and their potentials are part of
    ``potential_energy`` so that the total energy is conserved.

    A ForceField is single-writer. A mutating call made while another one
    is running raises RuntimeError instead of waiting. Instances cannot be
    copied; build a new one from the same Parameters instead.

    Example usage:
        parameters = Parameters.build(atomic_numbers, bonds)
        forcefield = ForceField(parameters, positions)
        forcefield.minimize()
        forcefield.thermalize(temperature=300.0, seed=1)
        forcefield.simulate(time=1.0)
        snapshot = forcefield.state(energy=True)

    Attributes:
        parameters: Shared force field parameters.
        options: Cutoff, dielectric, anchor and time step settings.
        evaluator: Composite MM4 force evaluator.
    """

    def __init__(
        self,
        parameters: Parameters,
        positions: ArrayLike,
        *,
        velocities: ArrayLike | None = None,
        rigid_bodies: RigidBodiesLike | None = None,
        options: ForceFieldOptions | None = None,
        backend: ParallelBackend | None = None,
    ) -> None:
        """
        Initialize a force field.

        Args:
            parameters: Parameters built for the molecular system.
            positions: Atomic positions in nm, shape (N, 3).
            velocities: Atomic velocities in nm/ps, shape (N, 3). Defaults to
                zeros.
            rigid_bodies: RigidBodyPartition or (lower, upper) ranges. Defaults
                to one body holding every atom.
            options: Runtime options. Defaults to ForceFieldOptions().
            backend: Parallel backend for force evaluation.

        Raises:
            InvalidConfiguration: If an array size or option is invalid.
        """
        self.parameters = parameters
        self.options = options if options is not None else ForceFieldOptions()
        n_atoms = parameters.n_atoms

        positions = self._validate_vectors("positions", positions)
        if velocities is None:
            velocities = np.zeros((n_atoms, 3), dtype=np.float64)
        else:
            velocities = self._validate_vectors("velocities", velocities)
        self._rigid_bodies = self._validate_rigid_bodies(rigid_bodies)

        self.evaluator = ForceEvaluator.from_parameters(
            parameters, self.options, backend=backend
        )
        self._integrator = VelocityVerletIntegrator(self.options.time_step)
        self._external = ExternalForce(np.zeros((n_atoms, 3), dtype=np.float64))
        self._anchor = AnchorRestraint(
            positions, np.zeros(n_atoms, dtype=bool), self.options.anchor_stiffness
        )
        self._stationary = np.zeros(n_atoms, dtype=bool)

        self._state = MDState.create(positions, parameters.masses, velocities)
        self._potential_energy: float | None = None
        self._lock = threading.Lock()

        logger.info(
            "Created force field for %d atoms in %d rigid bodies",
            n_atoms,
            len(self._rigid_bodies),
        )

    def __copy__(self) -> Any:
        raise TypeError("ForceField cannot be copied; build a new one from parameters")

    def __deepcopy__(self, memo: dict) -> Any:
        raise TypeError("ForceField cannot be copied; build a new one from parameters")

    def __repr__(self) -> str:
        return (
            f"ForceField(n_atoms={self.n_atoms}, time={self._state.time:.6g} ps, "
            f"rigid_bodies={len(self._rigid_bodies)})"
        )

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the instance lock for one call."""
        if not self._lock.acquire(blocking=False):
            raise RuntimeError("ForceField is busy with another call")
        try:
            yield
        finally:
            self._lock.release()

    # Validation

    @property
    def n_atoms(self) -> int:
        """Return number of atoms."""
        return self.parameters.n_atoms

    def _validate_vectors(
        self, name: str, value: ArrayLike, finite: bool = True
    ) -> NDArray[np.floating]:
        array = np.array(value, dtype=np.float64)
        if array.shape != (self.n_atoms, 3):
            raise InvalidConfiguration(
                f"{name} shape {array.shape} incompatible with {self.n_atoms} atoms"
            )
        if finite and not np.all(np.isfinite(array)):
            raise InvalidConfiguration(f"{name} contain non-finite values")
        return array

    def _validate_mask(self, name: str, value: ArrayLike) -> NDArray[np.bool_]:
        mask = np.array(value)
        if mask.shape != (self.n_atoms,):
            raise InvalidConfiguration(
                f"{name} shape {mask.shape} incompatible with {self.n_atoms} atoms"
            )
        if mask.dtype != np.bool_:
            raise InvalidConfiguration(
                f"{name} must be a boolean mask, got dtype {mask.dtype}"
            )
        return mask

    def _validate_rigid_bodies(
        self, rigid_bodies: RigidBodiesLike | None
    ) -> RigidBodyPartition:
        if rigid_bodies is None:
            return RigidBodyPartition.whole(self.n_atoms)
        if isinstance(rigid_bodies, RigidBodyPartition):
            if rigid_bodies.n_atoms != self.n_atoms:
                raise InvalidConfiguration(
                    f"rigid bodies cover {rigid_bodies.n_atoms} atoms "
                    f"but there are {self.n_atoms}"
                )
            return rigid_bodies
        return RigidBodyPartition(rigid_bodies, self.n_atoms)

    @staticmethod
    def _check_disjoint(
        stationary: NDArray[np.bool_], anchors: NDArray[np.bool_]
    ) -> None:
        both = np.flatnonzero(stationary & anchors)
        if len(both) > 0:
            raise InvalidConfiguration(
                f"atoms {both.tolist()} are both stationary and anchored"
            )

    # Evaluation

    def _evaluate(
        self, positions: NDArray[np.floating]
    ) -> tuple[NDArray[np.floating], float]:
        """Total forces and potential energy including restraints."""
        forces, energy = self.evaluator.compute_with_energy(positions)
        if self._anchor.n_anchors > 0:
            anchor_forces, anchor_energy = self._anchor.compute_with_energy(positions)
            forces = forces + anchor_forces
            energy += anchor_energy
        if not self._external.is_zero:
            external_forces, external_energy = self._external.compute_with_energy(
                positions
            )
            forces = forces + external_forces
            energy += external_energy
        return forces, energy

    def _invalidate(self) -> None:
        self._potential_energy = None

    def _refresh(self) -> None:
        """Recompute forces and energy at the current positions if stale."""
        if self._potential_energy is None:
            forces, energy = self._evaluate(self._state.positions)
            self._state.forces = forces
            self._potential_energy = energy

    # Properties

    @property
    def positions(self) -> NDArray[np.floating]:
        """Atomic positions in nm, shape (N, 3)."""
        return self._state.positions.copy()

    @positions.setter
    def positions(self, value: ArrayLike) -> None:
        self.update(positions=value)

    @property
    def velocities(self) -> NDArray[np.floating]:
        """Atomic velocities in nm/ps, shape (N, 3)."""
        return self._state.velocities.copy()

    @velocities.setter
    def velocities(self, value: ArrayLike) -> None:
        self.update(velocities=value)

    @property
    def external_forces(self) -> NDArray[np.floating]:
        """Constant external forces in kJ/mol/nm, shape (N, 3)."""
        return self._external.forces.copy()

    @external_forces.setter
    def external_forces(self, value: ArrayLike) -> None:
        self.update(external_forces=value)

    @property
    def stationary_atoms(self) -> NDArray[np.bool_]:
        """Atoms held fixed, bool mask of shape (N,)."""
        return self._stationary.copy()

    @stationary_atoms.setter
    def stationary_atoms(self, value: ArrayLike) -> None:
        self.update(stationary_atoms=value)

    @property
    def anchors(self) -> NDArray[np.bool_]:
        """Anchored atoms, bool mask of shape (N,)."""
        return self._anchor.mask.copy()

    @anchors.setter
    def anchors(self, value: ArrayLike) -> None:
        self.update(anchors=value)

    @property
    def anchor_positions(self) -> NDArray[np.floating]:
        """Reference positions recorded when the anchors were last set."""
        return self._anchor.reference_positions.copy()

    @property
    def rigid_bodies(self) -> RigidBodyPartition:
        """Partition of the atoms into rigid bodies."""
        return self._rigid_bodies

    @rigid_bodies.setter
    def rigid_bodies(self, value: RigidBodiesLike) -> None:
        with self._exclusive():
            self._rigid_bodies = self._validate_rigid_bodies(value)

    @property
    def masses(self) -> NDArray[np.floating]:
        """Repartitioned masses in amu, shape (N,)."""
        return self._state.masses.copy()

    @property
    def forces(self) -> NDArray[np.floating]:
        """Total forces at the current positions in kJ/mol/nm, shape (N, 3)."""
        with self._exclusive():
            self._refresh()
            return self._state.forces.copy()

    @property
    def potential_energy(self) -> float:
        """Potential energy including anchors and external forces, in kJ/mol."""
        with self._exclusive():
            self._refresh()
            return float(self._potential_energy)

    @property
    def kinetic_energy(self) -> float:
        """Kinetic energy in kJ/mol."""
        return self._state.kinetic_energy

    @property
    def time(self) -> float:
        """Simulated time in ps."""
        return self._state.time

    def update(
        self,
        *,
        positions: ArrayLike | None = None,
        velocities: ArrayLike | None = None,
        external_forces: ArrayLike | None = None,
        stationary_atoms: ArrayLike | None = None,
        anchors: ArrayLike | None = None,
    ) -> None:
        """
        Apply a validated batch of changes.

        Every argument is validated before anything is applied, so a failed
        update leaves the instance untouched. Anchor reference positions are
        recorded at the new positions when both are given.

        Raises:
            InvalidConfiguration: If an array has the wrong shape, holds
                non-finite values, or an atom would be both stationary and
                anchored.
        """
        with self._exclusive():
            new_positions = (
                self._validate_vectors("positions", positions)
                if positions is not None
                else None
            )
            new_velocities = (
                self._validate_vectors("velocities", velocities)
                if velocities is not None
                else None
            )
            new_external = (
                self._validate_vectors("external_forces", external_forces)
                if external_forces is not None
                else None
            )
            new_stationary = (
                self._validate_mask("stationary_atoms", stationary_atoms)
                if stationary_atoms is not None
                else self._stationary
            )
            new_anchors = (
                self._validate_mask("anchors", anchors)
                if anchors is not None
                else self._anchor.mask
            )
            self._check_disjoint(new_stationary, new_anchors)

            if new_positions is not None:
                self._state.positions = new_positions
                self._invalidate()
            if new_velocities is not None:
                self._state.velocities = new_velocities
            if new_external is not None:
                self._external = ExternalForce(new_external)
                self._invalidate()
            if anchors is not None:
                self._anchor = AnchorRestraint(
                    self._state.positions, new_anchors, self.options.anchor_stiffness
                )
                self._invalidate()
            self._stationary = new_stationary.copy()
            self._state.velocities[self._stationary] = 0.0

    def state(
        self,
        positions: bool = True,
        velocities: bool = True,
        forces: bool = False,
        energy: bool = False,
    ) -> State:
        """
        Take an immutable snapshot of the current instant.

        Args:
            positions: Include positions.
            velocities: Include velocities.
            forces: Include total forces.
            energy: Include potential and kinetic energy.

        Returns:
            State with the requested fields; the others are None.
        """
        with self._exclusive():
            if forces or energy:
                self._refresh()
            return State(
                positions=self._state.positions.copy() if positions else None,
                velocities=self._state.velocities.copy() if velocities else None,
                forces=self._state.forces.copy() if forces else None,
                potential_energy=(
                    float(self._potential_energy) if energy else None
                ),
                kinetic_energy=self._state.kinetic_energy if energy else None,
                time=self._state.time,
            )

    # Actions

    def simulate(self, time: float, maximum_time_step: float | None = None) -> None:
        """
        Advance the system by exactly ``time`` picoseconds.

        The interval is split into ceil(time / maximum_time_step) velocity
        Verlet steps of equal length, none longer than the maximum step,
        with the last step taking whatever remains. The clock advances by
        exactly ``time``.

        Args:
            time: Simulated time to advance in ps.
            maximum_time_step: Largest step in ps. Defaults to
                ``options.time_step``.

        Raises:
            InvalidConfiguration: If time is negative or the step is not
                positive.
            NumericalInstability: If positions, velocities or forces become
                non-finite. The last consistent state is kept.
        """
        if not math.isfinite(time) or time < 0.0:
            raise InvalidConfiguration(f"time must be >= 0 ps, got {time}")
        max_dt = maximum_time_step
        if max_dt is None:
            max_dt = self.options.time_step
        if not math.isfinite(max_dt) or max_dt <= 0.0:
            raise InvalidConfiguration(
                f"maximum_time_step must be positive, got {max_dt}"
            )
        if time == 0.0:
            return

        n_steps = max(1, math.ceil(time / max_dt))
        dt = min(time / n_steps, max_dt)

        with self._exclusive():
            self._refresh()
            start_time = self._state.time
            stationary = self._stationary if np.any(self._stationary) else None
            energies: list[float] = []

            def force_fn(positions: NDArray[np.floating]) -> NDArray[np.floating]:
                forces, energy = self._evaluate(positions)
                energies.append(energy)
                return forces

            for step in range(n_steps):
                step_dt = dt
                if step == n_steps - 1:
                    step_dt = min(time - dt * (n_steps - 1), max_dt)
                new_state = self._integrator.full_step(
                    self._state,
                    self._state.forces,
                    force_fn,
                    dt=step_dt,
                    stationary=stationary,
                )
                finite_forces = np.all(np.isfinite(new_state.forces))
                if not (new_state.is_finite() and finite_forces):
                    logger.warning(
                        "Non-finite state at step %d, t = %.6g ps", step, new_state.time
                    )
                    raise NumericalInstability(
                        f"non-finite positions or velocities after step {step} "
                        f"at t = {new_state.time:.6g} ps",
                        time=self._state.time,
                    )
                self._state = new_state
                self._potential_energy = energies[-1]

            self._state.time = start_time + time
            logger.debug(
                "Simulated %.6g ps in %d steps of %.6g ps", time, n_steps, dt
            )

    def minimize(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        method: MinimizationMethod = "lbfgs",
    ) -> MinimizationResult:
        """
        Relax the positions toward a local energy minimum.

        Stationary atoms do not move. Anchors and external forces take part
        in the minimized energy. Velocities are left unchanged.

        Args:
            tolerance: Stop once the RMS force on the movable atoms is at
                most this, in kJ/mol/nm. Defaults to 10.
            max_iterations: Iteration cap.
            method: "lbfgs" (default) or "steepest_descent".

        Returns:
            MinimizationResult of the converged run.

        Raises:
            InvalidConfiguration: If an argument is out of range.
            ConvergenceFailure: If the cap is reached first. The positions
                are left at the lowest energy reached and the exception
                carries the result.
        """
        with self._exclusive():
            stationary = self._stationary if np.any(self._stationary) else None
            result = minimize(
                self._evaluate,
                self._state.positions,
                stationary=stationary,
                tolerance=tolerance,
                max_iterations=max_iterations,
                method=method,
            )
            positions = result.positions.copy()
            if stationary is not None:
                positions[stationary] = self._state.positions[stationary]
            self._state.positions = positions
            self._state.forces = np.array(result.forces, dtype=np.float64)
            self._potential_energy = result.energy

        logger.info(
            "Minimization (%s): %d iterations, %.6f -> %.6f kJ/mol",
            method,
            result.iterations,
            result.energies[0],
            result.energy,
        )
        if not result.converged:
            raise ConvergenceFailure(
                f"minimization did not converge in {max_iterations} iterations "
                f"(RMS force {result.rms_force:.4g} kJ/mol/nm)",
                result=result,
            )
        return result

    def thermalize(
        self,
        temperature: float = DEFAULT_TEMPERATURE,
        rigid_bodies: ArrayLike | None = None,
        seed: int | np.random.Generator | None = None,
    ) -> None:
        """
        Draw new Maxwell-Boltzmann velocities.

        Each thermalized rigid body keeps its bulk translation and rotation;
        only the thermal motion within it is resampled.

        Args:
            temperature: Target temperature in K.
            rigid_bodies: Indices of the rigid bodies to thermalize. Defaults
                to all of them; the others keep their velocities.
            seed: Seed or generator for reproducible sampling.

        Raises:
            InvalidConfiguration: If the temperature or a body index is invalid.
        """
        with self._exclusive():
            self._state.velocities = thermalize(
                self._state.positions,
                self._state.masses,
                self._rigid_bodies,
                temperature=temperature,
                stationary=self._stationary,
                selected=rigid_bodies,
                velocities=self._state.velocities,
                seed=seed,
            )
