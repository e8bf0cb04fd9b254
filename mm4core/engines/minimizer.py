"""Energy minimization by steepest descent or L-BFGS."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import minimize as scipy_minimize

from ..errors import InvalidConfiguration

logger = logging.getLogger(__name__)

MinimizationMethod = Literal["steepest_descent", "lbfgs"]

# RMS force over the movable atoms, in kJ/mol/nm
DEFAULT_TOLERANCE = 10.0
DEFAULT_MAX_ITERATIONS = 1000

# Largest atomic displacement per steepest descent step, in nm
INITIAL_STEP = 0.001
MAX_STEP = 0.01
MIN_STEP = 1e-10

EnergyFunction = Callable[
    [NDArray[np.floating]], tuple[NDArray[np.floating], float]
]


@dataclass
class MinimizationResult:
    """
    Outcome of an energy minimization.

    Attributes:
        positions: Positions at the lowest energy reached, shape (N, 3).
        energy: Potential energy at those positions in kJ/mol.
        forces: Forces at those positions, shape (N, 3).
        iterations: Number of iterations performed.
        converged: Whether the force tolerance was met.
        energies: Energy after each accepted iteration, starting with the
            initial energy. Never increases.
        rms_force: Root mean square force on the movable atoms at the final
            positions, in kJ/mol/nm.
    """

    positions: NDArray[np.floating]
    energy: float
    forces: NDArray[np.floating]
    iterations: int
    converged: bool
    energies: list[float]
    rms_force: float = 0.0

    @property
    def max_force(self) -> float:
        """Largest atomic force magnitude at the final positions."""
        if len(self.forces) == 0:
            return 0.0
        return float(np.max(np.linalg.norm(self.forces, axis=1)))


def _movable_mask(n_atoms: int, stationary: NDArray[np.bool_] | None) -> NDArray:
    if stationary is None:
        return np.ones(n_atoms, dtype=bool)
    return ~np.asarray(stationary, dtype=bool)


def rms_force(forces: NDArray[np.floating], movable: NDArray[np.bool_]) -> float:
    """Root mean square of the atomic force magnitudes over ``movable``."""
    selected = forces[movable]
    if len(selected) == 0:
        return 0.0
    return float(np.sqrt(np.sum(selected * selected) / len(selected)))


def steepest_descent(
    energy_fn: EnergyFunction,
    positions: NDArray[np.floating],
    stationary: NDArray[np.bool_] | None = None,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> MinimizationResult:
    """
    Steepest descent with an adaptive step.

    Each iteration moves the movable atoms along their forces, scaled so
    that the most strongly pushed atom moves by the current step length.
    A lower energy accepts the move and grows the step by 20 percent up to
    a cap; otherwise the move is rejected and the step is halved.

    Args:
        energy_fn: Maps positions to (forces, energy).
        positions: Starting positions in nm, shape (N, 3).
        stationary: Atoms that never move, bool mask of shape (N,).
        tolerance: Converge once the RMS force on the movable atoms is at
            most this, in kJ/mol/nm.
        max_iterations: Maximum number of trial steps.

    Returns:
        MinimizationResult at the lowest energy reached.
    """
    positions = np.array(positions, dtype=np.float64)
    movable = _movable_mask(len(positions), stationary)

    forces, energy = energy_fn(positions)
    energies = [energy]
    step_size = INITIAL_STEP
    converged = False
    iterations = 0

    while iterations < max_iterations:
        if rms_force(forces, movable) <= tolerance:
            converged = True
            break
        direction = np.where(movable[:, np.newaxis], forces, 0.0)
        max_force = float(np.max(np.linalg.norm(direction, axis=1)))

        iterations += 1
        trial = positions + (step_size / max_force) * direction
        trial_forces, trial_energy = energy_fn(trial)

        if trial_energy < energy:
            positions, forces, energy = trial, trial_forces, trial_energy
            energies.append(energy)
            step_size = min(step_size * 1.2, MAX_STEP)
        else:
            step_size *= 0.5
            if step_size < MIN_STEP:
                # No representable step lowers the energy further
                converged = True
                break
    else:
        converged = rms_force(forces, movable) <= tolerance

    final_rms = rms_force(forces, movable)
    logger.debug(
        "Steepest descent: %d iterations, energy %.6f kJ/mol, "
        "RMS force %.4g kJ/mol/nm, converged=%s",
        iterations,
        energy,
        final_rms,
        converged,
    )
    return MinimizationResult(
        positions=positions,
        energy=float(energy),
        forces=forces,
        iterations=iterations,
        converged=converged,
        energies=energies,
        rms_force=final_rms,
    )


def lbfgs(
    energy_fn: EnergyFunction,
    positions: NDArray[np.floating],
    stationary: NDArray[np.bool_] | None = None,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> MinimizationResult:
    """
    Limited-memory BFGS over the coordinates of the movable atoms.

    Uses scipy's L-BFGS-B with analytic gradients. Stationary atoms are
    removed from the search space, so they keep their exact positions.
    The run stops from the iteration callback as soon as the RMS force
    drops to ``tolerance``.

    Args:
        energy_fn: Maps positions to (forces, energy).
        positions: Starting positions in nm, shape (N, 3).
        stationary: Atoms that never move, bool mask of shape (N,).
        tolerance: Converge once the RMS force on the movable atoms is at
            most this, in kJ/mol/nm.
        max_iterations: Maximum number of L-BFGS iterations.

    Returns:
        MinimizationResult at the final iterate.
    """
    base = np.array(positions, dtype=np.float64)
    movable = _movable_mask(len(base), stationary)
    evaluated: dict[bytes, tuple[NDArray[np.floating], float]] = {}

    def expand(x: NDArray[np.floating]) -> NDArray[np.floating]:
        full = base.copy()
        full[movable] = x.reshape(-1, 3)
        return full

    def evaluate(x: NDArray[np.floating]) -> tuple[NDArray[np.floating], float]:
        key = x.tobytes()
        if key not in evaluated:
            evaluated.clear()
            evaluated[key] = energy_fn(expand(x))
        return evaluated[key]

    def objective(x: NDArray[np.floating]) -> tuple[float, NDArray[np.floating]]:
        forces, energy = evaluate(x)
        return energy, -forces[movable].ravel()

    x0 = base[movable].ravel()
    initial_forces, initial_energy = evaluate(x0)
    energies = [initial_energy]

    if x0.size == 0 or rms_force(initial_forces, movable) <= tolerance:
        return MinimizationResult(
            positions=base,
            energy=float(initial_energy),
            forces=initial_forces,
            iterations=0,
            converged=True,
            energies=energies,
            rms_force=rms_force(initial_forces, movable),
        )

    def callback(xk: NDArray[np.floating]) -> None:
        forces, energy = evaluate(xk)
        if energy <= energies[-1]:
            energies.append(energy)
        if rms_force(forces, movable) <= tolerance:
            raise StopIteration

    result = scipy_minimize(
        objective,
        x0,
        method="L-BFGS-B",
        jac=True,
        callback=callback,
        options={"maxiter": max_iterations, "ftol": 1e-15, "gtol": 1e-10},
    )

    final_positions = expand(result.x)
    forces, energy = evaluate(result.x)
    if energy < energies[-1]:
        energies.append(energy)

    final_rms = rms_force(forces, movable)
    # Status 1 means an iteration or evaluation limit was hit
    converged = final_rms <= tolerance or result.status != 1

    logger.debug(
        "L-BFGS: %d iterations, energy %.6f kJ/mol, RMS force %.4g kJ/mol/nm, "
        "status %d (%s)",
        result.nit,
        energy,
        final_rms,
        result.status,
        result.message,
    )
    return MinimizationResult(
        positions=final_positions,
        energy=float(energy),
        forces=forces,
        iterations=int(result.nit),
        converged=converged,
        energies=energies,
        rms_force=final_rms,
    )


def minimize(
    energy_fn: EnergyFunction,
    positions: NDArray[np.floating],
    stationary: NDArray[np.bool_] | None = None,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    method: MinimizationMethod = "lbfgs",
) -> MinimizationResult:
    """
    Dispatch to a minimization method by name.

    Raises:
        InvalidConfiguration: If the method, tolerance or iteration cap is
            not valid.
    """
    if not np.isfinite(tolerance) or tolerance <= 0.0:
        raise InvalidConfiguration(f"tolerance must be positive, got {tolerance}")
    if max_iterations < 1:
        raise InvalidConfiguration(
            f"max_iterations must be at least 1, got {max_iterations}"
        )
    methods = {"steepest_descent": steepest_descent, "lbfgs": lbfgs}
    if method not in methods:
        raise InvalidConfiguration(
            f"Unknown minimization method: {method}. Available: {sorted(methods)}"
        )
    return methods[method](energy_fn, positions, stationary, tolerance, max_iterations)
