"""Runtime options for a force field instance."""

from __future__ import annotations

import math
from dataclasses import dataclass

from .constants import DEFAULT_CUTOFF, DEFAULT_DIELECTRIC, DEFAULT_TIME_STEP
from .errors import InvalidConfiguration


@dataclass(frozen=True)
class ForceFieldOptions:
    """
    Tunable settings of the force evaluator and the engine actions.

    Attributes:
        cutoff_distance: Nonbonded cutoff in nm.
        dielectric_constant: Relative permittivity of the reaction field.
        anchor_stiffness: Spring constant of anchor restraints in kJ/mol/nm^2.
        time_step: Default maximum time step for simulate(), in ps.
        use_neighbor_list: Enumerate nonbonded pairs with a Verlet list.
        neighbor_skin: Verlet list buffer distance in nm.
    """

    cutoff_distance: float = DEFAULT_CUTOFF
    dielectric_constant: float = DEFAULT_DIELECTRIC
    anchor_stiffness: float = 5000.0
    time_step: float = DEFAULT_TIME_STEP
    use_neighbor_list: bool = False
    neighbor_skin: float = 0.1

    def __post_init__(self) -> None:
        """Validate option ranges."""
        _require_positive("cutoff_distance", self.cutoff_distance)
        _require_positive("anchor_stiffness", self.anchor_stiffness)
        _require_positive("time_step", self.time_step)
        dielectric = self.dielectric_constant
        if not math.isfinite(dielectric) or dielectric < 1.0:
            raise InvalidConfiguration(
                f"dielectric_constant must be >= 1, got {self.dielectric_constant}"
            )
        if not math.isfinite(self.neighbor_skin) or self.neighbor_skin < 0.0:
            raise InvalidConfiguration(
                f"neighbor_skin must be >= 0, got {self.neighbor_skin}"
            )


def _require_positive(name: str, value: float) -> None:
    if not math.isfinite(value) or value <= 0.0:
        raise InvalidConfiguration(f"{name} must be positive and finite, got {value}")
