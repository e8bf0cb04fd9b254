"""Time integration and engine-side restraints."""

from .base import Integrator
from .restraints import AnchorRestraint, ExternalForce
from .velocity_verlet import VelocityVerletIntegrator

__all__ = [
    "AnchorRestraint",
    "ExternalForce",
    "Integrator",
    "VelocityVerletIntegrator",
]
