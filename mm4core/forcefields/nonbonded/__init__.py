"""Nonbonded interaction terms."""

from .coulomb import ReactionFieldForce
from .vdw import MM4VanDerWaalsForce

__all__ = ["MM4VanDerWaalsForce", "ReactionFieldForce"]
