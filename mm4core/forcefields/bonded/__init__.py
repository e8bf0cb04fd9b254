"""Bonded interaction terms."""

from .angles import BendBendForce, MM4BendForce, StretchBendForce
from .bonds import MorseBondForce
from .dihedrals import MM4TorsionForce, TorsionStretchForce

__all__ = [
    "MorseBondForce",
    "MM4BendForce",
    "StretchBendForce",
    "BendBendForce",
    "MM4TorsionForce",
    "TorsionStretchForce",
]
