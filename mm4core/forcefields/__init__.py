"""Force field terms and the composite evaluator."""

from .base import ForceProvider
from .bonded import (
    BendBendForce,
    MM4BendForce,
    MM4TorsionForce,
    MorseBondForce,
    StretchBendForce,
    TorsionStretchForce,
)
from .composite import ForceEvaluator
from .nonbonded import MM4VanDerWaalsForce, ReactionFieldForce

__all__ = [
    "ForceProvider",
    "ForceEvaluator",
    "MorseBondForce",
    "MM4BendForce",
    "StretchBendForce",
    "BendBendForce",
    "MM4TorsionForce",
    "TorsionStretchForce",
    "MM4VanDerWaalsForce",
    "ReactionFieldForce",
]
