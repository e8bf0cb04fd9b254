"""Element data and MM4 atom codes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class AtomCode(IntEnum):
    """MM4 atom type numbers for the supported saturated chemistry."""

    CARBON = 1
    HYDROGEN = 5
    OXYGEN = 6
    NITROGEN = 8
    FLUORINE = 11
    SULFUR = 15
    SILICON = 19
    PHOSPHORUS = 25
    CYCLOPENTANE_CARBON = 123


class CenterType(IntEnum):
    """Number of non-hydrogen substituents on a valence >= 2 atom."""

    PRIMARY = 1
    SECONDARY = 2
    TERTIARY = 3
    QUATERNARY = 4


@dataclass(frozen=True)
class ElementRule:
    """
    Atom typing rule for one element.

    Attributes:
        atomic_number: Element matched by this rule.
        code: MM4 atom code assigned outside five-membered rings.
        ring5_code: Code assigned inside a five-membered ring, if different.
        valence: Required number of single bonds.
        hydrogen_allowed: Whether hydrogen may bond to this element.
    """

    atomic_number: int
    code: AtomCode
    valence: int
    hydrogen_allowed: bool = False
    ring5_code: AtomCode | None = None


# First match wins
ELEMENT_RULES: tuple[ElementRule, ...] = (
    ElementRule(1, AtomCode.HYDROGEN, 1),
    ElementRule(6, AtomCode.CARBON, 4, True, AtomCode.CYCLOPENTANE_CARBON),
    ElementRule(7, AtomCode.NITROGEN, 3),
    ElementRule(8, AtomCode.OXYGEN, 2),
    ElementRule(9, AtomCode.FLUORINE, 1),
    ElementRule(14, AtomCode.SILICON, 4, True),
    ElementRule(15, AtomCode.PHOSPHORUS, 3),
    ElementRule(16, AtomCode.SULFUR, 2),
)

# Standard atomic weights in amu
ATOMIC_MASSES: dict[int, float] = {
    1: 1.008,
    6: 12.011,
    7: 14.007,
    8: 15.999,
    9: 18.998,
    14: 28.085,
    15: 30.974,
    16: 32.06,
}

# Codes that never appear together in one angle or torsion
NON_CARBON_CODES = frozenset(
    {
        AtomCode.OXYGEN,
        AtomCode.NITROGEN,
        AtomCode.FLUORINE,
        AtomCode.SULFUR,
        AtomCode.SILICON,
        AtomCode.PHOSPHORUS,
    }
)

# Terms containing these codes have no five-ring variants
RING5_STRIPPED_CODES = frozenset(
    {AtomCode.FLUORINE, AtomCode.SILICON, AtomCode.PHOSPHORUS}
)


def element_rule(atomic_number: int) -> ElementRule | None:
    """Return the first typing rule matching an element, or None."""
    for rule in ELEMENT_RULES:
        if rule.atomic_number == atomic_number:
            return rule
    return None
