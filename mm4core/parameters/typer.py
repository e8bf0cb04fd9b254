"""Assign MM4 atom codes and parameter rules to a bond graph."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from ..errors import InvalidTopology, UnsupportedAtomType
from .elements import (
    NON_CARBON_CODES,
    RING5_STRIPPED_CODES,
    AtomCode,
    CenterType,
    element_rule,
)
from .rules import (
    AngleRule,
    BondRule,
    TorsionRule,
    angle_variant,
    bend_bend_constant,
    find_angle_rule,
    find_bond_rule,
    find_torsion_rule,
    stretch_bend_constant,
)

if TYPE_CHECKING:
    from ..topology import TopologyGraph

logger = logging.getLogger(__name__)

RuleT = TypeVar("RuleT")


@dataclass(frozen=True)
class TypedBond:
    """
    A bond tagged with its stretch rule.

    Attributes:
        atoms: Atom pair ordered like ``codes``.
        codes: Sorted atom codes.
        ring_type: 5 inside a five-membered ring, else 6.
        rule: Matching bond rule.
    """

    atoms: tuple[int, int]
    codes: tuple[int, int]
    ring_type: int
    rule: BondRule


@dataclass(frozen=True)
class TypedAngle:
    """
    An angle tagged with its bend rule and the selected variant.

    Attributes:
        atoms: Angle atoms (i, j, k) with j central.
        codes: Canonical atom codes.
        ring_type: 5 inside a five-membered ring, else 6.
        rule: Matching angle rule.
        variant: Index into the rule's three parameter variants.
        stretch_bend: Stretch-bend stiffness in mdyn/rad.
        bend_bend: Bend-bend stiffness in aJ/rad^2.
    """

    atoms: tuple[int, int, int]
    codes: tuple[int, int, int]
    ring_type: int
    rule: AngleRule
    variant: int
    stretch_bend: float
    bend_bend: float

    @property
    def stiffness(self) -> float:
        """Bending stiffness in aJ/rad^2."""
        return self.rule.stiffnesses[self.variant]

    @property
    def equilibrium_angle(self) -> float:
        """Equilibrium angle in degrees."""
        return self.rule.angles[self.variant]


@dataclass(frozen=True)
class TypedTorsion:
    """
    A torsion tagged with its Fourier rule.

    Attributes:
        atoms: Torsion atoms (i, j, k, l) along bond j-k.
        codes: Canonical atom codes.
        ring_type: 5 inside a five-membered ring, else 6.
        rule: Matching torsion rule.
        bond_index: Index of the central bond j-k.
        torsion_stretch: Torsion-stretch constant in kcal/mol/angstrom.
    """

    atoms: tuple[int, int, int, int]
    codes: tuple[int, int, int, int]
    ring_type: int
    rule: TorsionRule
    bond_index: int
    torsion_stretch: float


@dataclass(frozen=True)
class TypedTopology:
    """
    Atom codes and typed bonded terms, in topology traversal order.

    Attributes:
        codes: MM4 atom code of every atom.
        center_types: Substitution of every valence >= 2 atom, else None.
        bonds: One typed term per bond.
        angles: One typed term per angle.
        torsions: One typed term per torsion.
    """

    codes: tuple[AtomCode, ...]
    center_types: tuple[CenterType | None, ...]
    bonds: tuple[TypedBond, ...]
    angles: tuple[TypedAngle, ...]
    torsions: tuple[TypedTorsion, ...]


def assign_types(topology: TopologyGraph) -> TypedTopology:
    """
    Type every atom and bonded term of a topology.

    Args:
        topology: Validated bond graph.

    Returns:
        TypedTopology with one typed term per bond, angle and torsion.

    Raises:
        InvalidTopology: If an atom's bond count differs from its valence.
        UnsupportedAtomType: If any atom or term has no matching rule.
    """
    small = topology.rings.small_rings
    if small:
        ring = small[0]
        raise UnsupportedAtomType(
            f"{len(ring)}-membered ring {list(ring)} is not supported", ring
        )

    codes = _atom_codes(topology)
    center_types = _center_types(topology, codes)

    bonds = tuple(
        _type_bond(topology, codes, center_types, index)
        for index in range(topology.n_bonds)
    )
    angles = tuple(
        _type_angle(topology, codes, center_types, tuple(int(a) for a in angle))
        for angle in topology.angles
    )
    bond_lookup = {
        (int(i), int(j)): index for index, (i, j) in enumerate(topology.bonds)
    }
    torsions = tuple(
        _type_torsion(
            topology, codes, bonds, bond_lookup, tuple(int(a) for a in torsion)
        )
        for torsion in topology.torsions
    )

    logger.debug(
        "Typed %d atoms, %d bonds, %d angles, %d torsions",
        topology.n_atoms,
        len(bonds),
        len(angles),
        len(torsions),
    )
    return TypedTopology(codes, center_types, bonds, angles, torsions)


def _atom_codes(topology: TopologyGraph) -> tuple[AtomCode, ...]:
    codes = []
    for atom, atomic_number in enumerate(topology.atomic_numbers.tolist()):
        rule = element_rule(atomic_number)
        if rule is None:
            raise UnsupportedAtomType(
                f"atom {atom}: element {atomic_number} has no MM4 atom type", [atom]
            )
        degree = len(topology.adjacency[atom])
        if degree != rule.valence:
            raise InvalidTopology(
                f"atom {atom} (element {atomic_number}) has {degree} bonds, "
                f"expected valence {rule.valence}"
            )
        if not rule.hydrogen_allowed:
            for neighbor in topology.adjacency[atom]:
                if topology.atomic_numbers[neighbor] == 1:
                    raise UnsupportedAtomType(
                        f"hydrogen {neighbor} bonded to element {atomic_number} "
                        f"(atom {atom}) is not supported",
                        [atom, neighbor],
                    )
        if rule.ring5_code is not None and topology.rings.in_five_ring(atom):
            codes.append(rule.ring5_code)
        else:
            codes.append(rule.code)
    return tuple(codes)


def _center_types(
    topology: TopologyGraph, codes: Sequence[AtomCode]
) -> tuple[CenterType | None, ...]:
    centers: list[CenterType | None] = []
    for atom, code in enumerate(codes):
        if code in (AtomCode.HYDROGEN, AtomCode.FLUORINE):
            centers.append(None)
            continue
        heavy = sum(
            1 for n in topology.adjacency[atom] if codes[n] != AtomCode.HYDROGEN
        )
        if heavy == 0:
            raise UnsupportedAtomType(
                f"atom {atom} has no non-hydrogen neighbors (methane-like centers "
                "are not parameterized)",
                [atom],
            )
        centers.append(CenterType(heavy))
    return tuple(centers)


def _strip_ring5(codes: tuple[int, ...]) -> tuple[int, ...]:
    return tuple(
        AtomCode.CARBON if c == AtomCode.CYCLOPENTANE_CARBON else c for c in codes
    )


def _prepare(codes: tuple[int, ...], atoms: Sequence[int]) -> tuple[int, ...]:
    if any(c in RING5_STRIPPED_CODES for c in codes):
        codes = _strip_ring5(codes)
    non_carbon = {c for c in _strip_ring5(codes) if c in NON_CARBON_CODES}
    if len(non_carbon) > 1:
        raise UnsupportedAtomType(
            f"term {list(atoms)} contains more than one non-carbon element", atoms
        )
    return codes


def _sort_angle(codes: tuple[int, ...]) -> tuple[int, ...]:
    return codes[::-1] if codes[0] > codes[2] else codes


def _sort_torsion(codes: tuple[int, ...]) -> tuple[int, ...]:
    if codes[1] > codes[2] or (codes[1] == codes[2] and codes[0] > codes[3]):
        return codes[::-1]
    return codes


def _lookup(
    codes: tuple[int, ...],
    canonical: Callable[[tuple[int, ...]], tuple[int, ...]],
    find: Callable[[tuple[int, ...]], RuleT | None],
) -> tuple[tuple[int, ...], RuleT | None]:
    """Search with the codes as given, then with five-ring carbons as carbon."""
    rule = find(codes)
    if rule is None and AtomCode.CYCLOPENTANE_CARBON in codes:
        fallback = canonical(_strip_ring5(codes))
        rule = find(fallback)
        if rule is not None:
            return fallback, rule
    return codes, rule


def _type_bond(
    topology: TopologyGraph,
    codes: Sequence[AtomCode],
    center_types: Sequence[CenterType | None],
    index: int,
) -> TypedBond:
    i, j = (int(a) for a in topology.bonds[index])
    if topology.bond_orders[index] != 1.0:
        raise UnsupportedAtomType(
            f"bond {index} ({i}-{j}) has order {topology.bond_orders[index]}; "
            "only single bonds are parameterized",
            [i, j],
        )
    bond_codes = _prepare((codes[i], codes[j]), (i, j))
    if bond_codes[0] > bond_codes[1]:
        bond_codes = bond_codes[::-1]
        i, j = j, i
    ring_type = topology.rings.ring_type((i, j))

    center = None
    if AtomCode.HYDROGEN in bond_codes:
        heavy = j if codes[i] == AtomCode.HYDROGEN else i
        center = center_types[heavy]

    def find(c: tuple[int, ...]) -> BondRule | None:
        return find_bond_rule(c, ring_type, center)

    bond_codes, rule = _lookup(bond_codes, lambda c: tuple(sorted(c)), find)
    if _strip_ring5((codes[i],))[0] != _strip_ring5((bond_codes[0],))[0]:
        i, j = j, i
    if rule is None:
        raise UnsupportedAtomType(
            f"no bond parameters for codes {list(map(int, bond_codes))} "
            f"(atoms {i}-{j})",
            [i, j],
        )
    return TypedBond((i, j), bond_codes, ring_type, rule)


def _type_angle(
    topology: TopologyGraph,
    codes: Sequence[AtomCode],
    center_types: Sequence[CenterType | None],
    atoms: tuple[int, int, int],
) -> TypedAngle:
    angle_codes = _sort_angle(_prepare(tuple(codes[a] for a in atoms), atoms))
    ring_type = topology.rings.ring_type(atoms)

    angle_codes, rule = _lookup(
        angle_codes, _sort_angle, lambda c: find_angle_rule(c, ring_type)
    )
    if rule is None:
        raise UnsupportedAtomType(
            f"no angle parameters for codes {list(map(int, angle_codes))} "
            f"(atoms {list(atoms)})",
            atoms,
        )

    n_hydrogens = sum(1 for c in angle_codes if c == AtomCode.HYDROGEN)
    center = center_types[atoms[1]]
    variant = angle_variant(center, n_hydrogens, angle_codes[1])
    if (
        variant < 0
        or variant > 2
        or math.isnan(rule.stiffnesses[variant])
        or math.isnan(rule.angles[variant])
    ):
        raise UnsupportedAtomType(
            f"angle {list(atoms)} with codes {list(map(int, angle_codes))} has no "
            f"parameters for a {center.name.lower()} center with {n_hydrogens} "
            "hydrogens",
            atoms,
        )

    stripped = _sort_angle(_strip_ring5(angle_codes))
    stretch_bend = stretch_bend_constant(stripped, angle_codes, ring_type)
    if stretch_bend is None:
        raise UnsupportedAtomType(
            f"no stretch-bend parameters for codes {list(map(int, angle_codes))} "
            f"(atoms {list(atoms)})",
            atoms,
        )
    bend_bend = bend_bend_constant(stripped)
    if bend_bend is None:
        raise UnsupportedAtomType(
            f"no bend-bend parameters for codes {list(map(int, angle_codes))} "
            f"(atoms {list(atoms)})",
            atoms,
        )
    return TypedAngle(
        atoms, angle_codes, ring_type, rule, variant, stretch_bend, bend_bend
    )


def _type_torsion(
    topology: TopologyGraph,
    codes: Sequence[AtomCode],
    bonds: Sequence[TypedBond],
    bond_lookup: dict[tuple[int, int], int],
    atoms: tuple[int, int, int, int],
) -> TypedTorsion:
    torsion_codes = _sort_torsion(_prepare(tuple(codes[a] for a in atoms), atoms))
    ring_type = topology.rings.ring_type(atoms)

    torsion_codes, rule = _lookup(
        torsion_codes, _sort_torsion, lambda c: find_torsion_rule(c, ring_type)
    )
    if rule is None:
        raise UnsupportedAtomType(
            f"no torsion parameters for codes {list(map(int, torsion_codes))} "
            f"(atoms {list(atoms)})",
            atoms,
        )

    bond_index = bond_lookup[(min(atoms[1], atoms[2]), max(atoms[1], atoms[2]))]
    stiffness = bonds[bond_index].rule.stiffness
    return TypedTorsion(
        atoms,
        torsion_codes,
        ring_type,
        rule,
        bond_index,
        rule.torsion_stretch(stiffness),
    )
