"""
MM4 parameter rule tables.

Values are kept in the units of the MM4 papers: well depths in aJ,
stiffnesses in mdyn/angstrom (= aJ/angstrom^2), bending stiffnesses in
aJ/rad^2, lengths in angstrom, angles in degrees, torsion barriers in kcal/mol,
torsion-stretch constants in kcal/mol/angstrom and dipoles in debye.

Each table is ordered and the first matching rule wins. Codes are given in
canonical order: bonds ascending, angles with first <= last, torsions with
second <= third (ties broken by first <= fourth).
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .elements import AtomCode, CenterType

NAN = math.nan

C = AtomCode.CARBON
H = AtomCode.HYDROGEN
O = AtomCode.OXYGEN
N = AtomCode.NITROGEN
F = AtomCode.FLUORINE
S = AtomCode.SULFUR
Si = AtomCode.SILICON
P = AtomCode.PHOSPHORUS
C5 = AtomCode.CYCLOPENTANE_CARBON


def _ring_matches(condition: bool | None, ring_type: int) -> bool:
    return condition is None or condition == (ring_type == 5)


@dataclass(frozen=True)
class BondRule:
    """
    Morse stretch parameters for one code pair.

    Attributes:
        codes: Sorted atom code pair.
        well_depth: Dissociation energy in aJ.
        stiffness: Stretching stiffness in mdyn/angstrom.
        length: Equilibrium length in angstrom.
        dipole: Bond dipole in debye, positive when the first atom is positive.
        ring5: Require (True) or forbid (False) a five-membered ring.
        centers: Allowed center types of the carbon in a C-H bond.
    """

    codes: tuple[int, int]
    well_depth: float
    stiffness: float
    length: float
    dipole: float | None = None
    ring5: bool | None = None
    centers: frozenset[CenterType] | None = None

    def matches(
        self, codes: Sequence[int], ring_type: int, center: CenterType | None
    ) -> bool:
        if tuple(codes) != self.codes or not _ring_matches(self.ring5, ring_type):
            return False
        return self.centers is None or center in self.centers


@dataclass(frozen=True)
class AngleRule:
    """
    Bending parameters for one code triplet.

    The three variants are indexed by substitution, see ``angle_variant``.

    Attributes:
        codes: Canonical atom code triplet.
        stiffnesses: Bending stiffness variants in aJ/rad^2.
        angles: Equilibrium angle variants in degrees.
        ring5: Require (True) or forbid (False) a five-membered ring.
    """

    codes: tuple[int, int, int]
    stiffnesses: tuple[float, float, float]
    angles: tuple[float, float, float]
    ring5: bool | None = None

    def matches(self, codes: Sequence[int], ring_type: int) -> bool:
        return tuple(codes) == self.codes and _ring_matches(self.ring5, ring_type)


@dataclass(frozen=True)
class TorsionRule:
    """
    Fourier and torsion-stretch parameters for one code quadruplet.

    Attributes:
        codes: Canonical atom code quadruplet.
        V1: One-fold barrier in kcal/mol.
        Vn: n-fold barrier in kcal/mol.
        V3: Three-fold barrier in kcal/mol.
        n: Periodicity of the Vn term, even.
        V4: Four-fold barrier in kcal/mol.
        V6: Six-fold barrier in kcal/mol.
        Kts: Torsion-stretch constant in kcal/mol/angstrom.
        Kts_mm3: MM3 torsion-stretch constant, converted with the bond
            stiffness when set (silicon torsions).
        ring5: Require (True) or forbid (False) a five-membered ring.
    """

    codes: tuple[int, int, int, int]
    V1: float = 0.0
    Vn: float = 0.0
    V3: float = 0.0
    n: int = 2
    V4: float = 0.0
    V6: float = 0.0
    Kts: float = 0.0
    Kts_mm3: float | None = None
    ring5: bool | None = None

    def matches(self, codes: Sequence[int], ring_type: int) -> bool:
        return tuple(codes) == self.codes and _ring_matches(self.ring5, ring_type)

    def torsion_stretch(self, bond_stiffness: float) -> float:
        """Torsion-stretch constant in kcal/mol/angstrom for a central bond."""
        if self.Kts_mm3 is not None:
            return self.Kts_mm3 * 11.995 / 2 * bond_stiffness
        return self.Kts


def _angle(codes, stiffness, angles, ring5=None) -> AngleRule:
    if not isinstance(stiffness, tuple):
        stiffness = (stiffness,) * 3
    if not isinstance(angles, tuple):
        angles = (angles,) * 3
    return AngleRule(codes, stiffness, angles, ring5)


def _torsions(
    codes_list: Iterable[tuple[int, int, int, int]], **kwargs
) -> list[TorsionRule]:
    return [TorsionRule(codes, **kwargs) for codes in codes_list]


_TERTIARY_OR_PRIMARY = frozenset({CenterType.TERTIARY, CenterType.PRIMARY})
_SECONDARY = frozenset({CenterType.SECONDARY})
_TERTIARY = frozenset({CenterType.TERTIARY})

BOND_RULES: tuple[BondRule, ...] = (
    # Carbon
    BondRule((C, C), 1.130, 4.5500, 1.5270),
    BondRule((C, H), 0.854, 4.7400, 1.1120, centers=_TERTIARY_OR_PRIMARY),
    BondRule((C, H), 0.854, 4.6700, 1.1120, centers=_SECONDARY),
    BondRule((H, C5), 0.854, 4.7000, 1.1120, centers=_TERTIARY),
    BondRule((H, C5), 0.854, 4.6400, 1.1120, centers=_SECONDARY),
    BondRule((C, C5), 1.130, 4.5600, 1.5270),
    BondRule((C5, C5), 1.130, 4.9900, 1.5290, ring5=True),
    BondRule((C5, C5), 1.130, 4.5600, 1.5270),
    # Nitrogen
    BondRule((C, N), 1.140, 5.20, 1.4585, dipole=0.64),
    BondRule((N, C5), 1.140, 4.90, 1.4640, dipole=-1.40, ring5=True),
    BondRule((N, C5), 1.140, 4.90, 1.4520, dipole=-1.40),
    # Oxygen
    BondRule((C, O), 0.851, 4.90, 1.4190, dipole=1.160),
    BondRule((O, C5), 0.851, 4.90, 1.4096, dipole=-1.160, ring5=True),
    BondRule((O, C5), 0.851, 4.90, 1.4199, dipole=-1.160),
    # Fluorine
    BondRule((C, F), 0.989, 6.10, 1.3859, dipole=1.82),
    # Silicon
    BondRule((C, Si), 0.812, 2.85, 1.884, dipole=-0.55, ring5=True),
    BondRule((C, Si), 0.812, 3.05, 1.876, dipole=-0.70),
    BondRule((H, Si), 0.777, 2.65, 1.483),
    BondRule((Si, Si), 0.672, 1.65, 2.336, ring5=True),
    BondRule((Si, Si), 0.672, 1.65, 2.322),
    # Phosphorus
    BondRule((C, P), 0.702, 2.9273, 1.8514, dipole=0.9254),
    # Sulfur
    BondRule((C, S), 0.651, 2.92, 1.814, dipole=0.70),
    BondRule((S, C5), 0.651, 3.20, 1.821, dipole=-0.70, ring5=True),
    BondRule((S, C5), 0.651, 2.92, 1.814, dipole=-0.70),
)

ANGLE_RULES: tuple[AngleRule, ...] = (
    # Carbon
    _angle((C, C, C), 0.740, (109.500, 110.400, 111.800)),
    _angle((C, C, H), (0.590, 0.560, 0.600), (108.900, 109.470, 110.800)),
    _angle((H, C, H), 0.540, (107.700, 107.800, 107.700)),
    _angle((C, C, C5), 0.740, (109.500, 110.500, 111.800)),
    _angle((C, C5, H), 0.560, (108.900, 109.470, 110.800)),
    _angle((H, C, C5), 0.560, (108.900, 109.470, 110.800)),
    _angle((H, C5, H), 0.620, (107.800, 107.800, 0.000)),
    _angle((C, C5, C5), 0.740, (109.500, 110.500, 111.800)),
    _angle((H, C5, C5), 0.580, (108.900, 109.470, 110.800)),
    _angle((C5, C5, C5), 0.740, (108.300, 108.900, 109.000)),
    # Nitrogen
    _angle((C, C, N), (1.175, 1.165, 1.145), (106.4, 104.0, 104.6)),
    _angle((H, C, N), (0.850, 0.850, 1.110), (104.2, 105.0, 104.6)),
    _angle((C, N, C), (1.050, 0.970, NAN), (105.8, 106.6, NAN)),
    _angle((C, N, C5), (0.880, 0.880, NAN), (109.4, 109.4, NAN)),
    _angle((H, C5, N), 0.500, 109.4),
    _angle((N, C5, C5), 1.155, (107.1, 107.1, 105.9), ring5=True),
    _angle((N, C5, C5), 1.155, 107.1),
    _angle((C5, N, C5), (0.880, 0.880, NAN), (105.2, 108.6, NAN), ring5=True),
    # Oxygen
    _angle((C, C, O), 1.275, (105.5, 106.2, 107.9)),
    _angle((H, C, O), (0.970, 0.870, 1.120), (106.9, 107.2, 106.6)),
    _angle((O, C, O), 1.050, (108.0, 107.0, 107.1)),
    _angle((C, O, C), 0.920, 107.6),
    _angle((H, C5, O), (1.120, NAN, NAN), (106.5, NAN, NAN)),
    _angle((O, C5, O), 1.050, (110.0, 110.0, 107.7), ring5=True),
    _angle((O, C5, O), 1.050, (110.0, 110.0, 107.1)),
    _angle((O, C5, C5), 1.275, (105.5, 105.5, 105.9), ring5=True),
    _angle((O, C5, C5), 1.275, (105.5, 106.5, 107.9)),
    _angle((C5, O, C5), 0.920, 110.0, ring5=True),
    # Fluorine
    _angle((C, C, F), 0.92, (106.90, 108.20, 109.30)),
    _angle((H, C, F), (0.82, 0.88, 0.98), (107.95, 107.90, 108.55)),
    _angle((F, C, F), (1.95, 2.05, 1.62), (104.30, 105.90, 108.08)),
    # Silicon
    _angle((C, C, Si), 0.550, 107.20, ring5=True),
    _angle((C, C, Si), 0.400, (109.00, 112.70, 111.50)),
    _angle((H, C, Si), 0.540, (109.50, 110.00, 108.90)),
    _angle((C, Si, C), 0.650, (102.80, 103.80, 99.50), ring5=True),
    _angle((C, Si, C), 0.480, (109.50, 110.40, 109.20)),
    _angle((Si, C, Si), 0.350, (109.50, 119.50, 117.00)),
    _angle((C, Si, H), 0.400, (109.30, 107.00, 110.00)),
    _angle((H, Si, H), 0.460, (106.50, 108.70, 109.50)),
    _angle((C, Si, Si), 0.450, 109.00),
    _angle((H, Si, Si), 0.350, 109.40),
    _angle((Si, Si, Si), 0.320, 106.00, ring5=True),
    _angle((Si, Si, Si), 0.250, (109.50, 110.80, 111.20)),
    # Phosphorus
    _angle((C, P, C), (0.900, 0.725, NAN), (94.50, 97.90, NAN)),
    _angle((C, C, P), (0.750, 0.825, 0.725), (107.05, 108.25, 109.55)),
    # Sulfur
    _angle((H, C, S), 0.782, (108.9, 108.8, 105.8)),
    _angle((C, S, C), (0.920, NAN, NAN), (97.2, NAN, NAN)),
    _angle((C, C, S), 0.975, (102.6, 105.7, 107.7)),
    _angle((C, C5, S), 0.975, (102.6, 110.8, 107.7)),
    _angle((C5, S, C5), (0.920, NAN, NAN), (96.5, NAN, NAN), ring5=True),
    _angle((C5, S, C5), (0.920, NAN, NAN), (97.2, NAN, NAN)),
    _angle((S, C5, C5), 1.050, (108.0, 108.0, 108.5), ring5=True),
    _angle((S, C5, C5), 0.975, 106.2),
    _angle((S, C, S), 0.420, 110.00),
    _angle((S, C5, S), 0.420, 110.00),
)

TORSION_RULES: tuple[TorsionRule, ...] = tuple(
    [
        # Carbon
        TorsionRule((C, C, C, C), V1=0.239, Vn=0.024, V3=0.637, Kts=0.660),
        TorsionRule((C, C, C, H), V3=0.290, Kts=0.660),
        TorsionRule((H, C, C, H), V3=0.260, Vn=0.008, n=6, Kts=0.660),
        TorsionRule((H, C, C5, H), V3=0.260, Kts=0.660),
        *_torsions([(C, C5, C5, C), (C, C5, C5, C5)], V1=0.160, V3=0.550, Kts=0.840),
        TorsionRule((H, C5, C5, H), V3=0.300, Kts=0.840),
        TorsionRule((H, C5, C5, C5), V3=0.290, Kts=0.840),
        TorsionRule((C5, C5, C5, C5), V1=-0.150, V3=0.160, Kts=0.840, ring5=True),
        TorsionRule((C5, C5, C5, C5), V1=-0.120, V3=0.550, Kts=0.840),
        *_torsions([(H, C, C5, C5), (C5, C, C5, H)], V3=0.306, Kts=0.640),
        TorsionRule((C, C5, C5, H), V3=0.306, Kts=0.840),
        # Nitrogen
        TorsionRule((C, C, C, N), V1=1.139, Vn=1.348, V3=1.582, V4=-0.140, V6=0.172),
        TorsionRule((H, C, C, N), V3=0.455),
        TorsionRule((N, C, C, N), V1=2.545, Vn=-2.520, V3=3.033),
        TorsionRule((C, C, N, C), V1=1.193, Vn=-0.337, V3=0.870, V4=0.228, V6=-0.028),
        TorsionRule((H, C, N, C), V1=0.072, Vn=-0.512, V3=0.562),
        TorsionRule((H, C, N, C5), Vn=-0.450, V3=0.170),
        TorsionRule((C, N, C5, H), Vn=0.550, V3=0.100),
        TorsionRule((C, N, C5, C5), Vn=-0.520, V3=0.180),
        TorsionRule((C5, N, C5, H), V1=0.072, Vn=-0.012, V3=0.597),
        TorsionRule((H, C5, C5, N), V3=0.374),
        TorsionRule((C5, N, C5, C5), V1=1.150, Vn=-0.040, V3=0.860, ring5=True),
        TorsionRule((C5, N, C5, C5), Vn=-0.520, V3=0.180),
        TorsionRule((N, C5, C5, C5), V3=0.699, ring5=True),
        TorsionRule((N, C5, C5, C5), Vn=-0.850, V3=0.200),
        # Fluorine
        TorsionRule((C, C, C, F), V1=-0.360, Vn=0.380, V3=0.978, V4=0.240, V6=0.010),
        TorsionRule((H, C, C, F), V1=-0.460, Vn=1.190, V3=0.420),
        TorsionRule((F, C, C, F), V1=-1.350, Vn=0.305, V3=0.355),
        # Silicon
        TorsionRule((C, C, C, Si), V3=0.850, Kts=0.840, ring5=True),
        TorsionRule((C, C, C, Si), Vn=0.050, V3=0.240, Kts=0.660),
        TorsionRule((C, C, Si, C), Vn=0.800, Kts_mm3=0.036, ring5=True),
        TorsionRule((C, C, Si, C), V3=0.167, Kts_mm3=0.036),
        TorsionRule((Si, C, C, Si), V3=0.167, Kts=0.660),
        TorsionRule((Si, C, Si, H), V3=0.167, Kts_mm3=0.036),
        TorsionRule((H, C, Si, C), V3=0.195, Kts_mm3=0.036),
        TorsionRule((H, C, Si, H), V3=0.177, Kts_mm3=0.036),
        TorsionRule((Si, C, Si, C), V3=0.100, Kts_mm3=0.036),
        TorsionRule((C, C, Si, Si), V3=0.300, Kts_mm3=0.036),
        TorsionRule((H, C, Si, Si), V3=0.270, Kts_mm3=0.036),
        TorsionRule((C, Si, Si, H), V3=0.127, Kts_mm3=0.012),
        TorsionRule((C, Si, Si, C), V3=0.107, Kts_mm3=0.012),
        TorsionRule((C, Si, Si, Si), V3=0.350, Kts_mm3=0.012),
        TorsionRule((H, Si, Si, H), V3=0.132, Kts_mm3=0.012),
        TorsionRule((H, Si, Si, Si), V3=0.070, Kts_mm3=0.012),
        TorsionRule((Si, Si, Si, Si), V3=0.175, Kts_mm3=0.012, ring5=True),
        TorsionRule((Si, Si, Si, Si), V3=0.125, Kts_mm3=0.012),
        # Phosphorus
        TorsionRule((H, C, P, C), V3=0.300, V6=-0.050),
        TorsionRule((H, C, C, P), Vn=0.200, V3=0.360),
        TorsionRule((C, C, P, C), V1=0.800, Vn=-0.400, V3=0.100),
        # Sulfur
        *_torsions([(H, C, S, C), (H, C, S, C5), (C, S, C5, H)], V3=0.540),
        *_torsions(
            [(C, C, S, C), (C, C, S, C5), (C5, C, S, C), (C5, C, S, C5)],
            V1=0.410,
            V3=0.600,
        ),
        *_torsions(
            [(S, C, C, S), (S, C, C5, S), (S, C5, C5, S)], V1=0.461, Vn=0.144, V3=1.511
        ),
        TorsionRule((H, C, C, S), V3=0.460),
        *_torsions(
            [(C, C, C, S), (S, C, C, C5), (C, C, C5, S), (S, C, C5, C), (C, C5, C5, S)],
            V1=0.420,
            Vn=0.100,
            V3=0.200,
        ),
        TorsionRule((C5, S, C5, C5), V1=0.440, Vn=0.300, V3=0.500, ring5=True),
        *_torsions(
            [(C5, S, C5, C), (C, S, C5, C5), (C5, S, C5, C5)], V1=0.100, V3=0.200
        ),
        TorsionRule((H, C, C5, S), Vn=0.330, V3=0.200),
        TorsionRule((S, C5, C5, C5), V1=0.040, Vn=0.200, V3=0.300, ring5=True),
        TorsionRule((S, C5, C5, C5), V1=0.520, Vn=0.080, V3=0.250),
        TorsionRule((C5, S, C5, H), V3=0.450),
        *_torsions(
            [(S, C, S, C), (S, C, S, C5), (C, S, C5, S), (C5, S, C5, S)],
            Vn=-0.900,
            V3=0.300,
        ),
    ]
)


def find_bond_rule(
    codes: Sequence[int], ring_type: int, center: CenterType | None
) -> BondRule | None:
    """Return the first bond rule matching sorted codes, or None."""
    for rule in BOND_RULES:
        if rule.matches(codes, ring_type, center):
            return rule
    return None


def find_angle_rule(codes: Sequence[int], ring_type: int) -> AngleRule | None:
    """Return the first angle rule matching canonical codes, or None."""
    for rule in ANGLE_RULES:
        if rule.matches(codes, ring_type):
            return rule
    return None


def find_torsion_rule(codes: Sequence[int], ring_type: int) -> TorsionRule | None:
    """Return the first torsion rule matching canonical codes, or None."""
    for rule in TORSION_RULES:
        if rule.matches(codes, ring_type):
            return rule
    return None


def angle_variant(center: CenterType, n_hydrogens: int, center_code: int) -> int:
    """
    Index into the three-way angle parameter variants.

    Quaternary, tertiary, secondary and primary centers start at variants
    1 to 4 and shift down by one per hydrogen in the angle. Divalent sulfur
    always takes the first variant.
    """
    if center_code == S:
        return 0
    return (5 - int(center)) - n_hydrogens - 1


def stretch_bend_constant(
    codes: tuple[int, int, int], original: tuple[int, int, int], ring_type: int
) -> float | None:
    """
    Stretch-bend stiffness in mdyn/rad for an angle.

    Args:
        codes: Canonical codes with five-ring carbons mapped to carbon.
        original: Canonical codes before that mapping.
        ring_type: Smallest ring containing the angle.

    Returns:
        The stiffness, or None when no rule covers the angle.
    """
    first, center, last = codes
    ring5 = ring_type == 5

    if first == H and last == H:
        return 0.0

    if O in codes:
        if codes == (C, C, O):
            return 0.50 if ring5 and original == (O, C5, C5) else 0.02
        if codes == (H, C, O):
            return 0.36
        if codes == (C, O, C):
            return 0.50 if ring5 and original == (C5, O, C5) else -0.12
        return None

    if F in codes:
        if last != F:
            return None
        return {C: 0.160, H: 0.160, F: 0.140}.get(first)

    if center == C:
        if H in codes:
            return 0.100
        return 0.180 if ring5 else 0.140
    if center == N:
        if original in ((C, N, C), (C5, N, C5)):
            return 0.04
        if original == (C, N, C5):
            return 0.30
        return None
    if center == Si:
        return 0.10 if H in codes else 0.06
    if center == P:
        return 0.0
    if center == S:
        if codes == (C, S, C):
            return 0.280 if ring5 else 0.150
        return None
    return None


def bend_bend_constant(codes: tuple[int, int, int]) -> float | None:
    """
    Bend-bend stiffness in aJ/rad^2 for an angle.

    Pairs of angles around one trivalent or tetravalent center couple
    through these constants. Divalent centers have a single angle, so the
    constant of an angle around O or S never takes part.

    Args:
        codes: Canonical codes with five-ring carbons mapped to carbon.

    Returns:
        The stiffness, or None when no rule covers the angle.
    """
    first, center, last = codes

    if first == H and last == H:
        return 0.0

    if O in codes:
        if center != C:
            return 0.0
        return 0.20 if codes == (H, C, O) else 0.30

    if F in codes:
        if last != F:
            return None
        return {C: -0.10, H: 0.00, F: 0.09}.get(first)

    if center in (C, N):
        return 0.350 if H in codes else 0.204
    if center == Si:
        return 0.24 if H in codes else 0.30
    if center in (P, S):
        return 0.0
    return None
