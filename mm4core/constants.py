"""Physical constants and unit conversions.

Engine units are nm, ps, amu, kJ/mol and elementary charges, so that
amu * nm^2 / ps^2 is exactly one kJ/mol. MM4 parameters are published in
attojoules, millidynes per angstrom, kcal/mol, degrees and debye; the
factors below convert them once, when the parameter table is resolved.
"""

from __future__ import annotations

import math

from scipy import constants

# Boltzmann constant in kJ/mol/K
BOLTZMANN = constants.k * constants.N_A / 1000.0

# 1 aJ per molecule in kJ/mol
KJ_PER_MOL_PER_AJ = 1e-18 * constants.N_A / 1000.0

KJ_PER_KCAL = constants.calorie

NM_PER_ANGSTROM = 0.1

# Bond dipole (debye) to charge-distance (e * angstrom)
E_ANGSTROM_PER_DEBYE = 1e-21 / constants.c / constants.e / constants.angstrom

# 1 / (4 pi eps0) in kJ nm / (mol e^2)
COULOMB_CONSTANT = (
    constants.e**2
    * constants.N_A
    / (4.0 * math.pi * constants.epsilon_0)
    / 1e-9
    / 1000.0
)

DEGREES_PER_RADIAN = 180.0 / math.pi

# Default integration step from the MM4 level of theory, 100/23 fs
DEFAULT_TIME_STEP = 100.0 / 23.0 / 1000.0

DEFAULT_CUTOFF = 1.0

DEFAULT_DIELECTRIC = 5.7
