# src/e2engine/units.py
"""
Ester → estradiol mass conversion.

Hydrolysis of the ester to E2 is treated as instantaneous relative to
absorption, so the conversion is a fixed mass correction applied once
before the dose enters a contribution function rather than an extra
compartment. This is a simplification: esters with slow hydrolysis will
show a slightly early, slightly sharp rise.
"""
from __future__ import annotations

from .parameters import DEFAULT_PARAMETERS, ParameterTable

# 1 mg/L == 1e6 pg/mL
MG_PER_L_TO_PG_PER_ML = 1.0e6
UG_PER_DAY_TO_MG_PER_H = 1.0 / (1000.0 * 24.0)


def to_e2_factor(ester: str, table: ParameterTable = DEFAULT_PARAMETERS) -> float:
    """Mass of E2 yielded by 1 mg of `ester` (molar mass ratio E2 / ester)."""
    masses = table.molar_mass_g_per_mol
    if ester not in masses:
        raise ValueError(f"No molar mass for ester '{ester}'.")
    return masses["E2"] / masses[ester]


def to_equivalent_mass(ester: str, dose_mg: float, table: ParameterTable = DEFAULT_PARAMETERS) -> float:
    """Administered ester mass (mg) → equivalent estradiol mass (mg)."""
    if not (dose_mg >= 0):
        raise ValueError(f"dose_mg must be >= 0 (got {dose_mg}).")
    return float(dose_mg) * to_e2_factor(ester, table)
