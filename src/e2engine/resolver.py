# src/e2engine/resolver.py
from __future__ import annotations

import math
from typing import Optional

from .errors import UnsupportedCombination
from .parameters import (
    DEFAULT_PARAMETERS,
    DepotEntry,
    FirstOrderEntry,
    ParameterTable,
    PatchEntry,
)
from .types import (
    DepotModel,
    FirstOrderModel,
    KineticModel,
    PatchExtras,
    RouteExtras,
    SublingualExtras,
    ZeroOrderPatchModel,
)
from .units import UG_PER_DAY_TO_MG_PER_H


def resolve(route: str, ester: str, weight_kg: float, extras: RouteExtras = None,
            table: ParameterTable = DEFAULT_PARAMETERS) -> KineticModel:
    """
    Pick the kinetic model and its coefficients for a (route, ester) pair.

    The volume of distribution is scaled linearly with body weight relative to
    the table's reference weight; this is the only place weight enters the
    computation. Raises UnsupportedCombination when the table has no entry:
    a missing model is never substituted with another one.
    """
    if not (math.isfinite(weight_kg) and weight_kg > 0):
        raise ValueError(f"weight_kg must be > 0 (got {weight_kg}).")

    entry = table.entry(route, ester)
    if entry is None:
        raise UnsupportedCombination(route, ester)

    volume_l = entry.volume_l * (weight_kg / table.reference_weight_kg)

    if isinstance(entry, DepotEntry):
        return DepotModel(
            ka_fast_per_h=entry.ka_fast_per_h,
            ka_slow_per_h=entry.ka_slow_per_h,
            fast_fraction=entry.fast_fraction,
            ke_per_h=entry.ke_per_h,
            bioavailability=entry.bioavailability,
            volume_l=volume_l,
        )
    if isinstance(entry, PatchEntry):
        rate_ug_per_day = extras.release_rate_ug_per_day if isinstance(extras, PatchExtras) else 0.0
        return ZeroOrderPatchModel(
            release_rate_mg_per_h=rate_ug_per_day * UG_PER_DAY_TO_MG_PER_H,
            ke_per_h=entry.ke_per_h,
            bioavailability=entry.bioavailability,
            volume_l=volume_l,
        )
    if isinstance(entry, FirstOrderEntry):
        ka = entry.ka_per_h
        if route == "sublingual" and table.sublingual_tiers:
            hold = extras if isinstance(extras, SublingualExtras) else None
            ka = sublingual_ka(table, hold)
        return FirstOrderModel(
            ka_per_h=ka,
            ke_per_h=entry.ke_per_h,
            bioavailability=entry.bioavailability,
            volume_l=volume_l,
        )
    raise TypeError(f"Unknown parameter entry type {type(entry).__name__}.")


def select_sublingual_tier(table: ParameterTable, extras: Optional[SublingualExtras] = None) -> str:
    """
    Name of the tier a sublingual dose falls into.

    An explicit tier wins; otherwise the longest tier whose hold threshold is
    met by hold_minutes; holds shorter than every threshold get the shortest
    tier; no information at all gets the table default.
    """
    tiers = table.sublingual_tiers
    if extras is not None and extras.tier is not None:
        if extras.tier not in tiers:
            raise ValueError(f"Unknown sublingual tier '{extras.tier}'. Known: {sorted(tiers)}.")
        return extras.tier
    if extras is None or extras.hold_minutes is None:
        return table.default_sublingual_tier

    ordered = sorted(tiers.items(), key=lambda kv: kv[1].hold_minutes)
    chosen = ordered[0][0]
    for name, tier in ordered:
        if extras.hold_minutes >= tier.hold_minutes:
            chosen = name
    return chosen


def sublingual_ka(table: ParameterTable, extras: Optional[SublingualExtras] = None) -> float:
    return table.sublingual_tiers[select_sublingual_tier(table, extras)].ka_per_h
