# src/e2engine/parameters.py
"""
Parameter table for the PK engine.

Every pharmacological constant the engine uses lives here, keyed by
(route, ester). The engine never hardcodes a rate constant; swap the table
(``load_parameter_table`` / ``parameter_table_from_dict``) to run against a
different or synthetic parameter set.

Volumes are given at ``reference_weight_kg`` and scaled linearly with body
weight by the resolver.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union

from .errors import ParameterTableError

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FirstOrderEntry:
    ka_per_h: float
    ke_per_h: float
    bioavailability: float
    volume_l: float


@dataclass(frozen=True)
class DepotEntry:
    ka_fast_per_h: float
    ka_slow_per_h: float
    fast_fraction: float
    ke_per_h: float
    bioavailability: float
    volume_l: float


@dataclass(frozen=True)
class PatchEntry:
    ke_per_h: float
    bioavailability: float
    volume_l: float


RouteEntry = Union[FirstOrderEntry, DepotEntry, PatchEntry]

_ENTRY_KINDS = {
    "first_order": FirstOrderEntry,
    "depot": DepotEntry,
    "zero_order": PatchEntry,
}


@dataclass(frozen=True)
class SublingualTier:
    """Absorption rate reached when the tablet is held for at least hold_minutes."""
    hold_minutes: float
    ka_per_h: float


@dataclass(frozen=True)
class SamplingSettings:
    """
    Grid settings for run_simulation.

    step_h        : nominal spacing between samples
    max_points    : upper bound on uniform samples; the step widens past it
    pre_roll_h    : zero-level lead-in before the earliest event / now
    min_horizon_h : minimum look-ahead past max(now, last event)
    max_horizon_h : hard cap on look-ahead past max(now, last event)
    n_half_lives  : decay tail kept after each event, in slowest half-lives
    max_rate_step : largest k * dt allowed for any rate constant k; where the
                    uniform step is coarser, a finer sub-grid follows each
                    dose (and patch removal) for that rate
    refine_half_lives : length of that sub-grid, in half-lives of the rate
    """
    step_h: float = 0.25
    max_points: int = 20000
    pre_roll_h: float = 24.0
    min_horizon_h: float = 168.0
    max_horizon_h: float = 2160.0
    n_half_lives: float = 5.0
    max_rate_step: float = 0.1
    refine_half_lives: float = 8.0


@dataclass(frozen=True)
class ParameterTable:
    reference_weight_kg: float
    molar_mass_g_per_mol: Mapping[str, float]
    entries: Mapping[Tuple[str, str], RouteEntry]
    sublingual_tiers: Mapping[str, SublingualTier]
    default_sublingual_tier: str
    patch_max_wear_h: Optional[float] = None
    sampling: SamplingSettings = field(default_factory=SamplingSettings)

    def __post_init__(self) -> None:
        object.__setattr__(self, "molar_mass_g_per_mol", MappingProxyType(dict(self.molar_mass_g_per_mol)))
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))
        object.__setattr__(self, "sublingual_tiers", MappingProxyType(dict(self.sublingual_tiers)))
        _validate_table(self)

    def entry(self, route: str, ester: str) -> Optional[RouteEntry]:
        return self.entries.get((route, ester))


# --------------------------
# Loading
# --------------------------
def parameter_table_from_dict(data: Mapping[str, Any]) -> ParameterTable:
    """
    Build a ParameterTable from plain data (e.g. parsed JSON).

    Expected shape::

        {
          "reference_weight_kg": 70.0,
          "molar_mass_g_per_mol": {"E2": 272.38, ...},
          "entries": [
            {"route": "oral", "ester": "E2", "kind": "first_order",
             "ka_per_h": 0.5, "ke_per_h": 0.043, "bioavailability": 0.03, "volume_l": 700.0},
            ...
          ],
          "sublingual_tiers": {"standard": {"hold_minutes": 10, "ka_per_h": 1.8}},
          "default_sublingual_tier": "standard",
          "patch_max_wear_h": 168.0,          # optional, null = worn until removed
          "sampling": {"step_h": 0.25, ...}   # optional
        }
    """
    try:
        entries: dict[Tuple[str, str], RouteEntry] = {}
        for raw in data["entries"]:
            raw = dict(raw)
            kind = raw.pop("kind")
            cls = _ENTRY_KINDS.get(kind)
            if cls is None:
                raise ParameterTableError(f"Unknown entry kind '{kind}'.")
            key = (str(raw.pop("route")), str(raw.pop("ester")))
            if key in entries:
                raise ParameterTableError(f"Duplicate entry for {key}.")
            entries[key] = cls(**{k: float(v) for k, v in raw.items()})

        tiers = {
            name: SublingualTier(hold_minutes=float(t["hold_minutes"]), ka_per_h=float(t["ka_per_h"]))
            for name, t in data.get("sublingual_tiers", {}).items()
        }
        max_wear = data.get("patch_max_wear_h")
        return ParameterTable(
            reference_weight_kg=float(data["reference_weight_kg"]),
            molar_mass_g_per_mol={k: float(v) for k, v in data["molar_mass_g_per_mol"].items()},
            entries=entries,
            sublingual_tiers=tiers,
            default_sublingual_tier=str(data.get("default_sublingual_tier", "")),
            patch_max_wear_h=None if max_wear is None else float(max_wear),
            sampling=SamplingSettings(**data.get("sampling", {})),
        )
    except ParameterTableError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise ParameterTableError(f"Malformed parameter table: {exc!r}") from exc


def load_parameter_table(path: Union[str, Path]) -> ParameterTable:
    """Read a JSON parameter table from disk. Call once at start-up."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ParameterTableError(f"{path} is not valid JSON: {exc}") from exc
    table = parameter_table_from_dict(data)
    _LOGGER.debug("Loaded parameter table from %s with %d entries", path, len(table.entries))
    return table


# --------------------------
# Validation
# --------------------------
def _validate_table(table: ParameterTable) -> None:
    _check_positive("reference_weight_kg", table.reference_weight_kg)
    for ester, mass in table.molar_mass_g_per_mol.items():
        _check_positive(f"molar_mass_g_per_mol[{ester}]", mass)
    if "E2" not in table.molar_mass_g_per_mol:
        raise ParameterTableError("molar_mass_g_per_mol must include 'E2'.")

    for key, entry in table.entries.items():
        name = f"entries[{key[0]}/{key[1]}]"
        if key[1] not in table.molar_mass_g_per_mol:
            raise ParameterTableError(f"{name}: no molar mass for ester '{key[1]}'.")
        _check_positive(f"{name}.ke_per_h", entry.ke_per_h)
        _check_positive(f"{name}.volume_l", entry.volume_l)
        _check_fraction(f"{name}.bioavailability", entry.bioavailability)
        if isinstance(entry, FirstOrderEntry):
            _check_positive(f"{name}.ka_per_h", entry.ka_per_h)
        elif isinstance(entry, DepotEntry):
            _check_positive(f"{name}.ka_fast_per_h", entry.ka_fast_per_h)
            _check_positive(f"{name}.ka_slow_per_h", entry.ka_slow_per_h)
            _check_fraction(f"{name}.fast_fraction", entry.fast_fraction)

    for name, tier in table.sublingual_tiers.items():
        _check_positive(f"sublingual_tiers[{name}].ka_per_h", tier.ka_per_h)
        if not (tier.hold_minutes >= 0):
            raise ParameterTableError(f"sublingual_tiers[{name}].hold_minutes must be >= 0.")
    if table.sublingual_tiers and table.default_sublingual_tier not in table.sublingual_tiers:
        raise ParameterTableError(
            f"default_sublingual_tier '{table.default_sublingual_tier}' is not a defined tier."
        )
    if table.patch_max_wear_h is not None:
        _check_positive("patch_max_wear_h", table.patch_max_wear_h)

    s = table.sampling
    _check_positive("sampling.step_h", s.step_h)
    _check_positive("sampling.max_points", s.max_points)
    _check_positive("sampling.n_half_lives", s.n_half_lives)
    _check_positive("sampling.min_horizon_h", s.min_horizon_h)
    _check_positive("sampling.max_horizon_h", s.max_horizon_h)
    _check_positive("sampling.max_rate_step", s.max_rate_step)
    _check_positive("sampling.refine_half_lives", s.refine_half_lives)
    if not (0 <= s.pre_roll_h < math.inf):
        raise ParameterTableError("sampling.pre_roll_h must be finite and >= 0.")
    if not (s.max_horizon_h >= s.min_horizon_h):
        raise ParameterTableError("sampling.max_horizon_h must be >= sampling.min_horizon_h.")


def _check_positive(name: str, x: float) -> None:
    if not (math.isfinite(x) and x > 0):
        raise ParameterTableError(f"{name} must be > 0 (got {x}).")


def _check_fraction(name: str, x: float) -> None:
    if not (0.0 <= x <= 1.0):
        raise ParameterTableError(f"{name} must be within [0, 1] (got {x}).")


# --------------------------
# Default table
# --------------------------
# Apparent volume at 70 kg; ke for injections is the fast intrinsic E2 clearance,
# absorption from the oil depot is rate-limiting (flip-flop kinetics).
_V_REF_L = 700.0
_KE_INJECTION = 0.41
_KE_ORAL = 0.043

DEFAULT_PARAMETERS = ParameterTable(
    reference_weight_kg=70.0,
    molar_mass_g_per_mol={
        "E2": 272.38,
        "EB": 376.49,
        "EV": 356.50,
        "EC": 396.57,
        "EN": 384.56,
    },
    entries={
        ("injection", "EB"): DepotEntry(0.08, 0.025, 0.60, _KE_INJECTION, 1.0, _V_REF_L),
        ("injection", "EV"): DepotEntry(0.05, 0.015, 0.45, _KE_INJECTION, 1.0, _V_REF_L),
        ("injection", "EC"): DepotEntry(0.03, 0.008, 0.25, _KE_INJECTION, 1.0, _V_REF_L),
        ("injection", "EN"): DepotEntry(0.025, 0.007, 0.20, _KE_INJECTION, 1.0, _V_REF_L),
        ("oral", "E2"): FirstOrderEntry(0.5, _KE_ORAL, 0.03, _V_REF_L),
        ("oral", "EV"): FirstOrderEntry(0.5, _KE_ORAL, 0.03, _V_REF_L),
        # ka is replaced by the hold-time tier
        ("sublingual", "E2"): FirstOrderEntry(1.8, 0.1, 0.15, _V_REF_L),
        ("gel", "E2"): FirstOrderEntry(0.15, _KE_ORAL, 0.10, _V_REF_L),
        ("patchApply", "E2"): PatchEntry(0.06, 1.0, _V_REF_L),
    },
    sublingual_tiers={
        "quick": SublingualTier(hold_minutes=2.0, ka_per_h=0.8),
        "casual": SublingualTier(hold_minutes=5.0, ka_per_h=1.2),
        "standard": SublingualTier(hold_minutes=10.0, ka_per_h=1.8),
        "strict": SublingualTier(hold_minutes=15.0, ka_per_h=2.5),
    },
    default_sublingual_tier="standard",
    patch_max_wear_h=168.0,
)
