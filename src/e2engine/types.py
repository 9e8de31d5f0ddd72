# src/e2engine/types.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple, Union

import numpy as np

# All time is kept in HOURS since the epoch, doses in mg, concentrations in pg/mL.
Route = Literal["injection", "oral", "sublingual", "gel", "patchApply", "patchRemove"]
Ester = Literal["E2", "EB", "EV", "EC", "EN"]

ROUTES: Tuple[str, ...] = ("injection", "oral", "sublingual", "gel", "patchApply", "patchRemove")
ESTERS: Tuple[str, ...] = ("E2", "EB", "EV", "EC", "EN")


@dataclass(frozen=True)
class PatchExtras:
    """Extra data for a patch application: nominal delivery rate in µg/day."""
    release_rate_ug_per_day: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.release_rate_ug_per_day) and self.release_rate_ug_per_day >= 0):
            raise ValueError(
                f"release_rate_ug_per_day must be >= 0 (got {self.release_rate_ug_per_day})."
            )


@dataclass(frozen=True)
class SublingualExtras:
    """
    Extra data for a sublingual dose.

    hold_minutes : how long the tablet was held under the tongue
    tier         : explicit tier name; wins over hold_minutes when both are set
    """
    hold_minutes: Optional[float] = None
    tier: Optional[str] = None

    def __post_init__(self) -> None:
        if self.hold_minutes is not None and not (self.hold_minutes >= 0):
            raise ValueError(f"hold_minutes must be >= 0 (got {self.hold_minutes}).")


RouteExtras = Union[PatchExtras, SublingualExtras, None]


@dataclass(frozen=True)
class DoseEvent:
    """
    A single administration (or patch removal) entered by the user.

    id        : opaque unique identifier
    route     : how the dose was given
    ester     : substance tag; patches and gels are plain E2
    dose_mg   : administered mass in mg (0 for patch removals)
    time_h    : hours since the epoch, fractional hours allowed
    extras    : route-specific extension, see PatchExtras / SublingualExtras
    """
    id: str
    route: Route
    ester: Ester
    dose_mg: float
    time_h: float
    extras: RouteExtras = None

    def __post_init__(self) -> None:
        if self.route not in ROUTES:
            raise ValueError(f"route must be one of {ROUTES} (got {self.route!r}).")
        if self.ester not in ESTERS:
            raise ValueError(f"ester must be one of {ESTERS} (got {self.ester!r}).")
        if not math.isfinite(self.time_h):
            raise ValueError(f"time_h must be finite (got {self.time_h}).")
        if not (math.isfinite(self.dose_mg) and self.dose_mg >= 0):
            raise ValueError(f"dose_mg must be >= 0 (got {self.dose_mg}).")
        if self.route == "patchRemove":
            if self.dose_mg != 0 or self.extras is not None:
                raise ValueError("patchRemove events carry no dose and no extras.")
        elif isinstance(self.extras, PatchExtras) and self.route != "patchApply":
            raise ValueError(f"PatchExtras only apply to patchApply (got route {self.route!r}).")
        elif isinstance(self.extras, SublingualExtras) and self.route != "sublingual":
            raise ValueError(f"SublingualExtras only apply to sublingual (got route {self.route!r}).")


# --------------------------
# Kinetic model variants
# --------------------------
@dataclass(frozen=True)
class FirstOrderModel:
    """
    One-compartment model with first-order absorption and elimination
    (oral, sublingual, gel).
    """
    ka_per_h: float
    ke_per_h: float
    bioavailability: float
    volume_l: float


@dataclass(frozen=True)
class DepotModel:
    """
    Two-phase depot (oil-based ester injections): the dose splits into a fast and
    a slow pool, each absorbed first-order into one shared central compartment.
    """
    ka_fast_per_h: float
    ka_slow_per_h: float
    fast_fraction: float
    ke_per_h: float
    bioavailability: float
    volume_l: float


@dataclass(frozen=True)
class ZeroOrderPatchModel:
    """Constant-rate input while a patch is worn, first-order elimination."""
    release_rate_mg_per_h: float
    ke_per_h: float
    bioavailability: float
    volume_l: float


KineticModel = Union[FirstOrderModel, DepotModel, ZeroOrderPatchModel]


@dataclass(frozen=True)
class PatchWindow:
    """A patch application paired with the removal that ended it (if any)."""
    apply: DoseEvent
    remove: Optional[DoseEvent] = None
    max_wear_h: Optional[float] = None

    @property
    def wear_h(self) -> Optional[float]:
        """Hours the patch delivers drug; None means it is still on."""
        if self.remove is not None:
            return self.remove.time_h - self.apply.time_h
        return self.max_wear_h

    @property
    def end_h(self) -> Optional[float]:
        wear = self.wear_h
        return None if wear is None else self.apply.time_h + wear


@dataclass(frozen=True)
class SimulationResult:
    """
    Sampled concentration curve.

    times_h     : strictly increasing sample times (hours since epoch)
    conc_pg_ml  : concentration at each sample (pg/mL), never negative
    weight_kg   : body weight the run used
    skipped_ids : events left out because no parameters exist for them
    """
    times_h: np.ndarray
    conc_pg_ml: np.ndarray
    weight_kg: float
    skipped_ids: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        t = np.array(self.times_h, dtype=float)
        c = np.array(self.conc_pg_ml, dtype=float)
        if t.ndim != 1 or t.shape != c.shape:
            raise ValueError("times_h and conc_pg_ml must be 1-D arrays of the same length.")
        if t.size > 1 and not np.all(np.diff(t) > 0):
            raise ValueError("times_h must be strictly increasing.")
        t.setflags(write=False)
        c.setflags(write=False)
        # Frozen dataclass: bypass __setattr__ to store the read-only copies.
        object.__setattr__(self, "times_h", t)
        object.__setattr__(self, "conc_pg_ml", c)
        object.__setattr__(self, "skipped_ids", tuple(self.skipped_ids))

    @property
    def start_h(self) -> float:
        return float(self.times_h[0])

    @property
    def end_h(self) -> float:
        return float(self.times_h[-1])
