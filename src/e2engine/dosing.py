# src/e2engine/dosing.py
from __future__ import annotations

import logging
import math
import uuid
from typing import Any, Iterable, Mapping, Optional

import numpy as np

from .helpers import sort_events
from .types import ESTERS, ROUTES, DoseEvent, Ester, PatchExtras, Route, RouteExtras, SublingualExtras

_LOGGER = logging.getLogger(__name__)

# Keys accepted in a plain record's "extras" mapping
EXTRA_RELEASE_RATE = "releaseRateUGPerDay"
EXTRA_SUBLINGUAL_TIER = "sublingualTier"
EXTRA_SUBLINGUAL_HOLD = "sublingualHoldMinutes"


def new_event_id() -> str:
    return str(uuid.uuid4())


def dose_event(route: Route, time_h: float, dose_mg: float = 0.0, ester: Ester = "E2",
               extras: RouteExtras = None, *, event_id: Optional[str] = None) -> DoseEvent:
    """
    Create one event with a fresh id.
    Examples:
      - 5 mg EV injection at t=0 h:      dose_event("injection", 0.0, 5.0, "EV")
      - 2 mg oral E2 at 08:00 on day 1:  dose_event("oral", 32.0, 2.0)
      - 100 µg/day patch:                dose_event("patchApply", 0.0, extras=PatchExtras(100.0))
    """
    _validate_finite("time_h", time_h)
    _validate_non_negative("dose_mg", dose_mg)
    return DoseEvent(id=event_id or new_event_id(), route=route, ester=ester,
                     dose_mg=float(dose_mg), time_h=float(time_h), extras=extras)


def repeated_injections(dose_mg: float, ester: Ester, every_days: float, count: int,
                        start_h: float = 0.0) -> tuple[DoseEvent, ...]:
    """
    Make a repeated schedule like: 5 mg EV every 7 days, 8 times.

    dose_mg     : ester mass per injection, mg
    every_days  : spacing between injections, in days (fractions allowed, e.g. 3.5)
    count       : number of injections
    start_h     : time of the first injection
    """
    _validate_positive("dose_mg", dose_mg)
    _validate_positive("every_days", every_days)
    _validate_positive_int("count", count)
    _validate_finite("start_h", start_h)

    times_h = float(start_h) + np.arange(count, dtype=float) * every_days * 24.0
    return tuple(dose_event("injection", float(t), dose_mg, ester) for t in times_h)


def patch_cycle(release_rate_ug_per_day: float, wear_days: float, count: int,
                start_h: float = 0.0) -> tuple[DoseEvent, ...]:
    """
    Back-to-back patches: each is removed after `wear_days` and the next one is
    applied at the same instant.
    """
    _validate_positive("release_rate_ug_per_day", release_rate_ug_per_day)
    _validate_positive("wear_days", wear_days)
    _validate_positive_int("count", count)
    _validate_finite("start_h", start_h)

    events: list[DoseEvent] = []
    for i in range(count):
        on_h = float(start_h) + i * wear_days * 24.0
        events.append(dose_event("patchApply", on_h, extras=PatchExtras(float(release_rate_ug_per_day))))
        events.append(dose_event("patchRemove", on_h + wear_days * 24.0))
    return tuple(events)


def combine_events(*groups: Iterable[DoseEvent]) -> tuple[DoseEvent, ...]:
    """
    Merge several event collections (e.g. an injection schedule plus a patch).
    Events are concatenated and sorted for readability; the simulator does not
    depend on the order.
    """
    merged: list[DoseEvent] = []
    for g in groups:
        merged.extend(g)
    return sort_events(merged)


def events_from_records(records: Any) -> list[DoseEvent]:
    """
    Turn plain mappings (e.g. decoded from an export file) into DoseEvents.

    Records with an unknown route or a non-finite time are dropped. An unknown
    ester falls back to E2, a missing or non-finite dose to 0 and a missing id
    to a fresh one. Extras are mapped onto the typed per-route extension for
    the record's route; keys that do not apply to it are ignored.
    """
    if not isinstance(records, (list, tuple)):
        raise ValueError("records must be a list of mappings.")

    events: list[DoseEvent] = []
    for item in records:
        event = _event_from_record(item)
        if event is not None:
            events.append(event)
    dropped = len(records) - len(events)
    if dropped:
        _LOGGER.warning("Dropped %d invalid record(s) of %d", dropped, len(records))
    return events


def _event_from_record(item: Any) -> Optional[DoseEvent]:
    if not isinstance(item, Mapping):
        return None
    route = item.get("route")
    if route not in ROUTES:
        return None
    time_h = _as_float(item.get("timeH"))
    if time_h is None:
        return None
    dose_mg = _as_float(item.get("doseMG"))
    dose_mg = dose_mg if dose_mg is not None and dose_mg >= 0 else 0.0
    ester = item.get("ester")
    ester = ester if ester in ESTERS else "E2"
    event_id = item.get("id") if isinstance(item.get("id"), str) else new_event_id()

    raw_extras = item.get("extras")
    raw_extras = raw_extras if isinstance(raw_extras, Mapping) else {}
    extras: RouteExtras = None
    if route == "patchRemove":
        dose_mg = 0.0
    elif route == "patchApply":
        rate = _as_float(raw_extras.get(EXTRA_RELEASE_RATE))
        if rate is not None and rate >= 0:
            extras = PatchExtras(rate)
    elif route == "sublingual":
        tier = raw_extras.get(EXTRA_SUBLINGUAL_TIER)
        hold = _as_float(raw_extras.get(EXTRA_SUBLINGUAL_HOLD))
        if isinstance(tier, str) or (hold is not None and hold >= 0):
            extras = SublingualExtras(
                hold_minutes=hold if hold is not None and hold >= 0 else None,
                tier=tier if isinstance(tier, str) else None,
            )

    return DoseEvent(id=event_id, route=route, ester=ester, dose_mg=dose_mg, time_h=time_h, extras=extras)


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        x = float(value)
    except (TypeError, ValueError):
        return None
    return x if math.isfinite(x) else None


# --------------------------
# Small input validators
# --------------------------
def _validate_positive(name: str, x: float) -> None:
    if not (x > 0):
        raise ValueError(f"{name} must be > 0 (got {x}).")

def _validate_non_negative(name: str, x: float) -> None:
    if not (x >= 0):
        raise ValueError(f"{name} must be >= 0 (got {x}).")

def _validate_finite(name: str, x: float) -> None:
    if not math.isfinite(x):
        raise ValueError(f"{name} must be finite (got {x}).")

def _validate_positive_int(name: str, x: int) -> None:
    if not (isinstance(x, int) and x > 0):
        raise ValueError(f"{name} must be a positive integer (got {x}).")
