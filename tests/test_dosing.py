import numpy as np
import pytest

from e2engine.dosing import (
    combine_events,
    dose_event,
    events_from_records,
    patch_cycle,
    repeated_injections,
)
from e2engine.types import DoseEvent, PatchExtras, SublingualExtras


def test_repeated_injections_schedule():
    events = repeated_injections(5.0, "EV", every_days=3.5, count=4, start_h=8.0)
    assert [e.time_h for e in events] == [8.0, 92.0, 176.0, 260.0]
    assert all(e.route == "injection" and e.ester == "EV" and e.dose_mg == 5.0 for e in events)
    assert len({e.id for e in events}) == 4


def test_patch_cycle_pairs():
    events = patch_cycle(100.0, wear_days=7, count=2)
    assert [e.route for e in events] == ["patchApply", "patchRemove", "patchApply", "patchRemove"]
    assert [e.time_h for e in events] == [0.0, 168.0, 168.0, 336.0]
    assert events[0].extras == PatchExtras(100.0)
    assert events[1].extras is None and events[1].dose_mg == 0.0


def test_combine_events_sorts():
    inj = repeated_injections(5.0, "EV", every_days=7, count=2)
    oral = (dose_event("oral", 24.0, 2.0),)
    merged = combine_events(inj, oral)
    assert [e.time_h for e in merged] == [0.0, 24.0, 168.0]


@pytest.mark.parametrize("kwargs", [
    dict(dose_mg=0.0, ester="EV", every_days=7, count=2),
    dict(dose_mg=5.0, ester="EV", every_days=0, count=2),
    dict(dose_mg=5.0, ester="EV", every_days=7, count=0),
    dict(dose_mg=5.0, ester="EV", every_days=7, count=2.5),
    dict(dose_mg=5.0, ester="EV", every_days=7, count=2, start_h=float("inf")),
])
def test_repeated_injections_validation(kwargs):
    with pytest.raises(ValueError):
        repeated_injections(**kwargs)


def test_event_invariants():
    with pytest.raises(ValueError):
        dose_event("oral", float("nan"), 1.0)
    with pytest.raises(ValueError):
        dose_event("oral", 0.0, -1.0)
    with pytest.raises(ValueError):
        DoseEvent(id="x", route="patchRemove", ester="E2", dose_mg=1.0, time_h=0.0)
    with pytest.raises(ValueError):
        DoseEvent(id="x", route="oral", ester="E2", dose_mg=1.0, time_h=0.0, extras=PatchExtras(50.0))
    with pytest.raises(ValueError):
        DoseEvent(id="x", route="nasal", ester="E2", dose_mg=1.0, time_h=0.0)
    with pytest.raises(ValueError):
        PatchExtras(-5.0)


def test_events_from_records_sanitizes():
    """
    Mirrors what an import does with hand-edited files: bad rows are dropped,
    recoverable fields fall back to safe values.
    """
    records = [
        {"id": "a", "route": "injection", "timeH": 10, "doseMG": 5, "ester": "EV", "extras": {}},
        {"route": "oral", "timeH": "12.5", "doseMG": "oops", "ester": "XYZ"},
        {"id": "c", "route": "patchApply", "timeH": 20, "doseMG": 0, "ester": "E2",
         "extras": {"releaseRateUGPerDay": 50}},
        {"id": "d", "route": "patchRemove", "timeH": 30, "doseMG": 3, "extras": {"releaseRateUGPerDay": 50}},
        {"id": "e", "route": "sublingual", "timeH": 40, "doseMG": 1,
         "extras": {"sublingualHoldMinutes": 12}},
        {"id": "bad-route", "route": "nasal", "timeH": 1, "doseMG": 1},
        {"id": "bad-time", "route": "oral", "timeH": float("inf"), "doseMG": 1},
        {"id": "no-time", "route": "oral", "doseMG": 1},
        "not a mapping",
        None,
    ]
    events = events_from_records(records)
    assert [e.route for e in events] == ["injection", "oral", "patchApply", "patchRemove", "sublingual"]

    inj, oral, patch, remove, sub = events
    assert inj.id == "a" and inj.dose_mg == 5.0 and inj.ester == "EV" and inj.extras is None
    assert oral.time_h == 12.5 and oral.dose_mg == 0.0 and oral.ester == "E2"
    assert isinstance(oral.id, str) and oral.id
    assert patch.extras == PatchExtras(50.0)
    assert remove.dose_mg == 0.0 and remove.extras is None
    assert sub.extras == SublingualExtras(hold_minutes=12.0)


def test_events_from_records_requires_list():
    with pytest.raises(ValueError):
        events_from_records({"events": []})


def test_event_ids_are_unique():
    ids = {dose_event("oral", float(t), 1.0).id for t in np.arange(100)}
    assert len(ids) == 100
