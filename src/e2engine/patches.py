# src/e2engine/patches.py
from __future__ import annotations

import logging
from typing import Iterable, Optional

from .helpers import sort_events
from .types import DoseEvent, PatchWindow

_LOGGER = logging.getLogger(__name__)


def active_windows(events: Iterable[DoseEvent], max_wear_h: Optional[float] = None) -> list[PatchWindow]:
    """
    Pair patch applications with removals.

    Removals carry no reference to the patch they end: walking the events in
    time order, each `patchRemove` closes the most recent still-open
    `patchApply`. A removal with nothing open is ignored. Applies left open
    are each treated as still worn, independently of one another (two patches
    at once is a legitimate regimen), up to `max_wear_h` when given.

    Returns one window per application, ordered by application time.
    """
    applies: list[DoseEvent] = []
    removals: list[Optional[DoseEvent]] = []
    open_idx: list[int] = []

    for ev in sort_events(events):
        if ev.route == "patchApply":
            open_idx.append(len(applies))
            applies.append(ev)
            removals.append(None)
        elif ev.route == "patchRemove":
            if not open_idx:
                _LOGGER.warning("Ignoring patch removal %s at %.2f h: no patch is applied", ev.id, ev.time_h)
                continue
            removals[open_idx.pop()] = ev

    if open_idx:
        _LOGGER.debug("%d patch application(s) without a removal", len(open_idx))
    return [PatchWindow(apply=a, remove=r, max_wear_h=max_wear_h) for a, r in zip(applies, removals)]
