from typing import Iterable

from .types import DoseEvent


def sort_events(events: Iterable[DoseEvent]) -> tuple[DoseEvent, ...]:
    """
    Chronological order. At equal timestamps patch removals come first, so that
    swapping one patch for another at the same instant closes the old one.
    """
    return tuple(sorted(events, key=lambda e: (e.time_h, 0 if e.route == "patchRemove" else 1)))
