# src/e2engine/interpolate.py
from __future__ import annotations

import math
from typing import Optional

import numpy as np

from .types import SimulationResult


def interpolate_concentration(result: SimulationResult, query_h: float) -> Optional[float]:
    """
    Concentration (pg/mL) at an arbitrary time, by linear interpolation between
    the two bracketing samples. Exact grid times return the stored sample.

    Returns None when `query_h` lies outside the simulated range: no estimate
    is extrapolated.
    """
    t = result.times_h
    c = result.conc_pg_ml
    if t.size == 0 or not math.isfinite(query_h):
        return None
    if query_h < t[0] or query_h > t[-1]:
        return None

    # First index with t[i] >= query_h
    i = int(np.searchsorted(t, query_h, side="left"))
    if t[i] == query_h:
        return float(c[i])
    t0, t1 = t[i - 1], t[i]
    c0, c1 = c[i - 1], c[i]
    frac = (query_h - t0) / (t1 - t0)
    return float(c0 + frac * (c1 - c0))
