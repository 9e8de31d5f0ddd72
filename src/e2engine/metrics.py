# src/e2engine/metrics.py
from typing import Optional, Tuple

import numpy as np

from .interpolate import interpolate_concentration
from .types import SimulationResult


def cmax_tmax(result: SimulationResult) -> Tuple[float, float]:
    """Return Cmax (pg/mL) and Tmax (h since epoch)."""
    idx = int(np.argmax(result.conc_pg_ml))
    return float(result.conc_pg_ml[idx]), float(result.times_h[idx])


def auc_trapz(result: SimulationResult, start_h: Optional[float] = None,
              end_h: Optional[float] = None) -> float:
    """Area under the curve via trapezoidal rule (pg*h/mL), optionally over [start_h, end_h]."""
    t, C = result.times_h, result.conc_pg_ml
    mask = np.ones_like(t, dtype=bool)
    if start_h is not None:
        mask &= t >= start_h
    if end_h is not None:
        mask &= t <= end_h
    if mask.sum() < 2:
        return 0.0
    return float(np.trapezoid(C[mask], t[mask]))


def trough_before(result: SimulationResult, time_h: float, lookback_h: float) -> Tuple[float, float]:
    """
    Lowest sample in [time_h - lookback_h, time_h], e.g. the trough right before
    the next injection. Returns (concentration, time).
    """
    t, C = result.times_h, result.conc_pg_ml
    mask = (t >= time_h - lookback_h) & (t <= time_h)
    if not mask.any():
        raise ValueError(f"No samples in [{time_h - lookback_h}, {time_h}].")
    idx = np.flatnonzero(mask)[int(np.argmin(C[mask]))]
    return float(C[idx]), float(t[idx])


def current_level(result: Optional[SimulationResult], now_h: float) -> float:
    """Level to display as 'now': the interpolated value, or 0 when there is no estimate."""
    if result is None:
        return 0.0
    value = interpolate_concentration(result, now_h)
    return value if value is not None else 0.0
