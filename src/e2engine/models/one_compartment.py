# src/e2engine/models/one_compartment.py
from typing import Optional

import numpy as np

# Relative gap below which ka and ke are treated as equal (removable singularity).
_EQUAL_RATE_RTOL = 1e-12


def bateman(ka, ke, t):
    """
    Unit-dose first-order absorption / elimination shape:

        ka / (ka - ke) * (exp(-ke t) - exp(-ka t))

    Rewritten around the slower rate k_lo = min(ka, ke) and the gap d = |ka - ke|:

        ka * exp(-k_lo t) * (1 - exp(-d t)) / d

    which never overflows and tends to ka * t * exp(-ka t) as d -> 0.
    Returns 0 for t < 0. Multiply by F * dose / V for an amount per volume.
    """
    t = np.asarray(t, dtype=float)
    tt = np.maximum(t, 0.0)
    k_lo = min(ka, ke)
    d = abs(ka - ke)
    if d <= _EQUAL_RATE_RTOL * max(ka, ke):
        rise = tt
    else:
        rise = -np.expm1(-d * tt) / d
    out = ka * np.exp(-k_lo * tt) * rise
    return np.where(t < 0.0, 0.0, out)


def first_order_concentration(t, dose_mg: float, ka: float, ke: float, F: float, V: float):
    """Single dose concentration (mg/L) at t hours after administration."""
    return (F * dose_mg / V) * bateman(ka, ke, t)


def zero_order_concentration(t, rate_mg_per_h: float, ke: float, F: float, V: float,
                             wear_h: Optional[float] = None):
    """
    Constant input while worn, exponential decay after removal (mg/L).

    On:   C(t) = F R / (V ke) * (1 - exp(-ke t))           0 <= t <= wear_h
    Off:  C(t) = C(wear_h) * exp(-ke (t - wear_h))         t > wear_h

    wear_h=None keeps the input running indefinitely.
    """
    t = np.asarray(t, dtype=float)
    tt = np.maximum(t, 0.0)
    w = np.inf if wear_h is None else max(float(wear_h), 0.0)
    t_on = np.minimum(tt, w)
    t_off = np.maximum(tt - w, 0.0)
    plateau = F * rate_mg_per_h / (V * ke)
    out = plateau * -np.expm1(-ke * t_on) * np.exp(-ke * t_off)
    return np.where(t < 0.0, 0.0, out)


# --------------------------
# ODE right-hand sides (reference integration)
# --------------------------
def one_compartment_first_order(t, y, ka, ke, F):
    """
    One-compartment model with first-order absorption and elimination.
    Two states:
      y[0] = drug at the absorption site (mg)
      y[1] = drug in central compartment (mg)
    """
    A_site, A_c = y
    dA_site_dt = -ka * A_site
    dA_c_dt = F * ka * A_site - ke * A_c
    return [dA_site_dt, dA_c_dt]


def one_compartment_zero_order(t, y, rate_mg_per_h, ke, F, wear_h=None):
    """
    One state, y[0] = drug in central compartment (mg), with a constant input
    during [0, wear_h].
    """
    A_c = y[0]
    on = t >= 0.0 and (wear_h is None or t <= wear_h)
    return [(F * rate_mg_per_h if on else 0.0) - ke * A_c]
