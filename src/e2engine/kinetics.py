# src/e2engine/kinetics.py
from __future__ import annotations

import math
from typing import Optional

import numpy as np

from .models.depot import depot_concentration
from .models.one_compartment import first_order_concentration, zero_order_concentration
from .types import DepotModel, FirstOrderModel, KineticModel, ZeroOrderPatchModel
from .units import MG_PER_L_TO_PG_PER_ML


def contribution(model: KineticModel, equivalent_mass_mg: float, elapsed_h,
                 wear_h: Optional[float] = None):
    """
    Concentration (pg/mL) one event adds `elapsed_h` hours after it happened.

    elapsed_h may be a scalar (returns float) or an array (returns an array of
    the same shape). Negative elapsed time gives 0. For patches the mass is
    ignored: input is the model's release rate for `wear_h` hours
    (None = still worn).
    """
    scalar = np.ndim(elapsed_h) == 0
    t = np.asarray(elapsed_h, dtype=float)

    if isinstance(model, FirstOrderModel):
        c = first_order_concentration(
            t, equivalent_mass_mg, model.ka_per_h, model.ke_per_h, model.bioavailability, model.volume_l
        )
    elif isinstance(model, DepotModel):
        c = depot_concentration(
            t, equivalent_mass_mg, model.ka_fast_per_h, model.ka_slow_per_h, model.fast_fraction,
            model.ke_per_h, model.bioavailability, model.volume_l,
        )
    elif isinstance(model, ZeroOrderPatchModel):
        c = zero_order_concentration(
            t, model.release_rate_mg_per_h, model.ke_per_h, model.bioavailability, model.volume_l, wear_h
        )
    else:
        raise TypeError(f"Unknown kinetic model {type(model).__name__}.")

    # rounding can leave the difference of exponentials just below zero
    c = np.maximum(c * MG_PER_L_TO_PG_PER_ML, 0.0)
    return float(c) if scalar else c


def peak_time_h(model: KineticModel) -> Optional[float]:
    """
    Time of the single-dose maximum for first-order models:
    ln(ka / ke) / (ka - ke), or 1 / k when the rates coincide.
    None for models whose peak depends on more than the rate constants.
    """
    if not isinstance(model, FirstOrderModel):
        return None
    ka, ke = model.ka_per_h, model.ke_per_h
    if math.isclose(ka, ke, rel_tol=1e-12):
        return 1.0 / ka
    return math.log(ka / ke) / (ka - ke)


def rate_constants(model: KineticModel) -> tuple[float, ...]:
    """First-order rate constants (1/h) shaping the curve of `model`."""
    if isinstance(model, FirstOrderModel):
        return (model.ka_per_h, model.ke_per_h)
    if isinstance(model, DepotModel):
        return (model.ka_fast_per_h, model.ka_slow_per_h, model.ke_per_h)
    if isinstance(model, ZeroOrderPatchModel):
        return (model.ke_per_h,)
    raise TypeError(f"Unknown kinetic model {type(model).__name__}.")


def slowest_half_life_h(model: KineticModel) -> float:
    """Half-life of the slowest process, which sets the length of the decay tail."""
    return math.log(2.0) / min(rate_constants(model))
