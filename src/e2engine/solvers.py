# src/e2engine/solvers.py
from typing import Optional

import numpy as np
from scipy.integrate import solve_ivp

from .models.depot import depot_two_phase
from .models.one_compartment import one_compartment_first_order, one_compartment_zero_order
from .types import DepotModel, FirstOrderModel, KineticModel, ZeroOrderPatchModel
from .units import MG_PER_L_TO_PG_PER_ML


def integrate_reference(model: KineticModel, equivalent_mass_mg: float, t_eval_h,
                        wear_h: Optional[float] = None) -> np.ndarray:
    """
    Integrate the compartment ODEs of `model` numerically for one event at t=0.

    Used to check the closed-form contributions. The dose enters the
    absorption site(s) at t=0 and patch input switches off at `wear_h`, so the
    integration is split into segments at that boundary to keep the solver
    from stepping over the discontinuity in the right-hand side.

    Returns:
      C : concentrations (pg/mL) at t_eval_h (hours, sorted, >= 0)
    """
    t_eval = np.asarray(t_eval_h, dtype=float)
    if t_eval.size == 0:
        return np.zeros(0)
    if np.any(t_eval < 0) or np.any(np.diff(t_eval) < 0):
        raise ValueError("t_eval_h must be sorted and >= 0.")
    t_end = float(t_eval[-1])

    if isinstance(model, FirstOrderModel):
        y0 = [float(equivalent_mass_mg), 0.0]

        def rhs(t, y):
            return one_compartment_first_order(t, y, model.ka_per_h, model.ke_per_h, model.bioavailability)
    elif isinstance(model, DepotModel):
        f = model.fast_fraction
        y0 = [f * equivalent_mass_mg, (1.0 - f) * equivalent_mass_mg, 0.0]

        def rhs(t, y):
            return depot_two_phase(t, y, model.ka_fast_per_h, model.ka_slow_per_h,
                                   model.ke_per_h, model.bioavailability)
    elif isinstance(model, ZeroOrderPatchModel):
        y0 = [0.0]

        def rhs(t, y):
            return one_compartment_zero_order(t, y, model.release_rate_mg_per_h, model.ke_per_h,
                                              model.bioavailability, wear_h)
    else:
        raise TypeError(f"Unknown kinetic model {type(model).__name__}.")

    # Segment boundaries: start, patch removal (if inside the range), end
    boundaries = [0.0]
    if isinstance(model, ZeroOrderPatchModel) and wear_h is not None and 0.0 < wear_h < t_end:
        boundaries.append(float(wear_h))
    boundaries.append(t_end)

    A_c = np.zeros_like(t_eval)
    y = list(y0)
    for a, b in zip(boundaries[:-1], boundaries[1:]):
        if b <= a:
            continue
        mask = (t_eval >= a) & (t_eval <= b)
        # Always sample b itself so the next segment starts from the state there
        t_seg = np.union1d(t_eval[mask], [b])
        sol = solve_ivp(rhs, t_span=(a, b), y0=y, method="LSODA", t_eval=t_seg, rtol=1e-8, atol=1e-12)
        A_c[mask] = np.interp(t_eval[mask], sol.t, sol.y[-1])
        y = [float(v) for v in sol.y[:, -1]]

    C = A_c / model.volume_l * MG_PER_L_TO_PG_PER_ML
    return np.maximum(C, 0.0)
