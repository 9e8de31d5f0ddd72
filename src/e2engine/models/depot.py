# src/e2engine/models/depot.py
from .one_compartment import bateman


def depot_concentration(t, dose_mg: float, ka_fast: float, ka_slow: float, fast_fraction: float,
                        ke: float, F: float, V: float):
    """
    Two-phase depot (mg/L): the dose splits into a fast pool (fast_fraction)
    and a slow pool (1 - fast_fraction), each absorbed first-order into one
    central compartment with a shared elimination rate.
    """
    shape = fast_fraction * bateman(ka_fast, ke, t) + (1.0 - fast_fraction) * bateman(ka_slow, ke, t)
    return (F * dose_mg / V) * shape


def depot_two_phase(t, y, ka_fast, ka_slow, ke, F):
    """
    Three states:
      y[0] = drug in the fast depot pool (mg)
      y[1] = drug in the slow depot pool (mg)
      y[2] = drug in central compartment (mg)
    """
    A_fast, A_slow, A_c = y
    dA_fast_dt = -ka_fast * A_fast
    dA_slow_dt = -ka_slow * A_slow
    dA_c_dt = F * (ka_fast * A_fast + ka_slow * A_slow) - ke * A_c
    return [dA_fast_dt, dA_slow_dt, dA_c_dt]
