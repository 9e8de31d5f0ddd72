import math
import pytest

from e2engine.errors import UnsupportedCombination
from e2engine.parameters import DEFAULT_PARAMETERS
from e2engine.resolver import resolve, select_sublingual_tier
from e2engine.types import (
    DepotModel,
    FirstOrderModel,
    PatchExtras,
    SublingualExtras,
    ZeroOrderPatchModel,
)
from e2engine.units import to_e2_factor, to_equivalent_mass


def test_model_kind_follows_route():
    assert isinstance(resolve("injection", "EV", 70.0), DepotModel)
    assert isinstance(resolve("oral", "E2", 70.0), FirstOrderModel)
    assert isinstance(resolve("gel", "E2", 70.0), FirstOrderModel)
    assert isinstance(resolve("sublingual", "E2", 70.0), FirstOrderModel)
    assert isinstance(resolve("patchApply", "E2", 70.0, PatchExtras(50.0)), ZeroOrderPatchModel)


def test_volume_scales_with_weight():
    ref = DEFAULT_PARAMETERS.reference_weight_kg
    entry = DEFAULT_PARAMETERS.entry("oral", "E2")
    assert resolve("oral", "E2", ref).volume_l == pytest.approx(entry.volume_l)
    assert resolve("oral", "E2", 2 * ref).volume_l == pytest.approx(2 * entry.volume_l)
    # Rate constants do not depend on weight
    assert resolve("oral", "E2", 2 * ref).ka_per_h == resolve("oral", "E2", ref).ka_per_h


@pytest.mark.parametrize("route, ester", [
    ("injection", "E2"),
    ("sublingual", "EV"),
    ("gel", "EC"),
    ("patchApply", "EB"),
    ("patchRemove", "E2"),
])
def test_unknown_pairs_are_never_defaulted(route, ester):
    with pytest.raises(UnsupportedCombination) as info:
        resolve(route, ester, 70.0)
    assert (info.value.route, info.value.ester) == (route, ester)
    assert isinstance(info.value, LookupError)


@pytest.mark.parametrize("weight", [0.0, -70.0, float("nan"), float("inf")])
def test_bad_weight(weight):
    with pytest.raises(ValueError):
        resolve("oral", "E2", weight)


def test_patch_release_rate_conversion():
    """µg/day → mg/h."""
    model = resolve("patchApply", "E2", 70.0, PatchExtras(100.0))
    assert model.release_rate_mg_per_h == pytest.approx(100.0 / 1000.0 / 24.0)
    assert resolve("patchApply", "E2", 70.0).release_rate_mg_per_h == 0.0


@pytest.mark.parametrize("hold, tier", [
    (0.5, "quick"),
    (2.0, "quick"),
    (7.0, "casual"),
    (10.0, "standard"),
    (14.9, "standard"),
    (60.0, "strict"),
])
def test_sublingual_tier_from_hold_time(hold, tier):
    assert select_sublingual_tier(DEFAULT_PARAMETERS, SublingualExtras(hold_minutes=hold)) == tier


def test_sublingual_tier_default_and_explicit():
    table = DEFAULT_PARAMETERS
    assert select_sublingual_tier(table) == table.default_sublingual_tier
    assert select_sublingual_tier(table, SublingualExtras()) == table.default_sublingual_tier
    assert select_sublingual_tier(table, SublingualExtras(hold_minutes=1.0, tier="strict")) == "strict"
    with pytest.raises(ValueError):
        select_sublingual_tier(table, SublingualExtras(tier="forever"))


def test_sublingual_tier_changes_absorption_only():
    quick = resolve("sublingual", "E2", 70.0, SublingualExtras(tier="quick"))
    strict = resolve("sublingual", "E2", 70.0, SublingualExtras(tier="strict"))
    assert quick.ka_per_h == DEFAULT_PARAMETERS.sublingual_tiers["quick"].ka_per_h
    assert strict.ka_per_h > quick.ka_per_h
    assert strict.ke_per_h == quick.ke_per_h
    assert strict.volume_l == quick.volume_l


def test_molar_ratio_factors():
    masses = DEFAULT_PARAMETERS.molar_mass_g_per_mol
    assert to_e2_factor("E2") == 1.0
    for ester in ("EB", "EV", "EC", "EN"):
        assert 0.0 < to_e2_factor(ester) < 1.0
    assert to_equivalent_mass("EV", 5.0) == pytest.approx(5.0 * masses["E2"] / masses["EV"])
    assert to_equivalent_mass("EV", 5.0) == pytest.approx(3.82, abs=0.01)
    assert to_equivalent_mass("EC", 0.0) == 0.0
    with pytest.raises(ValueError):
        to_equivalent_mass("EV", -1.0)
    with pytest.raises(ValueError, match="molar mass"):
        to_e2_factor("EUn")


def test_weight_is_the_only_weight_dependence():
    a = resolve("injection", "EC", 50.0)
    b = resolve("injection", "EC", 100.0)
    assert b.volume_l / a.volume_l == pytest.approx(2.0)
    assert (a.ka_fast_per_h, a.ka_slow_per_h, a.fast_fraction, a.ke_per_h) == \
        (b.ka_fast_per_h, b.ka_slow_per_h, b.fast_fraction, b.ke_per_h)
    assert math.isfinite(a.volume_l)
