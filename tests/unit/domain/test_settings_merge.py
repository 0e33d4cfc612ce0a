import math

import pytest

from bridge.defaults import SettingsDefaults
from bridge.domain.settings import Settings, Threshold, merge_settings


def _key_set(settings: Settings) -> dict:
    data = settings.to_dict()
    return {section: sorted(values) for section, values in data.items()}


def test_defaults_match_schema():
    settings = Settings.defaults()

    assert settings.thresholds["soil"] == Threshold(min=30, max=70)
    assert settings.thresholds["rssi"] == Threshold(min=-70, max=-50)
    assert dict(settings.indicators) == SettingsDefaults.INDICATORS
    assert dict(settings.automations) == {"led": False, "hum": False, "fan": False}


def test_invalid_min_keeps_old_value_and_valid_max_is_taken():
    base = Settings.defaults()

    merged = merge_settings(base, {"thresholds": {"lux": {"min": "abc", "max": 900}}})

    assert merged.thresholds["lux"].min == base.thresholds["lux"].min
    assert merged.thresholds["lux"].max == 900


@pytest.mark.parametrize(
    "candidate",
    ["45", True, None, float("nan"), float("inf"), [45], {"v": 45}],
)
def test_threshold_values_must_be_finite_numbers(candidate):
    base = Settings.defaults()

    merged = merge_settings(base, {"thresholds": {"soil": {"min": candidate}}})

    assert merged.thresholds["soil"].min == 30


def test_flags_must_be_strict_booleans():
    base = Settings.defaults()

    merged = merge_settings(
        base,
        {
            "indicators": {"lux": False, "soil": 0, "temp": "false"},
            "automations": {"hum": True, "fan": 1, "led": "true"},
        },
    )

    assert merged.indicators["lux"] is False
    assert merged.indicators["soil"] is True
    assert merged.indicators["temp"] is True
    assert merged.automations["hum"] is True
    assert merged.automations["fan"] is False
    assert merged.automations["led"] is False


@pytest.mark.parametrize(
    "partial",
    [
        None,
        [],
        "thresholds",
        42,
        {"thresholds": "oops"},
        {"thresholds": {"lux": None, "soil": [1, 2]}},
        {"indicators": [True], "automations": None},
        {"unknown": {"x": 1}, "thresholds": {"co2": {"min": 1, "max": 2}}},
    ],
)
def test_merge_never_raises_and_keeps_key_set(partial):
    base = Settings.defaults()

    merged = merge_settings(base, partial)

    assert _key_set(merged) == _key_set(base)
    assert merged.to_dict() == base.to_dict()


def test_merge_is_idempotent():
    base = Settings.defaults()
    partial = {
        "thresholds": {"temp": {"min": 18.5, "max": 27}, "lux": {"max": "x"}},
        "automations": {"fan": True},
    }

    once = merge_settings(base, partial)
    twice = merge_settings(once, partial)

    assert once.to_dict() == twice.to_dict()


def test_merge_returns_new_snapshot():
    base = Settings.defaults()

    merged = merge_settings(base, {"automations": {"led": True}})

    assert base.automations["led"] is False
    assert merged.automations["led"] is True
    with pytest.raises(TypeError):
        merged.automations["led"] = False


def test_float_thresholds_are_kept_as_given():
    merged = merge_settings(Settings.defaults(), {"thresholds": {"pressure": {"min": 995.5, "max": 1025.25}}})

    assert math.isclose(merged.thresholds["pressure"].min, 995.5)
    assert math.isclose(merged.thresholds["pressure"].max, 1025.25)
