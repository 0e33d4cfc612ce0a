"""
Settings Value Object
=====================
Immutable snapshot of the operator-tunable configuration: per-sensor alert
thresholds, indicator visibility and per-device automation toggles.

The key set is fixed by :class:`bridge.defaults.SettingsDefaults`. A snapshot is
never edited in place; :func:`merge_settings` builds a new one, field by field,
keeping the prior value wherever the incoming candidate is not well-typed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from bridge.defaults import SettingsDefaults


def is_finite_number(value: Any) -> bool:
    """True for real ints/floats that are finite. Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


@dataclass(frozen=True)
class Threshold:
    """Lower/upper bound pair for one sensor."""

    min: float
    max: float

    def to_dict(self) -> dict[str, float]:
        return {"min": self.min, "max": self.max}


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings snapshot.

    Attributes:
        thresholds: sensor key -> Threshold
        indicators: sensor key -> whether the front end shows the indicator
        automations: device key -> whether the automation engine drives it
    """

    thresholds: Mapping[str, Threshold]
    indicators: Mapping[str, bool]
    automations: Mapping[str, bool]

    def __post_init__(self) -> None:
        # Read-only views so a shared snapshot cannot be mutated by a reader.
        object.__setattr__(self, "thresholds", MappingProxyType(dict(self.thresholds)))
        object.__setattr__(self, "indicators", MappingProxyType(dict(self.indicators)))
        object.__setattr__(self, "automations", MappingProxyType(dict(self.automations)))

    @classmethod
    def defaults(cls) -> "Settings":
        data = SettingsDefaults.as_dict()
        return cls(
            thresholds={key: Threshold(**pair) for key, pair in data["thresholds"].items()},
            indicators=data["indicators"],
            automations=data["automations"],
        )

    def automation_enabled(self, device_key: str) -> bool:
        return bool(self.automations.get(device_key, False))

    def to_dict(self) -> dict[str, Any]:
        return {
            "thresholds": {key: threshold.to_dict() for key, threshold in self.thresholds.items()},
            "indicators": dict(self.indicators),
            "automations": dict(self.automations),
        }


def _merge_flags(current: Mapping[str, bool], incoming: Any) -> dict[str, bool]:
    candidates = _as_mapping(incoming)
    merged = {}
    for key, value in current.items():
        candidate = candidates.get(key)
        merged[key] = candidate if isinstance(candidate, bool) else value
    return merged


def merge_settings(base: Settings, partial: Any) -> Settings:
    """
    Merge a partial settings document into ``base`` and return the new snapshot.

    Every key of ``base`` is carried over. A threshold ``min`` or ``max`` is
    replaced only by a finite number; an indicator or automation flag only by a
    real boolean. Unknown keys and malformed containers are ignored, so this
    never raises for any JSON-like input.
    """
    incoming = _as_mapping(partial)
    incoming_thresholds = _as_mapping(incoming.get("thresholds"))

    thresholds = {}
    for key, current in base.thresholds.items():
        candidate = _as_mapping(incoming_thresholds.get(key))
        low = candidate.get("min")
        high = candidate.get("max")
        thresholds[key] = Threshold(
            min=low if is_finite_number(low) else current.min,
            max=high if is_finite_number(high) else current.max,
        )

    return Settings(
        thresholds=thresholds,
        indicators=_merge_flags(base.indicators, incoming.get("indicators")),
        automations=_merge_flags(base.automations, incoming.get("automations")),
    )
