"""
Telemetry Sample
================
One immutable reading frame pushed by the device on the telemetry topic.

The device speaks French field names (``luminosite``, ``humidite_sol`` ...).
They are kept as aliases so the broadcast payload is byte-compatible with the
existing front end, while Python code uses the English attribute names.
"""

from __future__ import annotations

import json
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from bridge.domain.actuators import Device
from bridge.domain.exceptions import MalformedTelemetryError
from bridge.utils.time import iso_now

NUMERIC_FIELDS = (
    "illuminance",
    "soil_moisture",
    "air_humidity",
    "temperature",
    "pressure",
    "signal_strength",
)


class TelemetrySample(BaseModel):
    """Validated device telemetry. Numeric fields are strict: no strings, no booleans."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", strict=True)

    illuminance: float | None = Field(default=None, alias="luminosite")
    soil_moisture: float | None = Field(default=None, alias="humidite_sol")
    air_humidity: float | None = Field(default=None, alias="humidite_air")
    temperature: float | None = None
    pressure: float | None = None
    signal_strength: float | None = Field(default=None, alias="rssi")

    light_on: bool | None = Field(default=None, alias="led_on")
    fan_on: bool | None = None
    humidifier_on: bool | None = None
    water_full: bool | None = None

    timestamp: str = Field(default_factory=iso_now)

    @field_validator(*NUMERIC_FIELDS)
    @classmethod
    def _drop_non_finite(cls, value: float | None) -> float | None:
        # NaN/inf from a failed sensor read is treated as "no reading".
        if value is not None and not math.isfinite(value):
            return None
        return value

    @model_validator(mode="after")
    def _require_a_reading(self) -> "TelemetrySample":
        if all(getattr(self, name) is None for name in NUMERIC_FIELDS):
            raise ValueError("telemetry carries no numeric sensor reading")
        return self

    def actuator_echo(self) -> dict[Device, bool]:
        """Actuator states reported by the device in this frame."""
        echo = {
            Device.LIGHT: self.light_on,
            Device.HUMIDIFIER: self.humidifier_on,
            Device.FAN: self.fan_on,
        }
        return {device: state for device, state in echo.items() if state is not None}

    def to_wire(self) -> dict[str, Any]:
        """Payload for the ``telemetry`` Socket.IO event (device field names)."""
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_telemetry(payload: bytes | str) -> TelemetrySample:
    """
    Decode a raw MQTT payload into a TelemetrySample stamped with the receipt time.

    Raises:
        MalformedTelemetryError: not UTF-8 JSON, not an object, wrongly typed
            fields, or no numeric reading at all.
    """
    try:
        text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        raw = json.loads(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedTelemetryError(f"Telemetry is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise MalformedTelemetryError(f"Telemetry must be a JSON object, got {type(raw).__name__}")

    # The receipt time is authoritative; a device clock is not trusted.
    raw.pop("timestamp", None)
    try:
        return TelemetrySample.model_validate(raw)
    except PydanticValidationError as exc:
        raise MalformedTelemetryError(f"Telemetry rejected: {exc.error_count()} invalid field(s)") from exc
