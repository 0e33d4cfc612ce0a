"""
Actuator devices and their command tokens.

The device understands plain-text tokens of the form ``<PREFIX>_ON`` /
``<PREFIX>_OFF`` on the command topic. Device keys match the ``automations``
section of the settings snapshot.
"""

from __future__ import annotations

from enum import Enum

from bridge.domain.exceptions import ValidationError


class Device(str, Enum):
    LIGHT = "led"
    HUMIDIFIER = "hum"
    FAN = "fan"

    @property
    def command_prefix(self) -> str:
        return self.value.upper()


_BY_PREFIX = {device.command_prefix: device for device in Device}


def command_token(device: Device, on: bool) -> str:
    """Build the wire token for switching ``device`` on or off."""
    return f"{device.command_prefix}_{'ON' if on else 'OFF'}"


def parse_command(token: object) -> tuple[Device, bool]:
    """
    Split a command token into (device, desired state).

    Raises:
        ValidationError: token is not a string of a known device and ON/OFF.
    """
    if not isinstance(token, str):
        raise ValidationError("Command must be a string")

    prefix, sep, action = token.strip().upper().rpartition("_")
    device = _BY_PREFIX.get(prefix)
    if not sep or device is None or action not in ("ON", "OFF"):
        raise ValidationError(f"Unknown command '{token}'")
    return device, action == "ON"
