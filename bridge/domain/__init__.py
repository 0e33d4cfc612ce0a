"""
Domain Package
==============
Value objects and rules of the bridge: telemetry samples, the settings
snapshot with its merge rule, actuator command tokens and the exception
hierarchy.
"""

from .actuators import Device, command_token, parse_command
from .settings import Settings, Threshold, merge_settings
from .telemetry import TelemetrySample, parse_telemetry

__all__ = [
    "Device",
    "Settings",
    "TelemetrySample",
    "Threshold",
    "command_token",
    "merge_settings",
    "parse_command",
    "parse_telemetry",
]
