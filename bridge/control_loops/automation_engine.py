"""
AutomationEngine: threshold hysteresis for the greenhouse actuators.

Each device is bound to one sensor and one threshold pair. Inside the band
``(min, max)`` the engine makes no decision, which is what keeps a device from
toggling on every sample near a boundary. A command is only sent when the
decision differs from the last known actuator state.

Actuator state is reconciled from the echo fields of each sample before the
rules run, and updated optimistically when a command is handed to the broker.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional

from bridge.domain.actuators import Device
from bridge.domain.settings import Threshold
from bridge.domain.telemetry import TelemetrySample
from bridge.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)

CommandSink = Callable[[Device, bool], bool]


class Activation(str, Enum):
    LOW = "low"  # switch on when the reading falls to min
    HIGH = "high"  # switch on when the reading rises to max


@dataclass(frozen=True)
class AutomationRule:
    device: Device
    sensor_field: str
    threshold_key: str
    activation: Activation


DEFAULT_RULES: tuple[AutomationRule, ...] = (
    AutomationRule(Device.LIGHT, "illuminance", "lux", Activation.LOW),
    AutomationRule(Device.HUMIDIFIER, "soil_moisture", "soil", Activation.LOW),
    AutomationRule(Device.FAN, "temperature", "temp", Activation.HIGH),
)


def decide(activation: Activation, value: float, threshold: Threshold) -> Optional[bool]:
    """
    Desired actuator state for ``value``, or None inside the dead band.

    Boundaries are inclusive: a reading equal to ``min`` or ``max`` decides.
    """
    if activation is Activation.LOW:
        if value <= threshold.min:
            return True
        if value >= threshold.max:
            return False
        return None

    if value >= threshold.max:
        return True
    if value <= threshold.min:
        return False
    return None


class AutomationEngine:
    """
    Args:
        settings_store: Source of thresholds and automation flags, read per sample.
        command_sink: Sends a command; returns True when it was handed to the broker.
        rules: Device/sensor bindings.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        command_sink: CommandSink,
        rules: tuple[AutomationRule, ...] = DEFAULT_RULES,
    ):
        self._settings = settings_store
        self._command_sink = command_sink
        self._rules = rules
        self._state: dict[Device, Optional[bool]] = {device: None for device in Device}
        self._lock = threading.Lock()
        self.commands_issued = 0

    def evaluate(self, sample: TelemetrySample) -> list[tuple[Device, bool]]:
        """
        Reconcile state from ``sample`` and issue every command the rules call for.

        Returns:
            The (device, state) commands that were handed to the broker.
        """
        settings = self._settings.get()
        issued: list[tuple[Device, bool]] = []

        # Held across the publish so two samples cannot race on one device.
        with self._lock:
            self._reconcile_locked(sample.actuator_echo())

            for rule in self._rules:
                if not settings.automation_enabled(rule.device.value):
                    continue
                value = getattr(sample, rule.sensor_field)
                if value is None or not math.isfinite(value):
                    continue
                threshold = settings.thresholds.get(rule.threshold_key)
                if threshold is None:
                    continue

                desired = decide(rule.activation, value, threshold)
                if desired is None or desired == self._state[rule.device]:
                    continue

                logger.info(
                    "Automation: %s=%s against [%s, %s] -> %s %s",
                    rule.sensor_field,
                    value,
                    threshold.min,
                    threshold.max,
                    rule.device.value,
                    "ON" if desired else "OFF",
                )
                # State only moves when the broker took the command; the next sample retries otherwise.
                if self._command_sink(rule.device, desired):
                    self._state[rule.device] = desired
                    self.commands_issued += 1
                    issued.append((rule.device, desired))

        return issued

    def reconcile(self, echo: Mapping[Device, bool]) -> None:
        """Adopt actuator states reported by the device."""
        with self._lock:
            self._reconcile_locked(echo)

    def _reconcile_locked(self, echo: Mapping[Device, bool]) -> None:
        for device, state in echo.items():
            self._state[device] = state

    def note_command(self, device: Device, on: bool) -> None:
        """Record a manual command that was handed to the broker."""
        with self._lock:
            self._state[device] = on

    def state_of(self, device: Device) -> Optional[bool]:
        with self._lock:
            return self._state[device]

    def snapshot(self) -> dict[str, Optional[bool]]:
        with self._lock:
            return {device.value: state for device, state in self._state.items()}
