"""
Control Loops Package
=====================

Server-side automation: one engine decides actuator transitions from admitted
telemetry and the thresholds in the settings snapshot.

    IngestionThrottle (admitted sample)
         │
         ▼
    AutomationEngine ── hysteresis per device ──► SocketHub.issue_system_command
"""

from bridge.control_loops.automation_engine import (
    DEFAULT_RULES,
    Activation,
    AutomationEngine,
    AutomationRule,
    decide,
)

__all__ = [
    "DEFAULT_RULES",
    "Activation",
    "AutomationEngine",
    "AutomationRule",
    "decide",
]
