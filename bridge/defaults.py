"""Compiled-in defaults for the bridge.

The settings schema below is the fixed key set every settings snapshot carries.
Threshold values can be overridden at startup through
``BRIDGE_DEFAULT_THRESHOLDS``; keys cannot be added.
"""

TELEMETRY_TOPIC = "tp/esp32/telemetry"
COMMAND_TOPIC = "tp/esp32/cmd"


class SettingsDefaults:
    THRESHOLDS = {
        "lux": {"min": 500, "max": 10000},
        "soil": {"min": 30, "max": 70},
        "air": {"min": 30, "max": 70},
        "temp": {"min": 15, "max": 30},
        "pressure": {"min": 990, "max": 1030},
        "rssi": {"min": -70, "max": -50},
    }

    INDICATORS = {
        "lux": True,
        "soil": True,
        "temp": True,
        "pressure": True,
        "rssi": True,
    }

    AUTOMATIONS = {
        "led": False,
        "hum": False,
        "fan": False,
    }

    @classmethod
    def as_dict(cls) -> dict:
        return {
            "thresholds": {key: dict(pair) for key, pair in cls.THRESHOLDS.items()},
            "indicators": dict(cls.INDICATORS),
            "automations": dict(cls.AUTOMATIONS),
        }
