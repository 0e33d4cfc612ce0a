"""
Configuration for the greenhouse bridge
=======================================
Runtime settings loaded from ``BRIDGE_*`` environment variables, plus the
logging setup shared by the server entry points.
"""

import json
import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from bridge.defaults import COMMAND_TOPIC, TELEMETRY_TOPIC


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


def _env_json(name: str) -> dict[str, Any]:
    value = os.getenv(name)
    if not value:
        return {}
    try:
        parsed = json.loads(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a JSON object.") from None
    if not isinstance(parsed, dict):
        raise ValueError(f"Environment variable {name} must be a JSON object.")
    return parsed


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("BRIDGE_ENV", "development"))
    secret_key: str = field(default_factory=lambda: os.getenv("BRIDGE_SECRET_KEY", "BridgeDevSecretKey"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("BRIDGE_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("BRIDGE_LOG_LEVEL", "INFO"))
    audit_log_path: str = field(default_factory=lambda: os.getenv("BRIDGE_AUDIT_LOG_PATH", "logs/audit.log"))

    host: str = field(default_factory=lambda: os.getenv("BRIDGE_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("BRIDGE_PORT", 3000))
    socketio_cors_origins: str = field(default_factory=lambda: os.getenv("BRIDGE_SOCKETIO_CORS", "*"))

    # Broker link
    enable_mqtt: bool = field(default_factory=lambda: _env_bool("BRIDGE_ENABLE_MQTT", True))
    mqtt_broker_host: str = field(default_factory=lambda: os.getenv("BRIDGE_MQTT_HOST", "localhost"))
    mqtt_broker_port: int = field(default_factory=lambda: _env_int("BRIDGE_MQTT_PORT", 1883))
    mqtt_username: str = field(default_factory=lambda: os.getenv("BRIDGE_MQTT_USERNAME", ""))
    mqtt_password: str = field(default_factory=lambda: os.getenv("BRIDGE_MQTT_PASSWORD", ""))
    mqtt_client_id: str = field(default_factory=lambda: os.getenv("BRIDGE_MQTT_CLIENT_ID", ""))
    mqtt_keepalive: int = field(default_factory=lambda: _env_int("BRIDGE_MQTT_KEEPALIVE", 60))
    # Fixed delay between reconnect attempts (seconds); no backoff growth.
    mqtt_reconnect_delay: int = field(default_factory=lambda: _env_int("BRIDGE_MQTT_RECONNECT_DELAY", 5))
    telemetry_topic: str = field(default_factory=lambda: os.getenv("BRIDGE_TELEMETRY_TOPIC", TELEMETRY_TOPIC))
    command_topic: str = field(default_factory=lambda: os.getenv("BRIDGE_COMMAND_TOPIC", COMMAND_TOPIC))

    # Ingestion
    telemetry_min_interval: float = field(default_factory=lambda: _env_float("BRIDGE_TELEMETRY_MIN_INTERVAL", 5.0))
    history_size: int = field(default_factory=lambda: _env_int("BRIDGE_HISTORY_SIZE", 100))
    eventbus_queue_size: int = field(default_factory=lambda: _env_int("BRIDGE_EVENTBUS_QUEUE_SIZE", 1024))

    # Settings persistence
    settings_path: str = field(default_factory=lambda: os.getenv("BRIDGE_SETTINGS_PATH", "var/settings.json"))
    default_thresholds: dict[str, Any] = field(default_factory=lambda: _env_json("BRIDGE_DEFAULT_THRESHOLDS"))

    # Identity
    database_path: str = field(default_factory=lambda: os.getenv("BRIDGE_DATABASE_PATH", "database/bridge.db"))
    token_ttl_hours: int = field(default_factory=lambda: _env_int("BRIDGE_TOKEN_TTL_HOURS", 24))

    # Default insecure secret key - used only for detection
    _DEFAULT_SECRET_KEY: str = field(default="BridgeDevSecretKey", init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.environment == "production" and self.secret_key == self._DEFAULT_SECRET_KEY:
            raise RuntimeError(
                "SECURITY ERROR: Cannot use default secret key in production!\n"
                "Set BRIDGE_SECRET_KEY environment variable to a secure random value.\n"
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        if self.telemetry_min_interval < 0:
            raise ValueError("BRIDGE_TELEMETRY_MIN_INTERVAL must not be negative.")
        if self.mqtt_reconnect_delay < 1:
            raise ValueError("BRIDGE_MQTT_RECONNECT_DELAY must be at least one second.")

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "SECRET_KEY": self.secret_key,
            "DEBUG": self.DEBUG,
            "DATABASE_PATH": self.database_path,
            "MQTT_BROKER_HOST": self.mqtt_broker_host,
            "MQTT_BROKER_PORT": self.mqtt_broker_port,
            "SOCKETIO_CORS_ALLOWED_ORIGINS": self.socketio_cors_origins,
            "AUDIT_LOG_PATH": self.audit_log_path,
        }


def load_config() -> AppConfig:
    """Build an AppConfig from the current environment."""
    return AppConfig()


def setup_logging(debug: bool = False, level: str | None = None) -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName((level or "INFO").upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(log_level)

    # create_app may run several times in one process (tests); never duplicate handlers
    has_console = any(getattr(h, "name", "") == "bridge_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "bridge_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "bridge_console"
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file:
        os.makedirs("logs", exist_ok=True)
        file_handler = RotatingFileHandler(
            "logs/bridge.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "bridge_file"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"bridge_console", "bridge_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("BRIDGE_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    # Engine.IO polling logs every few seconds per client
    if _env_bool("BRIDGE_SILENCE_SOCKETIO", True):
        logging.getLogger("socketio").setLevel(logging.WARNING)
        logging.getLogger("engineio").setLevel(logging.WARNING)
