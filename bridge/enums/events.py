from enum import Enum


class BridgeEvent(str, Enum):
    """Internal event-bus topics between the broker link and the core."""

    TELEMETRY_RECEIVED = "telemetry_received"
    LINK_STATUS_CHANGED = "link_status_changed"


class WebSocketEvent(str, Enum):
    """Socket.IO event names exchanged with front-end clients."""

    # server -> client
    TELEMETRY = "telemetry"
    MQTT_STATUS = "mqtt_status"
    AUTH_SUCCESS = "auth_success"
    AUTH_ERROR = "auth_error"
    CMD_ACK = "cmd_ack"
    AUTOMATION_CMD = "automation_cmd"
    SETTINGS_UPDATED = "settings_updated"

    # client -> server
    AUTH = "auth"
    CMD = "cmd"


class ConnectionState(str, Enum):
    """Lifecycle of one Socket.IO connection."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"
