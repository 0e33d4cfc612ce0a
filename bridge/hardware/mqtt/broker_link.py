"""
Broker Link
===========
Owns the paho-mqtt client that talks to the greenhouse device.

The link subscribes to the telemetry topic, parses every inbound payload into
a :class:`~bridge.domain.telemetry.TelemetrySample` and posts it onto the
EventBus. It never calls into the socket layer from the paho network thread.

Connectivity transitions are posted as ``LINK_STATUS_CHANGED`` events:
``False`` as soon as the connection drops, ``True`` only once the broker has
acknowledged the telemetry subscription after a (re)connect. Reconnects use a
fixed delay handled by paho's network loop; a refused subscription is retried
on the open session after the same delay.
"""

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from logging.handlers import RotatingFileHandler

import paho.mqtt.client as mqtt

from bridge.domain.exceptions import LinkDownError, MalformedTelemetryError, PublishError
from bridge.domain.telemetry import parse_telemetry
from bridge.enums.events import BridgeEvent
from bridge.hardware.mqtt.client_factory import create_mqtt_client
from bridge.utils.event_bus import EventBus
from bridge.utils.time import utc_now

# Broker traffic goes to its own rotating file so it cannot flood the main log.
_mqtt_logger = logging.getLogger("bridge.mqtt")
if not _mqtt_logger.handlers:
    os.makedirs("logs", exist_ok=True)
    _mqtt_handler = RotatingFileHandler(
        "logs/mqtt.log",
        maxBytes=10 * 1024 * 1024,  # 10MB max per file
        backupCount=3,
        encoding="utf-8",
    )
    _mqtt_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    _mqtt_logger.addHandler(_mqtt_handler)
    _mqtt_logger.setLevel(logging.INFO)
    _mqtt_logger.propagate = False


@dataclass
class HealthStatus:
    """
    Tracks the health status of the broker connection.
    """

    is_connected: bool = False
    last_error: str | None = None
    last_error_time: datetime | None = None
    connection_attempts: int = 0
    successful_publishes: int = 0
    failed_publishes: int = 0
    messages_received: int = 0
    malformed_messages: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate publish success rate percentage"""
        total_publishes = self.successful_publishes + self.failed_publishes
        if total_publishes == 0:
            return 0.0
        return (self.successful_publishes / total_publishes) * 100

    def mark_connected(self):
        self.is_connected = True
        self.last_error = None
        self.last_error_time = None

    def mark_disconnected(self):
        self.is_connected = False

    def record_error(self, error: Exception | str):
        """Record a connection or operation error."""
        self.last_error = str(error)
        self.last_error_time = utc_now()

    def to_dict(self):
        """Return health status as a dictionary."""
        return {
            "is_connected": self.is_connected,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "connection_attempts": self.connection_attempts,
            "successful_publishes": self.successful_publishes,
            "failed_publishes": self.failed_publishes,
            "messages_received": self.messages_received,
            "malformed_messages": self.malformed_messages,
            "publish_success_rate": round(self.success_rate, 2),
        }


class BrokerLink:
    """
    Connection to the MQTT broker for a single device.

    Args:
        host: Broker host name.
        port: Broker TCP port.
        event_bus: Destination for telemetry and status events.
        telemetry_topic: Topic the device publishes telemetry on.
        client_id: MQTT client id; generated by paho when empty.
        username: Optional broker user.
        password: Optional broker password.
        keepalive: MQTT keepalive in seconds.
        reconnect_delay: Fixed delay between reconnect attempts in seconds.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        event_bus: EventBus,
        telemetry_topic: str,
        client_id: str = "",
        username: str | None = None,
        password: str | None = None,
        keepalive: int = 60,
        reconnect_delay: int = 5,
    ):
        self.host = host
        self.port = port
        self.event_bus = event_bus
        self.telemetry_topic = telemetry_topic
        self.keepalive = keepalive
        self.reconnect_delay = reconnect_delay
        self.health_status = HealthStatus()

        self._lock = threading.Lock()
        self._connected = False
        self._pending_subscribe_mid: int | None = None
        self._retry_timer: threading.Timer | None = None
        self._started = False

        self.client = create_mqtt_client(client_id, username=username, password=password)
        self.client.on_connect = self._on_connect
        self.client.on_connect_fail = self._on_connect_fail
        self.client.on_subscribe = self._on_subscribe
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message
        # Equal bounds: paho waits the same delay before every retry.
        self.client.reconnect_delay_set(min_delay=reconnect_delay, max_delay=reconnect_delay)

    @property
    def connected(self) -> bool:
        with self._lock:
            return self._connected

    def start(self) -> None:
        """Begin connecting in the background. Returns immediately."""
        with self._lock:
            if self._started:
                return
            self._started = True
        _mqtt_logger.info("Connecting to MQTT broker %s:%s", self.host, self.port)
        self.client.connect_async(self.host, self.port, self.keepalive)
        self.client.loop_start()

    def stop(self) -> None:
        """Disconnect and stop the network loop."""
        self._cancel_resubscribe()
        with self._lock:
            if not self._started:
                return
            self._started = False
        try:
            self.client.disconnect()
        except Exception as e:
            _mqtt_logger.error("Error disconnecting from MQTT broker: %s", e)
            with self._lock:
                self.health_status.record_error(e)
        self.client.loop_stop()
        self._set_connected(False)
        _mqtt_logger.info("Disconnected from MQTT broker.")

    def publish(self, topic: str, payload: str) -> None:
        """
        Hand a message to the broker client.

        Raises:
            LinkDownError: the link is not connected; nothing was sent.
            PublishError: the client refused the message while connected.
        """
        if not self.connected:
            _mqtt_logger.warning("MQTT client not connected. Cannot publish to %s.", topic)
            raise LinkDownError("Broker link is down")

        try:
            msg_info = self.client.publish(topic, payload)
        except (ValueError, OSError) as e:
            with self._lock:
                self.health_status.failed_publishes += 1
                self.health_status.record_error(e)
            _mqtt_logger.error("Error publishing to %s: %s", topic, e)
            raise PublishError(f"Publish to {topic} failed") from e

        if msg_info.rc == mqtt.MQTT_ERR_SUCCESS:
            with self._lock:
                self.health_status.successful_publishes += 1
            _mqtt_logger.info("Published to %s: %s", topic, payload)
            return

        with self._lock:
            self.health_status.failed_publishes += 1
            self.health_status.record_error(mqtt.error_string(msg_info.rc))
        _mqtt_logger.error("Failed to publish to %s: %s. MQTT result code: %s", topic, payload, msg_info.rc)
        if msg_info.rc == mqtt.MQTT_ERR_NO_CONN:
            raise LinkDownError("Broker link is down")
        raise PublishError(f"Publish to {topic} failed with code {msg_info.rc}")

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        with self._lock:
            self.health_status.connection_attempts += 1
        if reason_code.is_failure:
            with self._lock:
                self.health_status.record_error(f"connect refused: {reason_code}")
            _mqtt_logger.error("MQTT broker refused connection: %s", reason_code)
            return

        _mqtt_logger.info("Connected to MQTT broker %s:%s, subscribing to %s", self.host, self.port, self.telemetry_topic)
        self._subscribe(client)

    def _on_connect_fail(self, client, userdata) -> None:
        with self._lock:
            self.health_status.connection_attempts += 1
            self.health_status.record_error("broker unreachable")
        _mqtt_logger.warning(
            "Could not reach MQTT broker %s:%s; retrying in %ss", self.host, self.port, self.reconnect_delay
        )

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties) -> None:
        with self._lock:
            if mid != self._pending_subscribe_mid:
                return
            self._pending_subscribe_mid = None

        if any(code.is_failure for code in reason_code_list):
            with self._lock:
                self.health_status.record_error(f"subscription to {self.telemetry_topic} rejected")
            _mqtt_logger.error("Broker rejected subscription to %s: %s", self.telemetry_topic, reason_code_list)
            self._schedule_resubscribe()
            return

        _mqtt_logger.info("Subscribed to topic %s", self.telemetry_topic)
        self._set_connected(True)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._cancel_resubscribe()
        with self._lock:
            self._pending_subscribe_mid = None
        if reason_code.is_failure:
            with self._lock:
                self.health_status.record_error(f"connection lost: {reason_code}")
            _mqtt_logger.warning(
                "Lost connection to MQTT broker (%s); reconnecting in %ss", reason_code, self.reconnect_delay
            )
        self._set_connected(False)

    def _on_message(self, client, userdata, msg) -> None:
        if not mqtt.topic_matches_sub(self.telemetry_topic, msg.topic):
            _mqtt_logger.warning("MQTT message on %s has no handler", msg.topic)
            return

        try:
            sample = parse_telemetry(msg.payload)
        except MalformedTelemetryError as e:
            with self._lock:
                self.health_status.malformed_messages += 1
            _mqtt_logger.warning("Dropped malformed telemetry on %s: %s", msg.topic, e)
            return

        with self._lock:
            self.health_status.messages_received += 1
        self.event_bus.publish(BridgeEvent.TELEMETRY_RECEIVED, sample)

    # ------------------------------------------------------------------
    # Telemetry subscription
    # ------------------------------------------------------------------

    def _subscribe(self, client) -> None:
        result, mid = client.subscribe(self.telemetry_topic)
        if result != mqtt.MQTT_ERR_SUCCESS:
            with self._lock:
                self.health_status.record_error(f"subscribe failed: {mqtt.error_string(result)}")
            _mqtt_logger.error("Failed to subscribe to topic %s: result code %s", self.telemetry_topic, result)
            self._schedule_resubscribe()
            return
        with self._lock:
            self._pending_subscribe_mid = mid

    def _schedule_resubscribe(self) -> None:
        """Retry the subscription after ``reconnect_delay``; the session itself stays open."""
        timer = threading.Timer(self.reconnect_delay, self._retry_subscribe)
        timer.daemon = True
        with self._lock:
            if self._retry_timer is not None:
                return
            self._retry_timer = timer
        _mqtt_logger.warning("Retrying subscription to %s in %ss", self.telemetry_topic, self.reconnect_delay)
        timer.start()

    def _retry_subscribe(self) -> None:
        with self._lock:
            self._retry_timer = None
            if not self._started or self._connected or self._pending_subscribe_mid is not None:
                return
        self._subscribe(self.client)

    def _cancel_resubscribe(self) -> None:
        with self._lock:
            timer, self._retry_timer = self._retry_timer, None
        if timer is not None:
            timer.cancel()

    def _set_connected(self, connected: bool) -> None:
        with self._lock:
            if self._connected == connected:
                return
            self._connected = connected
            if connected:
                self.health_status.mark_connected()
            else:
                self.health_status.mark_disconnected()
        _mqtt_logger.info("Broker link is %s", "up" if connected else "down")
        self.event_bus.publish(BridgeEvent.LINK_STATUS_CHANGED, connected)

    def health(self) -> dict:
        with self._lock:
            return self.health_status.to_dict()
