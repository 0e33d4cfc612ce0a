"""
Socket Hub
==========
Live Socket.IO connections of the bridge and everything sent to them.

Each connection starts ``UNAUTHENTICATED`` and becomes ``AUTHENTICATED`` after
the Session Gate accepts its credential. There is no way back short of a new
connection; a failed re-auth leaves an authenticated connection as it was.
Closing a connection releases its slot and nothing is delivered to it after.

Telemetry and link status go to every connection. Command acknowledgements
go to the originating connection only. Actuator commands are only published
for authenticated connections; an unauthenticated ``cmd`` never reaches the
broker.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Protocol

from bridge.domain.actuators import Device, command_token, parse_command
from bridge.domain.exceptions import (
    DeviceError,
    IdentityBackendError,
    InvalidCredentialError,
    LinkDownError,
    PublishError,
    ValidationError,
)
from bridge.domain.settings import Settings
from bridge.domain.telemetry import TelemetrySample
from bridge.enums.events import ConnectionState, WebSocketEvent
from bridge.schemas.socket import AuthErrorPayload, AuthSuccessPayload, CommandAck, LinkStatusPayload
from bridge.security.session_gate import Identity, SessionGate
from bridge.services.settings_store import SettingsStore
from bridge.utils.emitters import EmitterService
from bridge.utils.time import utc_now
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)

CommandListener = Callable[[Device, bool], None]


class CommandPublisher(Protocol):
    def publish(self, topic: str, payload: str) -> None: ...


@dataclass
class ClientConnection:
    sid: str
    state: ConnectionState = ConnectionState.UNAUTHENTICATED
    identity: Optional[Identity] = None
    connected_at: datetime = field(default_factory=utc_now)

    @property
    def authenticated(self) -> bool:
        return self.state is ConnectionState.AUTHENTICATED


class SocketHub:
    def __init__(
        self,
        emitter: EmitterService,
        gate: SessionGate,
        settings_store: SettingsStore,
        *,
        publisher: Optional[CommandPublisher],
        command_topic: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.emitter = emitter
        self.gate = gate
        self.settings_store = settings_store
        self.publisher = publisher
        self.command_topic = command_topic
        self.audit_logger = audit_logger
        self._connections: dict[str, ClientConnection] = {}
        self._lock = threading.Lock()
        self._link_connected = False
        # Orders the initial status of a new connection against status broadcasts.
        self._status_lock = threading.Lock()
        self._command_listeners: list[CommandListener] = []

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, sid: str) -> bool:
        """
        Register a new connection and send it the current link status.

        Returns:
            The link status that was sent.
        """
        with self._status_lock:
            with self._lock:
                self._connections[sid] = ClientConnection(sid=sid)
                link_connected = self._link_connected
                count = len(self._connections)
            self._emit_to(sid, WebSocketEvent.MQTT_STATUS, LinkStatusPayload(connected=link_connected))
        logger.info("Client %s connected (%s live)", sid, count)
        return link_connected

    def disconnect(self, sid: str) -> None:
        with self._lock:
            connection = self._connections.pop(sid, None)
        if connection is not None:
            connection.state = ConnectionState.CLOSED
            logger.info("Client %s disconnected", sid)

    def get_connection(self, sid: str) -> Optional[ClientConnection]:
        with self._lock:
            return self._connections.get(sid)

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    @property
    def link_connected(self) -> bool:
        with self._lock:
            return self._link_connected

    def add_command_listener(self, listener: CommandListener) -> None:
        """Called with (device, state) after a manual command reached the broker."""
        self._command_listeners.append(listener)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self, sid: str, credential: object) -> bool:
        """
        Validate ``credential`` for connection ``sid`` and answer it.

        Emits ``auth_success`` or ``auth_error`` to that connection only.
        """
        if self.get_connection(sid) is None:
            logger.debug("Ignoring auth from unknown or closed connection %s", sid)
            return False

        try:
            identity = self.gate.validate(credential)
        except InvalidCredentialError as exc:
            logger.info("Authentication rejected for %s: %s", sid, exc)
            self._emit_to(sid, WebSocketEvent.AUTH_ERROR, AuthErrorPayload(message="Invalid or expired token"))
            return False
        except IdentityBackendError as exc:
            logger.error("Authentication unavailable for %s: %s", sid, exc)
            self._emit_to(
                sid, WebSocketEvent.AUTH_ERROR, AuthErrorPayload(message="Authentication is temporarily unavailable")
            )
            return False

        with self._lock:
            connection = self._connections.get(sid)
            if connection is None:
                return False
            connection.state = ConnectionState.AUTHENTICATED
            connection.identity = identity
        logger.info("Client %s authenticated as '%s'", sid, identity.username)
        self._emit_to(sid, WebSocketEvent.AUTH_SUCCESS, AuthSuccessPayload(username=identity.username))
        return True

    # ------------------------------------------------------------------
    # Broadcasts
    # ------------------------------------------------------------------

    def broadcast(self, sample: TelemetrySample) -> None:
        """Send an admitted sample to every live connection."""
        if self.connection_count == 0:
            return
        self.emitter.emit(WebSocketEvent.TELEMETRY.value, sample.to_wire())

    def broadcast_link_status(self, connected: bool) -> None:
        logger.info("Broker link status -> %s", "connected" if connected else "disconnected")
        with self._status_lock:
            with self._lock:
                self._link_connected = connected
            self.emitter.emit(WebSocketEvent.MQTT_STATUS.value, LinkStatusPayload(connected=connected).model_dump())

    def broadcast_settings(self, settings: Settings) -> None:
        self.emitter.emit(WebSocketEvent.SETTINGS_UPDATED.value, settings.to_dict())

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def handle_command(self, sid: str, cmd: object) -> CommandAck:
        """
        Route a manual ``cmd`` from connection ``sid`` to the device.

        The acknowledgement is emitted to ``sid`` and returned.
        """
        ack = self._route_command(sid, cmd)
        self._emit_to(sid, WebSocketEvent.CMD_ACK, ack)
        return ack

    def _route_command(self, sid: str, cmd: object) -> CommandAck:
        cmd_text = cmd if isinstance(cmd, str) else str(cmd)

        connection = self.get_connection(sid)
        if connection is None or not connection.authenticated:
            logger.warning("Command %r from unauthenticated client %s refused", cmd_text, sid)
            return CommandAck.error(cmd_text, "unauthenticated", "Authentication required")

        try:
            device, on = parse_command(cmd)
        except ValidationError as exc:
            return CommandAck.error(cmd_text, "invalid_command", str(exc))

        if self.settings_store.get().automation_enabled(device.value):
            return CommandAck.error(
                cmd_text, "automation_active", f"Automation is enabled for {device.value}; disable it first"
            )

        username = connection.identity.username if connection.identity else "unknown"
        token = command_token(device, on)
        try:
            self._publish(token)
        except LinkDownError:
            self._audit(username, token, "link_down")
            return CommandAck.error(cmd_text, "link_down", "MQTT broker not connected")
        except PublishError:
            self._audit(username, token, "publish_failed")
            return CommandAck.error(cmd_text, "publish_failed", "Command could not be published")

        logger.info("Command %s sent for '%s'", token, username)
        self._audit(username, token, "sent")
        for listener in list(self._command_listeners):
            listener(device, on)
        return CommandAck.sent(cmd_text)

    def issue_system_command(self, device: Device, on: bool) -> bool:
        """
        Publish a command decided by the automation engine.

        Returns:
            True when the command was handed to the broker.
        """
        token = command_token(device, on)
        try:
            self._publish(token)
        except DeviceError as exc:
            logger.warning("Automation command %s not sent: %s", token, exc)
            self._audit("automation", token, "error", error=str(exc))
            return False

        self._audit("automation", token, "sent")
        self.emitter.emit(WebSocketEvent.AUTOMATION_CMD.value, CommandAck.sent(token).to_wire())
        return True

    def _publish(self, token: str) -> None:
        if self.publisher is None:
            raise LinkDownError("Broker link is disabled")
        self.publisher.publish(self.command_topic, token)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit_to(self, sid: str, event: WebSocketEvent, payload) -> None:
        # A connection closed in the meantime gets nothing.
        if self.get_connection(sid) is None:
            return
        data = payload.to_wire() if isinstance(payload, CommandAck) else payload.model_dump()
        self.emitter.emit(event.value, data, to=sid)

    def _audit(self, actor: str, token: str, outcome: str, **metadata) -> None:
        if self.audit_logger:
            self.audit_logger.log_event(actor=actor, action="command", resource=token, outcome=outcome, **metadata)
