from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from flask_socketio import SocketIO

from bridge.config import AppConfig
from bridge.control_loops.automation_engine import AutomationEngine
from bridge.domain.settings import Settings, merge_settings
from bridge.enums.events import BridgeEvent
from bridge.hardware.mqtt.broker_link import BrokerLink
from bridge.security.session_gate import SessionGate
from bridge.services.auth_service import UserAuthManager
from bridge.services.history import TelemetryHistory
from bridge.services.ingestion import IngestionThrottle
from bridge.services.settings_store import SettingsStore
from bridge.services.socket_hub import SocketHub
from bridge.utils.emitters import EmitterService
from bridge.utils.event_bus import EventBus
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from infrastructure.logging.audit import AuditLogger
from infrastructure.storage.settings_file import JsonSettingsRepository

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage the bridge services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    audit_logger: AuditLogger
    auth_manager: UserAuthManager
    session_gate: SessionGate
    settings_store: SettingsStore
    event_bus: EventBus
    throttle: IngestionThrottle
    history: TelemetryHistory
    emitter_service: EmitterService
    socket_hub: SocketHub
    automation_engine: AutomationEngine
    broker_link: Optional[BrokerLink]

    @classmethod
    def build(cls, config: AppConfig, *, sio: SocketIO) -> "ServiceContainer":
        """Construct the service container and wire the telemetry pipeline.

        Nothing is started here; see :meth:`start`.
        """
        logger.info("Building ServiceContainer...")
        database = SQLiteDatabaseHandler(config.database_path)
        database.create_tables()
        audit_logger = AuditLogger(config.audit_log_path, level=config.log_level)

        auth_manager = UserAuthManager(database, audit_logger, token_ttl_hours=config.token_ttl_hours)
        session_gate = SessionGate(auth_manager)

        defaults = Settings.defaults()
        if config.default_thresholds:
            defaults = merge_settings(defaults, {"thresholds": config.default_thresholds})
        settings_store = SettingsStore(JsonSettingsRepository(config.settings_path), defaults=defaults)

        event_bus = EventBus(queue_size=config.eventbus_queue_size)
        broker_link: Optional[BrokerLink] = None
        if config.enable_mqtt:
            broker_link = BrokerLink(
                config.mqtt_broker_host,
                config.mqtt_broker_port,
                event_bus=event_bus,
                telemetry_topic=config.telemetry_topic,
                client_id=config.mqtt_client_id,
                username=config.mqtt_username or None,
                password=config.mqtt_password or None,
                keepalive=config.mqtt_keepalive,
                reconnect_delay=config.mqtt_reconnect_delay,
            )
        else:
            logger.info("MQTT disabled (BRIDGE_ENABLE_MQTT=false); commands will report link_down")

        emitter_service = EmitterService(sio)
        socket_hub = SocketHub(
            emitter_service,
            session_gate,
            settings_store,
            publisher=broker_link,
            command_topic=config.command_topic,
            audit_logger=audit_logger,
        )
        automation_engine = AutomationEngine(settings_store, socket_hub.issue_system_command)
        socket_hub.add_command_listener(automation_engine.note_command)

        history = TelemetryHistory(config.history_size)
        throttle = IngestionThrottle(config.telemetry_min_interval)
        # Order matters: history first so /api/history includes the sample clients just got.
        throttle.add_consumer(history.record)
        throttle.add_consumer(socket_hub.broadcast)
        throttle.add_consumer(automation_engine.evaluate)

        event_bus.subscribe(BridgeEvent.TELEMETRY_RECEIVED, throttle.offer)
        event_bus.subscribe(BridgeEvent.LINK_STATUS_CHANGED, socket_hub.broadcast_link_status)

        logger.info("ServiceContainer built successfully.")
        return cls(
            config=config,
            database=database,
            audit_logger=audit_logger,
            auth_manager=auth_manager,
            session_gate=session_gate,
            settings_store=settings_store,
            event_bus=event_bus,
            throttle=throttle,
            history=history,
            emitter_service=emitter_service,
            socket_hub=socket_hub,
            automation_engine=automation_engine,
            broker_link=broker_link,
        )

    def start(self) -> None:
        """Start the event worker, then the broker link."""
        self.event_bus.start()
        if self.broker_link is not None:
            self.broker_link.start()
        self.auth_manager.cleanup_expired_tokens()

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        if self.broker_link is not None:
            try:
                self.broker_link.stop()
            except Exception as e:
                logger.warning("Failed to stop broker link: %s", e)
        self.event_bus.stop()
        self.database.close_db()
        logger.info("ServiceContainer shutdown complete.")

    def status(self) -> dict[str, Any]:
        """Runtime snapshot for the status endpoint."""
        link = self.broker_link.health() if self.broker_link is not None else None
        return {
            "mqtt": {
                "enabled": self.broker_link is not None,
                "connected": self.socket_hub.link_connected,
                "health": link,
            },
            "throttle": self.throttle.stats(),
            "connections": self.socket_hub.connection_count,
            "actuators": self.automation_engine.snapshot(),
            "automation_commands": self.automation_engine.commands_issued,
            "history_size": len(self.history),
            "event_bus": self.event_bus.get_metrics(),
        }
