"""
WebSocket Emitters
==================

Thin wrapper over the Socket.IO server so services never import the
Flask-SocketIO global directly and tests can substitute a fake.
"""

import logging
from typing import Any

from flask_socketio import SocketIO

logger = logging.getLogger("emitters")

SOCKETIO_NAMESPACE_DEFAULT = "/"


class EmitterService:
    """
    Centralized WebSocket Emitter Service.

    Attributes:
        sio: The Socket.IO SocketIO instance for emitting events.
    """

    def __init__(self, sio: SocketIO, namespace: str = SOCKETIO_NAMESPACE_DEFAULT):
        self.sio = sio
        self.namespace = namespace

    def emit(self, event: str, payload: Any, to: str | None = None) -> bool:
        """
        Emit a Socket.IO event.

        Args:
            event: Event name (e.g., "telemetry").
            payload: JSON serializable data to send.
            to: Target sid or room. Broadcasts to every client if None.

        Returns:
            False when the Socket.IO server raised; the failure is logged.
        """
        try:
            logger.debug("Emitting event='%s' to='%s'", event, to or "broadcast")
            self.sio.emit(event, payload, to=to, namespace=self.namespace)
            return True
        except Exception as e:
            logger.exception("[Emitter] Failed to emit event '%s' to '%s': %s", event, to, e)
            return False
