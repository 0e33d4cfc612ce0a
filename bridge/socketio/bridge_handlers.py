"""bridge.socketio.bridge_handlers

Thin Socket.IO adapters over the SocketHub held by the service container.
All connection state lives in the hub; handlers only pull ``request.sid``
and the raw payload.
"""

import logging

from flask import current_app, request
from flask_socketio import SocketIO

from bridge.enums.events import WebSocketEvent

logger = logging.getLogger(__name__)


def _hub():
    return current_app.config["CONTAINER"].socket_hub


def _credential_from(data):
    """Accept a bare token string or ``{"token": ...}``."""
    if isinstance(data, dict):
        return data.get("token")
    return data


def handle_connect(auth=None):
    # The hub sends mqtt_status to the new client itself.
    hub = _hub()
    hub.connect(request.sid)

    credential = _credential_from(auth) if auth else None
    if credential is not None:
        hub.authenticate(request.sid, credential)


def handle_auth(data=None):
    _hub().authenticate(request.sid, _credential_from(data))


def handle_cmd(data=None):
    _hub().handle_command(request.sid, data)


def handle_disconnect(reason=None):
    logger.debug("Client %s disconnecting (%s)", request.sid, reason)
    _hub().disconnect(request.sid)


def register(sio: SocketIO) -> None:
    """Attach the handlers to the server built by the latest ``init_app``."""
    sio.on_event("connect", handle_connect)
    sio.on_event(WebSocketEvent.AUTH.value, handle_auth)
    sio.on_event(WebSocketEvent.CMD.value, handle_cmd)
    sio.on_event("disconnect", handle_disconnect)
