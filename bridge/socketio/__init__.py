"""
Socket.IO Event Handlers
========================

Handlers for the default namespace used by the front end:

- connect     (optional ``auth={"token": ...}``) -> mqtt_status
- auth        credential string or {"token": ...} -> auth_success / auth_error
- cmd         actuator token -> cmd_ack (originating client only)
- disconnect

Usage:
    Call once per application, after socketio.init_app():

    from bridge.socketio import register_handlers
    register_handlers(socketio)
"""

import logging

from flask_socketio import SocketIO

logger = logging.getLogger(__name__)


def register_handlers(sio: SocketIO) -> None:
    """
    Register all Socket.IO event handlers on ``sio``.

    ``init_app`` replaces the underlying server, so this must run after it
    for every application built.
    """
    from .bridge_handlers import register

    register(sio)
    logger.info("Socket.IO handlers registered")
