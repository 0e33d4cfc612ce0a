"""Flask Extension Instances and Initialisation."""

import logging

from flask import Flask
from flask_socketio import SocketIO

logger = logging.getLogger(__name__)

# Using threading mode: paho's network thread and Flask's request threads share one process.
socketio = SocketIO(
    async_mode="threading",
    cors_allowed_origins=[],
    logger=False,
    engineio_logger=False,
    ping_timeout=60,
    ping_interval=25,
    # Send the CONNECT ack before our connect handler emits mqtt_status.
    always_connect=True,
)


def init_extensions(app: Flask, cors_origins: str) -> None:
    """Initialise Flask extension objects."""
    origins = cors_origins if isinstance(cors_origins, str) else "*"
    if origins != "*" and "," in origins:
        origins = [origin.strip() for origin in origins.split(",") if origin.strip()]

    try:
        logging.getLogger("engineio").setLevel(logging.WARNING)
        socketio.init_app(app, cors_allowed_origins=origins, logger=False, engineio_logger=False)
        logger.info("Socket.IO initialized with CORS origins: %s", origins)
    except Exception as e:
        logger.error("Failed to initialize Socket.IO: %s", e, exc_info=True)
        raise
