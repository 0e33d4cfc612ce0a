from __future__ import annotations

import atexit
import contextlib
import logging
import signal
import threading
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from bridge.blueprints.api import auth_api, settings_api, status_api
from bridge.config import load_config, setup_logging
from bridge import extensions

__all__ = ["create_app"]


def create_app(config_overrides: dict[str, Any] | None = None, *, start_runtime: bool = False) -> Flask:
    """
    Build the bridge application.

    Args:
        config_overrides: AppConfig attribute values that win over the environment.
        start_runtime: Start the event worker and the broker link. Tests leave this off
            and drive the pipeline by hand.
    """
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key if hasattr(config, key) else key.lower(), value)

    # Configure logging early so broker connect attempts are visible in the terminal and bridge.log.
    setup_logging(debug=config.DEBUG, level=config.log_level)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())
    flask_app.config["MAX_CONTENT_LENGTH"] = 64 * 1024

    # Socket.IO before the container: EmitterService wraps it.
    extensions.init_extensions(flask_app, config.socketio_cors_origins)
    sio = extensions.socketio

    from bridge.services.container import ServiceContainer

    container = ServiceContainer.build(config, sio=sio)
    flask_app.config["CONTAINER"] = container
    flask_app.teardown_appcontext(container.database.close_db)

    # Global JSON error handler; domain exceptions carry their own ``http_status``.
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        from bridge.domain.exceptions import BridgeError
        from bridge.utils.http import bridge_error_response, error_response, safe_error

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, BridgeError):
            return bridge_error_response(exc)

        return safe_error(exc, 500, context=f"unhandled on {request.path}")

    flask_app.register_blueprint(auth_api, url_prefix="/api")
    flask_app.register_blueprint(settings_api, url_prefix="/api/settings")
    flask_app.register_blueprint(status_api, url_prefix="/api")

    # init_app above built a fresh server; attach the handlers to it.
    from bridge.socketio import register_handlers

    register_handlers(sio)

    for bp_name in flask_app.blueprints:
        logging.info("Registered blueprint: %s", bp_name)

    if start_runtime:
        _start_runtime(container)
    else:
        logging.info("Skipping broker link startup (start_runtime=False)")

    logging.getLogger(__name__).info("Bridge application initialized successfully.")
    return flask_app


def _start_runtime(container) -> None:
    """Start the pipeline and make sure it is torn down once on exit."""
    _shutdown_lock = threading.Lock()
    _shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal _shutdown_done
        with _shutdown_lock:
            if _shutdown_done:
                return
            _shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during graceful shutdown: %s", exc)

    def _signal_handler(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logging.info("Received %s, shutting down", sig_name)
        _graceful_shutdown(sig_name)
        raise SystemExit(0)

    atexit.register(_graceful_shutdown, "atexit")
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(OSError, ValueError):
            signal.signal(sig, _signal_handler)

    container.start()
