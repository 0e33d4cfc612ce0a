"""
Blueprint Common Utilities
==========================

Shared helper functions for the API blueprints.
"""
from __future__ import annotations

from flask import current_app, request

from bridge.domain.exceptions import ConfigurationError


def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        ConfigurationError: the app was built without a container.
    """
    container = current_app.config.get("CONTAINER")
    if container is None:
        raise ConfigurationError("Service container not available")
    return container


def get_json():
    """Parsed JSON body, or an empty dict when the body is missing or not JSON."""
    body = request.get_json(silent=True)
    return {} if body is None else body
