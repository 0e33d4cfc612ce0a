"""
Helpers for constructing paho-mqtt 2.x clients.

The bridge uses the VERSION2 callback API: ``on_connect``, ``on_subscribe``
and ``on_disconnect`` receive ``ReasonCode`` objects and MQTT properties.
"""
from __future__ import annotations

from typing import Any, Dict

import paho.mqtt.client as mqtt


def create_mqtt_client(
    client_id: str = "",
    *,
    username: str | None = None,
    password: str | None = None,
    **kwargs: Any,
) -> mqtt.Client:
    """
    Build an MQTT client with the VERSION2 callback API.

    Args:
        client_id: Optional client identifier; paho generates one when empty.
        username: Broker user. Credentials are only set when this is non-empty.
        password: Broker password.
        kwargs: Extra keyword arguments forwarded to the client constructor.
    """
    client_kwargs: Dict[str, Any] = {
        "callback_api_version": mqtt.CallbackAPIVersion.VERSION2,
        "client_id": client_id or "",
        # Keep MQTT v3.1.1 protocol by default for broker compatibility.
        "protocol": kwargs.pop("protocol", mqtt.MQTTv311),
    }
    client_kwargs.update(kwargs)

    client = mqtt.Client(**client_kwargs)
    if username:
        client.username_pw_set(username, password or None)
    return client
