"""
Enums Module
============

Enumeration types for event topics and Socket.IO event names.
"""

from bridge.enums.events import BridgeEvent, ConnectionState, WebSocketEvent

__all__ = ["BridgeEvent", "ConnectionState", "WebSocketEvent"]
