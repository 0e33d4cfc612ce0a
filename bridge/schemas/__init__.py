"""
Schemas
=======

Pydantic models for Socket.IO payloads and REST request bodies.
"""

from bridge.schemas.auth import LoginRequest
from bridge.schemas.socket import AuthErrorPayload, AuthSuccessPayload, CommandAck, LinkStatusPayload

__all__ = [
    "AuthErrorPayload",
    "AuthSuccessPayload",
    "CommandAck",
    "LinkStatusPayload",
    "LoginRequest",
]
