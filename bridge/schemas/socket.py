from typing import Literal

from pydantic import BaseModel

AckStatus = Literal["sent", "error"]
AckReason = Literal["unauthenticated", "link_down", "publish_failed", "invalid_command", "automation_active"]


class LinkStatusPayload(BaseModel):
    """Payload for ``mqtt_status``."""

    connected: bool


class AuthSuccessPayload(BaseModel):
    username: str


class AuthErrorPayload(BaseModel):
    message: str


class CommandAck(BaseModel):
    """Acknowledgement of one ``cmd`` request, sent to the originating connection only."""

    cmd: str
    status: AckStatus
    message: str | None = None
    reason: AckReason | None = None

    @classmethod
    def sent(cls, cmd: str) -> "CommandAck":
        return cls(cmd=cmd, status="sent")

    @classmethod
    def error(cls, cmd: str, reason: AckReason, message: str) -> "CommandAck":
        return cls(cmd=cmd, status="error", reason=reason, message=message)

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)
