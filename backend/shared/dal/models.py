"""Persistence models for the data access layer."""

from enum import StrEnum

from pydantic import BaseModel

SEND_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Separator between the timestamp and the body in a replayed line is a
# full-width colon, as the client renders it.
_FULLWIDTH_COLON = "："
_PRIVATE_MARKER = "[私信] "


class LogLevel(StrEnum):
    USER = "user"
    SYSTEM = "system"


class ChatLogEntry(BaseModel, frozen=True):
    """One append-only row of the chat log."""

    send_time: str  # local wall clock, SEND_TIME_FORMAT
    sender: str
    recipient: str | None = None  # None for broadcast
    body: str  # exactly what peers were sent
    level: LogLevel = LogLevel.USER

    @property
    def is_private(self) -> bool:
        return bool(self.recipient)

    def render(self) -> str:
        """Render the line a joining peer sees in its history replay."""
        body = _PRIVATE_MARKER + self.body if self.is_private else self.body
        return f"[{self.sender}] [{self.send_time}]{_FULLWIDTH_COLON}{body}"
