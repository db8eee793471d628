"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.chat_log_repository import ChatLogRepository
from shared.dal.models import SEND_TIME_FORMAT, ChatLogEntry, LogLevel

__all__ = [
    "SEND_TIME_FORMAT",
    "ChatLogEntry",
    "ChatLogRepository",
    "LogLevel",
]
