"""Abstract interface for chat log persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import LogLevel


class ChatLogRepository(ABC):
    """Append-only chat log.

    A logging outage must not stop message routing: append never raises
    and recent returns an empty list when the backend fails.
    """

    @abstractmethod
    async def append(self, sender: str, recipient: str | None, body: str, level: LogLevel) -> None: ...

    @abstractmethod
    async def recent(self, limit: int, viewer: str) -> list[str]:
        """Return up to `limit` rendered non-system lines visible to `viewer`, oldest first."""
        ...
