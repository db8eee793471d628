"""SQLite-backed chat log repository."""

from __future__ import annotations

import asyncio
import contextlib
import sqlite3
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from shared.dal.chat_log_repository import ChatLogRepository
from shared.dal.models import SEND_TIME_FORMAT, ChatLogEntry, LogLevel

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()

_RECENT_SQL = """\
SELECT send_time, sender, recipient, body, level FROM chat_log
WHERE (recipient IS NULL OR sender = ? OR recipient = ?) AND level != 'system'
ORDER BY id DESC LIMIT ?
"""


class SqliteChatLogRepository(ChatLogRepository):
    """SQLite implementation of ChatLogRepository.

    Appends are serialised with an asyncio lock. Backend failures are
    logged and swallowed so routing never depends on the log.
    """

    def __init__(self, db: Database, clock: Callable[[], datetime] = datetime.now) -> None:
        self._db = db
        self._clock = clock
        self._lock = asyncio.Lock()

    async def append(self, sender: str, recipient: str | None, body: str, level: LogLevel) -> None:
        send_time = self._clock().strftime(SEND_TIME_FORMAT)
        async with self._lock:
            try:
                conn = self._db.connection
                conn.execute(
                    "INSERT INTO chat_log (send_time, sender, recipient, body, level) VALUES (?, ?, ?, ?, ?)",
                    (send_time, sender, recipient, body, level.value),
                )
                conn.commit()
            except (sqlite3.Error, RuntimeError):
                logger.exception("failed to write chat log", sender=sender, level=level)
                if self._db.is_connected:
                    with contextlib.suppress(sqlite3.Error):
                        self._db.connection.rollback()

    async def recent(self, limit: int, viewer: str) -> list[str]:
        if limit <= 0:
            return []
        try:
            rows = self._db.connection.execute(_RECENT_SQL, (viewer, viewer, limit)).fetchall()
        except (sqlite3.Error, RuntimeError):
            logger.exception("failed to read chat history", viewer=viewer)
            return []

        entries = [
            ChatLogEntry(send_time=row[0], sender=row[1], recipient=row[2], body=row[3], level=LogLevel(row[4]))
            for row in rows
        ]
        # fetched newest first; replay oldest first
        entries.reverse()
        return [entry.render() for entry in entries]
