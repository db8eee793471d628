"""SQLite database layer: connection management and repository implementations."""

from shared.db.chat_log_repository import SqliteChatLogRepository
from shared.db.connection import Database, sqlite_path_from_url
from shared.db.user_repository import SqliteUserRepository

__all__ = [
    "Database",
    "SqliteChatLogRepository",
    "SqliteUserRepository",
    "sqlite_path_from_url",
]
