"""SQLite-backed user repository."""

from __future__ import annotations

import asyncio
import contextlib
import sqlite3
from typing import TYPE_CHECKING

import structlog

from shared.auth.repository import CredentialStoreError, DuplicateUserError, UserRepository

if TYPE_CHECKING:
    from shared.auth.models import User
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteUserRepository(UserRepository):
    """SQLite implementation of UserRepository.

    Writes run under an asyncio lock and rely on the primary key for
    name uniqueness, mapping IntegrityError to DuplicateUserError.
    Any other sqlite3.Error (and a closed database) surfaces as
    CredentialStoreError.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_user(self, user: User) -> None:
        """Insert a user. Raises DuplicateUserError if the name exists in any row."""
        async with self._lock:
            try:
                conn = self._db.connection
                conn.execute(
                    "INSERT INTO users (name, password_hash, salt, active) VALUES (?, ?, ?, ?)",
                    (user.name, user.password_hash, user.salt, int(user.active)),
                )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                self._rollback()
                raise DuplicateUserError(f"User '{user.name}' already exists") from exc
            except (sqlite3.Error, RuntimeError) as exc:
                self._rollback()
                raise CredentialStoreError("failed to insert user") from exc

    async def name_exists(self, name: str) -> bool:
        row = self._fetchone("SELECT 1 FROM users WHERE name = ? LIMIT 1", (name,))
        return row is not None

    async def get_salt(self, name: str) -> bytes | None:
        row = self._fetchone("SELECT salt FROM users WHERE name = ? AND active = 1", (name,))
        return bytes(row[0]) if row is not None else None

    async def get_password_hash(self, name: str) -> str | None:
        row = self._fetchone("SELECT password_hash FROM users WHERE name = ? AND active = 1", (name,))
        return row[0] if row is not None else None

    async def deactivate(self, name: str) -> bool:
        """Soft-retire a user. Returns False if no active user had this name."""
        async with self._lock:
            try:
                conn = self._db.connection
                cursor = conn.execute("UPDATE users SET active = 0 WHERE name = ? AND active = 1", (name,))
                conn.commit()
            except (sqlite3.Error, RuntimeError) as exc:
                self._rollback()
                raise CredentialStoreError("failed to deactivate user") from exc
        return cursor.rowcount > 0

    def _fetchone(self, sql: str, params: tuple[object, ...]) -> tuple | None:
        try:
            return self._db.connection.execute(sql, params).fetchone()
        except (sqlite3.Error, RuntimeError) as exc:
            raise CredentialStoreError("user lookup failed") from exc

    def _rollback(self) -> None:
        if self._db.is_connected:
            with contextlib.suppress(sqlite3.Error):
                self._db.connection.rollback()
