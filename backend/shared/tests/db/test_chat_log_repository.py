"""Tests for SqliteChatLogRepository."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from shared.dal.models import LogLevel
from shared.db.chat_log_repository import SqliteChatLogRepository
from shared.db.connection import Database

if TYPE_CHECKING:
    from pathlib import Path


def _ticking_clock():
    start = datetime(2024, 1, 1, 12, 0, 0)
    ticks = itertools.count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def db(tmp_path: Path):
    db = Database(tmp_path / "test.db")
    db.connect()
    yield db
    db.close()


@pytest.fixture
def repo(db: Database) -> SqliteChatLogRepository:
    return SqliteChatLogRepository(db, clock=_ticking_clock())


class TestAppend:
    async def test_writes_row_with_formatted_time(self, db: Database, repo: SqliteChatLogRepository) -> None:
        await repo.append("alice", None, "[alice]：hi", LogLevel.USER)

        row = db.connection.execute("SELECT send_time, sender, recipient, body, level FROM chat_log").fetchone()
        assert row == ("2024-01-01 12:00:00", "alice", None, "[alice]：hi", "user")

    async def test_failure_is_swallowed(self, db: Database, repo: SqliteChatLogRepository) -> None:
        db.close()
        await repo.append("alice", None, "hi", LogLevel.USER)


class TestRecent:
    async def test_oldest_first_and_bounded(self, repo: SqliteChatLogRepository) -> None:
        for i in range(5):
            await repo.append("alice", None, f"m{i}", LogLevel.USER)

        lines = await repo.recent(3, "bob")

        assert lines == [
            "[alice] [2024-01-01 12:00:02]：m2",
            "[alice] [2024-01-01 12:00:03]：m3",
            "[alice] [2024-01-01 12:00:04]：m4",
        ]

    async def test_excludes_system_lines(self, repo: SqliteChatLogRepository) -> None:
        await repo.append("alice", None, "alice 进入了聊天室", LogLevel.SYSTEM)
        await repo.append("alice", None, "[alice]：hi", LogLevel.USER)

        assert await repo.recent(10, "bob") == ["[alice] [2024-01-01 12:00:01]：[alice]：hi"]

    async def test_private_visible_only_to_participants(self, repo: SqliteChatLogRepository) -> None:
        await repo.append("alice", "bob", "psst", LogLevel.USER)

        expected = ["[alice] [2024-01-01 12:00:00]：[私信] psst"]
        assert await repo.recent(10, "alice") == expected
        assert await repo.recent(10, "bob") == expected
        assert await repo.recent(10, "carol") == []

    @pytest.mark.parametrize("limit", [0, -1])
    async def test_non_positive_limit(self, repo: SqliteChatLogRepository, limit: int) -> None:
        await repo.append("alice", None, "hi", LogLevel.USER)
        assert await repo.recent(limit, "alice") == []

    async def test_empty_on_backend_failure(self, db: Database, repo: SqliteChatLogRepository) -> None:
        await repo.append("alice", None, "hi", LogLevel.USER)
        db.close()
        assert await repo.recent(10, "alice") == []
