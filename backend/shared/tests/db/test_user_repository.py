"""Tests for SqliteUserRepository."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from shared.auth.models import User
from shared.auth.repository import CredentialStoreError, DuplicateUserError
from shared.db.connection import Database
from shared.db.user_repository import SqliteUserRepository

if TYPE_CHECKING:
    from pathlib import Path

SALT = bytes(range(16))


def _user(name: str = "alice", password_hash: str = "ab" * 32) -> User:
    return User(name=name, password_hash=password_hash, salt=SALT)


@pytest.fixture
def db(tmp_path: Path):
    db = Database(tmp_path / "test.db")
    db.connect()
    yield db
    db.close()


@pytest.fixture
def repo(db: Database) -> SqliteUserRepository:
    return SqliteUserRepository(db)


class TestCreateAndRead:
    async def test_create_and_read_back(self, repo: SqliteUserRepository) -> None:
        await repo.create_user(_user())

        assert await repo.name_exists("alice")
        assert await repo.get_salt("alice") == SALT
        assert await repo.get_password_hash("alice") == "ab" * 32

    async def test_unknown_name(self, repo: SqliteUserRepository) -> None:
        assert await repo.name_exists("nobody") is False
        assert await repo.get_salt("nobody") is None
        assert await repo.get_password_hash("nobody") is None

    async def test_names_are_case_sensitive(self, repo: SqliteUserRepository) -> None:
        await repo.create_user(_user("alice"))
        assert await repo.name_exists("Alice") is False

    async def test_duplicate_raises(self, repo: SqliteUserRepository) -> None:
        await repo.create_user(_user())
        with pytest.raises(DuplicateUserError):
            await repo.create_user(_user(password_hash="cd" * 32))

    async def test_concurrent_creates_admit_exactly_one(self, repo: SqliteUserRepository) -> None:
        results = await asyncio.gather(*(repo.create_user(_user()) for _ in range(5)), return_exceptions=True)

        assert sum(r is None for r in results) == 1
        assert all(isinstance(r, DuplicateUserError) for r in results if r is not None)

    async def test_duplicate_does_not_block_later_writes(self, repo: SqliteUserRepository) -> None:
        await repo.create_user(_user())
        with pytest.raises(DuplicateUserError):
            await repo.create_user(_user())
        await repo.create_user(_user("bob"))
        assert await repo.name_exists("bob")


class TestDeactivate:
    async def test_hides_credentials_but_keeps_name(self, repo: SqliteUserRepository) -> None:
        await repo.create_user(_user())

        assert await repo.deactivate("alice") is True
        assert await repo.name_exists("alice") is True
        assert await repo.get_salt("alice") is None
        assert await repo.get_password_hash("alice") is None

    async def test_unknown_or_already_retired(self, repo: SqliteUserRepository) -> None:
        assert await repo.deactivate("nobody") is False
        await repo.create_user(_user())
        await repo.deactivate("alice")
        assert await repo.deactivate("alice") is False


class TestBackendFailure:
    async def test_closed_database_raises_store_error(self, db: Database, repo: SqliteUserRepository) -> None:
        db.close()
        with pytest.raises(CredentialStoreError):
            await repo.name_exists("alice")
        with pytest.raises(CredentialStoreError):
            await repo.create_user(_user())
        with pytest.raises(CredentialStoreError):
            await repo.deactivate("alice")

    async def test_store_error_is_not_duplicate(self, db: Database, repo: SqliteUserRepository) -> None:
        db.close()
        with pytest.raises(CredentialStoreError) as exc_info:
            await repo.create_user(_user())
        assert not isinstance(exc_info.value, DuplicateUserError)
