"""Abstract interface for user persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.auth.models import User


class CredentialStoreError(Exception):
    """The backing store failed; details stay server-side."""


class DuplicateUserError(CredentialStoreError):
    """A user with this name already exists (active or not)."""


class UserRepository(ABC):
    """Abstract interface for user persistence.

    Implementations raise DuplicateUserError from create_user when the name
    is taken and CredentialStoreError for any other backend failure.
    Only active users are visible to get_salt and get_password_hash;
    name_exists sees every row.
    """

    @abstractmethod
    async def create_user(self, user: User) -> None: ...

    @abstractmethod
    async def name_exists(self, name: str) -> bool: ...

    @abstractmethod
    async def get_salt(self, name: str) -> bytes | None: ...

    @abstractmethod
    async def get_password_hash(self, name: str) -> str | None: ...

    @abstractmethod
    async def deactivate(self, name: str) -> bool: ...
