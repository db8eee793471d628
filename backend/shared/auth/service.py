"""Credential service answering the four questions the chat protocol asks."""

from __future__ import annotations

import hmac
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from shared.auth.models import User
from shared.auth.repository import CredentialStoreError, DuplicateUserError

if TYPE_CHECKING:
    from shared.auth.repository import UserRepository

logger = structlog.get_logger()


class RegisterResult(StrEnum):
    OK = "ok"
    DUPLICATE = "duplicate"
    INTERNAL_ERROR = "internal_error"
    INVALID = "invalid"


class LoginResult(StrEnum):
    OK = "ok"
    UNKNOWN_USER = "unknown_user"
    BAD_CREDENTIALS = "bad_credentials"


class CredentialService:
    """Registration and verification on top of a UserRepository.

    Never retries and never caches: every call goes to the store.
    """

    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    async def exists(self, name: str) -> bool:
        """Return True if any row (active or retired) holds this name.

        Raises CredentialStoreError if the backend fails.
        """
        return await self._user_repo.name_exists(name)

    async def salt_for(self, name: str) -> bytes | None:
        """Return the salt of the active user, or None when absent or on backend error."""
        try:
            return await self._user_repo.get_salt(name)
        except CredentialStoreError:
            logger.exception("salt lookup failed")
            return None

    async def register(self, name: str, password_hash: str, salt: bytes) -> RegisterResult:
        """Existence is checked first, so a taken name reports DUPLICATE whatever the rest holds."""
        try:
            if await self._user_repo.name_exists(name):
                return RegisterResult.DUPLICATE
            try:
                user = User(name=name, password_hash=password_hash, salt=salt)
            except ValidationError as e:
                logger.info("registration rejected", reason=e.errors(include_url=False)[0]["msg"])
                return RegisterResult.INVALID
            await self._user_repo.create_user(user)
        except DuplicateUserError:
            # lost a race with a concurrent register of the same name
            return RegisterResult.DUPLICATE
        except CredentialStoreError:
            logger.exception("registration failed", username=name)
            return RegisterResult.INTERNAL_ERROR

        logger.info("user registered", username=name)
        return RegisterResult.OK

    async def verify(self, name: str, password_hash: str) -> bool:
        """True iff an active user has exactly this stored hash. Backend errors verify as False."""
        try:
            stored = await self._user_repo.get_password_hash(name)
        except CredentialStoreError:
            logger.exception("credential lookup failed", username=name)
            return False
        if stored is None:
            return False
        return hmac.compare_digest(stored.encode("utf-8"), password_hash.encode("utf-8"))

    async def authenticate(self, name: str, password_hash: str) -> LoginResult:
        """Combine exists and verify into the login outcome the protocol reports."""
        try:
            known = await self.exists(name)
        except CredentialStoreError:
            logger.exception("existence check failed", username=name)
            return LoginResult.BAD_CREDENTIALS
        if not known:
            return LoginResult.UNKNOWN_USER
        if not await self.verify(name, password_hash):
            return LoginResult.BAD_CREDENTIALS
        return LoginResult.OK
