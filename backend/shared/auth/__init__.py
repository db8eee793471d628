"""Account storage and the salted-hash contract shared by server and client."""

from shared.auth.models import User
from shared.auth.password import SALT_LENGTH, generate_salt, hash_password, synthetic_salt
from shared.auth.repository import CredentialStoreError, DuplicateUserError, UserRepository
from shared.auth.service import CredentialService, LoginResult, RegisterResult

__all__ = [
    "SALT_LENGTH",
    "CredentialService",
    "CredentialStoreError",
    "DuplicateUserError",
    "LoginResult",
    "RegisterResult",
    "User",
    "UserRepository",
    "generate_salt",
    "hash_password",
    "synthetic_salt",
]
