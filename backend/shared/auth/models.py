"""User account model for the credential store."""

from pydantic import BaseModel, Field, field_validator

from shared.auth.password import SALT_LENGTH, is_valid_hash_hex, validate_username


class User(BaseModel, frozen=True):
    """User account stored in the user repository.

    The server only ever sees the salted hash computed by the client,
    never the password itself.
    """

    name: str
    password_hash: str
    salt: bytes = Field(min_length=SALT_LENGTH, max_length=SALT_LENGTH)
    active: bool = True

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        validate_username(v)
        return v

    @field_validator("password_hash")
    @classmethod
    def _validate_password_hash(cls, v: str) -> str:
        if not is_valid_hash_hex(v):
            raise ValueError("password_hash must be a hexadecimal digest")
        return v
