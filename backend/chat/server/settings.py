"""Chat server configuration via environment variables and server.properties."""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from chat.messaging.router import DEFAULT_HISTORY_LIMIT
from chat.server.properties import PropertiesSettingsSource, resolve_properties_path
from shared.db.connection import sqlite_path_from_url

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class ChatServerSettings(BaseSettings):
    model_config = {"env_prefix": "CHAT_"}

    host: str = Field(default="0.0.0.0", min_length=1)  # noqa: S104
    port: int = Field(default=8000, ge=0, le=65535)  # 0 picks a free port

    # TLS: either a PKCS#12 keystore unlocked by ssl.keypassword,
    # or a PEM certificate chain and key.
    keystore_path: str = "keystore.p12"
    ssl_keypassword: str | None = None
    certfile: str | None = None
    keyfile: str | None = None

    # db.username / db.password are accepted for config compatibility;
    # the sqlite backend has no use for them.
    db_url: str = Field(default="storage.db", min_length=1)
    db_username: str | None = None
    db_password: str | None = None

    read_timeout_seconds: float = Field(default=60.0, gt=0)
    write_timeout_seconds: float = Field(default=10.0, gt=0)
    history_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=0)
    shutdown_grace_seconds: float = Field(default=5.0, gt=0)
    log_dir: str | None = None

    # HMAC key for synthetic salts of unknown names. When unset, a random
    # key is drawn at startup (stable for the life of the process).
    salt_secret: str | None = Field(default=None, min_length=16)

    @field_validator("db_url")
    @classmethod
    def validate_db_url(cls, v: str) -> str:
        sqlite_path_from_url(v)
        return v

    @model_validator(mode="after")
    def _validate_pem_pair(self) -> Self:
        if (self.certfile is None) != (self.keyfile is None):
            raise ValueError("certfile and keyfile must be set together")
        return self

    @property
    def database_path(self) -> str:
        return sqlite_path_from_url(self.db_url)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        properties = PropertiesSettingsSource(settings_cls, resolve_properties_path())
        return init_settings, env_settings, properties, dotenv_settings, file_secret_settings
