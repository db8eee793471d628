"""Per-connection protocol state machine: preauth -> joined -> closed."""

from __future__ import annotations

import asyncio
import ssl
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from chat.messaging.encoder import DecodeError, decode
from chat.messaging.types import (
    JOINED_MESSAGES,
    AuthReply,
    GetSaltMessage,
    LoginMessage,
    RegisterMessage,
    parse_client_message,
    return_salt,
)
from chat.session.types import SessionPhase
from shared.auth.password import synthetic_salt
from shared.auth.service import LoginResult, RegisterResult

if TYPE_CHECKING:
    from chat.messaging.protocol import ConnectionProtocol
    from chat.messaging.router import MessageRouter
    from chat.messaging.types import ClientMessage
    from shared.auth.service import CredentialService

logger = structlog.get_logger()

# Disconnect after this many consecutive undecodable or malformed records
MAX_DECODE_ERRORS = 5

# Errors that mean the stream is gone: the session ends quietly.
_STREAM_ERRORS = (
    TimeoutError,
    asyncio.IncompleteReadError,
    ConnectionError,
    ssl.SSLError,
    OSError,
    RuntimeError,
)

REGISTER_REPLIES = {
    RegisterResult.OK: AuthReply.SUCCESS,
    RegisterResult.DUPLICATE: AuthReply.NAME_TAKEN,
    RegisterResult.INTERNAL_ERROR: AuthReply.INTERNAL_ERROR,
    RegisterResult.INVALID: AuthReply.INVALID_FORMAT,
}

_LOGIN_FAILURE_REPLIES = {
    LoginResult.UNKNOWN_USER: AuthReply.USER_NOT_FOUND,
    LoginResult.BAD_CREDENTIALS: AuthReply.BAD_CREDENTIALS,
}


class ChatSession:
    """Drive one peer from handshake through authentication to chat.

    In preauth only getsalt/register/login are handled; once joined only
    chat/private are, and they are handed to the router. Any other type
    is ignored. The session closes exactly once: on peer close, read
    timeout, I/O error, too many bad records, or server shutdown.
    """

    def __init__(
        self,
        connection: ConnectionProtocol,
        credentials: CredentialService,
        router: MessageRouter,
        *,
        salt_secret: bytes,
    ) -> None:
        self._connection = connection
        self._credentials = credentials
        self._router = router
        self._salt_secret = salt_secret
        self._name: str | None = None
        self._phase = SessionPhase.PREAUTH
        self._decode_errors = 0
        self._close_lock = asyncio.Lock()

    @property
    def connection(self) -> ConnectionProtocol:
        return self._connection

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    def mark_joined(self, name: str) -> None:
        """Record the authenticated identity. Called by the router on admission."""
        if self._phase is not SessionPhase.PREAUTH:
            raise RuntimeError(f"cannot join from phase {self._phase}")
        self._name = name
        self._phase = SessionPhase.JOINED

    async def run(self) -> None:
        """Read and dispatch records until the session closes."""
        log = logger.bind(connection_id=self._connection.connection_id, peer=self._connection.peer)
        log.info("session started")
        try:
            while self._phase is not SessionPhase.CLOSED:
                raw = await self._connection.receive_bytes()
                message = self._parse(raw)
                if self._decode_errors >= MAX_DECODE_ERRORS:
                    log.info("too many decode errors, disconnecting", strikes=self._decode_errors)
                    return
                if message is None:
                    continue
                await self._dispatch(message)
        except TimeoutError:
            log.info("session idle timeout", username=self._name)
        except _STREAM_ERRORS as e:
            log.info("peer disconnected", username=self._name, reason=type(e).__name__)
        finally:
            await self.close()
            log.info("session closed", username=self._name)

    async def close(self) -> None:
        """Transition to closed, deregister and announce if joined, close the stream."""
        async with self._close_lock:
            if self._phase is SessionPhase.CLOSED:
                return
            was_joined = self._phase is SessionPhase.JOINED
            self._phase = SessionPhase.CLOSED
        try:
            if was_joined:
                await self._router.release(self)
        finally:
            await self._connection.close()

    def _parse(self, raw: bytes) -> ClientMessage | None:
        try:
            data = decode(raw)
            message = parse_client_message(data)
        except (DecodeError, ValidationError, ValueError) as e:
            self._decode_errors += 1
            logger.warning("malformed record dropped", error=str(e), strikes=self._decode_errors)
            return None
        self._decode_errors = 0
        if message is None:
            logger.debug("unsupported message type ignored", message_type=data.get("type"))
        return message

    async def _dispatch(self, message: ClientMessage) -> None:
        if self._phase is SessionPhase.PREAUTH:
            if isinstance(message, GetSaltMessage):
                await self._handle_getsalt(message)
            elif isinstance(message, RegisterMessage):
                await self._handle_register(message)
            elif isinstance(message, LoginMessage):
                await self._handle_login(message)
            else:
                logger.debug("ignoring message before login", message_type=message.type)
        elif self._phase is SessionPhase.JOINED:
            if isinstance(message, JOINED_MESSAGES):
                await self._router.handle_message(self, message)
            else:
                logger.debug("ignoring auth message while joined", message_type=message.type, username=self._name)

    async def _handle_getsalt(self, message: GetSaltMessage) -> None:
        username = message.data.username
        salt = await self._credentials.salt_for(username)
        if salt is None:
            salt = synthetic_salt(self._salt_secret, username)
        await self._connection.send_message(return_salt(salt))

    async def _handle_register(self, message: RegisterMessage) -> None:
        data = message.data
        result = await self._credentials.register(data.username, data.password_hash, data.salt)
        await self._connection.send_message(REGISTER_REPLIES[result])

    async def _handle_login(self, message: LoginMessage) -> None:
        username = message.data.username
        result = await self._credentials.authenticate(username, message.data.password)
        if result is not LoginResult.OK:
            logger.info("login rejected", username=username, reason=result)
            await self._connection.send_message(_LOGIN_FAILURE_REPLIES[result])
            return

        if not await self._router.admit(self, username):
            logger.info("login rejected", username=username, reason="already_online")
            await self._connection.send_message(AuthReply.ALREADY_ONLINE)
