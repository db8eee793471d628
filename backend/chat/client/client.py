"""Asyncio client for the chat server.

Speaks the same framed MessagePack protocol as the server and does the
client half of authentication: fetch the salt, hash locally, send only
the hex digest.
"""

from __future__ import annotations

import asyncio
import contextlib
import ssl
from typing import TYPE_CHECKING, Any, Self

import structlog

from chat.messaging.encoder import decode_payload, encode
from chat.messaging.framing import pack_frame, read_frame
from chat.messaging.types import MessageType
from shared.auth.password import generate_salt, hash_password

if TYPE_CHECKING:
    from types import TracebackType

logger = structlog.get_logger()

DEFAULT_RECEIVE_TIMEOUT = 10.0


class ChatClientError(Exception):
    """The server answered something the client did not expect."""


def build_client_ssl_context(cafile: str | None = None) -> ssl.SSLContext:
    """Verifying client context; cafile adds a trust anchor such as a self-signed server cert."""
    context = ssl.create_default_context(cafile=cafile)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


class ChatClient:
    def __init__(
        self,
        host: str,
        port: int,
        *,
        ssl_context: ssl.SSLContext | None = None,
        server_hostname: str | None = None,
        receive_timeout: float = DEFAULT_RECEIVE_TIMEOUT,
    ) -> None:
        self._host = host
        self._port = port
        self._ssl_context = ssl_context or build_client_ssl_context()
        self._server_hostname = server_hostname
        self._receive_timeout = receive_timeout
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._write_lock = asyncio.Lock()
        self.username: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        self._reader, self._writer = await asyncio.open_connection(
            self._host,
            self._port,
            ssl=self._ssl_context,
            server_hostname=self._server_hostname or self._host,
        )
        logger.debug("connected to chat server", host=self._host, port=self._port)

    async def close(self) -> None:
        writer = self._writer
        if writer is None:
            return
        self._writer = None
        self._reader = None
        writer.close()
        with contextlib.suppress(ConnectionError, OSError, ssl.SSLError):
            await writer.wait_closed()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def send(self, payload: dict[str, Any]) -> None:
        if self._writer is None:
            raise ConnectionError("not connected")
        frame = pack_frame(encode(payload))
        async with self._write_lock:
            self._writer.write(frame)
            await self._writer.drain()

    async def send_raw(self, payload: bytes) -> None:
        """Send an already-encoded payload, framed."""
        if self._writer is None:
            raise ConnectionError("not connected")
        async with self._write_lock:
            self._writer.write(pack_frame(payload))
            await self._writer.drain()

    async def receive(self, timeout: float | None = None) -> dict[str, Any] | str:
        """Next payload from the server: a record dict, or a bare reply string."""
        if self._reader is None:
            raise ConnectionError("not connected")
        try:
            raw = await asyncio.wait_for(
                read_frame(self._reader),
                timeout=self._receive_timeout if timeout is None else timeout,
            )
        except asyncio.IncompleteReadError:
            raise ConnectionError("server closed the connection") from None
        return decode_payload(raw)

    async def receive_until(self, msg_type: str, timeout: float | None = None) -> dict[str, Any]:
        """Skip payloads until a record of msg_type arrives."""
        while True:
            payload = await self.receive(timeout)
            if isinstance(payload, dict) and payload.get("type") == msg_type:
                return payload

    async def receive_reply(self, timeout: float | None = None) -> str:
        """Skip records until a bare register/login reply arrives."""
        while True:
            payload = await self.receive(timeout)
            if isinstance(payload, str):
                return payload

    async def get_salt(self, username: str) -> bytes:
        await self.send({"type": MessageType.GETSALT, "data": {"username": username}})
        reply = await self.receive_until(MessageType.RETURNSALT)
        salt = reply.get("data", {}).get("salt")
        if not isinstance(salt, bytes):
            raise ChatClientError("returnsalt carried no salt")
        return salt

    async def register(self, username: str, password: str) -> str:
        """Create an account with a fresh salt. Returns the server's reply string."""
        salt = generate_salt()
        await self.send(
            {
                "type": MessageType.REGISTER,
                "data": {"username": username, "password_hash": hash_password(password, salt), "salt": salt},
            },
        )
        return await self.receive_reply()

    async def login(self, username: str, password: str) -> str:
        """Authenticate; returns "success" or the server's refusal text."""
        salt = await self.get_salt(username)
        await self.send(
            {"type": MessageType.LOGIN, "data": {"username": username, "password": hash_password(password, salt)}},
        )
        reply = await self.receive_reply()
        if reply == "success":
            self.username = username
        return reply

    async def send_chat(self, content: str) -> None:
        await self.send({"type": MessageType.CHAT, "data": {"content": content}})

    async def send_private(self, to: str, content: str) -> None:
        await self.send({"type": MessageType.PRIVATE, "data": {"to": to, "content": content}})
