from __future__ import annotations

import asyncio
import contextlib
import ssl
from typing import TYPE_CHECKING
from uuid import uuid4

from chat.messaging.framing import pack_frame, read_frame
from chat.messaging.protocol import ConnectionProtocol

if TYPE_CHECKING:
    from asyncio import StreamReader, StreamWriter

# Bound on how long close() waits for the TLS shutdown to finish
_CLOSE_TIMEOUT_SECONDS = 2.0


class StreamConnection(ConnectionProtocol):
    """Framed MessagePack connection over an asyncio (TLS) stream pair.

    Every read is bounded by read_timeout; expiry raises TimeoutError,
    which ends the session. A peer that stops reading is cut off once a
    drain outlasts write_timeout: the transport is aborted and the send
    raises ConnectionError, so fan-out skips it.
    """

    def __init__(
        self,
        reader: StreamReader,
        writer: StreamWriter,
        *,
        read_timeout: float | None,
        write_timeout: float | None = None,
        connection_id: str | None = None,
    ) -> None:
        super().__init__()
        self._reader = reader
        self._writer = writer
        self._read_timeout = read_timeout
        self._write_timeout = write_timeout
        self._connection_id = connection_id or str(uuid4())
        peername = writer.get_extra_info("peername")
        self._peer = f"{peername[0]}:{peername[1]}" if peername else "unknown"
        self._closed = False

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def peer(self) -> str:
        return self._peer

    @property
    def tls_version(self) -> str | None:
        ssl_object: ssl.SSLObject | None = self._writer.get_extra_info("ssl_object")
        return ssl_object.version() if ssl_object is not None else None

    async def send_bytes(self, data: bytes) -> None:
        if self._closed or self._writer.is_closing():
            raise ConnectionError("connection already closed")
        self._writer.write(pack_frame(data))
        try:
            await asyncio.wait_for(self._writer.drain(), timeout=self._write_timeout)
        except TimeoutError:
            self._closed = True
            self._writer.transport.abort()
            raise ConnectionError("peer stopped reading") from None

    async def receive_bytes(self) -> bytes:
        if self._closed:
            raise ConnectionError("connection already closed")
        try:
            return await asyncio.wait_for(read_frame(self._reader), timeout=self._read_timeout)
        except asyncio.IncompleteReadError:
            raise ConnectionError("peer closed the stream") from None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        with contextlib.suppress(ConnectionError, OSError, ssl.SSLError, TimeoutError):
            await asyncio.wait_for(self._writer.wait_closed(), timeout=_CLOSE_TIMEOUT_SECONDS)
