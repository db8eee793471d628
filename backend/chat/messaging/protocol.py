"""Abstract connection protocol for framed MessagePack communication."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from chat.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    Abstract interface for a peer connection.

    This abstraction allows session and routing logic to be tested
    without real sockets. Writes from every code path (replies, fan-out,
    roster, history) go through one per-connection lock, so records
    never interleave on the stream.
    """

    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Unique identifier for this connection."""
        ...

    @property
    @abstractmethod
    def peer(self) -> str:
        """Printable remote address, for logs."""
        ...

    @property
    def write_lock(self) -> asyncio.Lock:
        """Hold this to send several records with no other writer in between."""
        return self._write_lock

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None:
        """
        Send one raw payload to the peer. Callers must hold write_lock.
        """
        ...

    @abstractmethod
    async def receive_bytes(self) -> bytes:
        """
        Receive one raw payload from the peer.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Close the connection. Must be idempotent.
        """
        ...

    async def send_message(self, data: dict[str, Any] | str) -> None:
        """
        Send a record (or a bare reply string) using MessagePack encoding.
        """
        payload = encode(data)
        async with self._write_lock:
            await self.send_bytes(payload)

    async def write_message(self, data: dict[str, Any] | str) -> None:
        """
        Send a record while the caller already holds write_lock.
        """
        if not self._write_lock.locked():
            raise RuntimeError("write_message requires write_lock to be held")
        await self.send_bytes(encode(data))

    async def receive_message(self) -> dict[str, Any]:
        """
        Receive a record from the peer using MessagePack decoding.
        """
        raw = await self.receive_bytes()
        return decode(raw)
