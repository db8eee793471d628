"""Length-prefixed framing of MessagePack payloads over a byte stream.

Each frame is a 4-byte big-endian unsigned length followed by that many
payload bytes. The same framing is used by the server and the client.
"""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

from chat.messaging.encoder import MAX_BUFFER_LEN

if TYPE_CHECKING:
    import asyncio

_HEADER = struct.Struct(">I")
HEADER_SIZE = _HEADER.size


class FrameTooLargeError(ConnectionError):
    """A frame header announced more than MAX_BUFFER_LEN bytes.

    The stream cannot be resynchronised after this, so it is a connection
    failure rather than a recoverable decode error.
    """


def pack_frame(payload: bytes) -> bytes:
    if len(payload) > MAX_BUFFER_LEN:
        raise FrameTooLargeError(f"frame too large: {len(payload)} bytes (max {MAX_BUFFER_LEN})")
    return _HEADER.pack(len(payload)) + payload


async def read_frame(reader: asyncio.StreamReader) -> bytes:
    """Read one complete frame payload.

    Raises asyncio.IncompleteReadError when the peer closes mid-frame or
    before a header, and FrameTooLargeError for oversized frames.
    """
    header = await reader.readexactly(HEADER_SIZE)
    (length,) = _HEADER.unpack(header)
    if length > MAX_BUFFER_LEN:
        raise FrameTooLargeError(f"frame too large: {length} bytes (max {MAX_BUFFER_LEN})")
    return await reader.readexactly(length)
