import asyncio
import struct

import pytest

from chat.messaging.encoder import MAX_BUFFER_LEN
from chat.messaging.framing import HEADER_SIZE, FrameTooLargeError, pack_frame, read_frame


def _reader(data: bytes, *, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


class TestPackFrame:
    def test_big_endian_length_prefix(self):
        frame = pack_frame(b"abc")
        assert frame[:HEADER_SIZE] == b"\x00\x00\x00\x03"
        assert frame[HEADER_SIZE:] == b"abc"

    def test_empty_payload(self):
        assert pack_frame(b"") == b"\x00\x00\x00\x00"

    def test_rejects_oversized(self):
        with pytest.raises(FrameTooLargeError):
            pack_frame(b"\x00" * (MAX_BUFFER_LEN + 1))


class TestReadFrame:
    async def test_reads_consecutive_frames(self):
        reader = _reader(pack_frame(b"one") + pack_frame(b"two"))
        assert await read_frame(reader) == b"one"
        assert await read_frame(reader) == b"two"

    async def test_waits_for_split_frame(self):
        reader = asyncio.StreamReader()
        frame = pack_frame(b"hello")
        reader.feed_data(frame[:2])
        task = asyncio.create_task(read_frame(reader))
        await asyncio.sleep(0)
        assert not task.done()
        reader.feed_data(frame[2:])
        assert await task == b"hello"

    async def test_eof_before_header(self):
        with pytest.raises(asyncio.IncompleteReadError):
            await read_frame(_reader(b""))

    async def test_eof_mid_payload(self):
        with pytest.raises(asyncio.IncompleteReadError):
            await read_frame(_reader(pack_frame(b"hello")[:-1]))

    async def test_oversized_header_rejected_before_reading_body(self):
        reader = _reader(struct.pack(">I", MAX_BUFFER_LEN + 1), eof=False)
        with pytest.raises(FrameTooLargeError):
            await read_frame(reader)

    def test_too_large_is_a_connection_error(self):
        assert issubclass(FrameTooLargeError, ConnectionError)
