"""
MessagePack encoder/decoder for the chat wire format.

A payload is either a tagged record ``{"type": str, "data": map}`` or, for
register/login replies only, a bare string. Strings travel as UTF-8 str,
salts as bin, maps keep insertion order so encoding is deterministic.
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """Error raised when MessagePack decoding fails."""


# Size limits to prevent resource exhaustion from malicious payloads.
MAX_BUFFER_LEN = 256 * 1024  # 256KB total payload
MAX_STR_LEN = 64 * 1024  # 64KB per string
MAX_BIN_LEN = 1024  # salts are 16 bytes
MAX_ARRAY_LEN = 1024  # max array elements
MAX_MAP_LEN = 4096  # user_list carries one entry per online user
MAX_EXT_LEN = 0  # no extension types on this protocol


def encode(payload: dict[str, Any] | str) -> bytes:
    """
    Encode a record or a bare reply string to MessagePack bytes.
    """
    return msgpack.packb(payload, use_bin_type=True)


def decode_payload(data: bytes) -> dict[str, Any] | str:
    """
    Decode MessagePack bytes to a record dict or a bare string.

    Raises DecodeError if data is invalid, of another type, or exceeds size limits.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            strict_map_key=True,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, (dict, str)):
        raise DecodeError(f"expected dict or str, got {type(result).__name__}")

    return result


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode MessagePack bytes to a record dict.

    Peers may only send tagged records to the server, so a bare string is
    a decode error here.
    """
    result = decode_payload(data)
    if not isinstance(result, dict):
        raise DecodeError(f"expected dict, got {type(result).__name__}")
    return result
