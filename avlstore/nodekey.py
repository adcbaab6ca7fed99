"""Node keys and the varint/byte-string wire encoding used for nodes."""

from __future__ import annotations

from dataclasses import dataclass

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_UINT64_MASK = (1 << 64) - 1
_UINT32_MASK = (1 << 32) - 1
_MAX_VARINT_LEN = 10

NODE_KEY_SIZE = 12


class EncodingError(ValueError):
    """Raised when bytes cannot be encoded or decoded."""


@dataclass(frozen=True)
class NodeKey:
    """Identifies a stored node by the version that created it and a nonce."""

    version: int
    nonce: int

    def to_bytes(self) -> bytes:
        """The 12-byte big-endian form: 8 bytes of version, 4 of nonce."""
        return (self.version & _UINT64_MASK).to_bytes(8, "big") + (
            self.nonce & _UINT32_MASK
        ).to_bytes(4, "big")

    def __str__(self) -> str:
        return f"({self.version}, {self.nonce})"


def get_node_key(key: bytes) -> NodeKey:
    """Parse the 12-byte form of a node key."""
    if len(key) < NODE_KEY_SIZE:
        raise EncodingError(
            f"node key must be at least {NODE_KEY_SIZE} bytes, got {len(key)}"
        )
    version = int.from_bytes(key[:8], "big", signed=True)
    nonce = int.from_bytes(key[8:12], "big")
    return NodeKey(version, nonce)


def get_root_key(version: int) -> bytes:
    """The key of the root node saved at ``version`` (its nonce is always 1)."""
    return NodeKey(version, 1).to_bytes()


def _encode_uvarint(value: int) -> bytes:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _decode_uvarint(buf: bytes) -> tuple[int, int]:
    result = 0
    shift = 0
    for i, byte in enumerate(buf):
        if i == _MAX_VARINT_LEN:
            raise EncodingError("varint overflows a 64-bit integer")
        if byte < 0x80:
            if i == _MAX_VARINT_LEN - 1 and byte > 1:
                raise EncodingError("varint overflows a 64-bit integer")
            return result | (byte << shift), i + 1
        result |= (byte & 0x7F) << shift
        shift += 7
    raise EncodingError("buffer too small to hold a varint")


def _check_int64(value: int) -> None:
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise EncodingError(f"value {value} does not fit in a signed 64-bit integer")


def encode_varint(value: int) -> bytes:
    """Encode a signed 64-bit integer as a zig-zag varint."""
    _check_int64(value)
    zigzag = ((value << 1) ^ (value >> 63)) & _UINT64_MASK
    return _encode_uvarint(zigzag)


def decode_varint(buf: bytes) -> tuple[int, int]:
    """Decode a zig-zag varint; returns the value and the bytes consumed."""
    raw, n = _decode_uvarint(bytes(buf))
    value = raw >> 1
    if raw & 1:
        value = ~value
    return value, n


def varint_size(value: int) -> int:
    """Number of bytes :func:`encode_varint` produces for ``value``."""
    return len(encode_varint(value))


def encode_bytes(data: bytes) -> bytes:
    """Encode a byte string prefixed by its unsigned varint length."""
    data = bytes(data)
    return _encode_uvarint(len(data)) + data


def decode_bytes(buf: bytes) -> tuple[bytes, int]:
    """Decode a length-prefixed byte string; returns it and the bytes consumed."""
    buf = bytes(buf)
    length, n = _decode_uvarint(buf)
    end = n + length
    if end > len(buf):
        raise EncodingError(
            f"insufficient bytes decoding byte string of length {length}"
        )
    return buf[n:end], end


def bytes_size(data: bytes) -> int:
    """Number of bytes :func:`encode_bytes` produces for ``data``."""
    return len(_encode_uvarint(len(data))) + len(data)