"""Fixed-width, lexicographically sortable byte key formats."""

from __future__ import annotations

from typing import Any, Union

PrefixLike = Union[int, bytes, str]

_UINT64_MASK = (1 << 64) - 1
_INT64_MIN = -(1 << 63)

_KIND_ALIASES = {int: "int64", bytes: "bytes"}
_KINDS = frozenset({"int64", "uint64", "int32", "uint32", "bytes", "big"})


def _prefix_byte(prefix: PrefixLike) -> int:
    if isinstance(prefix, bool):
        raise TypeError("prefix must be a single byte")
    if isinstance(prefix, int):
        if not 0 <= prefix <= 0xFF:
            raise ValueError(f"prefix {prefix} is out of byte range")
        return prefix
    if isinstance(prefix, str):
        prefix = prefix.encode("latin-1")
    if isinstance(prefix, (bytes, bytearray)) and len(prefix) == 1:
        return prefix[0]
    raise ValueError("prefix must be a single byte")


def _format(arg: Any) -> bytes:
    """Turn a key argument into its segment bytes."""
    if isinstance(arg, bool):
        raise TypeError(f"cannot format value of type bool: {arg!r}")
    if isinstance(arg, int):
        if not _INT64_MIN <= arg <= _UINT64_MASK:
            raise ValueError(f"integer {arg} does not fit in 64 bits")
        return (arg & _UINT64_MASK).to_bytes(8, "big")
    if isinstance(arg, (bytes, bytearray, memoryview)):
        return bytes(arg)
    raise TypeError(f"cannot format value of type {type(arg).__name__}: {arg!r}")


def _read_fixed(value: bytes, width: int, signed: bool) -> int:
    if len(value) < width:
        raise ValueError(f"segment of {len(value)} bytes is shorter than {width}")
    return int.from_bytes(value[:width], "big", signed=signed)


def _scan(kind: Any, value: bytes) -> Any:
    """Decode one segment according to ``kind``."""
    kind = _KIND_ALIASES.get(kind, kind)
    if kind not in _KINDS:
        raise TypeError(f"cannot scan value of kind {kind!r}")
    if kind == "int64":
        return _read_fixed(value, 8, signed=True)
    if kind == "uint64":
        return _read_fixed(value, 8, signed=False)
    if kind == "int32":
        return _read_fixed(value, 4, signed=True)
    if kind == "uint32":
        return _read_fixed(value, 4, signed=False)
    if kind == "big":
        return int.from_bytes(value, "big")
    return bytes(value)


class KeyFormat:
    """A one-byte prefix followed by fixed-width segments.

    A zero width for the last segment makes it unbounded.
    """

    def __init__(self, prefix: PrefixLike, *args: int) -> None:
        layout = tuple(args)
        for i, width in enumerate(layout):
            if width < 0:
                raise ValueError("segment widths cannot be negative")
            if width == 0 and i != len(layout) - 1:
                raise ValueError("Only the last item in a key format can be 0")
        self._prefix = _prefix_byte(prefix)
        self._layout = layout
        self._length = 1 + sum(layout)
        self._unbounded = bool(layout) and layout[-1] == 0

    def key_bytes(self, *args: bytes) -> bytes:
        """Build a key from raw segments, left-padding each to its width."""
        if len(args) > len(self._layout):
            raise ValueError(
                f"{len(args)} segments given but format only has {len(self._layout)}"
            )
        out = bytearray([self._prefix])
        for i, (segment, width) in enumerate(zip(args, self._layout)):
            segment = bytes(segment)
            if width == 0:
                out += segment
                continue
            if len(segment) > width:
                raise ValueError(
                    f"length of segment {segment.hex().upper()} is longer than the "
                    f"{width} bytes required by layout for segment {i}"
                )
            out += segment.rjust(width, b"\x00")
        return bytes(out)

    def key(self, *args: Any) -> bytes:
        """Build a key from integers and byte strings; no args gives the bare prefix."""
        if len(args) > len(self._layout):
            raise ValueError(
                f"key() is provided with {len(args)} args but format only has "
                f"{len(self._layout)} segments"
            )
        return self.key_bytes(*(_format(arg) for arg in args))

    def scan_bytes(self, key: bytes) -> list[bytes]:
        """Split a key into its segments; missing trailing segments are dropped."""
        segments: list[bytes] = []
        end = 1
        for width in self._layout:
            end += width
            if end > len(key):
                break
            if width == 0:
                segments.append(bytes(key[end:]))
                break
            segments.append(bytes(key[end - width:end]))
        return segments

    def scan(self, key: bytes, *args: Any) -> tuple:
        """Decode segments of ``key``, one per kind given.

        Kinds are "int64", "uint64", "int32", "uint32", "bytes" and "big";
        ``int`` and ``bytes`` stand for "int64" and "bytes".
        """
        segments = self.scan_bytes(key)
        if len(args) > len(segments):
            raise ValueError(
                f"scan() is provided with {len(args)} args but format only has "
                f"{len(segments)} segments in key {bytes(key).hex().upper()}"
            )
        return tuple(_scan(kind, segment) for kind, segment in zip(args, segments))

    def length(self) -> int:
        """Total bounded length of a full key, prefix included."""
        return self._length

    def prefix(self) -> str:
        """The prefix byte as a one-character string."""
        return chr(self._prefix)


class FastPrefixFormatter:
    """A one-byte prefix followed by a single fixed-width field."""

    def __init__(self, prefix: PrefixLike, length: int) -> None:
        if length < 0:
            raise ValueError("length cannot be negative")
        self._prefix = _prefix_byte(prefix)
        self._length = length

    def key(self, bz: bytes) -> bytes:
        """Prefix ``bz``, truncated or zero-padded on the right to the field width."""
        body = bytes(bz)[: self._length].ljust(self._length, b"\x00")
        return bytes([self._prefix]) + body

    def scan(self, key: bytes, kind: Any) -> Any:
        """Decode the field following the prefix."""
        return _scan(kind, bytes(key[1:]))

    def key_int64(self, value: int) -> bytes:
        """Prefix the big-endian 64-bit form of ``value``."""
        if self._length < 8:
            raise ValueError("field is too short to hold a 64-bit integer")
        encoded = _format(int(value))
        return bytes([self._prefix]) + encoded.ljust(self._length, b"\x00")

    def prefix(self) -> bytes:
        """The prefix as a one-byte string."""
        return bytes([self._prefix])

    def length(self) -> int:
        """Total key length, prefix included."""
        return 1 + self._length