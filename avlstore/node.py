"""Tree nodes: layout, wire encoding, hashing and lookups."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol

from avlstore.nodekey import (
    EncodingError,
    NodeKey,
    bytes_size,
    decode_bytes,
    decode_varint,
    encode_bytes,
    encode_varint,
    get_node_key,
    varint_size,
)

MODE_LEGACY_LEFT_NODE = 0x01
MODE_LEGACY_RIGHT_NODE = 0x02
HASH_SIZE = 32

_INT8_MIN, _INT8_MAX = -128, 127
_UINT32_MAX = (1 << 32) - 1


class NodeError(ValueError):
    """Raised for malformed nodes or nodes used in an invalid way."""


class NodeResolver(Protocol):
    """Anything that can load a stored node by its key."""

    def get_node(self, key: bytes) -> "Node": ...


def _encode_hash(digest: Optional[bytes]) -> bytes:
    return bytes([HASH_SIZE]) + bytes(digest or b"")


def _hex(data: Optional[bytes]) -> str:
    return data.hex() if data else ""


@dataclass
class Node:
    """A node of the tree; a leaf when ``subtree_height`` is zero."""

    key: Optional[bytes] = None
    value: Optional[bytes] = None
    hash: Optional[bytes] = None
    node_key: Optional[NodeKey] = None
    left_node_key: Optional[bytes] = None
    right_node_key: Optional[bytes] = None
    size: int = 0
    left_node: Optional["Node"] = field(default=None, repr=False)
    right_node: Optional["Node"] = field(default=None, repr=False)
    subtree_height: int = 0
    is_legacy: bool = False

    def get_key(self) -> bytes:
        """The storage key: the hash for legacy nodes, else the node key bytes."""
        if self.is_legacy:
            return self.hash
        if self.node_key is None:
            raise NodeError("node has no node key")
        return self.node_key.to_bytes()

    def is_leaf(self) -> bool:
        return self.subtree_height == 0

    def validate(self) -> None:
        """Raise :class:`NodeError` if the node's contents are inconsistent."""
        if self.key is None:
            raise NodeError("key cannot be nil")
        if self.node_key is None:
            raise NodeError("nodeKey cannot be nil")
        if self.node_key.version <= 0:
            raise NodeError("version must be greater than 0")
        if self.subtree_height < 0:
            raise NodeError("height cannot be less than 0")
        if self.size < 1:
            raise NodeError("size must be at least 1")
        if self.subtree_height == 0:
            if self.value is None:
                raise NodeError("value cannot be nil for leaf node")
            if any(
                child is not None
                for child in (
                    self.left_node_key,
                    self.left_node,
                    self.right_node_key,
                    self.right_node,
                )
            ):
                raise NodeError("leaf node cannot have children")
            if self.size != 1:
                raise NodeError("leaf nodes must have size 1")
        elif self.value is not None:
            raise NodeError("value must be nil for non-leaf node")

    def encoded_size(self) -> int:
        """Estimated size of :meth:`to_bytes` output."""
        n = 1 + varint_size(self.size) + bytes_size(self.key or b"")
        if self.is_leaf():
            return n + bytes_size(self.value or b"")
        n += bytes_size(self.hash or b"")
        for child_key in (self.left_node_key, self.right_node_key):
            if child_key is not None:
                nk = get_node_key(child_key)
                n += varint_size(nk.version) + varint_size(nk.nonce)
        return n

    def to_bytes(self) -> bytes:
        """Serialize the node for storage."""
        out = bytearray()
        out += encode_varint(self.subtree_height)
        out += encode_varint(self.size)
        out += encode_bytes(self.key or b"")
        if self.is_leaf():
            out += encode_bytes(self.value or b"")
            return bytes(out)

        out += _encode_hash(self.hash)
        if self.left_node_key is None:
            raise NodeError("node.leftNodeKey was empty in writeBytes")
        mode = 0
        if len(self.left_node_key) == HASH_SIZE:
            mode |= MODE_LEGACY_LEFT_NODE
        if self.right_node_key is not None and len(self.right_node_key) == HASH_SIZE:
            mode |= MODE_LEGACY_RIGHT_NODE
        out += encode_varint(mode)
        out += self._encode_child(self.left_node_key, mode & MODE_LEGACY_LEFT_NODE)
        if self.right_node_key is None:
            raise NodeError("node.rightNodeKey was empty in writeBytes")
        out += self._encode_child(self.right_node_key, mode & MODE_LEGACY_RIGHT_NODE)
        return bytes(out)

    @staticmethod
    def _encode_child(child_key: bytes, legacy: int) -> bytes:
        if legacy:
            return _encode_hash(child_key)
        nk = get_node_key(child_key)
        return encode_varint(nk.version) + encode_varint(nk.nonce)

    def hash_bytes(self, version: int) -> bytes:
        """The bytes hashed to produce this node's hash; child hashes must be set."""
        out = bytearray()
        out += encode_varint(self.subtree_height)
        out += encode_varint(self.size)
        out += encode_varint(version)
        if self.is_leaf():
            out += encode_bytes(self.key or b"")
            out += _encode_hash(hashlib.sha256(self.value or b"").digest())
        else:
            if self.left_node is None or self.right_node is None:
                raise NodeError("found an empty child")
            out += _encode_hash(self.left_node.hash)
            out += _encode_hash(self.right_node.hash)
        return bytes(out)

    def compute_hash(self, version: int) -> Optional[bytes]:
        """Hash this node alone, caching the result; None if children lack hashes."""
        if self.hash is not None:
            return self.hash
        try:
            data = self.hash_bytes(version)
        except NodeError:
            return None
        self.hash = hashlib.sha256(data).digest()
        return self.hash

    def hash_with_count(self, version: int) -> bytes:
        """Hash this node and any unhashed descendants, caching every result."""
        if self.hash is not None:
            return self.hash
        for child in (self.left_node, self.right_node):
            if child is not None:
                child.hash_with_count(version)
        self.hash = hashlib.sha256(self.hash_bytes(version)).digest()
        return self.hash

    def clone(self, resolver: Optional[NodeResolver]) -> "Node":
        """A shallow, unsaved copy of an inner node with its hash cleared."""
        if self.is_leaf():
            raise NodeError("attempt to copy a leaf node")
        left, right = self.left_node, self.right_node
        if self.node_key is not None:
            left = self.get_left_node(resolver)
            right = self.get_right_node(resolver)
            self.left_node = None
            self.right_node = None
        return Node(
            key=self.key,
            subtree_height=self.subtree_height,
            size=self.size,
            left_node_key=self.left_node_key,
            right_node_key=self.right_node_key,
            left_node=left,
            right_node=right,
        )

    def get_left_node(self, resolver: Optional[NodeResolver]) -> "Node":
        if self.left_node is not None:
            return self.left_node
        if resolver is None:
            raise NodeError("left child is not loaded and no resolver was given")
        return resolver.get_node(self.left_node_key)

    def get_right_node(self, resolver: Optional[NodeResolver]) -> "Node":
        if self.right_node is not None:
            return self.right_node
        if resolver is None:
            raise NodeError("right child is not loaded and no resolver was given")
        return resolver.get_node(self.right_node_key)

    def calc_height_and_size(self, resolver: Optional[NodeResolver]) -> None:
        """Recompute height and size from the children."""
        left = self.get_left_node(resolver)
        right = self.get_right_node(resolver)
        self.subtree_height = max(left.subtree_height, right.subtree_height) + 1
        self.size = left.size + right.size

    def calc_balance(self, resolver: Optional[NodeResolver]) -> int:
        """Left height minus right height."""
        left = self.get_left_node(resolver)
        right = self.get_right_node(resolver)
        return left.subtree_height - right.subtree_height

    def has(self, resolver: Optional[NodeResolver], key: bytes) -> bool:
        """Whether ``key`` is present under this node."""
        node = self
        while True:
            if node.key == key:
                return True
            if node.is_leaf():
                return False
            if key < node.key:
                node = node.get_left_node(resolver)
            else:
                node = node.get_right_node(resolver)

    def get(
        self, resolver: Optional[NodeResolver], key: bytes
    ) -> tuple[int, Optional[bytes]]:
        """The leaf index at which ``key`` is or would be, and its value if present."""
        node = self
        index = 0
        while not node.is_leaf():
            if key < node.key:
                node = node.get_left_node(resolver)
            else:
                right = node.get_right_node(resolver)
                index += node.size - right.size
                node = right
        if node.key < key:
            return index + 1, None
        if node.key > key:
            return index, None
        return index, node.value

    def get_by_index(
        self, resolver: Optional[NodeResolver], index: int
    ) -> tuple[Optional[bytes], Optional[bytes]]:
        """Key and value of the leaf at ``index``, or (None, None)."""
        node = self
        while not node.is_leaf():
            left = node.get_left_node(resolver)
            if index < left.size:
                node = left
            else:
                index -= left.size
                node = node.get_right_node(resolver)
        if index == 0:
            return node.key, node.value
        return None, None

    def __str__(self) -> str:
        child = ""
        if self.left_node is not None and self.left_node.node_key is not None:
            child += f"{{left {self.left_node.node_key}}}"
        if self.right_node is not None and self.right_node.node_key is not None:
            child += f"{{right {self.right_node.node_key}}}"
        return (
            f"Node{{{_hex(self.key)}:{_hex(self.value)}@ {self.node_key}:"
            f"{_hex(self.left_node_key)}-{_hex(self.right_node_key)} "
            f"{self.size}-{self.subtree_height} {_hex(self.hash)}}}#{child}"
        )


def new_node(key: bytes, value: bytes) -> Node:
    """A new, unsaved leaf."""
    return Node(key=key, value=value, subtree_height=0, size=1)


def empty_hash() -> bytes:
    """The hash of an empty tree: SHA-256 of no input."""
    return hashlib.sha256(b"").digest()


class _Reader:
    def __init__(self, buf: bytes) -> None:
        self._buf = bytes(buf)
        self._pos = 0

    def varint(self, what: str) -> int:
        try:
            value, n = decode_varint(self._buf[self._pos:])
        except EncodingError as exc:
            raise NodeError(f"decoding {what}, {exc}") from exc
        self._pos += n
        return value

    def bytes(self, what: str) -> bytes:
        try:
            value, n = decode_bytes(self._buf[self._pos:])
        except EncodingError as exc:
            raise NodeError(f"decoding {what}, {exc}") from exc
        self._pos += n
        return value


def _read_child_key(reader: _Reader, legacy: bool, side: str) -> bytes:
    if legacy:
        return reader.bytes(f"legacy node.{side}NodeKey")
    version = reader.varint(f"node.{side}NodeKey.version")
    nonce = reader.varint(f"node.{side}NodeKey.nonce")
    if not 0 <= nonce <= _UINT32_MAX:
        raise NodeError(f"invalid {side}NodeKey.nonce, out of int32 range")
    return NodeKey(version, nonce).to_bytes()


def make_node(nk: bytes, buf: bytes) -> Node:
    """Decode a node stored under node key ``nk``."""
    reader = _Reader(buf)
    height = reader.varint("node.height")
    if not _INT8_MIN <= height <= _INT8_MAX:
        raise NodeError("invalid height, out of int8 range")
    size = reader.varint("node.size")
    key = reader.bytes("node.key")
    try:
        node_key = get_node_key(nk)
    except EncodingError as exc:
        raise NodeError(str(exc)) from exc
    node = Node(subtree_height=height, size=size, node_key=node_key, key=key)

    if node.is_leaf():
        node.value = reader.bytes("node.value")
        node.compute_hash(node_key.version)
        return node

    node.hash = reader.bytes("node.hash")
    mode = reader.varint("mode")
    if not 0 <= mode <= 3:
        raise NodeError("invalid mode")
    node.left_node_key = _read_child_key(
        reader, bool(mode & MODE_LEGACY_LEFT_NODE), "left"
    )
    node.right_node_key = _read_child_key(
        reader, bool(mode & MODE_LEGACY_RIGHT_NODE), "right"
    )
    return node


def make_legacy_node(hash_: bytes, buf: bytes) -> Node:
    """Decode a node in the legacy format, stored under its hash."""
    reader = _Reader(buf)
    height = reader.varint("node.height")
    if not _INT8_MIN <= height <= _INT8_MAX:
        raise NodeError("invalid height, must be int8")
    size = reader.varint("node.size")
    version = reader.varint("node.version")
    key = reader.bytes("node.key")
    node = Node(
        subtree_height=height,
        size=size,
        node_key=NodeKey(version, 0),
        key=key,
        hash=hash_,
        is_legacy=True,
    )
    if node.is_leaf():
        node.value = reader.bytes("node.value")
    else:
        node.left_node_key = reader.bytes("node.leftHash")
        node.right_node_key = reader.bytes("node.rightHash")
    return node


__all__ = [
    "HASH_SIZE",
    "MODE_LEGACY_LEFT_NODE",
    "MODE_LEGACY_RIGHT_NODE",
    "Node",
    "NodeError",
    "empty_hash",
    "make_legacy_node",
    "make_node",
    "new_node",
    "replace",
]