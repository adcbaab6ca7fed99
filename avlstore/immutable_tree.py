"""A read-only view of one version of the tree."""

from __future__ import annotations

from typing import Any, Callable, Optional

from avlstore.iterator import Iterator
from avlstore.node import Node, empty_hash


class ImmutableTree:
    """The tree rooted at ``root`` as of ``version``.

    Children that are not held in memory are loaded from ``store``.
    """

    def __init__(self, store: Any, root: Optional[Node] = None, version: int = 0) -> None:
        self.store = store
        self.root = root
        self.version = version

    def get_node(self, key: bytes) -> Node:
        """Load a stored node by key."""
        if self.store is None:
            raise KeyError("tree has no node store")
        return self.store.get_node(key)

    def size(self) -> int:
        """Number of keys in the tree."""
        return 0 if self.root is None else self.root.size

    def hash(self) -> bytes:
        """Root hash of the tree; the hash of no input when it is empty."""
        if self.root is None:
            return empty_hash()
        return self.root.hash_with_count(self.version)

    def get(self, key: bytes) -> Optional[bytes]:
        """The value stored at ``key``, or None."""
        if self.root is None:
            return None
        return self.root.get(self, key)[1]

    def get_with_index(self, key: bytes) -> tuple[int, Optional[bytes]]:
        """The sorted index where ``key`` is or would be, and its value if present."""
        if self.root is None:
            return 0, None
        return self.root.get(self, key)

    def has(self, key: bytes) -> bool:
        if self.root is None:
            return False
        return self.root.has(self, key)

    def iterate(self, fn: Callable[[bytes, bytes], bool]) -> bool:
        """Call ``fn`` on every key/value in order; True if ``fn`` stopped it."""
        if self.root is None:
            return False
        itr = Iterator(None, None, True, self)
        for key, value in itr:
            if fn(key, value):
                itr.close()
                return True
        itr.close()
        return False

    def iterator(
        self, start: Optional[bytes], end: Optional[bytes], ascending: bool
    ) -> Iterator:
        """An iterator over the keys in ``[start, end)``."""
        return Iterator(start, end, ascending, self)

    def clone(self) -> "ImmutableTree":
        """A new view sharing the same root, store and version."""
        return ImmutableTree(self.store, self.root, self.version)


__all__ = ["ImmutableTree"]