"""Depth-first traversal of tree nodes and key/value iterators over them."""

from __future__ import annotations

from typing import Any, Callable, Iterator as TypingIterator, Optional

from avlstore.node import Node, NodeResolver


class IteratorError(Exception):
    """Raised when an iterator cannot be created or advanced."""


_NIL_TREE_MESSAGE = (
    "iterator must be created with an immutable tree but the tree was nil"
)

_LOOKUP_ERRORS = (KeyError, ValueError)


class Traversal:
    """Lazy depth-first traversal of the nodes under ``root`` within a key range.

    Nodes are produced in preorder, or in postorder when ``post`` is set.
    Inner nodes are always produced; leaves only when their key lies in the
    range ``[start, end)``, or ``[start, end]`` when ``inclusive`` is set.
    A bound of None leaves that side open.
    """

    def __init__(
        self,
        resolver: Optional[NodeResolver],
        root: Optional[Node],
        start: Optional[bytes],
        end: Optional[bytes],
        ascending: bool,
        inclusive: bool,
        post: bool,
    ) -> None:
        self._resolver = resolver
        self._start = start
        self._end = end
        self._ascending = ascending
        self._inclusive = inclusive
        self._post = post
        # Each entry is (node, delayed); a delayed node still has to be expanded.
        self._pending: list[tuple[Optional[Node], bool]] = [(root, True)]

    def next(self) -> Optional[Node]:
        """The next node of the traversal, or None once it is exhausted."""
        while self._pending:
            node, delayed = self._pending.pop()
            if not delayed or node is None:
                return node

            key = node.key
            after_start = self._start is None or self._start < key
            start_or_after = after_start or self._start == key
            before_end = self._end is None or key < self._end
            if self._inclusive:
                before_end = before_end or key == self._end
            wanted = not node.is_leaf() or (start_or_after and before_end)

            if self._post and wanted:
                self._pending.append((node, False))

            if not node.is_leaf():
                if self._ascending:
                    if before_end:
                        self._pending.append((node.get_right_node(self._resolver), True))
                    if after_start:
                        self._pending.append((node.get_left_node(self._resolver), True))
                else:
                    if after_start:
                        self._pending.append((node.get_left_node(self._resolver), True))
                    if before_end:
                        self._pending.append((node.get_right_node(self._resolver), True))

            if not self._post and wanted:
                return node
        return None

    def __iter__(self) -> TypingIterator[Node]:
        while True:
            node = self.next()
            if node is None:
                return
            yield node


def traverse_in_range(
    resolver: Optional[NodeResolver],
    root: Optional[Node],
    start: Optional[bytes],
    end: Optional[bytes],
    ascending: bool,
    inclusive: bool,
    post: bool,
    callback: Callable[[Node], bool],
) -> bool:
    """Call ``callback`` on each traversed node; True if the callback stopped it."""
    traversal = Traversal(resolver, root, start, end, ascending, inclusive, post)
    for node in traversal:
        if callback(node):
            return True
    return False


class Iterator:
    """Iterates over the leaves of a tree in key order within ``[start, end)``.

    ``tree`` must offer a ``root`` attribute and a ``get_node(key)`` method.
    """

    def __init__(
        self,
        start: Optional[bytes],
        end: Optional[bytes],
        ascending: bool,
        tree: Any,
    ) -> None:
        self._start = start
        self._end = end
        self._key: Optional[bytes] = None
        self._value: Optional[bytes] = None
        self._valid = False
        self._error: Optional[Exception] = None
        self._traversal: Optional[Traversal] = None

        if tree is None:
            self._error = IteratorError(_NIL_TREE_MESSAGE)
            return
        self._valid = True
        self._traversal = Traversal(tree, tree.root, start, end, ascending, False, False)
        self.next()

    def domain(self) -> tuple[Optional[bytes], Optional[bytes]]:
        """The start and end bounds the iterator was created with."""
        return self._start, self._end

    def valid(self) -> bool:
        return self._valid

    def key(self) -> Optional[bytes]:
        return self._key

    def value(self) -> Optional[bytes]:
        return self._value

    def next(self) -> None:
        """Advance to the next leaf; the iterator becomes invalid at the end."""
        if self._traversal is None:
            return
        while True:
            try:
                node = self._traversal.next()
            except _LOOKUP_ERRORS as exc:
                self._error = exc
                node = None
            if node is None:
                self._traversal = None
                self._valid = False
                return
            if node.is_leaf():
                self._key, self._value = node.key, node.value
                return

    def close(self) -> None:
        """Stop iterating; raises the error the iterator met, if any."""
        self._traversal = None
        self._valid = False
        if self._error is not None:
            raise self._error

    def error(self) -> Optional[Exception]:
        """The error the iterator met, if any."""
        return self._error

    def is_fast(self) -> bool:
        return False

    def __iter__(self) -> TypingIterator[tuple[bytes, bytes]]:
        while self._valid:
            yield self._key, self._value
            self.next()


class NodeIterator:
    """Preorder, depth-first walk over the stored nodes of a tree.

    ``store`` must offer ``get_node(key)``. Subtrees can be skipped.
    """

    def __init__(self, root_key: Optional[bytes], store: Any) -> None:
        self._store = store
        self._error: Optional[Exception] = None
        self._to_visit: list[Node] = []
        if root_key:
            self._to_visit.append(store.get_node(root_key))

    def get_node(self) -> Node:
        """The node currently visited."""
        if not self._to_visit:
            raise IteratorError("node iterator is exhausted")
        return self._to_visit[-1]

    def valid(self) -> bool:
        return self._error is None and bool(self._to_visit)

    def error(self) -> Optional[Exception]:
        return self._error

    def next(self, skipped: bool = False) -> None:
        """Move on; when ``skipped`` is set the current node's subtree is not visited."""
        if not self.valid():
            return
        node = self._to_visit.pop()
        if skipped or node.is_leaf():
            return
        try:
            self._to_visit.append(self._store.get_node(node.right_node_key))
            self._to_visit.append(self._store.get_node(node.left_node_key))
        except _LOOKUP_ERRORS as exc:
            self._error = exc


__all__ = [
    "Iterator",
    "IteratorError",
    "NodeIterator",
    "Traversal",
    "traverse_in_range",
]