"""Copy-on-write AVL insertion, removal and rebalancing on tree nodes.

Every function takes a ``resolver`` that loads stored children by key (or
None when all nodes involved are held in memory). Persisted nodes are never
modified in place. Changed paths are cloned into new, unsaved nodes.
"""

from __future__ import annotations

from typing import Optional

from avlstore.node import Node, NodeError, NodeResolver, new_node


def _set_leaf(node: Node, key: bytes, value: bytes) -> tuple[Node, bool]:
    if key < node.key:
        return (
            Node(
                key=node.key,
                subtree_height=1,
                size=2,
                left_node=new_node(key, value),
                right_node=node,
            ),
            False,
        )
    if key > node.key:
        return (
            Node(
                key=key,
                subtree_height=1,
                size=2,
                left_node=node,
                right_node=new_node(key, value),
            ),
            False,
        )
    return new_node(key, value), True


def recursive_set(
    resolver: Optional[NodeResolver], node: Node, key: bytes, value: bytes
) -> tuple[Node, bool]:
    """Set ``key`` under ``node``.

    Returns the new subtree root and whether an existing key was updated.
    """
    if node.is_leaf():
        return _set_leaf(node, key, value)

    node = node.clone(resolver)
    if key < node.key:
        node.left_node, updated = recursive_set(resolver, node.left_node, key, value)
    else:
        node.right_node, updated = recursive_set(resolver, node.right_node, key, value)

    if updated:
        return node, True
    node.calc_height_and_size(resolver)
    return balance(resolver, node), False


def recursive_remove(
    resolver: Optional[NodeResolver], node: Node, key: bytes
) -> tuple[Optional[Node], Optional[bytes], Optional[bytes], bool]:
    """Remove ``key`` from under ``node``.

    Returns the replacement subtree (None if ``node`` itself was the removed
    leaf), the new leftmost key of the subtree if it changed, the removed
    value, and whether anything was removed.
    """
    if node.is_leaf():
        if key == node.key:
            return None, None, node.value, True
        return node, None, None, False

    node = node.clone(resolver)

    if key < node.key:
        new_left, new_key, value, removed = recursive_remove(
            resolver, node.left_node, key
        )
        if not removed:
            return node, None, value, False
        if new_left is None:
            # The left leaf held the key; the right sibling takes our place.
            return node.right_node, node.key, value, True
        node.left_node = new_left
        node.calc_height_and_size(resolver)
        return balance(resolver, node), new_key, value, True

    new_right, new_key, value, removed = recursive_remove(
        resolver, node.right_node, key
    )
    if not removed:
        return node, None, value, False
    if new_right is None:
        return node.left_node, None, value, True
    node.right_node = new_right
    if new_key is not None:
        node.key = new_key
    node.calc_height_and_size(resolver)
    return balance(resolver, node), None, value, True


def rotate_right(resolver: Optional[NodeResolver], node: Node) -> Node:
    """Rotate ``node`` right; its left child becomes the new subtree root."""
    node = node.clone(resolver)
    pivot = node.get_left_node(resolver).clone(resolver)

    node.left_node = pivot.get_right_node(resolver)
    pivot.right_node = node

    node.calc_height_and_size(resolver)
    pivot.calc_height_and_size(resolver)
    return pivot


def rotate_left(resolver: Optional[NodeResolver], node: Node) -> Node:
    """Rotate ``node`` left; its right child becomes the new subtree root."""
    node = node.clone(resolver)
    pivot = node.get_right_node(resolver).clone(resolver)

    node.right_node = pivot.get_left_node(resolver)
    pivot.left_node = node

    node.calc_height_and_size(resolver)
    pivot.calc_height_and_size(resolver)
    return pivot


def balance(resolver: Optional[NodeResolver], node: Node) -> Node:
    """Restore the AVL property at an unsaved ``node``; returns the new root."""
    if node.node_key is not None:
        raise NodeError("unexpected balance() call on persisted node")

    factor = node.calc_balance(resolver)

    if factor > 1:
        left = node.get_left_node(resolver)
        if left.calc_balance(resolver) >= 0:
            return rotate_right(resolver, node)
        node.left_node_key = None
        node.left_node = rotate_left(resolver, left)
        return rotate_right(resolver, node)

    if factor < -1:
        right = node.get_right_node(resolver)
        if right.calc_balance(resolver) <= 0:
            return rotate_left(resolver, node)
        node.right_node_key = None
        node.right_node = rotate_right(resolver, right)
        return rotate_left(resolver, node)

    return node


__all__ = [
    "balance",
    "recursive_remove",
    "recursive_set",
    "rotate_left",
    "rotate_right",
]