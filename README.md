# avlstore

Building blocks for a persistent AVL+ tree whose nodes carry a Merkle
hash (SHA-256) over the keys, the values and the shape of the tree. Keys
and values are `bytes`; keys are kept in sorted order, and only the leaves
hold values.

The package has no third-party dependencies.

## Installation

```
pip install .
```

## Quick start

```python
from avlstore.avl import recursive_remove, recursive_set
from avlstore.immutable_tree import ImmutableTree
from avlstore.node import new_node
from avlstore.nodestore import NodeStore

root = new_node(b"alice", b"1")
root, updated = recursive_set(None, root, b"bob", b"2")     # updated is False
root, updated = recursive_set(None, root, b"carol", b"3")

tree = ImmutableTree(NodeStore(), root, 1)
tree.size()                        # 3
tree.get(b"bob")                   # b"2"
tree.get_with_index(b"carol")      # (2, b"3")
tree.has(b"dave")                  # False
list(tree.iterator(b"b", None, True))
# [(b"bob", b"2"), (b"carol", b"3")]
tree.hash()                        # 32-byte root hash for version 1

root, _, removed_value, removed = recursive_remove(None, root, b"alice")
# removed_value == b"1", removed is True
```

Passing `None` as the resolver works while every node is held in memory.
When children are only known by key, pass an object with a
`get_node(key)` method, such as a `NodeStore` or an `ImmutableTree`.

## Modules

- `avlstore.avl`: copy-on-write insertion and removal with AVL
  rebalancing: `recursive_set`, `recursive_remove`, `balance`,
  `rotate_left` and `rotate_right`. Saved nodes (those with a node key)
  are never changed in place; changed paths are cloned.
- `avlstore.node`: the `Node` dataclass with its binary encoding
  (`to_bytes`, `encoded_size`), hashing (`hash_bytes`, `compute_hash`,
  `hash_with_count`), validation (`validate`) and lookups (`has`, `get`,
  `get_by_index`). `new_node` makes a leaf, `make_node` and
  `make_legacy_node` decode stored nodes, and `empty_hash` is the hash of
  an empty tree.
- `avlstore.nodekey`: `NodeKey` (version and nonce, 12 bytes on the
  wire), `get_node_key`, `get_root_key`, and the zig-zag varint and
  length-prefixed byte-string encoding (`encode_varint`, `decode_varint`,
  `encode_bytes`, `decode_bytes`, `varint_size`, `bytes_size`).
- `avlstore.nodestore`: `NodeStore`, an in-memory store of nodes by key
  and of the root of each version. It can list versions and delete
  versions below or above a given version, dropping nodes no remaining
  version reaches. Saving a node whose nonce is 1 makes it the root of
  its version.
- `avlstore.immutable_tree`: `ImmutableTree`, a read-only view of a tree
  at one version: size, hash, lookups, `iterate(fn)` and
  `iterator(start, end, ascending)`.
- `avlstore.iterator`: `Iterator` walks leaves between `start`
  (included) and `end` (excluded) in ascending or descending order;
  `Traversal` and `traverse_in_range` walk nodes in preorder or postorder;
  `NodeIterator` walks stored nodes depth-first in preorder and can skip
  subtrees.
- `avlstore.keyformat`: `KeyFormat` and `FastPrefixFormatter` build
  fixed-width database keys that sort in lexicographic order, and scan
  them back.
- `avlstore.logger`: `Logger` writes messages with key/value pairs
  through the standard `logging` module; `NopLogger` and `new_nop_logger`
  discard them.

## Errors

- `avlstore.node.NodeError` for malformed nodes, nodes that cannot be
  decoded, cloning a leaf, or balancing a saved node.
- `avlstore.nodekey.EncodingError` for bytes that cannot be encoded or
  decoded.
- `avlstore.iterator.IteratorError` for an iterator created without a
  tree (recorded and returned by `error()`, raised by `close()`) or a
  `NodeIterator` read past its end.
- `NodeStore` raises `KeyError` for unknown nodes or versions and
  `ValueError` when asked to delete the latest version.

## What this package does not do

- There is no working tree that tracks unsaved changes, saves them as
  new versions, assigns node keys, loads or rolls back versions, or reads
  a key at a past version. Those steps have to be put together by the
  caller from the modules above.
- `NodeStore` keeps everything in memory; nothing is written to disk.
- There is no command-line tool.

## Running the tests

```
pip install ".[test]"
pytest
```