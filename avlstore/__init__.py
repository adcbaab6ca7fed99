"""Building blocks for a persistent AVL+ tree with Merkle hashing."""

__version__ = "0.1.0"

__all__ = [
    "avl",
    "immutable_tree",
    "iterator",
    "keyformat",
    "logger",
    "node",
    "nodekey",
    "nodestore",
]