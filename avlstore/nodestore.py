"""In-memory storage of tree nodes and version roots."""

from __future__ import annotations

from typing import Any, Iterator, Optional

from avlstore.nodekey import NODE_KEY_SIZE, get_node_key


class NodeStore:
    """Holds saved nodes by key and the root of every saved version.

    A node saved with nonce 1 is the root of its version. Versions may also
    point at a root saved earlier (a reference root) or have an empty root.
    Stored nodes must offer ``get_key()``, ``is_leaf()``, ``left_node_key``
    and ``right_node_key``.
    """

    def __init__(self) -> None:
        self._nodes: dict[bytes, Any] = {}
        self._roots: dict[int, Optional[bytes]] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, (bytes, bytearray)) and bytes(key) in self._nodes

    def save_node(self, node: Any) -> None:
        """Store ``node``; a node with nonce 1 becomes the root of its version."""
        key = bytes(node.get_key())
        self._nodes[key] = node
        if len(key) == NODE_KEY_SIZE:
            nk = get_node_key(key)
            if nk.nonce == 1:
                self._roots[nk.version] = key

    def get_node(self, key: bytes) -> Any:
        """Return the node stored under ``key``."""
        if not key:
            raise ValueError("get_node() requires a key")
        try:
            return self._nodes[bytes(key)]
        except KeyError:
            raise KeyError(f"node {bytes(key).hex()} not found") from None

    def save_root(self, version: int, node_key: bytes) -> None:
        """Make the already stored node ``node_key`` the root of ``version``."""
        node_key = bytes(node_key)
        if node_key not in self._nodes:
            raise KeyError(f"root node {node_key.hex()} not found")
        self._roots[version] = node_key

    def save_empty_root(self, version: int) -> None:
        """Record ``version`` as a version with an empty tree."""
        self._roots[version] = None

    def get_root(self, version: int) -> Optional[bytes]:
        """Key of the root of ``version``, or None for an empty tree."""
        try:
            return self._roots[version]
        except KeyError:
            raise KeyError(f"version {version} does not exist") from None

    def has_version(self, version: int) -> bool:
        return version in self._roots

    def first_version(self) -> int:
        """Lowest saved version, or 0 when nothing is saved."""
        return min(self._roots, default=0)

    def latest_version(self) -> int:
        """Highest saved version, or 0 when nothing is saved."""
        return max(self._roots, default=0)

    def versions(self) -> list[int]:
        """All saved versions in ascending order."""
        return sorted(self._roots)

    def delete_versions_to(self, to_version: int) -> None:
        """Delete every version up to and including ``to_version``.

        The latest version cannot be deleted.
        """
        latest = self.latest_version()
        if to_version >= latest:
            raise ValueError(
                f"latest version {latest} is less than or equal to to_version {to_version}"
            )
        for version in [v for v in self._roots if v <= to_version]:
            del self._roots[version]
        self._collect_garbage()

    def delete_versions_from(self, from_version: int) -> None:
        """Delete every version from ``from_version`` upwards, with their nodes."""
        for version in [v for v in self._roots if v >= from_version]:
            del self._roots[version]
        for key in [
            k
            for k in self._nodes
            if len(k) == NODE_KEY_SIZE and get_node_key(k).version >= from_version
        ]:
            del self._nodes[key]
        self._collect_garbage()

    def _reachable(self) -> Iterator[bytes]:
        seen: set[bytes] = set()
        stack = [key for key in self._roots.values() if key is not None]
        while stack:
            key = stack.pop()
            if key in seen:
                continue
            node = self._nodes.get(key)
            if node is None:
                continue
            seen.add(key)
            yield key
            if not node.is_leaf():
                for child in (node.left_node_key, node.right_node_key):
                    if child:
                        stack.append(bytes(child))

    def _collect_garbage(self) -> None:
        live = set(self._reachable())
        for key in [k for k in self._nodes if k not in live]:
            del self._nodes[key]