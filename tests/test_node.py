import pytest

from avlstore.node import (
    Node,
    NodeError,
    empty_hash,
    make_legacy_node,
    make_node,
    new_node,
)
from avlstore.nodekey import NodeKey, encode_bytes, encode_varint

CHILD_HASH = bytes(
    [
        0x7F, 0x68, 0x90, 0xCA, 0x16, 0xDE, 0xA6, 0xE8, 0x89, 0x3D, 0x96, 0xF0,
        0xA3, 0x0D, 0x0A, 0x14, 0xE5, 0x55, 0x59, 0xFC, 0x9B, 0x83, 0x04, 0x91,
        0xE3, 0xD2, 0x45, 0x1C, 0x81, 0xF6, 0xD1, 0x0E,
    ]
)
CHILD_KEY = NodeKey(1, 1)


class _Resolver:
    def __init__(self, nodes):
        self.nodes = {n.get_key(): n for n in nodes}
        self.calls = 0

    def get_node(self, key):
        self.calls += 1
        return self.nodes[key]


def test_encoded_size():
    nk = NodeKey(1, 1)
    node = Node(
        key=b"k" * 10,
        value=b"v" * 10,
        subtree_height=0,
        size=100,
        hash=b"h" * 20,
        node_key=nk,
        left_node_key=nk.to_bytes(),
        right_node_key=nk.to_bytes(),
    )
    assert node.encoded_size() == 25
    node.subtree_height = 1
    assert node.encoded_size() == 39


ENCODE_CASES = {
    "inner": (
        Node(
            subtree_height=3,
            size=7,
            key=b"key",
            node_key=NodeKey(2, 1),
            left_node_key=CHILD_KEY.to_bytes(),
            right_node_key=CHILD_KEY.to_bytes(),
            hash=CHILD_HASH,
        ),
        "060e036b6579207f6890ca16dea6e8893d96f0a30d0a14e55559fc9b830491e3d2451c81f6d10e0002020202",
    ),
    "inner hybrid": (
        Node(
            subtree_height=3,
            size=7,
            key=b"key",
            node_key=NodeKey(2, 1),
            left_node_key=CHILD_KEY.to_bytes(),
            right_node_key=CHILD_HASH,
            hash=CHILD_HASH,
        ),
        "060e036b6579207f6890ca16dea6e8893d96f0a30d0a14e55559fc9b830491e3d2451c81f6d10e040202207f6890ca16dea6e8893d96f0a30d0a14e55559fc9b830491e3d2451c81f6d10e",
    ),
    "leaf": (
        Node(
            subtree_height=0,
            size=1,
            key=b"key",
            value=b"value",
            node_key=NodeKey(3, 1),
            hash=CHILD_HASH,
        ),
        "0002036b65790576616c7565",
    ),
}


@pytest.mark.parametrize("name", sorted(ENCODE_CASES))
def test_encode_decode(name):
    node, expected_hex = ENCODE_CASES[name]
    data = node.to_bytes()
    assert data.hex() == expected_hex
    decoded = make_node(node.get_key(), data)
    assert decoded == node


def test_to_bytes_requires_left_key():
    node = Node(subtree_height=1, size=2, key=b"k", hash=CHILD_HASH)
    with pytest.raises(NodeError, match="leftNodeKey"):
        node.to_bytes()


def test_to_bytes_requires_right_key():
    node = Node(
        subtree_height=1, size=2, key=b"k", hash=CHILD_HASH,
        left_node_key=CHILD_KEY.to_bytes(),
    )
    with pytest.raises(NodeError, match="rightNodeKey"):
        node.to_bytes()


_K, _V = b"key", b"value"
_NK = NodeKey(1, 1)
_C = Node(key=b"child", value=b"x", size=1)

VALIDATE_CASES = {
    "leaf": (Node(key=_K, value=_V, node_key=_NK, size=1), True),
    "leaf with nil key": (Node(key=None, value=_V, size=1), False),
    "leaf with empty key": (Node(key=b"", value=_V, node_key=_NK, size=1), True),
    "leaf with nil value": (Node(key=_K, value=None, size=1), False),
    "leaf with empty value": (Node(key=_K, value=b"", node_key=_NK, size=1), True),
    "leaf with version 0": (Node(key=_K, value=_V, size=1), False),
    "leaf with version -1": (Node(key=_K, value=_V, size=1), False),
    "leaf with size 0": (Node(key=_K, value=_V, size=0), False),
    "leaf with size 2": (Node(key=_K, value=_V, size=2), False),
    "leaf with size -1": (Node(key=_K, value=_V, size=-1), False),
    "leaf with left node key": (
        Node(key=_K, value=_V, size=1, left_node_key=_NK.to_bytes()), False),
    "leaf with left child": (Node(key=_K, value=_V, size=1, left_node=_C), False),
    "leaf with right node key": (
        Node(key=_K, value=_V, size=1, right_node_key=_NK.to_bytes()), False),
    "leaf with right child": (Node(key=_K, value=_V, size=1, right_node=_C), False),
    "inner": (
        Node(key=_K, size=1, subtree_height=1, node_key=_NK,
             left_node_key=_NK.to_bytes(), right_node_key=_NK.to_bytes()), True),
    "inner with nil key": (
        Node(key=None, value=_V, size=1, subtree_height=1,
             left_node_key=_NK.to_bytes(), right_node_key=_NK.to_bytes()), False),
    "inner with value": (
        Node(key=_K, value=_V, size=1, subtree_height=1,
             left_node_key=_NK.to_bytes(), right_node_key=_NK.to_bytes()), False),
    "inner with empty value": (
        Node(key=_K, value=b"", size=1, subtree_height=1,
             left_node_key=_NK.to_bytes(), right_node_key=_NK.to_bytes()), False),
    "inner with left child": (
        Node(key=_K, size=1, subtree_height=1, node_key=_NK,
             left_node_key=_NK.to_bytes()), True),
    "inner with right child": (
        Node(key=_K, size=1, subtree_height=1, node_key=_NK,
             right_node_key=_NK.to_bytes()), True),
    "inner with no child": (Node(key=_K, size=1, subtree_height=1), False),
    "inner with height 0": (
        Node(key=_K, size=1, subtree_height=0,
             left_node_key=_NK.to_bytes(), right_node_key=_NK.to_bytes()), False),
}


@pytest.mark.parametrize("name", sorted(VALIDATE_CASES))
def test_validate(name):
    node, valid = VALIDATE_CASES[name]
    if valid:
        assert node.validate() is None
    else:
        with pytest.raises(NodeError):
            node.validate()


def test_make_node_rejects_out_of_range_height():
    buf = encode_varint(200) + encode_varint(1) + encode_bytes(b"k") + encode_bytes(b"v")
    with pytest.raises(NodeError, match="int8"):
        make_node(NodeKey(1, 1).to_bytes(), buf)


def test_make_node_rejects_invalid_mode():
    buf = (
        encode_varint(1) + encode_varint(2) + encode_bytes(b"k")
        + encode_bytes(CHILD_HASH) + encode_varint(4)
    )
    with pytest.raises(NodeError, match="invalid mode"):
        make_node(NodeKey(1, 1).to_bytes(), buf)


def test_make_node_rejects_large_nonce():
    buf = (
        encode_varint(1) + encode_varint(2) + encode_bytes(b"k")
        + encode_bytes(CHILD_HASH) + encode_varint(0)
        + encode_varint(1) + encode_varint(1 << 33)
    )
    with pytest.raises(NodeError, match="nonce"):
        make_node(NodeKey(1, 1).to_bytes(), buf)


def test_make_node_truncated():
    with pytest.raises(NodeError, match="node.key"):
        make_node(NodeKey(1, 1).to_bytes(), encode_varint(0) + encode_varint(1) + b"\x05ab")


def test_make_legacy_leaf():
    buf = encode_varint(0) + encode_varint(1) + encode_varint(5) + encode_bytes(b"a") + encode_bytes(b"b")
    node = make_legacy_node(CHILD_HASH, buf)
    assert node.is_legacy
    assert node.is_leaf()
    assert node.node_key == NodeKey(5, 0)
    assert (node.key, node.value) == (b"a", b"b")
    assert node.get_key() == CHILD_HASH


def test_make_legacy_inner_and_mode_round_trip():
    left_hash, right_hash = b"\x01" * 32, b"\x02" * 32
    buf = (
        encode_varint(1) + encode_varint(2) + encode_varint(4) + encode_bytes(b"m")
        + encode_bytes(left_hash) + encode_bytes(right_hash)
    )
    legacy = make_legacy_node(CHILD_HASH, buf)
    assert legacy.left_node_key == left_hash
    assert legacy.right_node_key == right_hash

    upgraded = Node(
        key=legacy.key, size=legacy.size, subtree_height=legacy.subtree_height,
        hash=legacy.hash, node_key=NodeKey(4, 3),
        left_node_key=left_hash, right_node_key=right_hash,
    )
    data = upgraded.to_bytes()
    assert make_node(upgraded.get_key(), data) == upgraded


def test_make_legacy_rejects_height():
    with pytest.raises(NodeError, match="int8"):
        make_legacy_node(CHILD_HASH, encode_varint(-200))


def _small_tree():
    a, b, c = new_node(b"a", b"va"), new_node(b"b", b"vb"), new_node(b"c", b"vc")
    inner = Node(key=b"b", left_node=a, right_node=b)
    inner.calc_height_and_size(None)
    root = Node(key=b"c", left_node=inner, right_node=c)
    root.calc_height_and_size(None)
    return root


def test_calc_height_size_and_balance():
    root = _small_tree()
    assert (root.subtree_height, root.size) == (2, 3)
    assert root.calc_balance(None) == 1


def test_get_and_index():
    root = _small_tree()
    assert root.get(None, b"b") == (1, b"vb")
    assert root.get(None, b"bb") == (2, None)
    assert root.get(None, b"0") == (0, None)
    assert root.get(None, b"c") == (2, b"vc")
    assert root.get(None, b"z") == (3, None)


def test_get_by_index():
    root = _small_tree()
    assert root.get_by_index(None, 0) == (b"a", b"va")
    assert root.get_by_index(None, 1) == (b"b", b"vb")
    assert root.get_by_index(None, 2) == (b"c", b"vc")
    assert root.get_by_index(None, 5) == (None, None)


def test_has():
    root = _small_tree()
    assert root.has(None, b"c")
    assert root.has(None, b"a")
    assert not root.has(None, b"x")


def test_empty_hash():
    assert empty_hash().hex() == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_hash_with_count_hashes_descendants():
    root = _small_tree()
    digest = root.hash_with_count(1)
    assert len(digest) == 32
    assert root.hash == digest
    assert all(len(n.hash) == 32 for n in (root.left_node, root.right_node,
                                            root.left_node.left_node))
    assert _small_tree().hash_with_count(1) == digest
    assert _small_tree().hash_with_count(2) != digest


def test_compute_hash_without_child_hashes_is_none():
    node = Node(key=b"k", subtree_height=1, size=2)
    assert node.compute_hash(1) is None
    assert node.hash is None


def test_hash_bytes_leaf_prefix():
    node = new_node(b"key", b"value")
    data = node.hash_bytes(3)
    assert data[:7] == bytes.fromhex("000206036b6579")
    assert data[7] == 0x20
    assert len(data) == 7 + 33


def test_clone_leaf_fails():
    with pytest.raises(NodeError, match="leaf"):
        new_node(b"a", b"b").clone(None)


def test_clone_persisted_resolves_children():
    left = new_node(b"a", b"va")
    left.node_key = NodeKey(1, 2)
    right = new_node(b"b", b"vb")
    right.node_key = NodeKey(1, 3)
    parent = Node(
        key=b"b", subtree_height=1, size=2, hash=b"\x09" * 32,
        node_key=NodeKey(1, 1),
        left_node_key=left.get_key(), right_node_key=right.get_key(),
    )
    resolver = _Resolver([left, right])
    copy = parent.clone(resolver)
    assert copy.left_node is left and copy.right_node is right
    assert copy.node_key is None and copy.hash is None
    assert (copy.key, copy.size, copy.subtree_height) == (b"b", 2, 1)
    assert resolver.calls == 2
    assert parent.left_node is None and parent.right_node is None


def test_get_left_node_without_resolver_fails():
    parent = Node(key=b"b", subtree_height=1, size=2, left_node_key=b"x" * 12)
    with pytest.raises(NodeError):
        parent.get_left_node(None)


def test_get_key_without_node_key_fails():
    with pytest.raises(NodeError):
        new_node(b"a", b"b").get_key()


def test_str_includes_children_keys():
    root = _small_tree()
    root.left_node.node_key = NodeKey(4, 2)
    text = str(root)
    assert text.startswith("Node{63:@ None:")
    assert text.endswith("#{left (4, 2)}")