from __future__ import annotations

import pytest

from octogrid import (
    NodeNotFoundError,
    OcTreeBase,
    OcTreeNode,
    OutOfBoundsError,
    PreconditionViolation,
)
from octogrid.keys import key_path


def _root_only_tree(resolution: float = 0.1) -> OcTreeBase:
    return OcTreeBase(resolution, root=OcTreeNode())


@pytest.mark.parametrize(
    "point",
    [(0.0, 0.0, 0.0), (1.0, -2.0, 3.0), (-3000.0, 3000.0, -0.05), (3276.0, -3276.0, 0.0)],
)
def test_root_only_tree_returns_root(point) -> None:
    tree = _root_only_tree()
    assert tree.search(point) is tree.root


def test_search_out_of_bounds_names_axis() -> None:
    tree = _root_only_tree()
    with pytest.raises(OutOfBoundsError) as info:
        tree.search((0.0, 0.0, 5000.0))
    assert info.value.axis == 2
    assert info.value.operation == "search"
    assert "coordinate 2" in str(info.value)


def test_search_without_root_is_precondition_violation() -> None:
    tree = OcTreeBase(0.1)
    with pytest.raises(PreconditionViolation):
        tree.search((0.0, 0.0, 0.0))


def test_search_descends_into_first_level_octant() -> None:
    tree = _root_only_tree()
    children = tree.root.expand()

    # x > 0, y < 0, z > 0 -> bit15 set on x and z -> octant 1 + 4
    assert tree.search((1.0, -1.0, 1.0)) is children[5]
    assert tree.search((-1.0, -1.0, -1.0)) is children[0]
    assert tree.search((1.0, 1.0, 1.0)) is children[7]
    # 0.0 quantizes to key 32768, i.e. the positive half
    assert tree.search((0.0, 0.0, 0.0)) is children[7]


def test_search_in_unexpanded_gap_raises_not_found() -> None:
    tree = _root_only_tree()
    only = tree.root.create_child(0)

    assert tree.search((-1.0, -1.0, -1.0)) is only
    with pytest.raises(NodeNotFoundError) as info:
        tree.search((1.0, 1.0, 1.0))
    assert info.value.level == 15
    assert info.value.keys == tree.gen_keys((1.0, 1.0, 1.0))


def test_search_follows_full_key_path_to_finest_level() -> None:
    tree = _root_only_tree(0.5)
    point = (3.3, -0.6, 12.1)
    keys = tree.gen_keys(point)

    node = tree.root
    for pos in key_path(keys):
        node = node.create_child(pos)

    assert tree.search(point) is node
    assert tree.search_key(keys) is node
    # any point in the same finest cell finds the same node
    assert tree.search((3.4, -0.55, 12.2)) is node


def test_search_stops_at_childless_intermediate_node() -> None:
    tree = _root_only_tree(0.5)
    point = (-7.0, 2.0, 0.25)
    keys = tree.gen_keys(point)

    node = tree.root
    for pos in key_path(keys)[:4]:
        node = node.create_child(pos)

    assert tree.search(point) is node


def test_search_does_not_modify_tree() -> None:
    tree = _root_only_tree()
    tree.root.create_child(3)
    before = tree.root.children_mask
    for point in [(1.0, 1.0, -1.0), (-1.0, 1.0, -1.0)]:
        try:
            tree.search(point)
        except NodeNotFoundError:
            pass
    assert tree.root.children_mask == before


def test_search_key_rejects_bad_length() -> None:
    tree = _root_only_tree()
    with pytest.raises(ValueError):
        tree.search_key((1, 2))


@pytest.mark.parametrize("axis", [0, 1, 2])
@pytest.mark.parametrize("bad_key", [0, -1, 65536, 1 << 20])
def test_search_key_rejects_keys_outside_range(axis: int, bad_key: int) -> None:
    tree = _root_only_tree()
    tree.root.expand()
    tree.recount()
    keys = [32768, 32768, 32768]
    keys[axis] = bad_key
    with pytest.raises(OutOfBoundsError) as info:
        tree.search_key(tuple(keys))
    assert info.value.axis == axis
    assert info.value.operation == "search_key"
    assert info.value.value == bad_key


def test_search_key_accepts_extreme_valid_keys() -> None:
    tree = _root_only_tree()
    tree.root.expand()
    assert tree.search_key((1, 1, 1)) is tree.root.get_child(0)
    assert tree.search_key((65535, 65535, 65535)) is tree.root.get_child(7)
