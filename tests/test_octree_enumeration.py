from __future__ import annotations

import pytest
import torch

from octogrid import OcTreeBase, OcTreeNode, PreconditionViolation, volumes_to_tensors
from octogrid.keys import key_path


def _tree(resolution: float = 0.1) -> OcTreeBase:
    return OcTreeBase(resolution, root=OcTreeNode())


def _single_path_tree(point, resolution: float = 0.5) -> OcTreeBase:
    """Tree with exactly one root-to-finest-level path through ``point``."""
    tree = _tree(resolution)
    node = tree.root
    for pos in key_path(tree.gen_keys(point)):
        node = node.create_child(pos)
    tree.recount()
    return tree


def test_enumeration_requires_root() -> None:
    tree = OcTreeBase(0.1)
    with pytest.raises(PreconditionViolation):
        tree.get_leaf_nodes()
    with pytest.raises(PreconditionViolation):
        tree.get_voxels()


def test_root_only_tree_has_no_leaves() -> None:
    tree = _tree()
    assert tree.tree_size == 1
    assert tree.get_leaf_nodes() == []
    assert tree.get_voxels() == []


def test_one_expanded_level_gives_eight_symmetric_leaves() -> None:
    r = 0.1
    tree = _tree(r)
    tree.root.expand()
    assert tree.recount() == 9

    leaves = tree.get_leaf_nodes()
    assert len(leaves) == 8
    for vol in leaves:
        assert vol.size == pytest.approx(r * 2**15)

    centers, sizes = volumes_to_tensors(leaves)
    half = tree.tree_center[0] / 2.0
    assert torch.allclose(centers.abs(), torch.full((8, 3), half, dtype=torch.float64))
    assert torch.allclose(centers.sum(dim=0), torch.zeros(3, dtype=torch.float64))
    # octant bits map to +/- per axis
    signs = torch.sign(centers)
    expected = torch.tensor(
        [[1 if i & 1 else -1, 1 if i & 2 else -1, 1 if i & 4 else -1] for i in range(8)],
        dtype=torch.float64,
    )
    assert torch.equal(signs, expected)
    assert torch.allclose(sizes, torch.full((8,), r * 2**15, dtype=torch.float64))


def test_leaf_volume_contains_its_search_point() -> None:
    tree = _tree(0.1)
    children = tree.root.expand()
    tree.recount()
    leaves = tree.get_leaf_nodes()
    point = (12.5, -40.0, 3.0)
    found = tree.search(point)
    octant = children.index(found)
    assert leaves[octant].contains(point)


def test_leaf_cutoff_depth() -> None:
    r = 0.25
    tree = _tree(r)
    first = tree.root.expand()
    first[0].expand()
    tree.recount()

    full = tree.get_leaf_nodes()
    assert len(full) == 7 + 8
    sizes = sorted({vol.size for vol in full})
    assert sizes == [r * 2**14, r * 2**15]

    cut = tree.get_leaf_nodes(max_depth=1)
    assert len(cut) == 8
    assert all(vol.size == r * 2**15 for vol in cut)

    whole = tree.get_leaf_nodes(max_depth=0)
    assert len(whole) == len(full)


@pytest.mark.parametrize("max_depth", [-1, 17])
def test_invalid_cutoff_depth(max_depth: int) -> None:
    tree = _tree()
    tree.root.expand()
    tree.recount()
    with pytest.raises(ValueError):
        tree.get_leaf_nodes(max_depth)
    with pytest.raises(ValueError):
        tree.get_voxels(max_depth)


def test_finest_leaf_geometry_matches_key_centers() -> None:
    point = (3.3, -0.6, 12.1)
    tree = _single_path_tree(point, resolution=0.5)
    assert tree.tree_size == 17

    leaves = tree.get_leaf_nodes()
    assert len(leaves) == 1
    leaf = leaves[0]
    assert leaf.size == 0.5
    expected = torch.tensor(tree.gen_vals(tree.gen_keys(point)), dtype=torch.float64)
    assert torch.allclose(leaf.center, expected, atol=1e-9)
    assert leaf.contains(point)


def test_get_voxels_emits_free_slots_of_expanded_node() -> None:
    r = 0.1
    tree = _tree(r)
    for i in (0, 3, 6):
        tree.root.create_child(i)
    tree.recount()

    voxels = tree.get_voxels()
    assert len(voxels) == 8 - 3
    for vol in voxels:
        assert vol.size == pytest.approx(r * 2**16)
        assert torch.allclose(vol.center, torch.zeros(3, dtype=torch.float64))


def test_get_voxels_recurses_into_existing_children() -> None:
    r = 0.25
    tree = _tree(r)
    first = tree.root.expand()
    first[5].create_child(1)
    first[5].create_child(2)
    tree.recount()

    voxels = tree.get_voxels()
    # root is fully expanded (no free slot); child 5 has 6 free slots
    assert len(voxels) == 6
    half = tree.tree_center[0] / 2.0
    expected_center = torch.tensor([half, -half, half], dtype=torch.float64)
    for vol in voxels:
        assert vol.size == r * 2**15
        assert torch.allclose(vol.center, expected_center)

    # cutting at depth 1 never looks into child 5
    assert tree.get_voxels(max_depth=1) == []


def test_get_voxels_never_exceeds_tree_depth() -> None:
    r = 0.5
    tree = _single_path_tree((-1.0, 2.0, -3.0), resolution=r)
    voxels = tree.get_voxels()
    # every expanded node on the path (depth 0..15) has 7 free slots
    assert len(voxels) == 16 * 7
    sizes = {vol.size for vol in voxels}
    assert min(sizes) == r * 2
    assert max(sizes) == r * 2**16


def test_debug_asserts_reject_non_finite_volume_centers(monkeypatch) -> None:
    import octogrid.geometry as geometry
    from octogrid import OcTreeVolume

    bad = torch.tensor([float("nan"), 0.0, 0.0], dtype=torch.float64)
    OcTreeVolume(bad, 1.0)

    monkeypatch.setattr(geometry, "_DEBUG", True)
    with pytest.raises(ValueError):
        OcTreeVolume(bad, 1.0)
