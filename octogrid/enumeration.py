"""Reconstruct voxel geometry from tree topology.

Node geometry is never stored; it follows from the path. At depth ``d`` a
child center is offset from its parent center by

    offset = tree_center / 2 ** (d + 1)

per axis (``+`` if the octant bit for that axis is set, ``-`` otherwise)
and a node at depth ``d`` has edge length ``resolution * 2 ** (tree_depth - d)``.
Centers are reported relative to the tree center, i.e. in the same frame
as the input coordinates of :func:`octogrid.keys.gen_key`.

Recursion depth is bounded by ``tree_depth``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Tuple

import torch

from .errors import PreconditionViolation
from .geometry import OcTreeVolume
from .logging_utils import log_octree_event
from .node import OcTreeNodeLike

if TYPE_CHECKING:
    from .tree import OcTreeBase

__all__ = ["get_leaf_nodes", "get_voxels", "child_center"]

Vec3 = Tuple[float, float, float]


def child_center(parent_center: Vec3, octant: int, offset: float) -> Vec3:
    """Center of child ``octant`` (bit0 -> x, bit1 -> y, bit2 -> z)."""
    return (
        parent_center[0] + offset if octant & 1 else parent_center[0] - offset,
        parent_center[1] + offset if octant & 2 else parent_center[1] - offset,
        parent_center[2] + offset if octant & 4 else parent_center[2] - offset,
    )


class _Enumerator:
    """Shared descent state for one enumeration call."""

    def __init__(self, tree: "OcTreeBase", max_depth: int, operation: str) -> None:
        if tree.root is None:
            raise PreconditionViolation("tree has no root", operation=operation)
        max_depth = int(max_depth)
        if max_depth < 0 or max_depth > tree.tree_depth:
            raise ValueError(
                f"max_depth must be in [0, {tree.tree_depth}], got {max_depth}"
            )
        self.tree = tree
        self.max_depth = tree.tree_depth if max_depth == 0 else max_depth
        self.tree_center = tree.tree_center
        self.volumes: List[OcTreeVolume] = []

    def emit(self, center: Vec3, depth: int) -> None:
        tc = self.tree_center
        rel = torch.tensor(
            (center[0] - tc[0], center[1] - tc[1], center[2] - tc[2]),
            dtype=self.tree.dtype,
            device=self.tree.device,
        )
        size = self.tree.resolution * 2.0 ** (self.tree.tree_depth - depth)
        self.volumes.append(OcTreeVolume(center=rel, size=size))

    def leaves(self, node: Optional[OcTreeNodeLike], depth: int, center: Vec3) -> None:
        if node is None or depth > self.max_depth:
            return
        if node.has_children() and depth != self.max_depth:
            offset = self.tree_center[0] / 2.0 ** (depth + 1)
            for i in range(8):
                if node.child_exists(i):
                    self.leaves(node.get_child(i), depth + 1, child_center(center, i, offset))
        else:
            self.emit(center, depth)

    def voxels(self, node: Optional[OcTreeNodeLike], depth: int, center: Vec3) -> None:
        if node is None or depth > self.max_depth:
            return
        # the finest level itself is not emitted
        if not node.has_children() or depth == self.max_depth:
            return
        offset = self.tree_center[0] / 2.0 ** (depth + 1)
        for i in range(8):
            if node.child_exists(i):
                self.voxels(node.get_child(i), depth + 1, child_center(center, i, offset))
            else:
                self.emit(center, depth)


def get_leaf_nodes(
    tree: "OcTreeBase",
    max_depth: int = 0,
    *,
    logger: Optional[Any] = None,
) -> List[OcTreeVolume]:
    """Volumes of all leaves, cut off at ``max_depth`` (0 = full depth).

    A node with no children, or any node at the cutoff depth, yields one
    volume. A tree holding only its root (``tree_size <= 1``) is empty.

    Raises
    ------
    PreconditionViolation
        If the tree has no root.
    """
    walker = _Enumerator(tree, max_depth, "get_leaf_nodes")
    if tree.tree_size <= 1:
        return []
    walker.leaves(tree.root, 0, tree.tree_center)
    log_octree_event(
        logger,
        "octree_enumeration_done",
        operation="get_leaf_nodes",
        max_depth=walker.max_depth,
        n_volumes=len(walker.volumes),
    )
    return walker.volumes


def get_voxels(
    tree: "OcTreeBase",
    max_depth: int = 0,
    *,
    logger: Optional[Any] = None,
) -> List[OcTreeVolume]:
    """Volumes for the unexpanded child slots of every expanded node.

    For an expanded node with ``k`` existing children, ``8 - k`` volumes are
    emitted at that node (its own center and edge length, one per missing
    slot) and the ``k`` children are visited recursively, down to
    ``max_depth`` (0 = full depth).

    Raises
    ------
    PreconditionViolation
        If the tree has no root.
    """
    walker = _Enumerator(tree, max_depth, "get_voxels")
    walker.voxels(tree.root, 0, tree.tree_center)
    log_octree_event(
        logger,
        "octree_enumeration_done",
        operation="get_voxels",
        max_depth=walker.max_depth,
        n_volumes=len(walker.volumes),
    )
    return walker.volumes
