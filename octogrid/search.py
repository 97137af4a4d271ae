"""Point lookup in an existing octree.

Search quantizes the query point and descends from the root, one level per
key bit (coarsest first). The walk stops at

- the finest level (returns that node),
- a node without any children (returns it: the unexpanded subtree stands
  for its whole volume at that depth), or
- a missing child of a node that does have other children, which raises
  :class:`~octogrid.errors.NodeNotFoundError`.

The tree is never modified.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Sequence

from .errors import NodeNotFoundError, OutOfBoundsError, PreconditionViolation
from .keys import gen_keys, gen_pos
from .logging_utils import log_octree_event
from .node import OcTreeNodeLike

if TYPE_CHECKING:
    from .tree import OcTreeBase

__all__ = ["search", "search_key"]


def search_key(
    tree: "OcTreeBase",
    keys: Sequence[int],
    *,
    point: Any = None,
    logger: Optional[Any] = None,
) -> OcTreeNodeLike:
    """Descend from the root along ``keys`` and return the deepest node."""
    if len(keys) != 3:
        raise ValueError(f"keys must have length 3, got {len(keys)}")
    for axis, key in enumerate(keys):
        if not 0 < int(key) < 2 * tree.tree_max_val:
            raise OutOfBoundsError(key, axis=axis, operation="search_key")
    node = tree.root
    if node is None:
        raise PreconditionViolation("tree has no root", operation="search")

    for level in range(tree.tree_depth - 1, -1, -1):
        pos = gen_pos(keys, level)
        if node.child_exists(pos):
            node = node.get_child(pos)
            continue
        if not node.has_children():
            return node
        log_octree_event(
            logger,
            "octree_search_failed",
            level="debug",
            keys=list(keys),
            depth=tree.tree_depth - 1 - level,
        )
        raise NodeNotFoundError(keys=keys, level=level, point=point)
    return node


def search(tree: "OcTreeBase", point: Any, *, logger: Optional[Any] = None) -> OcTreeNodeLike:
    """Return the node representing ``point``.

    Raises
    ------
    OutOfBoundsError
        If any axis of ``point`` is outside the tree (``exc.axis`` names it).
    NodeNotFoundError
        If the point falls into a gap of a partially expanded node.
    PreconditionViolation
        If the tree has no root.
    """
    try:
        keys = gen_keys(tree, point, operation="search")
    except OutOfBoundsError as exc:
        log_octree_event(
            logger,
            "octree_search_failed",
            level="warning",
            reason="out_of_bounds",
            axis=exc.axis,
            value=exc.value,
        )
        raise
    return search_key(tree, keys, point=point, logger=logger)
