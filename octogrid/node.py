"""Node read interface consumed by search / enumeration, plus a concrete node.

Traversal code only ever needs three queries on a node::

    has_children() -> bool
    child_exists(i) -> bool        # i in 0..7
    get_child(i)    -> node        # borrowed; the parent keeps ownership

:class:`OcTreeNodeLike` states that contract as a structural protocol so
that any node type providing the three methods can be walked.
:class:`OcTreeNode` is a minimal implementation with a fixed array of eight
optional child slots; the octant index uses the same bit convention as
:func:`octogrid.keys.gen_pos` (bit0 -> x, bit1 -> y, bit2 -> z).
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Protocol, Tuple, runtime_checkable

__all__ = [
    "OcTreeNodeLike",
    "OcTreeNode",
    "iter_children",
]


@runtime_checkable
class OcTreeNodeLike(Protocol):
    """Read-only capability set of an octree node."""

    def has_children(self) -> bool: ...

    def child_exists(self, i: int) -> bool: ...

    def get_child(self, i: int) -> "OcTreeNodeLike": ...


def _check_octant(i: int) -> int:
    i = int(i)
    if not 0 <= i < 8:
        raise IndexError(f"child index must be in [0, 8), got {i}")
    return i


class OcTreeNode:
    """Octree node with eight optional child slots.

    Node creation belongs to whoever owns the tree; this class only offers
    the structural primitives (:meth:`create_child`, :meth:`set_child`,
    :meth:`delete_child`) such an owner needs.
    """

    __slots__ = ("_children",)

    def __init__(self) -> None:
        self._children: List[Optional["OcTreeNode"]] = [None] * 8

    def __repr__(self) -> str:
        mask = "".join("1" if c is not None else "0" for c in reversed(self._children))
        return f"OcTreeNode(children=0b{mask})"

    # ------------------------- read interface -------------------------

    def has_children(self) -> bool:
        return any(c is not None for c in self._children)

    def child_exists(self, i: int) -> bool:
        return self._children[_check_octant(i)] is not None

    def get_child(self, i: int) -> "OcTreeNode":
        child = self._children[_check_octant(i)]
        if child is None:
            raise KeyError(f"child {i} does not exist")
        return child

    # ----------------------- structural helpers -----------------------

    @property
    def children(self) -> Tuple[Optional["OcTreeNode"], ...]:
        """Tuple of length 8 with children or ``None`` for missing slots."""
        return tuple(self._children)

    @property
    def children_mask(self) -> int:
        """Bitmask with bit ``i`` set iff child ``i`` exists."""
        mask = 0
        for i, c in enumerate(self._children):
            if c is not None:
                mask |= 1 << i
        return mask

    def create_child(self, i: int) -> "OcTreeNode":
        """Create (or return the existing) child in slot ``i``."""
        i = _check_octant(i)
        child = self._children[i]
        if child is None:
            child = type(self)()
            self._children[i] = child
        return child

    def set_child(self, i: int, child: Optional["OcTreeNode"]) -> None:
        self._children[_check_octant(i)] = child

    def delete_child(self, i: int) -> None:
        self._children[_check_octant(i)] = None

    def expand(self) -> List["OcTreeNode"]:
        """Create all eight children; returns them in octant order."""
        return [self.create_child(i) for i in range(8)]


def iter_children(node: OcTreeNodeLike) -> Iterator[Tuple[int, OcTreeNodeLike]]:
    """Yield ``(octant, child)`` for every existing child of ``node``."""
    for i in range(8):
        if node.child_exists(i):
            yield i, node.get_child(i)
