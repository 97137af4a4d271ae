"""Error taxonomy for octree key generation, search, ray casting and enumeration.

Every failure that depends on the *input coordinates* is reported to the
immediate caller as an exception carrying the operation name and (where
meaningful) the failing axis. No failure is turned into a default value.

- :class:`OutOfBoundsError`   → a coordinate quantizes outside the key range
- :class:`BoundaryHitError`   → a ray step leaves the key range mid-traversal
- :class:`NodeNotFoundError`  → search hits an absent child next to siblings
- :class:`PreconditionViolation` → programming error (e.g. tree has no root)
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

__all__ = [
    "OctreeError",
    "OutOfBoundsError",
    "BoundaryHitError",
    "NodeNotFoundError",
    "PreconditionViolation",
]

_AXIS_NAMES = ("x", "y", "z")


def _axis_label(axis: Optional[int]) -> str:
    if axis is None:
        return "?"
    if 0 <= axis < 3:
        return f"{axis} ({_AXIS_NAMES[axis]})"
    return str(axis)


class OctreeError(Exception):
    """Base class for all octree traversal errors."""

    def __init__(self, message: str, *, operation: str = "", axis: Optional[int] = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.axis = axis


class OutOfBoundsError(OctreeError, ValueError):
    """A coordinate (or key) cannot be represented in the tree's key range."""

    def __init__(self, value: Any, *, axis: Optional[int] = None, operation: str = "gen_key") -> None:
        self.value = value
        super().__init__(
            f"{operation}: coordinate {_axis_label(axis)} out of octree bounds: {value!r}",
            operation=operation,
            axis=axis,
        )


class BoundaryHitError(OctreeError, RuntimeError):
    """Ray traversal stepped outside the key range after partial progress."""

    def __init__(self, *, axis: int, n_visited: int, operation: str = "compute_ray") -> None:
        self.n_visited = int(n_visited)
        super().__init__(
            f"{operation}: ray hit the octree boundary in dim. {_axis_label(axis)} "
            f"after {self.n_visited} voxel(s)",
            operation=operation,
            axis=axis,
        )


class NodeNotFoundError(OctreeError, LookupError):
    """Search expected a child that does not exist while its siblings do."""

    def __init__(
        self,
        *,
        keys: Sequence[int],
        level: int,
        point: Any = None,
        operation: str = "search",
    ) -> None:
        self.keys = tuple(int(k) for k in keys)
        self.level = int(level)
        self.point = point
        where = f"point {point!r}" if point is not None else f"keys {self.keys}"
        super().__init__(
            f"{operation}: no node for {where}; child missing at level {self.level} "
            "of an expanded node",
            operation=operation,
        )


class PreconditionViolation(OctreeError, RuntimeError):
    """Contract breach by the caller (not an input-validation failure)."""

    def __init__(self, message: str, *, operation: str = "") -> None:
        super().__init__(f"{operation}: {message}" if operation else message, operation=operation)
