"""Octree container: resolution, derived key-frame fields and query entry points.

The tree owns no traversal logic itself; it holds the quantities every
query needs and forwards to the component modules:

- ``keys.py``         → coordinate ↔ key conversion, child selectors
- ``search.py``       → point lookup
- ``ray_casting.py``  → voxels crossed by a segment
- ``enumeration.py``  → leaf / free-slot volumes

Structure (root node, ``tree_size``) is managed by the caller; queries only
read it. Queries walk the topology node by node, so a tree must not be
mutated while a query on it is running.

Typical workflow:

.. code-block:: python

    tree = OcTreeBase(0.1)
    tree.root = OcTreeNode()
    ...  # caller expands nodes
    tree.recount()
    node = tree.search((1.0, 2.0, 0.5))
    centers = tree.compute_ray((0.0, 0.0, 0.0), (2.0, 0.0, 0.0))
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, List, Optional, Sequence, Tuple

import torch
from torch import Tensor

from . import enumeration, keys, ray_casting, search
from .config import TREE_DEPTH, TREE_MAX_VAL, OctreeConfig
from .geometry import OcTreeVolume
from .node import OcTreeNodeLike, iter_children

__all__ = [
    "TreeStatistics",
    "OcTreeBase",
]


@dataclass
class TreeStatistics:
    """Summary statistics for an :class:`OcTreeBase`.

    Fields
    ------
    n_nodes:
        Number of nodes reachable from the root.
    n_leaves:
        Number of reachable nodes without children.
    max_depth:
        Deepest level present (root has level 0), or ``-1`` without root.
    nodes_per_level:
        1D int64 tensor; ``nodes_per_level[l]`` is the node count at level ``l``.
    """

    n_nodes: int
    n_leaves: int
    max_depth: int
    nodes_per_level: Tensor

    def as_dict(self) -> dict:
        """Return a Python ``dict`` representation (for logging / JSON)."""
        return {
            "n_nodes": self.n_nodes,
            "n_leaves": self.n_leaves,
            "max_depth": self.max_depth,
            "nodes_per_level": self.nodes_per_level.clone(),
        }


class OcTreeBase:
    """Fixed-depth octree over a cubic region centered on the world origin.

    Attributes
    ----------
    resolution:
        Edge length of a finest-level cell.
    resolution_factor:
        ``1 / resolution``; recomputed by :meth:`set_resolution`.
    tree_center:
        ``(tree_max_val * resolution,) * 3``: offset between the key frame
        and world coordinates; also the root's half extent.
    root:
        Root node (any object implementing :class:`OcTreeNodeLike`) or None.
    tree_size:
        Number of live nodes, maintained by the structure owner.
    """

    TREE_DEPTH: int = TREE_DEPTH
    TREE_MAX_VAL: int = TREE_MAX_VAL

    def __init__(
        self,
        resolution: Optional[float] = None,
        *,
        config: Optional[OctreeConfig] = None,
        root: Optional[OcTreeNodeLike] = None,
        logger: Optional[Any] = None,
    ) -> None:
        # Private copy: set_resolution writes back into it.
        self.config = replace(config) if config is not None else OctreeConfig()
        self.tree_depth = self.TREE_DEPTH
        self.tree_max_val = self.TREE_MAX_VAL
        self.logger = logger

        self.root: Optional[OcTreeNodeLike] = root
        self.tree_size = 0 if root is None else 1

        # Running extents; filled in by whoever tracks inserted data.
        self.max_value = [-1e6, -1e6, -1e6]
        self.min_value = [1e6, 1e6, 1e6]
        self.size_changed = True

        self.set_resolution(self.config.resolution if resolution is None else resolution)

    def __repr__(self) -> str:
        return (
            f"OcTreeBase(resolution={self.resolution}, tree_depth={self.tree_depth}, "
            f"tree_size={self.tree_size})"
        )

    # ------------------------- basic properties -------------------------

    @property
    def dtype(self) -> torch.dtype:
        return self.config.dtype

    @property
    def device(self) -> torch.device:
        return torch.device(self.config.device)

    def set_resolution(self, r: float) -> None:
        """Set the cell size and recompute the derived fields.

        Existing structure is not reindexed; change the resolution before
        populating the tree.
        """
        r = float(r)
        if not math.isfinite(r) or r <= 0.0:
            raise ValueError(f"resolution must be finite and > 0, got {r!r}")
        self.resolution = r
        self.config.resolution = r
        self.resolution_factor = 1.0 / r
        c = self.tree_max_val / self.resolution_factor
        self.tree_center: Tuple[float, float, float] = (c, c, c)
        self.size_changed = True

    @property
    def tree_center_tensor(self) -> Tensor:
        return torch.tensor(self.tree_center, dtype=self.dtype, device=self.device)

    # ------------------------- key generation -------------------------

    def gen_key(self, value: float, axis: int = 0) -> int:
        return keys.gen_key(self, value, axis)

    def gen_keys(self, point: Any) -> Tuple[int, int, int]:
        return keys.gen_keys(self, point)

    def gen_val(self, key: int, axis: int = 0) -> float:
        return keys.gen_val(self, key, axis)

    def gen_vals(self, key: Sequence[int]) -> Tuple[float, float, float]:
        return keys.gen_vals(self, key)

    def gen_keys_batch(self, points: Tensor) -> Tuple[Tensor, Tensor]:
        return keys.gen_keys_batch(self, points)

    @staticmethod
    def gen_pos(key: Sequence[int], level: int) -> int:
        return keys.gen_pos(key, level)

    # ----------------------------- queries -----------------------------

    def search(self, point: Any) -> OcTreeNodeLike:
        return search.search(self, point, logger=self.logger)

    def search_key(self, key: Sequence[int]) -> OcTreeNodeLike:
        return search.search_key(self, key, logger=self.logger)

    def compute_ray(self, origin: Any, end: Any) -> Tensor:
        return ray_casting.compute_ray(self, origin, end, logger=self.logger)

    def compute_ray_keys(self, origin: Any, end: Any) -> Tensor:
        return ray_casting.compute_ray_keys(self, origin, end, logger=self.logger)

    def get_leaf_nodes(self, max_depth: int = 0) -> List[OcTreeVolume]:
        return enumeration.get_leaf_nodes(self, max_depth, logger=self.logger)

    def get_voxels(self, max_depth: int = 0) -> List[OcTreeVolume]:
        return enumeration.get_voxels(self, max_depth, logger=self.logger)

    # ------------------------ diagnostics / stats ------------------------

    def _levels(self) -> List[Tuple[int, OcTreeNodeLike]]:
        """Breadth-first ``(level, node)`` list of all reachable nodes."""
        if self.root is None:
            return []
        out: List[Tuple[int, OcTreeNodeLike]] = []
        frontier: List[OcTreeNodeLike] = [self.root]
        level = 0
        while frontier:
            nxt: List[OcTreeNodeLike] = []
            for node in frontier:
                out.append((level, node))
                nxt.extend(child for _, child in iter_children(node))
            frontier = nxt
            level += 1
            if level > self.tree_depth + 1:
                raise ValueError(f"tree deeper than tree_depth={self.tree_depth}")
        return out

    def recount(self) -> int:
        """Recompute ``tree_size`` from the reachable topology."""
        self.tree_size = len(self._levels())
        return self.tree_size

    def statistics(self) -> TreeStatistics:
        """Compute summary statistics over the reachable nodes."""
        nodes = self._levels()
        if not nodes:
            return TreeStatistics(
                n_nodes=0,
                n_leaves=0,
                max_depth=-1,
                nodes_per_level=torch.empty(0, dtype=torch.int64),
            )
        levels = torch.tensor([lvl for lvl, _ in nodes], dtype=torch.int64)
        max_depth = int(levels.max().item())
        n_leaves = sum(1 for _, node in nodes if not node.has_children())
        return TreeStatistics(
            n_nodes=len(nodes),
            n_leaves=n_leaves,
            max_depth=max_depth,
            nodes_per_level=torch.bincount(levels, minlength=max_depth + 1),
        )

    def describe(self) -> str:
        """Return a human-readable multi-line description of the tree.

        Examples
        --------
        >>> print(tree.describe())
        OcTreeBase: resolution=0.1, tree_size=9, n_nodes=9, n_leaves=8, max_depth=1
          nodes_per_level: 0:1, 1:8
        """
        stats = self.statistics()
        lines = [
            f"OcTreeBase: resolution={self.resolution}, tree_size={self.tree_size}, "
            f"n_nodes={stats.n_nodes}, n_leaves={stats.n_leaves}, "
            f"max_depth={stats.max_depth}",
        ]
        if stats.nodes_per_level.numel() > 0:
            levels_str = ", ".join(
                f"{lvl}:{int(cnt)}" for lvl, cnt in enumerate(stats.nodes_per_level.tolist())
            )
            lines.append(f"  nodes_per_level: {levels_str}")
        return "\n".join(lines)

    def verify(self) -> None:
        """Check structural invariants; raises :class:`ValueError` on violation.

        - no node is reachable twice (the structure is a tree),
        - no node lies deeper than ``tree_depth``,
        - ``resolution_factor`` and ``tree_center`` match ``resolution``.
        """
        if not math.isclose(self.resolution_factor * self.resolution, 1.0, rel_tol=1e-12):
            raise ValueError("resolution_factor is not 1 / resolution")
        expected_center = self.tree_max_val * self.resolution
        if any(not math.isclose(c, expected_center, rel_tol=1e-12) for c in self.tree_center):
            raise ValueError("tree_center is not tree_max_val * resolution")

        seen = set()
        for level, node in self._levels():
            if level > self.tree_depth:
                raise ValueError(f"node at level {level} exceeds tree_depth={self.tree_depth}")
            if id(node) in seen:
                raise ValueError("node reachable through more than one path")
            seen.add(id(node))
