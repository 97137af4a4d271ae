"""Traversal and indexing core of a fixed-depth 3D octree.

World coordinates are quantized into 16-bit keys per axis; keys select a
root-to-leaf path one bit per level. On top of that the package offers
point search, DDA ray casting over the finest grid and geometric
enumeration of leaves / unexpanded child slots.

Node creation and occupancy semantics belong to the caller; any node type
providing ``has_children`` / ``child_exists`` / ``get_child`` can be walked.
"""

from __future__ import annotations

from .config import TREE_DEPTH, TREE_MAX_VAL, OctreeConfig, load_octree_config
from .errors import (
    BoundaryHitError,
    NodeNotFoundError,
    OctreeError,
    OutOfBoundsError,
    PreconditionViolation,
)
from .geometry import OcTreeVolume, volumes_to_tensors
from .node import OcTreeNode, OcTreeNodeLike
from .tree import OcTreeBase, TreeStatistics

__all__ = [
    "TREE_DEPTH",
    "TREE_MAX_VAL",
    "OctreeConfig",
    "load_octree_config",
    "OctreeError",
    "OutOfBoundsError",
    "BoundaryHitError",
    "NodeNotFoundError",
    "PreconditionViolation",
    "OcTreeVolume",
    "volumes_to_tensors",
    "OcTreeNode",
    "OcTreeNodeLike",
    "OcTreeBase",
    "TreeStatistics",
]

__version__ = "0.1.0"
