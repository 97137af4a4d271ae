"""Ray casting on the finest octree grid (3D DDA).

See "A Faster Voxel Traversal Algorithm for Ray Tracing" by Amanatides &
Woo. The walk runs over voxel *keys* at the finest level; the voxels do
not need to exist in the tree.

Initialization (per axis ``i``, with unit direction ``d``):

- ``step[i]``   = sign(d[i]) (0 if d[i] == 0)
- ``tMax[i]``   = ray distance to the voxel border on the advancing side
- ``tDelta[i]`` = ray distance between two consecutive borders

Both are ``inf`` on an axis the ray never crosses. Each iteration advances
the axis with the smallest ``tMax``; on exact ties the lower axis index
wins (x before y before z). The walk stops as soon as a voxel center lies
farther from the origin than the end point; that voxel (and thus the end
voxel itself) is not part of the result.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Tuple

import torch
from torch import Tensor

from .errors import BoundaryHitError, OutOfBoundsError
from .geometry import distance, point_to_tuple
from .keys import gen_key, gen_vals
from .logging_utils import log_octree_event

if TYPE_CHECKING:
    from .tree import OcTreeBase

__all__ = ["compute_ray", "compute_ray_keys", "iter_ray"]

_log = logging.getLogger("octogrid.ray_casting")

Vec3 = Tuple[float, float, float]
Key3 = Tuple[int, int, int]


def _select_axis(t_max: List[float]) -> int:
    """Index of the smallest ``t_max`` entry; lower index wins ties."""
    if t_max[0] <= t_max[1]:
        return 0 if t_max[0] <= t_max[2] else 2
    return 1 if t_max[1] <= t_max[2] else 2


def iter_ray(
    tree: "OcTreeBase",
    origin: Any,
    end: Any,
    *,
    operation: str = "compute_ray",
) -> Iterator[Tuple[Key3, Vec3]]:
    """Yield ``(key, center)`` for every voxel strictly between origin and end.

    The generator is single-pass. Errors are raised lazily: the initial
    bounds check on the first ``next()``, :class:`BoundaryHitError` at the
    step that leaves the key range.
    """
    o = point_to_tuple(origin, name="origin")
    e = point_to_tuple(end, name="end")

    voxel_idx = [0, 0, 0]
    end_idx = [0, 0, 0]
    for i in range(3):
        voxel_idx[i] = gen_key(tree, o[i], i, operation=f"{operation}(origin)")
        end_idx[i] = gen_key(tree, e[i], i, operation=f"{operation}(end)")

    # origin and end in the same cell: nothing in between
    if voxel_idx == end_idx:
        return

    diff = (e[0] - o[0], e[1] - o[1], e[2] - o[2])
    max_length = math.sqrt(diff[0] ** 2 + diff[1] ** 2 + diff[2] ** 2)
    direction = (diff[0] / max_length, diff[1] / max_length, diff[2] / max_length)

    resolution = tree.resolution
    key_limit = 2 * tree.tree_max_val
    step = [0, 0, 0]
    t_max = [math.inf, math.inf, math.inf]
    t_delta = [math.inf, math.inf, math.inf]

    for i in range(3):
        d = direction[i]
        if d > 0.0:
            step[i] = 1
        elif d < 0.0:
            step[i] = -1

        voxel_border = (voxel_idx[i] - tree.tree_max_val) * resolution
        if step[i] > 0:
            voxel_border += resolution

        if d != 0.0:
            t_max[i] = (voxel_border - o[i]) / d
            t_delta[i] = resolution / abs(d)

    n_visited = 0
    while True:
        i = _select_axis(t_max)

        voxel_idx[i] += step[i]
        if not 0 <= voxel_idx[i] < key_limit:
            raise BoundaryHitError(axis=i, n_visited=n_visited, operation=operation)
        t_max[i] += t_delta[i]

        center = gen_vals(tree, voxel_idx, operation=operation)
        if distance(center, o) > max_length:
            return

        n_visited += 1
        yield (voxel_idx[0], voxel_idx[1], voxel_idx[2]), center


def _collect(
    tree: "OcTreeBase",
    origin: Any,
    end: Any,
    operation: str,
    logger: Optional[Any],
) -> Tuple[List[Key3], List[Vec3]]:
    keys: List[Key3] = []
    centers: List[Vec3] = []
    try:
        for key, center in iter_ray(tree, origin, end, operation=operation):
            keys.append(key)
            centers.append(center)
    except BoundaryHitError as exc:
        _log.warning("%s", exc)
        log_octree_event(
            logger,
            "octree_ray_boundary_hit",
            level="warning",
            operation=operation,
            axis=exc.axis,
            n_visited=exc.n_visited,
        )
        raise
    except OutOfBoundsError as exc:
        log_octree_event(
            logger,
            "octree_ray_out_of_bounds",
            level="warning",
            operation=exc.operation,
            axis=exc.axis,
            value=exc.value,
        )
        raise
    log_octree_event(logger, "octree_ray_done", operation=operation, n_voxels=len(keys))
    return keys, centers


def compute_ray(
    tree: "OcTreeBase",
    origin: Any,
    end: Any,
    *,
    logger: Optional[Any] = None,
) -> Tensor:
    """Centers of the voxels traversed between ``origin`` and ``end``.

    Returns
    -------
    Tensor
        ``(K, 3)`` tensor (tree dtype / device), ordered near-to-far. Empty
        if origin and end fall into the same voxel.

    Raises
    ------
    OutOfBoundsError
        If origin or end cannot be quantized (``exc.axis`` names the axis).
    BoundaryHitError
        If the walk leaves the key range before reaching the end.
    """
    _, centers = _collect(tree, origin, end, "compute_ray", logger)
    if not centers:
        return torch.empty(0, 3, dtype=tree.dtype, device=tree.device)
    return torch.tensor(centers, dtype=tree.dtype, device=tree.device)


def compute_ray_keys(
    tree: "OcTreeBase",
    origin: Any,
    end: Any,
    *,
    logger: Optional[Any] = None,
) -> Tensor:
    """Same traversal as :func:`compute_ray`, returning ``(K, 3)`` int64 keys."""
    keys, _ = _collect(tree, origin, end, "compute_ray_keys", logger)
    if not keys:
        return torch.empty(0, 3, dtype=torch.int64, device=tree.device)
    return torch.tensor(keys, dtype=torch.int64, device=tree.device)
