"""Key generation: world coordinates <-> discrete octree keys.

A key is one unsigned integer per axis in ``(0, 2 * tree_max_val)``. The
forward map is a floor quantizer shifted by ``tree_max_val`` so that the
world origin sits at the center of the key range::

    key = floor(value * resolution_factor) + tree_max_val

The inverse map returns the *center* of the quantization cell::

    value = (key - tree_max_val + 0.5) * resolution

so ``gen_val(gen_key(v))`` generally differs from ``v`` but quantizes back
to the same key.

Child selection interleaves one bit per axis at a given level::

    pos = bit_i(kx) * 1 + bit_i(ky) * 2 + bit_i(kz) * 4

and is evaluated from ``tree_depth - 1`` (coarsest) down to ``0``.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, List, Sequence, Tuple

import torch
from torch import Tensor

from .config import TREE_DEPTH
from .errors import OutOfBoundsError
from .geometry import _ensure_fp32_or_fp64, point_to_tuple

if TYPE_CHECKING:
    from .tree import OcTreeBase

__all__ = [
    "gen_key",
    "gen_keys",
    "gen_val",
    "gen_vals",
    "gen_keys_batch",
    "gen_pos",
    "key_path",
]

Key3 = Tuple[int, int, int]


def gen_key(tree: "OcTreeBase", value: float, axis: int = 0, *, operation: str = "gen_key") -> int:
    """Quantize one coordinate.

    Raises
    ------
    OutOfBoundsError
        If the scaled value is ``<= 0`` or ``>= 2 * tree_max_val`` (or the
        coordinate is not finite).
    """
    value = float(value)
    scaled_f = tree.resolution_factor * value
    if not math.isfinite(scaled_f):
        raise OutOfBoundsError(value, axis=axis, operation=operation)

    scaled = int(math.floor(scaled_f)) + tree.tree_max_val
    if 0 < scaled < 2 * tree.tree_max_val:
        return scaled
    raise OutOfBoundsError(value, axis=axis, operation=operation)


def gen_keys(tree: "OcTreeBase", point: Any, *, operation: str = "gen_keys") -> Key3:
    """Quantize a 3D point; fails on the first unrepresentable axis."""
    coords = point_to_tuple(point)
    kx = gen_key(tree, coords[0], 0, operation=operation)
    ky = gen_key(tree, coords[1], 1, operation=operation)
    kz = gen_key(tree, coords[2], 2, operation=operation)
    return kx, ky, kz


def gen_val(tree: "OcTreeBase", key: int, axis: int = 0, *, operation: str = "gen_val") -> float:
    """Return the world-space center of the cell addressed by ``key``."""
    key = int(key)
    if key < 0 or key >= 2 * tree.tree_max_val:
        raise OutOfBoundsError(key, axis=axis, operation=operation)
    return ((key - tree.tree_max_val) + 0.5) * tree.resolution


def gen_vals(tree: "OcTreeBase", keys: Sequence[int], *, operation: str = "gen_vals") -> Tuple[float, float, float]:
    """Inverse of :func:`gen_keys` on all three axes."""
    if len(keys) != 3:
        raise ValueError(f"keys must have length 3, got {len(keys)}")
    return (
        gen_val(tree, keys[0], 0, operation=operation),
        gen_val(tree, keys[1], 1, operation=operation),
        gen_val(tree, keys[2], 2, operation=operation),
    )


def gen_keys_batch(tree: "OcTreeBase", points: Tensor) -> Tuple[Tensor, Tensor]:
    """Vectorized :func:`gen_keys` for an ``(N, 3)`` point tensor.

    Returns
    -------
    keys:
        ``(N, 3)`` int64 tensor. Rows that are not representable hold
        out-of-range values (clamped to ``±4 * tree_max_val``).
    valid:
        ``(N,)`` bool tensor; True where all three axes are strictly inside
        ``(0, 2 * tree_max_val)``.
    """
    if points.ndim != 2 or points.shape[-1] != 3:
        raise ValueError(f"points must have shape (N, 3), got {tuple(points.shape)}")
    _ensure_fp32_or_fp64(points, "points")

    pts = points.detach().to(torch.float64)
    finite = torch.isfinite(pts).all(dim=-1)
    # Clamp before the int cast so that inf / huge values stay well-defined.
    limit = float(4 * tree.tree_max_val)
    scaled_f = torch.floor(pts * tree.resolution_factor)
    scaled_f = torch.nan_to_num(scaled_f, nan=-limit, posinf=limit, neginf=-limit)
    scaled_f = scaled_f.clamp(-limit, limit)
    keys = scaled_f.to(torch.int64) + tree.tree_max_val

    in_range = (keys > 0) & (keys < 2 * tree.tree_max_val)
    valid = in_range.all(dim=-1) & finite
    return keys, valid


def gen_pos(keys: Sequence[int], level: int) -> int:
    """Return the child selector (0..7) for ``keys`` at bit ``level``."""
    if len(keys) != 3:
        raise ValueError(f"keys must have length 3, got {len(keys)}")
    mask = 1 << level
    pos = 0
    if keys[0] & mask:
        pos += 1
    if keys[1] & mask:
        pos += 2
    if keys[2] & mask:
        pos += 4
    return pos


def key_path(keys: Sequence[int], tree_depth: int = TREE_DEPTH) -> List[int]:
    """Root-to-leaf list of child selectors for ``keys`` (coarsest first)."""
    return [gen_pos(keys, level) for level in range(tree_depth - 1, -1, -1)]
