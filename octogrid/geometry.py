"""Geometry primitives shared by the octree traversal modules.

Conventions
-----------
- A world point is a length-3 vector ``(x, y, z)``. Public functions accept
  anything ``torch.as_tensor`` understands (tuple, list, Tensor).
- Scalar math on single points (quantization, DDA stepping) runs on Python
  floats, i.e. IEEE double precision, independent of the output dtype.
- A :class:`OcTreeVolume` is one axis-aligned cube: ``center`` (shape
  ``(3,)``) plus edge length ``size``.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

import torch
from torch import Tensor

__all__ = [
    "OcTreeVolume",
    "as_point",
    "point_to_tuple",
    "volumes_to_tensors",
    "distance",
]

_DEBUG = os.getenv("OCTOGRID_DEBUG_ASSERTS", "0") not in ("0", "", "false", "False")

_ALLOWED_FLOAT_DTYPES = (torch.float32, torch.float64)


def _assert_finite(x: Tensor, name: str) -> None:
    """Debug-only finite check, enabled via OCTOGRID_DEBUG_ASSERTS."""
    if not _DEBUG:
        return
    if not torch.isfinite(x).all():
        raise ValueError(f"{name} contains non-finite values")


def _ensure_fp32_or_fp64(x: Tensor, name: str) -> None:
    if not torch.is_floating_point(x):
        raise TypeError(f"{name} must be floating point, got dtype {x.dtype}")
    if x.dtype not in _ALLOWED_FLOAT_DTYPES:
        raise TypeError(f"{name} must have dtype float32 or float64, got {x.dtype}")


# ---------------------------------------------------------------------------
# Point coercion
# ---------------------------------------------------------------------------


def as_point(point: Any, *, dtype: torch.dtype = torch.float64, name: str = "point") -> Tensor:
    """Return ``point`` as a CPU tensor of shape ``(3,)`` and the given dtype.

    Non-finite coordinates are passed through unchanged; they are rejected
    per axis by the key generation routines.
    """
    t = torch.as_tensor(point)
    if t.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {tuple(t.shape)}")
    if t.is_complex() or t.dtype == torch.bool:
        raise TypeError(f"{name} must be real-valued, got dtype {t.dtype}")
    return t.detach().to(device="cpu", dtype=dtype)


def point_to_tuple(point: Any, *, name: str = "point") -> Tuple[float, float, float]:
    """Return ``point`` as a tuple of three Python floats (double precision)."""
    t = as_point(point, dtype=torch.float64, name=name)
    x, y, z = t.tolist()
    return float(x), float(y), float(z)


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two 3-vectors given as float sequences."""
    return math.sqrt((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 + (a[2] - b[2]) ** 2)


# ---------------------------------------------------------------------------
# Volumes
# ---------------------------------------------------------------------------


@dataclass
class OcTreeVolume:
    """One cubic region of space.

    Attributes
    ----------
    center:
        Tensor of shape (3,) with the cube center in tree-relative world
        coordinates (the key origin at the geometric center of the tree).
    size:
        Edge length of the cube.
    """

    center: Tensor
    size: float

    def __post_init__(self) -> None:
        if self.center.shape != (3,):
            raise ValueError(
                f"OcTreeVolume.center must have shape (3,), got {tuple(self.center.shape)}"
            )
        _ensure_fp32_or_fp64(self.center, "OcTreeVolume.center")
        _assert_finite(self.center, "OcTreeVolume.center")
        self.size = float(self.size)
        if not self.size > 0.0:
            raise ValueError(f"OcTreeVolume.size must be > 0, got {self.size}")

    @property
    def half_size(self) -> float:
        return 0.5 * self.size

    @property
    def mins(self) -> Tensor:
        return self.center - self.half_size

    @property
    def maxs(self) -> Tensor:
        return self.center + self.half_size

    def contains(self, point: Any) -> bool:
        """Return True if ``point`` lies in the half-open cube [mins, maxs)."""
        p = as_point(point, dtype=self.center.dtype)
        return bool(((p >= self.mins) & (p < self.maxs)).all())


def volumes_to_tensors(
    volumes: Sequence[OcTreeVolume],
    *,
    dtype: torch.dtype = torch.float64,
    device: Any = "cpu",
) -> Tuple[Tensor, Tensor]:
    """Structure-of-arrays view of a list of volumes.

    Returns
    -------
    centers:
        ``(M, 3)`` tensor of cube centers.
    sizes:
        ``(M,)`` tensor of edge lengths.
    """
    if len(volumes) == 0:
        return (
            torch.empty(0, 3, dtype=dtype, device=device),
            torch.empty(0, dtype=dtype, device=device),
        )
    centers: List[Tensor] = [v.center.to(device=device, dtype=dtype) for v in volumes]
    sizes = torch.tensor([v.size for v in volumes], dtype=dtype, device=device)
    out = torch.stack(centers, dim=0)
    _assert_finite(out, "centers")
    return out, sizes
