from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional, Union

import torch
import yaml

# -------------------------
# Fixed tree structure
# -------------------------
# Keys are 16-bit per axis; the key origin sits at TREE_MAX_VAL so that the
# world origin lands at the geometric center of the whole cube.
TREE_DEPTH: int = 16
TREE_MAX_VAL: int = 1 << (TREE_DEPTH - 1)  # 32768

PrecisionKind = Literal["single", "double"]

ConfigLike = Union[str, Path, Mapping[str, Any]]


@dataclass
class OctreeConfig:
    """Configuration for an :class:`octogrid.tree.OcTreeBase`.

    Parameters
    ----------
    resolution:
        World-space edge length of a finest-level cell. Must be finite and
        strictly positive.
    precision:
        Floating-point policy for tensors returned by the tree:
          * "single" -> float32
          * "double" -> float64
        Internal quantization always runs in double precision.
    dtype:
        Torch dtype for returned centers. If not given, it is derived from
        ``precision`` in ``__post_init__``.
    device:
        Device on which returned tensors are created.
    """

    resolution: float = 0.1
    precision: PrecisionKind = "double"
    dtype: Optional[torch.dtype] = None
    device: str = "cpu"

    def __post_init__(self) -> None:
        """Fill in derived fields and run basic validation."""
        if self.dtype is None:
            self.dtype = torch.float32 if self.precision == "single" else torch.float64
        self.validate()

    def validate(self) -> None:
        """Cheap validation of basic parameters."""
        try:
            res = float(self.resolution)
        except (TypeError, ValueError):
            raise ValueError(f"resolution must be a number, got {self.resolution!r}") from None
        if not math.isfinite(res) or res <= 0.0:
            raise ValueError(f"resolution must be finite and > 0, got {self.resolution!r}")
        self.resolution = res

        if self.precision not in ("single", "double"):
            raise ValueError(f"precision must be 'single' or 'double', got {self.precision!r}")

        if self.dtype not in (torch.float32, torch.float64):
            raise ValueError(
                "dtype must be torch.float32 or torch.float64; "
                f"got {self.dtype!r}"
            )

    @classmethod
    def from_env(cls, prefix: str = "OCTOGRID_", **overrides: Any) -> "OctreeConfig":
        """Build a config from ``<prefix>RESOLUTION`` / ``<prefix>PRECISION``.

        Explicit keyword overrides win over environment values.
        """
        values: Dict[str, Any] = {}
        raw_res = os.environ.get(f"{prefix}RESOLUTION", "").strip()
        if raw_res:
            try:
                values["resolution"] = float(raw_res)
            except ValueError:
                raise ValueError(f"{prefix}RESOLUTION is not a number: {raw_res!r}") from None
        raw_prec = os.environ.get(f"{prefix}PRECISION", "").strip().lower()
        if raw_prec:
            values["precision"] = raw_prec
        values.update(overrides)
        return cls(**values)


def _load_raw_config(source: ConfigLike) -> Dict[str, Any]:
    """
    Load a raw config dict from:
    - path to .json / .yaml / .yml
    - already-parsed dict-like object
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Config path does not exist: {path}")
        text = path.read_text(encoding="utf-8")
        suffix = path.suffix.lower()
        if suffix == ".json":
            raw = json.loads(text)
        elif suffix in (".yaml", ".yml"):
            raw = yaml.safe_load(text)
        else:
            raise ValueError(f"Unrecognized config format for path: {path}")
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"Config file must contain a mapping, got {type(raw).__name__}")
        return dict(raw)
    return dict(source)


def load_octree_config(source: ConfigLike) -> OctreeConfig:
    """Build an :class:`OctreeConfig` from a mapping or a JSON/YAML file.

    An optional top-level ``octree:`` section is unwrapped. ``dtype`` may be
    given as a string ("float32" / "float64").
    """
    raw = _load_raw_config(source)
    if "octree" in raw and isinstance(raw["octree"], Mapping):
        raw = dict(raw["octree"])

    known = {f.name for f in fields(OctreeConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown octree config keys: {unknown}")

    dtype = raw.get("dtype")
    if isinstance(dtype, str):
        name = dtype.replace("torch.", "")
        if name not in ("float32", "float64"):
            raise ValueError(f"dtype must be 'float32' or 'float64', got {dtype!r}")
        raw["dtype"] = getattr(torch, name)

    return OctreeConfig(**raw)


__all__ = [
    "TREE_DEPTH",
    "TREE_MAX_VAL",
    "PrecisionKind",
    "OctreeConfig",
    "load_octree_config",
]
