from __future__ import annotations

import datetime as _dt
import io
import json
import math
import threading
import traceback
from pathlib import Path
from typing import Any, Dict, Optional

import torch


# --------------------------------------------
# JSON utilities (NaN/Inf safe + compact)
# --------------------------------------------


def _json_sanitize(v: Any) -> Any:
    """
    Convert values into JSON-safe primitives.

    Rules:
    - Finite floats are emitted as-is.
    - NaN / ±Inf floats are stringified ("NaN", "Infinity", "-Infinity").
    - torch.Tensors:
        * small (<= 1024 elements): full .tolist()
        * large: summarized with shape/dtype/min/max
    - Containers are handled recursively.
    - Anything else that json.dumps can't handle is stringified.
    """
    if isinstance(v, float):
        if math.isfinite(v):
            return v
        if math.isnan(v):
            return "NaN"
        return "Infinity" if v > 0 else "-Infinity"

    if isinstance(v, torch.Tensor):
        t = v.detach().cpu()
        if t.numel() <= 1024:
            return _json_sanitize(t.tolist())
        summary: Dict[str, Any] = {
            "_type": "tensor_summary",
            "shape": list(t.shape),
            "dtype": str(t.dtype),
        }
        if t.is_floating_point() or t.dtype in (torch.int32, torch.int64):
            summary["min"] = _json_sanitize(float(t.min().item()))
            summary["max"] = _json_sanitize(float(t.max().item()))
        return summary

    if isinstance(v, dict):
        return {str(k): _json_sanitize(val) for k, val in v.items()}
    if isinstance(v, (list, tuple)):
        return [_json_sanitize(x) for x in v]
    if isinstance(v, (set, frozenset)):
        return sorted(_json_sanitize(x) for x in v)

    try:
        json.dumps(v)
        return v
    except (TypeError, ValueError):
        return str(v)


def _json_dump_line(obj: Dict[str, Any]) -> str:
    """
    Dump a single JSON object to a compact UTF-8 JSON string, after sanitization.
    """
    return json.dumps(_json_sanitize(obj), separators=(",", ":"), ensure_ascii=False)


# --------------------------------------------
# JSONL Logger (append-only, thread-safe)
# --------------------------------------------


class JsonlLogger:
    """
    Minimal, robust JSONL event logger.

    - Safe for NaN/Inf; values are sanitized.
    - Safe for torch tensors; large tensors are summarized.
    - Never raises to callers on I/O failures.
    - .info/.debug/.warning/.error/.critical write one JSON object per line
      with "ts", "level", "msg" plus any structured k/v pairs.
    """

    def __init__(self, out_dir: Path | str):
        self.dir = Path(out_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.path = self.dir / "events.jsonl"
        self._lock = threading.Lock()
        self._stream: Optional[io.TextIOBase] = None
        self._open()

    def __enter__(self) -> "JsonlLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _open(self) -> None:
        try:
            self._stream = self.path.open("a", encoding="utf-8")
        except OSError:
            self._stream = None

    def close(self) -> None:
        """
        Close the underlying stream; future writes will attempt to reopen.
        """
        with self._lock:
            stream, self._stream = self._stream, None
            if stream is None:
                return
            try:
                stream.flush()
                stream.close()
            except OSError:
                pass

    def _emit(self, level: str, msg: str, **fields: Any) -> None:
        rec: Dict[str, Any] = {
            "ts": _dt.datetime.now(_dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": level,
            "msg": msg,
        }
        if fields:
            rec.update(fields)
        line = _json_dump_line(rec)

        with self._lock:
            try:
                if self._stream is None:
                    self._open()
                if self._stream:
                    self._stream.write(line + "\n")
                    self._stream.flush()
            except OSError:
                # logging must never break the caller
                return

    def info(self, msg: str, **fields: Any) -> None:
        self._emit("INFO", msg, **fields)

    def debug(self, msg: str, **fields: Any) -> None:
        self._emit("DEBUG", msg, **fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._emit("WARN", msg, **fields)

    def error(self, msg: str, **fields: Any) -> None:
        """
        Log an error. If the caller passes exc_info=True, attach traceback text
        into a "trace" field.
        """
        if fields.pop("exc_info", False):
            fields["trace"] = traceback.format_exc()
        self._emit("ERROR", msg, **fields)

    def critical(self, msg: str, **fields: Any) -> None:
        self._emit("CRITICAL", msg, **fields)

    def read_events(self) -> list:
        """Return all events written so far (flushes first)."""
        with self._lock:
            if self._stream is not None:
                self._stream.flush()
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


__all__ = ["JsonlLogger"]
