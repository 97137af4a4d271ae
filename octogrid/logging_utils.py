from __future__ import annotations

"""
Logging helpers for octree traversal.

Responsibilities
----------------
- Provide lightweight wrappers around the project's JsonlLogger.
- Centralize octree-specific event names (ray, search, enumeration).
- Ensure verbose console logging works additively with structured loggers.

Environment variables
---------------------
OCTOGRID_LOG_LEVEL
    Optional log level hint for log_octree_event. One of
    {"debug", "info", "warning", "error", "critical"} (case-insensitive).

OCTOGRID_DEBUG_VERBOSE
    If truthy, events are also printed to stdout via ConsoleLogger, even
    when no structured logger was passed in.
"""

import logging
import os
import sys
from typing import Any, List, Optional, TextIO

_TRUE_VALUES = {"1", "true", "yes", "on", "y"}
_VERBOSE_ENV = "OCTOGRID_DEBUG_VERBOSE"
_LEVEL_ENV = "OCTOGRID_LOG_LEVEL"
_LEVELS = ("debug", "info", "warning", "error", "critical")

_log = logging.getLogger("octogrid.logging")


def _normalize_bool_env(name: str, default: bool = False) -> bool:
    """
    Interpret an environment variable as a boolean.
    """
    raw = os.environ.get(name)
    if raw is None:
        return default

    val = raw.strip().lower()
    if val in _TRUE_VALUES:
        return True
    if val in {"0", "false", "no", "off", "n"}:
        return False
    return default


def want_verbose_debug(default: bool = False) -> bool:
    """
    True if OCTOGRID_DEBUG_VERBOSE is truthy or OCTOGRID_LOG_LEVEL == 'debug'.
    """
    if _normalize_bool_env(_VERBOSE_ENV, default=False):
        return True
    if os.environ.get(_LEVEL_ENV, "").strip().lower() == "debug":
        return True
    return default


def get_log_level() -> str:
    """
    Return a normalized log level for octree events based on OCTOGRID_LOG_LEVEL.
    """
    lvl = os.environ.get(_LEVEL_ENV, "info").strip().lower()
    if lvl not in _LEVELS:
        return "info"
    return lvl


# ---------------------------------------------------------------------------
# Loggers: Console & Combined
# ---------------------------------------------------------------------------

_PREFIXES = {
    "debug": "[OCTREE-DEBUG]",
    "info": "[OCTREE]",
    "warning": "[OCTREE-WARN]",
    "error": "[OCTREE-ERR]",
    "critical": "[OCTREE-CRIT]",
}


class ConsoleLogger:
    """
    Stdout sink for octree events: ``[OCTREE] event k=v ...`` lines.

    Events below ``min_level`` are dropped, so a verbose console can sit
    next to a structured logger without echoing every per-ray record.
    """

    def __init__(self, min_level: str = "debug", stream: Optional[TextIO] = None) -> None:
        if min_level not in _LEVELS:
            raise ValueError(f"min_level must be one of {_LEVELS}, got {min_level!r}")
        self.min_level = min_level
        self.stream = stream

    @staticmethod
    def _fmt(msg: str, fields: dict) -> str:
        if not fields:
            return msg
        extra = " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
        return f"{msg} {extra}"

    def _emit(self, level: str, msg: str, fields: dict) -> None:
        if _LEVELS.index(level) < _LEVELS.index(self.min_level):
            return
        out = self.stream if self.stream is not None else sys.stdout
        print(f"{_PREFIXES[level]} {self._fmt(msg, fields)}", file=out, flush=True)

    def debug(self, msg: str, **fields: Any) -> None:
        self._emit("debug", msg, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._emit("info", msg, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._emit("warning", msg, fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._emit("error", msg, fields)

    def critical(self, msg: str, **fields: Any) -> None:
        self._emit("critical", msg, fields)


class CombinedLogger:
    """
    Fans out log calls to multiple loggers.

    Nested CombinedLoggers are flattened, so wrapping twice never prints an
    event twice. A sink without the requested level method gets ``info``.
    """

    def __init__(self, *loggers: Any) -> None:
        self.loggers: List[Any] = []
        for lg in loggers:
            if isinstance(lg, CombinedLogger):
                self.loggers.extend(lg.loggers)
            elif lg is not None:
                self.loggers.append(lg)

    def _broadcast(self, level: str, msg: str, **kwargs: Any) -> None:
        for lg in self.loggers:
            fn = getattr(lg, level, None)
            if not callable(fn):
                fn = getattr(lg, "info", None)
            if not callable(fn):
                continue
            try:
                fn(msg, **kwargs)
            except Exception as exc:
                _log.debug("logger %r failed on %s: %r", lg, level, exc)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._broadcast("debug", msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._broadcast("info", msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._broadcast("warning", msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._broadcast("error", msg, **kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        self._broadcast("critical", msg, **kwargs)


def get_logger(logger: Optional[Any] = None) -> Any:
    """
    Resolve the logger octree events go to.

    Without verbose debug this is ``logger`` itself (possibly None). With it,
    a ``ConsoleLogger`` filtered at OCTOGRID_LOG_LEVEL is added, alone or
    next to ``logger``; an existing console sink is not duplicated.
    """
    if not want_verbose_debug():
        return logger
    if isinstance(logger, ConsoleLogger):
        return logger
    if isinstance(logger, CombinedLogger) and any(
        isinstance(lg, ConsoleLogger) for lg in logger.loggers
    ):
        return logger
    console = ConsoleLogger(min_level=get_log_level())
    if logger is None:
        return console
    return CombinedLogger(logger, console)


def log_octree_event(
    logger: Optional[Any],
    event: str,
    *,
    level: Optional[str] = None,
    **fields: Any,
) -> None:
    """
    Emit a structured octree log event if a logger is available.

    ``level`` forces a level (e.g. "warning" for boundary hits); otherwise
    OCTOGRID_LOG_LEVEL decides. Logging failures never reach the caller.
    """
    if logger is None and not want_verbose_debug():
        return

    resolved_logger = get_logger(logger)
    if resolved_logger is None:
        return

    lvl = level if level in _LEVELS else get_log_level()
    log_fn = getattr(resolved_logger, lvl, None)
    if not callable(log_fn):
        log_fn = getattr(resolved_logger, "info", None)
    if not callable(log_fn):
        return
    try:
        log_fn(event, **fields)
    except Exception as exc:
        _log.debug("log_octree_event(%s) failed: %r", event, exc)


__all__ = [
    "log_octree_event",
    "get_log_level",
    "want_verbose_debug",
    "ConsoleLogger",
    "CombinedLogger",
    "get_logger",
]
