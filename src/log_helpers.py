from __future__ import annotations

import os
import sys
import time
from typing import Any, TextIO

_start_time = time.perf_counter()
_LOG_LEVEL_ENV = "HASHMEM_LOG_LEVEL"


def _parse_level(raw: str) -> int:
    raw = raw.strip()
    try:
        return max(0, int(raw))
    except ValueError:
        normalized = raw.lower()
        if normalized in {"debug", "trace"}:
            return 3
        if normalized in {"quiet", "off", "silent"}:
            return 0
        return 1


_LOG_LEVEL = _parse_level(os.getenv(_LOG_LEVEL_ENV, "1"))


def _elapsed() -> float:
    return time.perf_counter() - _start_time


def timestamp_prefix() -> str:
    return f"+[{_elapsed():7.2f}]"


def reset_timestamp() -> None:
    global _start_time
    _start_time = time.perf_counter()


def set_log_level(level: int | str) -> None:
    """Override the level read from HASHMEM_LOG_LEVEL (e.g. from a --verbose flag)."""
    global _LOG_LEVEL
    _LOG_LEVEL = level if isinstance(level, int) else _parse_level(level)


def log(
    *objects: Any,
    sep: str = " ",
    end: str = "\n",
    file: TextIO | None = None,
    flush: bool = False,
    prefix: bool = True,
) -> None:
    """Write a diagnostic line to stderr; stdout is reserved for command output."""
    if _LOG_LEVEL < 1:
        return
    message = sep.join(str(obj) for obj in objects)
    if prefix:
        message = f"{timestamp_prefix()} {message}"
    print(message, end=end, file=file or sys.stderr, flush=flush)


def verbose_enabled(level: int) -> bool:
    return _LOG_LEVEL >= level


def log_verbose(level: int, *objects: Any, **kwargs: Any) -> None:
    """Emit a log line only when the configured verbosity is high enough."""
    if verbose_enabled(level):
        log(*objects, **kwargs)
