from __future__ import annotations

from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Dict

from .errors import ConfigError


def _parse_env_file(path: Path) -> Dict[str, str]:
    """Minimal .env parser (no external dependency required)."""
    data: dict[str, str] = {}
    if not path.exists():
        return data
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip('"').strip("'")
    return data


@dataclass(frozen=True)
class HashmemSettings:
    backend: str = "sqlite"
    data_dir: str = "data"
    context_length: int = 32
    generate_context: int = 64
    prefix_length: int = 3
    compression_level: int = 6
    batched: bool = True
    progress_interval: int = 100
    encoding: str = "utf-8"
    env_file: Path | None = None

    def with_overrides(self, **changes) -> "HashmemSettings":
        """Return a copy with every non-None keyword applied."""
        applied = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **applied)


def _as_int(key: str, raw: str, minimum: int, maximum: int | None = None) -> int:
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer (got {raw!r})") from exc
    if value < minimum or (maximum is not None and value > maximum):
        upper = f"..{maximum}" if maximum is not None else "+"
        raise ConfigError(f"{key} must be in {minimum}{upper} (got {value})")
    return value


def load_settings(env_path: str | Path = ".env") -> HashmemSettings:
    """Load hashmem settings from .env (if present) + real environment."""
    env_file = Path(env_path)
    file_values = _parse_env_file(env_file)

    def read(key: str, default: str) -> str:
        return os.environ.get(key, file_values.get(key, default))

    backend = read("HASHMEM_BACKEND", "sqlite").strip().lower()
    data_dir = read("HASHMEM_DATA_DIR", "data")
    context_length = _as_int("HASHMEM_CONTEXT_LENGTH", read("HASHMEM_CONTEXT_LENGTH", "32"), 1)
    generate_context = _as_int("HASHMEM_GENERATE_CONTEXT", read("HASHMEM_GENERATE_CONTEXT", "64"), 1)
    prefix_length = _as_int("HASHMEM_PREFIX_LENGTH", read("HASHMEM_PREFIX_LENGTH", "3"), 1, 63)
    compression_level = _as_int(
        "HASHMEM_COMPRESSION_LEVEL", read("HASHMEM_COMPRESSION_LEVEL", "6"), 0, 9
    )
    batched_flag = read("HASHMEM_BATCHED", "1").strip().lower()
    batched = batched_flag not in {"0", "false", "no", "off"}
    progress_interval = _as_int(
        "HASHMEM_PROGRESS_INTERVAL", read("HASHMEM_PROGRESS_INTERVAL", "100"), 1
    )
    encoding = read("HASHMEM_ENCODING", "utf-8").strip() or "utf-8"

    env_file_used = env_file if env_file.exists() else None
    return HashmemSettings(
        backend=backend,
        data_dir=data_dir,
        context_length=context_length,
        generate_context=generate_context,
        prefix_length=prefix_length,
        compression_level=compression_level,
        batched=batched,
        progress_interval=progress_interval,
        encoding=encoding,
        env_file=env_file_used,
    )


__all__ = ["HashmemSettings", "load_settings"]
