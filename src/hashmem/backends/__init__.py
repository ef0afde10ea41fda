from __future__ import annotations

from pathlib import Path

from ..errors import ConfigError
from ..settings import HashmemSettings
from .base import MemoryBackend, StorageBackend
from .files import PerContextFileBackend
from .sharded import ShardedFileBackend
from .sqlite import SQLiteBackend

BACKENDS = ("sqlite", "duckdb", "sharded", "file", "memory")


def build_backend(
    settings: HashmemSettings,
    *,
    name: str | None = None,
    root: str | Path | None = None,
) -> StorageBackend:
    """Instantiate the backend selected by `name` (or settings.backend)."""
    backend = (name or settings.backend).strip().lower()
    data_dir = Path(root if root is not None else settings.data_dir)
    if backend == "sqlite":
        return SQLiteBackend(data_dir)
    if backend == "duckdb":
        # duckdb is only required when selected.
        from .duckdb_kv import DuckDBBackend

        return DuckDBBackend(data_dir, compression_level=settings.compression_level)
    if backend == "sharded":
        return ShardedFileBackend(data_dir, prefix_length=settings.prefix_length)
    if backend == "file":
        return PerContextFileBackend(data_dir, prefix_length=settings.prefix_length)
    if backend == "memory":
        return MemoryBackend()
    raise ConfigError(f"unknown backend {backend!r}; expected one of {', '.join(BACKENDS)}")


__all__ = [
    "BACKENDS",
    "MemoryBackend",
    "PerContextFileBackend",
    "SQLiteBackend",
    "ShardedFileBackend",
    "StorageBackend",
    "build_backend",
]
