from __future__ import annotations

import contextlib
import zlib
from pathlib import Path
from typing import Iterator, Mapping

try:
    import duckdb
except ImportError:
    raise ImportError("DuckDB is required for the duckdb backend. Install with: pip install duckdb")

from ..codec import RecordSerializer
from ..errors import CodecError, StorageError
from ..tokens import TokenHits


class DuckDBBackend:
    """Embedded DuckDB key-value table at `<root>/db` with zlib-compressed payloads.

    Each put() is its own upsert; put_many() and transaction() group rows in
    one DuckDB transaction. DuckDB refuses a second writing process.
    """

    TABLE = "token_hits"

    def __init__(
        self,
        root: str | Path,
        *,
        compression_level: int = 6,
        serializer: RecordSerializer | None = None,
        filename: str = "db",
    ) -> None:
        self.root = Path(root)
        self.path = self.root / filename
        self.compression_level = compression_level
        self.serializer = serializer or RecordSerializer()
        self._in_transaction = False
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self._conn = duckdb.connect(str(self.path))
            self._conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    context_hash VARCHAR PRIMARY KEY,
                    payload      BLOB NOT NULL
                )
                """
            )
        except (OSError, duckdb.Error) as exc:
            raise StorageError(f"failed to open duckdb store {self.path}: {exc}") from exc
        self._closed = False

    def _pack(self, hits: TokenHits) -> bytes:
        return zlib.compress(self.serializer.encode_hits(hits), self.compression_level)

    def _unpack(self, key: str, blob: bytes) -> TokenHits:
        try:
            raw = zlib.decompress(blob)
        except zlib.error as exc:
            raise CodecError(f"corrupt compressed payload for {key}: {exc}") from exc
        return self.serializer.decode_hits(raw)

    def _ensure_open(self) -> None:
        if self._closed:
            raise StorageError(f"duckdb store {self.path} is closed")

    def get(self, key: str) -> TokenHits:
        self._ensure_open()
        try:
            row = self._conn.execute(
                f"SELECT payload FROM {self.TABLE} WHERE context_hash = ?", [key]
            ).fetchone()
        except duckdb.Error as exc:
            raise StorageError(f"failed to read {key}: {exc}") from exc
        if row is None:
            return TokenHits()
        return self._unpack(key, bytes(row[0]))

    def put(self, key: str, hits: TokenHits) -> None:
        self._ensure_open()
        try:
            self._conn.execute(
                f"INSERT OR REPLACE INTO {self.TABLE}(context_hash, payload) VALUES (?, ?)",
                [key, self._pack(hits)],
            )
        except duckdb.Error as exc:
            raise StorageError(f"failed to write {key}: {exc}") from exc

    def put_many(self, items: Mapping[str, TokenHits]) -> None:
        with self.transaction():
            for key, hits in items.items():
                self.put(key, hits)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        self._ensure_open()
        if self._in_transaction:
            yield
            return
        try:
            self._conn.begin()
        except duckdb.Error as exc:
            raise StorageError(f"failed to begin transaction on {self.path}: {exc}") from exc
        self._in_transaction = True
        try:
            yield
        except BaseException:
            self._in_transaction = False
            self._conn.rollback()
            raise
        self._in_transaction = False
        try:
            self._conn.commit()
        except duckdb.Error as exc:
            raise StorageError(f"failed to commit transaction on {self.path}: {exc}") from exc

    def flush(self) -> None:
        if self._closed or self._in_transaction:
            return
        try:
            self._conn.execute("CHECKPOINT")
        except duckdb.Error as exc:
            raise StorageError(f"failed to checkpoint {self.path}: {exc}") from exc

    def close(self) -> None:
        if self._closed:
            return
        self.flush()
        self._conn.close()
        self._closed = True

    def count(self) -> int:
        self._ensure_open()
        return int(self._conn.execute(f"SELECT COUNT(*) FROM {self.TABLE}").fetchone()[0])

    def describe(self) -> str:
        return f"duckdb:{self.path} (zlib level {self.compression_level})"


__all__ = ["DuckDBBackend"]
