from __future__ import annotations

import contextlib
from pathlib import Path
from typing import Dict, Iterator, Mapping, Set

from ..codec import RecordSerializer
from ..errors import StorageError
from ..tokens import TokenHitHash, TokenHits
from .files import read_optional, write_atomic


class ShardedFileBackend:
    """Groups contexts into `<root>/<p>/hash-<p>.bin` buckets keyed by hash prefix.

    Touched buckets stay in an unbounded write-back cache for the lifetime of
    the backend; dirty buckets are serialized once per flush(). Anything not
    flushed before the process dies is lost.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        prefix_length: int = 3,
        serializer: RecordSerializer | None = None,
    ) -> None:
        self.root = Path(root)
        self.prefix_length = prefix_length
        self.serializer = serializer or RecordSerializer()
        self._cache: Dict[str, TokenHitHash] = {}
        self._dirty: Set[str] = set()
        self._closed = False
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"failed to create {self.root}: {exc}") from exc

    def shard_key(self, key: str) -> str:
        return key[: self.prefix_length]

    def shard_path(self, shard: str) -> Path:
        return self.root / shard / f"hash-{shard}.bin"

    def _bucket(self, shard: str) -> TokenHitHash:
        bucket = self._cache.get(shard)
        if bucket is None:
            payload = read_optional(self.shard_path(shard))
            bucket = {} if payload is None else self.serializer.decode_bucket(payload)
            self._cache[shard] = bucket
        return bucket

    def get(self, key: str) -> TokenHits:
        hits = self._bucket(self.shard_key(key)).get(key)
        if hits is None:
            return TokenHits()
        return hits.copy()

    def put(self, key: str, hits: TokenHits) -> None:
        shard = self.shard_key(key)
        self._bucket(shard)[key] = hits.copy()
        self._dirty.add(shard)

    def put_many(self, items: Mapping[str, TokenHits]) -> None:
        for key, hits in items.items():
            self.put(key, hits)
        self.flush()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        yield
        self.flush()

    def flush(self) -> None:
        for shard in sorted(self._dirty):
            write_atomic(self.shard_path(shard), self.serializer.encode_bucket(self._cache[shard]))
        self._dirty.clear()

    def close(self) -> None:
        if self._closed:
            return
        self.flush()
        self._cache.clear()
        self._closed = True

    @property
    def pending_shards(self) -> int:
        return len(self._dirty)

    def describe(self) -> str:
        return (
            f"sharded:{self.root} (prefix={self.prefix_length}, "
            f"cached={len(self._cache)}, dirty={len(self._dirty)})"
        )


__all__ = ["ShardedFileBackend"]
