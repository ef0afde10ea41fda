from __future__ import annotations

import contextlib
from typing import Dict, Iterator, Mapping, Protocol

from ..codec import RecordSerializer
from ..tokens import TokenHits


class StorageBackend(Protocol):
    """Durable mapping from context hash to frequency table."""

    def get(self, key: str) -> TokenHits:
        """Return the stored table, or an empty one when the key was never written."""

    def put(self, key: str, hits: TokenHits) -> None:
        """Associate `hits` with `key`; buffered backends defer until flush()."""

    def put_many(self, items: Mapping[str, TokenHits]) -> None:
        """Store every entry as one logical batch (one commit where supported)."""

    def transaction(self) -> contextlib.AbstractContextManager[None]:
        """Group every put() inside the block into one atomic commit where supported."""

    def flush(self) -> None:
        """Force buffered mutations to durable storage."""

    def close(self) -> None:
        """Flush, then release handles. Safe to call twice."""

    def describe(self) -> str:
        """Return a human-readable description of the backend for logging."""


class MemoryBackend:
    """Process-local backend; keeps encoded payloads so reads never alias writes."""

    def __init__(self, serializer: RecordSerializer | None = None) -> None:
        self.serializer = serializer or RecordSerializer()
        self._payloads: Dict[str, bytes] = {}

    def get(self, key: str) -> TokenHits:
        payload = self._payloads.get(key)
        if payload is None:
            return TokenHits()
        return self.serializer.decode_hits(payload)

    def put(self, key: str, hits: TokenHits) -> None:
        self._payloads[key] = self.serializer.encode_hits(hits)

    def put_many(self, items: Mapping[str, TokenHits]) -> None:
        encoded = {key: self.serializer.encode_hits(hits) for key, hits in items.items()}
        self._payloads.update(encoded)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        yield

    def flush(self) -> None:
        return None

    def close(self) -> None:
        return None

    def describe(self) -> str:
        return f"memory ({len(self._payloads)} context(s))"

    def __len__(self) -> int:
        return len(self._payloads)


__all__ = ["MemoryBackend", "StorageBackend"]
