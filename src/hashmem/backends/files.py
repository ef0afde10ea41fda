from __future__ import annotations

import contextlib
import os
from pathlib import Path
from typing import Iterator, Mapping

from ..codec import RecordSerializer
from ..errors import StorageError
from ..tokens import TokenHits


def write_atomic(path: Path, payload: bytes) -> None:
    """Write `payload` next to `path` and rename it into place."""
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp_path.open("wb") as handle:
            handle.write(payload)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise StorageError(f"failed to write {path}: {exc}") from exc


def read_optional(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StorageError(f"failed to read {path}: {exc}") from exc


class PerContextFileBackend:
    """One file per context at `<root>/<hash[:prefix]>/<hash[prefix:]>`.

    Every put() is an immediate read-modify-write of one file; there is no
    atomicity across contexts and no cross-process locking.
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
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"failed to create {self.root}: {exc}") from exc

    def path_for(self, key: str) -> Path:
        return self.root / key[: self.prefix_length] / key[self.prefix_length :]

    def get(self, key: str) -> TokenHits:
        payload = read_optional(self.path_for(key))
        if payload is None:
            return TokenHits()
        return self.serializer.decode_hits(payload)

    def put(self, key: str, hits: TokenHits) -> None:
        write_atomic(self.path_for(key), self.serializer.encode_hits(hits))

    def put_many(self, items: Mapping[str, TokenHits]) -> None:
        for key, hits in items.items():
            self.put(key, hits)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        yield

    def flush(self) -> None:
        return None

    def close(self) -> None:
        return None

    def describe(self) -> str:
        return f"file:{self.root} (prefix={self.prefix_length})"


__all__ = ["PerContextFileBackend"]
