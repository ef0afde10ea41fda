from __future__ import annotations

import contextlib
import sqlite3
from pathlib import Path
from typing import Iterator, Mapping

from ..codec import RecordSerializer
from ..errors import StorageError
from ..tokens import TokenHits


class SQLiteBackend:
    """Single-file transactional store at `<root>/db`, one row per context hash.

    Writes outside transaction() autocommit one row at a time; inside it every
    row touched is committed atomically or rolled back together.
    """

    TABLE = "token_hits"

    def __init__(
        self,
        root: str | Path,
        *,
        serializer: RecordSerializer | None = None,
        filename: str = "db",
    ) -> None:
        self.root = Path(root)
        self.path = self.root / filename
        self.serializer = serializer or RecordSerializer()
        self._depth = 0
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self._conn: sqlite3.Connection | None = sqlite3.connect(
                str(self.path), isolation_level=None
            )
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    context_hash TEXT PRIMARY KEY,
                    payload      BLOB NOT NULL
                )
                """
            )
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"failed to open database {self.path}: {exc}") from exc

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError(f"database {self.path} is closed")
        return self._conn

    def get(self, key: str) -> TokenHits:
        try:
            row = self.conn.execute(
                f"SELECT payload FROM {self.TABLE} WHERE context_hash = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"failed to read {key}: {exc}") from exc
        if row is None:
            return TokenHits()
        return self.serializer.decode_hits(bytes(row[0]))

    def put(self, key: str, hits: TokenHits) -> None:
        payload = self.serializer.encode_hits(hits)
        try:
            self.conn.execute(
                f"""
                INSERT INTO {self.TABLE}(context_hash, payload) VALUES (?, ?)
                ON CONFLICT(context_hash) DO UPDATE SET payload = excluded.payload
                """,
                (key, payload),
            )
        except sqlite3.Error as exc:
            raise StorageError(f"failed to write {key}: {exc}") from exc

    def put_many(self, items: Mapping[str, TokenHits]) -> None:
        rows = [(key, self.serializer.encode_hits(hits)) for key, hits in items.items()]
        with self.transaction():
            try:
                self.conn.executemany(
                    f"""
                    INSERT INTO {self.TABLE}(context_hash, payload) VALUES (?, ?)
                    ON CONFLICT(context_hash) DO UPDATE SET payload = excluded.payload
                    """,
                    rows,
                )
            except sqlite3.Error as exc:
                raise StorageError(f"failed to write batch of {len(rows)} row(s): {exc}") from exc

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return
        try:
            self.conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise StorageError(f"failed to begin transaction on {self.path}: {exc}") from exc
        self._depth = 1
        try:
            yield
        except BaseException:
            self._depth = 0
            self.conn.rollback()
            raise
        self._depth = 0
        try:
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StorageError(f"failed to commit transaction on {self.path}: {exc}") from exc

    def flush(self) -> None:
        if self._conn is not None and self._depth == 0 and self._conn.in_transaction:
            self._conn.commit()

    def close(self) -> None:
        if self._conn is None:
            return
        self.flush()
        self._conn.close()
        self._conn = None

    def count(self) -> int:
        return int(self.conn.execute(f"SELECT COUNT(*) FROM {self.TABLE}").fetchone()[0])

    def describe(self) -> str:
        return f"sqlite:{self.path}"


__all__ = ["SQLiteBackend"]
