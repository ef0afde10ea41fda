from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from hashmem.backends import BACKENDS, build_backend
from hashmem.backends.base import MemoryBackend
from hashmem.backends.duckdb_kv import DuckDBBackend
from hashmem.backends.files import PerContextFileBackend
from hashmem.backends.sharded import ShardedFileBackend
from hashmem.backends.sqlite import SQLiteBackend
from hashmem.errors import CodecError, ConfigError
from hashmem.hashing import hash_tokens
from hashmem.settings import HashmemSettings
from hashmem.tokens import Token, TokenHits, tokenize


def _hits(text: str) -> TokenHits:
    hits = TokenHits()
    for token in tokenize(text):
        hits.note(token)
    return hits


class BackendContract:
    """Behaviour every durable backend must share; mixed into TestCase subclasses."""

    def make_backend(self, root: Path):
        raise NotImplementedError

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "store"
        self.backend = self.make_backend(self.root)

    def tearDown(self) -> None:
        self.backend.close()
        self._tmp.cleanup()

    def reopen(self):
        self.backend.close()
        self.backend = self.make_backend(self.root)
        return self.backend

    def test_missing_key_reads_as_empty(self) -> None:
        hits = self.backend.get(hash_tokens(tokenize("never written")))
        self.assertEqual(hits, TokenHits())

    def test_put_then_get(self) -> None:
        key = hash_tokens(tokenize("ab"))
        self.backend.put(key, _hits("xxy"))
        self.assertEqual(self.backend.get(key), _hits("xxy"))

    def test_put_overwrites(self) -> None:
        key = hash_tokens(tokenize("ab"))
        self.backend.put(key, _hits("x"))
        self.backend.put(key, _hits("yy"))
        self.assertEqual(self.backend.get(key), _hits("yy"))

    def test_flushed_data_survives_reopen(self) -> None:
        key = hash_tokens(tokenize("persist"))
        self.backend.put(key, _hits("pqq"))
        self.backend.flush()
        self.assertEqual(self.reopen().get(key), _hits("pqq"))

    def test_put_many_stores_every_key(self) -> None:
        items = {hash_tokens(tokenize(str(n))): _hits("z" * (n + 1)) for n in range(20)}
        self.backend.put_many(items)
        backend = self.reopen()
        for key, hits in items.items():
            self.assertEqual(backend.get(key), hits)

    def test_get_returns_independent_copy(self) -> None:
        key = hash_tokens(tokenize("copy"))
        self.backend.put(key, _hits("a"))
        fetched = self.backend.get(key)
        fetched.note(Token.char("a"))
        self.assertEqual(self.backend.get(key).count_of(Token.char("a")), 1)

    def test_transaction_groups_writes(self) -> None:
        keys = [hash_tokens(tokenize(f"t{n}")) for n in range(5)]
        with self.backend.transaction():
            for key in keys:
                self.backend.put(key, _hits("k"))
        backend = self.reopen()
        for key in keys:
            self.assertEqual(backend.get(key), _hits("k"))

    def test_close_is_idempotent(self) -> None:
        self.backend.close()
        self.backend.close()


class PerContextFileBackendTests(BackendContract, unittest.TestCase):
    def make_backend(self, root: Path):
        return PerContextFileBackend(root)

    def test_layout_splits_hash_prefix(self) -> None:
        key = hash_tokens(tokenize("layout"))
        self.backend.put(key, _hits("l"))
        self.assertTrue((self.root / key[:3] / key[3:]).is_file())

    def test_corrupt_file_is_fatal(self) -> None:
        key = hash_tokens(tokenize("corrupt"))
        path = self.backend.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x01\x00")
        with self.assertRaises(CodecError):
            self.backend.get(key)


class ShardedFileBackendTests(BackendContract, unittest.TestCase):
    def make_backend(self, root: Path):
        return ShardedFileBackend(root)

    def test_writes_are_deferred_until_flush(self) -> None:
        key = hash_tokens(tokenize("deferred"))
        self.backend.put(key, _hits("d"))
        shard_file = self.root / key[:3] / f"hash-{key[:3]}.bin"
        self.assertFalse(shard_file.exists())
        self.assertEqual(self.backend.pending_shards, 1)
        self.backend.flush()
        self.assertTrue(shard_file.is_file())
        self.assertEqual(self.backend.pending_shards, 0)

    def test_unflushed_writes_are_lost(self) -> None:
        key = hash_tokens(tokenize("lost"))
        self.backend.put(key, _hits("l"))
        fresh = ShardedFileBackend(self.root)
        self.assertEqual(fresh.get(key), TokenHits())
        fresh.close()

    def test_keys_sharing_a_prefix_share_a_bucket(self) -> None:
        first = "abc" + "0" * 61
        second = "abc" + "1" * 61
        self.backend.put(first, _hits("1"))
        self.backend.put(second, _hits("2"))
        self.backend.flush()
        self.assertEqual(len(list((self.root / "abc").iterdir())), 1)
        backend = self.reopen()
        self.assertEqual(backend.get(first), _hits("1"))
        self.assertEqual(backend.get(second), _hits("2"))


class SQLiteBackendTests(BackendContract, unittest.TestCase):
    def make_backend(self, root: Path):
        return SQLiteBackend(root)

    def test_single_db_file(self) -> None:
        self.backend.put(hash_tokens(tokenize("x")), _hits("x"))
        self.assertTrue((self.root / "db").is_file())
        self.assertEqual(self.backend.count(), 1)

    def test_failed_transaction_rolls_back_every_key(self) -> None:
        kept = hash_tokens(tokenize("kept"))
        self.backend.put(kept, _hits("k"))
        dropped = [hash_tokens(tokenize(f"r{n}")) for n in range(3)]
        with self.assertRaises(RuntimeError):
            with self.backend.transaction():
                for key in dropped:
                    self.backend.put(key, _hits("r"))
                raise RuntimeError("abort")
        for key in dropped:
            self.assertEqual(self.backend.get(key), TokenHits())
        self.assertEqual(self.backend.get(kept), _hits("k"))

    def test_nested_put_many_joins_outer_transaction(self) -> None:
        key = hash_tokens(tokenize("nested"))
        with self.assertRaises(RuntimeError):
            with self.backend.transaction():
                self.backend.put_many({key: _hits("n")})
                raise RuntimeError("abort")
        self.assertEqual(self.backend.get(key), TokenHits())


class DuckDBBackendTests(BackendContract, unittest.TestCase):
    def make_backend(self, root: Path):
        return DuckDBBackend(root, compression_level=9)

    def test_payloads_are_compressed(self) -> None:
        key = hash_tokens(tokenize("zip"))
        self.backend.put(key, _hits("z" * 50))
        self.assertEqual(self.backend.count(), 1)
        self.assertTrue((self.root / "db").is_file())

    def test_failed_transaction_rolls_back(self) -> None:
        key = hash_tokens(tokenize("rollback"))
        with self.assertRaises(RuntimeError):
            with self.backend.transaction():
                self.backend.put(key, _hits("r"))
                raise RuntimeError("abort")
        self.assertEqual(self.backend.get(key), TokenHits())


class MemoryBackendTests(unittest.TestCase):
    def test_contract_without_persistence(self) -> None:
        backend = MemoryBackend()
        key = hash_tokens(tokenize("m"))
        self.assertEqual(backend.get(key), TokenHits())
        backend.put_many({key: _hits("mm")})
        self.assertEqual(backend.get(key), _hits("mm"))
        self.assertEqual(len(backend), 1)
        backend.close()


class BuildBackendTests(unittest.TestCase):
    def test_every_registered_name_builds(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            for name in BACKENDS:
                with self.subTest(backend=name):
                    backend = build_backend(HashmemSettings(), name=name, root=Path(tmp) / name)
                    try:
                        self.assertTrue(backend.describe())
                    finally:
                        backend.close()

    def test_unknown_backend(self) -> None:
        with self.assertRaises(ConfigError):
            build_backend(HashmemSettings(backend="bogus"), root="unused")


if __name__ == "__main__":
    unittest.main()
