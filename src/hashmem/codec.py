from __future__ import annotations

import struct
from typing import Mapping

from .errors import CodecError
from .tokens import MAX_COUNT, TokenHitHash, TokenHits, decode_token, encode_token


class RecordSerializer:
    """Binary codec for frequency tables and shard buckets."""

    HITS_VERSION = 1
    BUCKET_VERSION = 1

    def encode_hits(self, hits: TokenHits) -> bytes:
        buf = bytearray()
        buf.append(self.HITS_VERSION)
        buf.extend(struct.pack(">I", len(hits)))
        for entry in hits:
            if not 1 <= entry.count <= MAX_COUNT:
                raise CodecError(f"count out of u64 range for {entry.value!r}: {entry.count}")
            buf.extend(encode_token(entry.value))
            buf.extend(struct.pack(">Q", entry.count))
        return bytes(buf)

    def decode_hits(self, payload: bytes) -> TokenHits:
        if len(payload) < 5:
            raise CodecError(f"hits payload too short ({len(payload)} bytes)")
        if payload[0] != self.HITS_VERSION:
            raise CodecError(f"unsupported hits payload version {payload[0]}")
        count = struct.unpack(">I", payload[1:5])[0]
        hits = TokenHits()
        offset = 5
        for _ in range(count):
            token, offset = decode_token(payload, offset)
            if offset + 8 > len(payload):
                raise CodecError("truncated payload: entry count")
            occurrences = struct.unpack(">Q", payload[offset : offset + 8])[0]
            offset += 8
            if occurrences == 0:
                raise CodecError(f"zero count for {token!r} in hits payload")
            if any(entry.value == token for entry in hits):
                raise CodecError(f"duplicate token {token!r} in hits payload")
            hits.note(token, occurrences)
        if offset != len(payload):
            raise CodecError(f"{len(payload) - offset} trailing byte(s) after hits payload")
        return hits

    def encode_bucket(self, bucket: Mapping[str, TokenHits]) -> bytes:
        buf = bytearray()
        buf.append(self.BUCKET_VERSION)
        buf.extend(struct.pack(">I", len(bucket)))
        for context_hash, hits in bucket.items():
            key = context_hash.encode("utf-8")
            if len(key) > 0xFFFF:
                raise CodecError("context hash too long for bucket payload")
            body = self.encode_hits(hits)
            buf.extend(struct.pack(">H", len(key)))
            buf.extend(key)
            buf.extend(struct.pack(">I", len(body)))
            buf.extend(body)
        return bytes(buf)

    def decode_bucket(self, payload: bytes) -> TokenHitHash:
        if len(payload) < 5:
            raise CodecError(f"bucket payload too short ({len(payload)} bytes)")
        if payload[0] != self.BUCKET_VERSION:
            raise CodecError(f"unsupported bucket payload version {payload[0]}")
        count = struct.unpack(">I", payload[1:5])[0]
        bucket: TokenHitHash = {}
        offset = 5
        for _ in range(count):
            if offset + 2 > len(payload):
                raise CodecError("truncated bucket: key length")
            key_len = struct.unpack(">H", payload[offset : offset + 2])[0]
            offset += 2
            if offset + key_len + 4 > len(payload):
                raise CodecError("truncated bucket: key")
            try:
                key = payload[offset : offset + key_len].decode("utf-8")
            except UnicodeDecodeError as exc:
                raise CodecError("bucket key is not valid UTF-8") from exc
            offset += key_len
            body_len = struct.unpack(">I", payload[offset : offset + 4])[0]
            offset += 4
            if offset + body_len > len(payload):
                raise CodecError(f"truncated bucket: hits for {key}")
            bucket[key] = self.decode_hits(payload[offset : offset + body_len])
            offset += body_len
        if offset != len(payload):
            raise CodecError(f"{len(payload) - offset} trailing byte(s) after bucket payload")
        return bucket


__all__ = ["RecordSerializer"]
