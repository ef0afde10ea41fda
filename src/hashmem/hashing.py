from __future__ import annotations

import hashlib
import struct
from typing import Sequence

from .tokens import Token, encode_token


def encode_tokens(tokens: Sequence[Token]) -> bytes:
    """Length-prefixed, tag-prefixed encoding of a token sequence."""
    buf = bytearray(struct.pack(">I", len(tokens)))
    for token in tokens:
        buf.extend(encode_token(token))
    return bytes(buf)


def hash_tokens(tokens: Sequence[Token]) -> str:
    """Return the canonical context hash for a sequence of tokens."""
    return hashlib.sha256(encode_tokens(tokens)).hexdigest()


__all__ = ["encode_tokens", "hash_tokens"]
