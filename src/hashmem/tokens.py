from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Tuple, Union

from .errors import CodecError

TAG_CHAR = 0x00
TAG_NUM = 0x01
MAX_COUNT = 2**64 - 1


@dataclass(frozen=True)
class Token:
    """A single symbol: either one character or an unsigned numeric literal."""

    kind: str
    value: Union[str, int]

    @classmethod
    def char(cls, value: str) -> "Token":
        if len(value) != 1:
            raise ValueError(f"char token needs exactly one character, got {value!r}")
        return cls("char", value)

    @classmethod
    def num(cls, value: int) -> "Token":
        if not 0 <= value <= MAX_COUNT:
            raise ValueError(f"numeric token out of u64 range: {value}")
        return cls("num", int(value))

    @property
    def is_char(self) -> bool:
        return self.kind == "char"

    def __str__(self) -> str:
        return str(self.value)


def tokenize(text: str) -> List[Token]:
    """One char token per character, in order; never fails."""
    return [Token("char", ch) for ch in text]


def detokenize(tokens: Iterable[Token]) -> str:
    return "".join(str(token) for token in tokens)


def encode_token(token: Token) -> bytes:
    if token.kind == "char":
        return bytes((TAG_CHAR,)) + struct.pack(">I", ord(token.value))
    if token.kind == "num":
        return bytes((TAG_NUM,)) + struct.pack(">Q", int(token.value))
    raise CodecError(f"unknown token kind {token.kind!r}")


def decode_token(payload: bytes, offset: int) -> Tuple[Token, int]:
    """Decode one token starting at `offset`; returns the token and the next offset."""
    if offset >= len(payload):
        raise CodecError("truncated payload: missing token tag")
    tag = payload[offset]
    offset += 1
    if tag == TAG_CHAR:
        if offset + 4 > len(payload):
            raise CodecError("truncated payload: char token")
        code_point = struct.unpack(">I", payload[offset : offset + 4])[0]
        try:
            value = chr(code_point)
        except (ValueError, OverflowError) as exc:
            raise CodecError(f"invalid code point {code_point}") from exc
        return Token("char", value), offset + 4
    if tag == TAG_NUM:
        if offset + 8 > len(payload):
            raise CodecError("truncated payload: numeric token")
        return Token("num", struct.unpack(">Q", payload[offset : offset + 8])[0]), offset + 8
    raise CodecError(f"unknown token tag 0x{tag:02x}")


@dataclass
class TokenEntry:
    value: Token
    count: int = 1


class TokenHits:
    """Successor counts for one context, at most one entry per distinct token."""

    def __init__(self, entries: Iterable[TokenEntry] | None = None) -> None:
        self.entries: List[TokenEntry] = []
        for entry in entries or ():
            self.note(entry.value, entry.count)

    def note(self, token: Token, times: int = 1) -> int:
        """Add `times` observations of `token`; returns its new count."""
        for entry in self.entries:
            if entry.value == token:
                entry.count += times
                return entry.count
        self.entries.append(TokenEntry(token, times))
        return times

    def merge(self, other: "TokenHits") -> None:
        for entry in other.entries:
            self.note(entry.value, entry.count)

    def count_of(self, token: Token) -> int:
        for entry in self.entries:
            if entry.value == token:
                return entry.count
        return 0

    def total(self) -> int:
        return sum(entry.count for entry in self.entries)

    def as_dict(self) -> Dict[Token, int]:
        return {entry.value: entry.count for entry in self.entries}

    def copy(self) -> "TokenHits":
        return TokenHits(TokenEntry(entry.value, entry.count) for entry in self.entries)

    def __iter__(self) -> Iterator[TokenEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __getitem__(self, index: int) -> TokenEntry:
        return self.entries[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenHits):
            return NotImplemented
        return self.entries == other.entries

    def __repr__(self) -> str:
        body = ", ".join(f"{entry.value}:{entry.count}" for entry in self.entries)
        return f"TokenHits({body})"


TokenHitHash = Dict[str, TokenHits]


__all__ = [
    "MAX_COUNT",
    "Token",
    "TokenEntry",
    "TokenHitHash",
    "TokenHits",
    "decode_token",
    "detokenize",
    "encode_token",
    "tokenize",
]
