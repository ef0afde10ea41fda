from __future__ import annotations

import random
from typing import Callable, Iterator, List, Sequence, Tuple

from log_helpers import log_verbose

from .store import ContextStore
from .tokens import Token, TokenEntry, TokenHits, tokenize

Sampler = Callable[[TokenHits, random.Random], TokenEntry]


def uniform_choice(hits: TokenHits, rng: random.Random) -> TokenEntry:
    """Pick one entry uniformly by index, ignoring counts."""
    return hits[rng.randrange(len(hits))]


def weighted_choice(hits: TokenHits, rng: random.Random) -> TokenEntry:
    """Pick one entry with probability proportional to its count."""
    return rng.choices(hits.entries, weights=[entry.count for entry in hits.entries], k=1)[0]


def predict_tokens(
    store: ContextStore, tokens: Sequence[Token], context_length: int
) -> Tuple[int, TokenHits]:
    """Longest-match-first backoff; returns (matched context length, table).

    Tries the last `context_length` tokens first and shortens down to one;
    (0, empty table) when no suffix has ever been observed.
    """
    for j in range(context_length - 1, -1, -1):
        if len(tokens) <= j:
            continue
        hits = store.successors_of(tokens[len(tokens) - 1 - j :])
        if hits:
            log_verbose(3, f"[predict:v3] matched {hits!r} at length {j + 1}")
            return j + 1, hits
    return 0, TokenHits()


def predict_with_order(store: ContextStore, text: str, context_length: int) -> Tuple[int, TokenHits]:
    return predict_tokens(store, tokenize(text), context_length)


def predict(store: ContextStore, text: str, context_length: int) -> TokenHits:
    return predict_tokens(store, tokenize(text), context_length)[1]


def generate(
    store: ContextStore,
    seed: str,
    context_length: int,
    *,
    rng: random.Random | None = None,
    sampler: Sampler = uniform_choice,
    max_tokens: int | None = None,
) -> Iterator[Token]:
    """Lazily extend `seed` one token at a time until no successor is known.

    Only the seed continuation is yielded, not the seed itself. Without
    `max_tokens` the sequence is bounded only by the corpus' coverage.
    """
    rng = rng or random.Random()
    history: List[Token] = tokenize(seed)
    produced = 0
    while max_tokens is None or produced < max_tokens:
        _, hits = predict_tokens(store, history, context_length)
        if not hits:
            return
        token = sampler(hits, rng).value
        history.append(token)
        produced += 1
        yield token


__all__ = [
    "Sampler",
    "generate",
    "predict",
    "predict_tokens",
    "predict_with_order",
    "uniform_choice",
    "weighted_choice",
]
