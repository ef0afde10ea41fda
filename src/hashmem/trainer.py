from __future__ import annotations

from typing import Callable, Iterator, List, Sequence, Tuple

from .store import ContextStore
from .tokens import Token, tokenize

ProgressCallback = Callable[[str, int, int], None]
Observation = Tuple[Sequence[Token], Token]


def _windows_ending_at(tokens: Sequence[Token], end: int, context_length: int) -> Iterator[Observation]:
    for j in range(min(context_length, end - 1)):
        window = tokens[end - 2 - j : end]
        yield window[:-1], window[-1]


def iter_windows(tokens: Sequence[Token], context_length: int) -> Iterator[Observation]:
    """Yield every `(context, next)` pair with context lengths 1..context_length.

    For each end position i in 2..N and window index j in 0..context_length-1
    (when i > 1 + j) the window is tokens[i-2-j:i]; its last token is the
    successor and the rest is the context.
    """
    if context_length < 1:
        raise ValueError(f"context_length must be >= 1 (got {context_length})")
    for end in range(2, len(tokens) + 1):
        yield from _windows_ending_at(tokens, end, context_length)


def _with_progress(
    tokens: Sequence[Token],
    context_length: int,
    callback: ProgressCallback | None,
    interval: int,
) -> Iterator[Observation]:
    total = len(tokens)
    for end in range(2, total + 1):
        yield from _windows_ending_at(tokens, end, context_length)
        if callback and end % interval == 0:
            callback("note", end, total)
    if callback:
        callback("note", total, total)


def note_text(
    store: ContextStore,
    text: str,
    context_length: int,
    *,
    batched: bool = True,
    progress_callback: ProgressCallback | None = None,
    progress_interval: int = 100,
) -> int:
    """Train on `text`; returns the number of observations recorded."""
    if context_length < 1:
        raise ValueError(f"context_length must be >= 1 (got {context_length})")
    tokens = tokenize(text)
    observations = _with_progress(tokens, context_length, progress_callback, max(1, progress_interval))
    if batched:
        return store.record_batch(observations)
    noted = 0
    with store.batch():
        for context, next_token in observations:
            store.record_transition(context, next_token)
            noted += 1
    return noted


def note_string(store: ContextStore, text: str) -> int:
    """Note one transition: every token but the last predicts the last."""
    tokens = tokenize(text)
    if not tokens:
        return 0
    return store.record_transition(tokens[:-1], tokens[-1])


def note_suffixes(store: ContextStore, text: str, context_length: int) -> int:
    """Note the final transition of `text` under each context length that fits."""
    tokens: List[Token] = tokenize(text)
    noted = 0
    for j in range(context_length):
        if len(tokens) <= 1 + j:
            break
        window = tokens[len(tokens) - 2 - j :]
        store.record_transition(window[:-1], window[-1])
        noted += 1
    return noted


__all__ = ["iter_windows", "note_string", "note_suffixes", "note_text"]
