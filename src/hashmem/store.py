from __future__ import annotations

import contextlib
from pathlib import Path
from typing import Dict, Iterable, Iterator, Sequence, Tuple

from log_helpers import log_verbose, verbose_enabled

from .backends import build_backend
from .backends.base import StorageBackend
from .hashing import hash_tokens
from .settings import HashmemSettings
from .tokens import Token, TokenHits


class ContextStore:
    """Context → successor-count store on top of one exclusively owned backend."""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend
        self._closed = False

    # ------------------------------------------------------------------ #
    # Noting
    # ------------------------------------------------------------------ #
    def record_transition(self, context: Sequence[Token], next_token: Token) -> int:
        """Count one `context -> next_token` observation; returns the new count."""
        context_hash = hash_tokens(context)
        hits = self.backend.get(context_hash)
        trace = verbose_enabled(3)
        if trace:
            log_verbose(3, f"[store:v3] context={context!r} next={next_token!r} hash={context_hash}")
            log_verbose(3, f"[store:v3] before: {hits!r}")
        count = hits.note(next_token)
        if trace:
            log_verbose(3, f"[store:v3] after: {hits!r}")
        self.backend.put(context_hash, hits)
        return count

    def record_batch(self, observations: Iterable[Tuple[Sequence[Token], Token]]) -> int:
        """Fold many observations in memory and persist every touched table at once."""
        pending: Dict[str, TokenHits] = {}
        folded = 0
        for context, next_token in observations:
            context_hash = hash_tokens(context)
            hits = pending.get(context_hash)
            if hits is None:
                hits = self.backend.get(context_hash)
                pending[context_hash] = hits
            hits.note(next_token)
            folded += 1
        if pending:
            self.backend.put_many(pending)
        log_verbose(3, f"[store:v3] batch folded {folded} observation(s) into {len(pending)} context(s)")
        return folded

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #
    def successors_of(self, context: Sequence[Token]) -> TokenHits:
        hits = self.backend.get(hash_tokens(context))
        if verbose_enabled(3):
            log_verbose(3, f"[store:v3] successors of {context!r}: {hits!r}")
        return hits

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    @contextlib.contextmanager
    def batch(self) -> Iterator["ContextStore"]:
        with self.backend.transaction():
            yield self

    def flush(self) -> None:
        self.backend.flush()

    def close(self) -> None:
        if self._closed:
            return
        try:
            self.backend.close()
        finally:
            self._closed = True

    def describe(self) -> str:
        return self.backend.describe()

    def __enter__(self) -> "ContextStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_store(
    settings: HashmemSettings,
    *,
    backend: str | None = None,
    data_dir: str | Path | None = None,
) -> ContextStore:
    """Build the configured backend and wrap it in a ContextStore."""
    store = ContextStore(build_backend(settings, name=backend, root=data_dir))
    log_verbose(2, f"[store] Opened {store.describe()}")
    return store


__all__ = ["ContextStore", "open_store"]
