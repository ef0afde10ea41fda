"""
Disk-backed context → successor frequency store.

Character contexts are hashed into fixed storage keys and persisted through
one of several interchangeable backends (sqlite, duckdb, sharded bucket
files, one file per context, or memory):
    * store.ContextStore: note transitions and look up successor tables.
    * trainer: sliding-window noting over whole documents.
    * predictor: longest-match backoff prediction and random generation.
"""

from .predictor import generate, predict
from .settings import HashmemSettings, load_settings
from .store import ContextStore, open_store
from .tokens import Token, TokenEntry, TokenHits, tokenize
from .trainer import note_text

__all__ = [
    "ContextStore",
    "HashmemSettings",
    "Token",
    "TokenEntry",
    "TokenHits",
    "generate",
    "load_settings",
    "note_text",
    "open_store",
    "predict",
    "tokenize",
]
