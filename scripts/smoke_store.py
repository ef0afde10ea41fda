#!/usr/bin/env python3
"""Write one frequency table through every backend and read it back."""
from __future__ import annotations

import argparse
import sys
import tempfile
from pathlib import Path

SCRIPT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = SCRIPT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from hashmem.backends import BACKENDS, build_backend
from hashmem.hashing import hash_tokens
from hashmem.settings import load_settings
from hashmem.tokens import Token, TokenHits, tokenize
from log_helpers import log


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--backends",
        default=",".join(BACKENDS),
        help="Comma-separated backends to exercise (default: %(default)s).",
    )
    parser.add_argument(
        "--root",
        help="Directory to create stores in (default: a fresh temporary directory).",
    )
    return parser.parse_args()


def smoke_backend(name: str, root: Path) -> bool:
    settings = load_settings()
    key = hash_tokens(tokenize("123"))
    expected = TokenHits()
    expected.note(Token.char("a"))
    expected.note(Token.num(42), 7)

    backend = build_backend(settings, name=name, root=root / name)
    try:
        backend.put(key, expected)
        backend.flush()
    finally:
        backend.close()

    # A fresh handle must see what the first one flushed.
    backend = build_backend(settings, name=name, root=root / name)
    try:
        found = backend.get(key)
    finally:
        backend.close()
    if name == "memory":
        ok = not found
    else:
        ok = found == expected
    log(f"[smoke] {name}: {'ok' if ok else 'MISMATCH'} -> {found!r}")
    return ok


def main() -> int:
    args = parse_args()
    names = [name.strip() for name in args.backends.split(",") if name.strip()]
    unknown = sorted(set(names) - set(BACKENDS))
    if unknown:
        log(f"[smoke] Unknown backend(s): {', '.join(unknown)}")
        return 2
    if args.root:
        root = Path(args.root)
        root.mkdir(parents=True, exist_ok=True)
        results = [smoke_backend(name, root) for name in names]
    else:
        with tempfile.TemporaryDirectory(prefix="hashmem-smoke-") as tmp:
            results = [smoke_backend(name, Path(tmp)) for name in names]
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(main())
