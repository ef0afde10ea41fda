#!/usr/bin/env python3
"""Time note_text on random corpora of increasing size and report store size on disk."""
from __future__ import annotations

import argparse
import random
import string
import sys
import tempfile
import time
from pathlib import Path

SCRIPT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = SCRIPT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from hashmem.backends import BACKENDS
from hashmem.settings import load_settings
from hashmem.store import open_store
from hashmem.trainer import note_text
from helpers.resource_monitor import ResourceMonitor
from log_helpers import log

ALPHABET = string.ascii_letters + string.digits + "\n"
DEFAULT_SIZES = "500,5000,50000"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--backend", choices=BACKENDS, default="sqlite")
    parser.add_argument("--sizes", default=DEFAULT_SIZES, help="Corpus sizes in characters (default: %(default)s).")
    parser.add_argument("--context-length", type=int, default=32)
    parser.add_argument("--unbatched", action="store_true", help="Commit each observation separately.")
    parser.add_argument("--seed", type=int, default=0)
    return parser.parse_args()


def random_corpus(size: int, rng: random.Random) -> str:
    return "".join(rng.choice(ALPHABET) for _ in range(size))


def directory_size(root: Path) -> int:
    return sum(path.stat().st_size for path in root.rglob("*") if path.is_file())


def main() -> int:
    args = parse_args()
    try:
        sizes = [int(raw) for raw in args.sizes.split(",") if raw.strip()]
    except ValueError:
        log(f"[bench] --sizes must be comma-separated integers (got {args.sizes!r})")
        return 2
    rng = random.Random(args.seed)
    settings = load_settings()
    monitor = ResourceMonitor()
    log(f"[bench] backend={args.backend} context_length={args.context_length} batched={not args.unbatched}")
    for size in sizes:
        corpus = random_corpus(size, rng)
        with tempfile.TemporaryDirectory(prefix="hashmem-bench-") as tmp:
            root = Path(tmp)
            before = monitor.snapshot()
            started = time.perf_counter()
            with open_store(settings, backend=args.backend, data_dir=root) as store:
                noted = note_text(store, corpus, args.context_length, batched=not args.unbatched)
            elapsed = time.perf_counter() - started
            delta = monitor.delta(before, monitor.snapshot())
            size_kb = directory_size(root) / 1024
            log(
                f"[bench] {size:>6} chars: {noted} observation(s) in {elapsed:.2f}s "
                f"({noted / max(elapsed, 1e-9):,.0f}/s), store {size_kb:,.1f}KB, {delta.describe()}"
            )
    return 0


if __name__ == "__main__":
    sys.exit(main())
