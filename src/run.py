from __future__ import annotations

import argparse
import codecs
import random
import sys
import time
from pathlib import Path
from typing import Sequence

from hashmem.backends import BACKENDS
from hashmem.errors import ConfigError, HashmemError
from hashmem.predictor import generate, predict_with_order, uniform_choice, weighted_choice
from hashmem.settings import HashmemSettings, load_settings
from hashmem.store import ContextStore, open_store
from hashmem.tokens import Token
from hashmem.trainer import note_text

from helpers.resource_monitor import ResourceMonitor
from log_helpers import log, log_verbose, set_log_level


class TrainingProgressPrinter:
    """Provides throttle-controlled noting progress logs."""

    def __init__(self, label: str, min_interval: float = 0.75) -> None:
        self.label = label
        self.min_interval = min_interval
        self._last_emit = 0.0

    def __call__(self, stage: str, completed: int, total: int) -> None:
        if total <= 0:
            return
        now = time.perf_counter()
        if completed != total and (now - self._last_emit) < self.min_interval:
            return
        self._last_emit = now
        pct = (completed / total) * 100.0
        log(f"[{stage}] {self.label}: {pct:5.1f}% ({completed}/{total} characters)")


def build_parser(settings: HashmemSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hashmem",
        description="Note text into a hashed context store, then predict or generate from it.",
    )
    parser.add_argument(
        "--data-dir",
        default=settings.data_dir,
        help="Directory holding the store (default: %(default)s).",
    )
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default=settings.backend if settings.backend in BACKENDS else None,
        help="Storage backend (default: %(default)s).",
    )
    parser.add_argument(
        "--context-length",
        type=int,
        default=settings.context_length,
        help="Longest context noted and consulted (default: %(default)s).",
    )
    parser.add_argument(
        "--unbatched",
        action="store_true",
        default=not settings.batched,
        help="Commit every observation individually instead of once per document.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Raise log verbosity (repeat for debug traces).",
    )
    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    note = commands.add_parser("note", help="Train on a literal string.")
    note.add_argument("text")

    note_file = commands.add_parser("note-file", help="Train on the contents of a file.")
    note_file.add_argument("path")
    note_file.add_argument(
        "--encoding",
        default=settings.encoding,
        help="Text encoding of the file (default: %(default)s).",
    )

    predict = commands.add_parser("predict", help="Print the predicted successors of a string.")
    predict.add_argument("text")

    gen = commands.add_parser("generate", help="Print a seed string followed by a generated continuation.")
    gen.add_argument("text")
    gen.add_argument(
        "--generate-context",
        type=int,
        default=settings.generate_context,
        help="Context length consulted while generating (default: %(default)s).",
    )
    gen.add_argument("--seed", type=int, help="Seed for the sampling RNG.")
    gen.add_argument(
        "--weighted",
        action="store_true",
        help="Sample successors proportionally to their counts instead of uniformly.",
    )
    gen.add_argument(
        "--max-tokens",
        type=int,
        help="Stop after this many generated characters (default: until no successor is known).",
    )
    return parser


def load_text(raw_path: str, encoding: str) -> str:
    path = Path(raw_path).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"{path} does not exist or is not a file")
    return path.read_text(encoding=encoding)


def format_token(token: Token) -> str:
    """Printable form of a token; control characters are escaped."""
    text = str(token)
    if text.isprintable():
        return text
    return repr(text)[1:-1]


def cmd_note(store: ContextStore, text: str, label: str, args: argparse.Namespace, settings: HashmemSettings) -> int:
    noted = note_text(
        store,
        text,
        args.context_length,
        batched=not args.unbatched,
        progress_callback=TrainingProgressPrinter(label),
        progress_interval=settings.progress_interval,
    )
    log(f"[note] {label}: {noted} observation(s) from {len(text)} character(s) -> {store.describe()}")
    return noted


def cmd_note_file(store: ContextStore, args: argparse.Namespace, settings: HashmemSettings) -> None:
    log(f"[note] Noting {args.path}...")
    text = load_text(args.path, args.encoding)
    monitor = ResourceMonitor()
    before = monitor.snapshot()
    cmd_note(store, text, args.path, args, settings)
    delta = monitor.delta(before, monitor.snapshot())
    log(f"[note] {args.path}: {delta.describe()}")


def cmd_predict(store: ContextStore, args: argparse.Namespace) -> None:
    matched, hits = predict_with_order(store, args.text, args.context_length)
    if not hits:
        log("[predict] No successor recorded for any suffix of the input.")
        return
    log(f"[predict] Matched context length {matched}")
    for entry in hits:
        print(f"{format_token(entry.value)}\t{entry.count}")


def cmd_generate(store: ContextStore, args: argparse.Namespace) -> None:
    rng = random.Random(args.seed)
    sampler = weighted_choice if args.weighted else uniform_choice
    sys.stdout.write(args.text)
    produced = 0
    for token in generate(
        store,
        args.text,
        args.generate_context,
        rng=rng,
        sampler=sampler,
        max_tokens=args.max_tokens,
    ):
        sys.stdout.write(str(token))
        produced += 1
    sys.stdout.write("\n")
    sys.stdout.flush()
    log_verbose(2, f"[generate] Produced {produced} character(s).")


def main(argv: Sequence[str] | None = None) -> None:
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"hashmem: configuration error: {exc}", file=sys.stderr)
        sys.exit(2)
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    if args.verbose:
        set_log_level(1 + args.verbose)
    log_verbose(3, f"[run:v3] Parsed CLI arguments: {vars(args)}")

    if args.backend is None:
        parser.error(f"unknown backend {settings.backend!r} in HASHMEM_BACKEND; pass --backend")
    if args.context_length < 1:
        parser.error(f"--context-length must be >= 1 (got {args.context_length})")
    if args.command == "generate":
        if args.generate_context < 1:
            parser.error(f"--generate-context must be >= 1 (got {args.generate_context})")
        if args.max_tokens is not None and args.max_tokens < 0:
            parser.error(f"--max-tokens must be >= 0 (got {args.max_tokens})")
    if args.command == "note-file" and not Path(args.path).expanduser().is_file():
        parser.error(f"{args.path} does not exist or is not a file")
    if args.command == "note-file":
        try:
            codecs.lookup(args.encoding)
        except LookupError:
            parser.error(f"unknown text encoding {args.encoding!r}")

    try:
        with open_store(settings, backend=args.backend, data_dir=args.data_dir) as store:
            if args.command == "note":
                cmd_note(store, args.text, "argument", args, settings)
            elif args.command == "note-file":
                cmd_note_file(store, args, settings)
            elif args.command == "predict":
                cmd_predict(store, args)
            elif args.command == "generate":
                cmd_generate(store, args)
    except (HashmemError, OSError, UnicodeDecodeError) as exc:
        print(f"hashmem: {args.command} failed: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
