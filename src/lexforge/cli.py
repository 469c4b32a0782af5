from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from lexforge.core.automaton import Automaton
from lexforge.core.errors import BuildError, LexError
from lexforge.core.hashing import sha256_hex
from lexforge.gen import build
from lexforge.io.config import BuildSettings


def _configure_logging(verbose: bool) -> None:
    """Route library logging to stderr as "[LEVEL] message" lines."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
        stream=sys.stderr,
        force=True,
    )
    # httpx logs every request at INFO; keep it for -v only
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _print_error(err: BaseException) -> None:
    """Print an error and its cause chain to stderr.

    Args:
        err: Top-level error (usually a BuildError).
    """
    print(f"[ERROR] {err}", file=sys.stderr)
    cause = err.__cause__
    while cause is not None:
        print(f"[ERROR]   caused by: {type(cause).__name__}: {cause}", file=sys.stderr)
        cause = cause.__cause__


def _cmd_build(argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        prog="lexforge build",
        description="Fetch pinned grammars, generate lexers and emit the dispatch table.",
    )
    p.add_argument("--manifest", type=str, default=None, help="Grammar manifest (TOML or JSON).")
    p.add_argument("--root-dir", type=str, default=None, help="Output root (downloaded/, generated/).")
    p.add_argument(
        "--strategy",
        choices=("embedded", "external"),
        default=None,
        help="Generator strategy (default from settings).",
    )
    p.add_argument("--jobs", type=int, default=None, help="Worker count; 0 uses all CPUs.")
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Settings TOML (default: ./lexforge.toml, then [tool.lexforge] in ./pyproject.toml).",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = p.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        settings = BuildSettings.load(args.config)
        overrides: dict[str, Any] = {}
        if args.manifest is not None:
            overrides["manifest"] = args.manifest
        if args.root_dir is not None:
            overrides["root_dir"] = args.root_dir
        if args.strategy is not None:
            overrides["strategy"] = args.strategy
        if args.jobs is not None:
            overrides["jobs"] = args.jobs
        if overrides:
            settings = replace(settings, **overrides)
        result = build(settings)
    except BuildError as e:
        _print_error(e)
        return 1

    reused = sum(1 for a in result.artifacts if a.reused)
    print(
        f"[INFO] Built {len(result.artifacts)} grammar(s) "
        f"({reused} up to date, {result.network_calls} download(s))"
    )
    print(f"[INFO] Wrote dispatch table to {result.module_path}")
    return 0


def _cmd_hash(argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        prog="lexforge hash", description="Print SHA-256 digests for pinning manifest entries."
    )
    p.add_argument("files", nargs="+", help="Files to hash.")
    args = p.parse_args(argv)

    code = 0
    for name in args.files:
        try:
            data = Path(name).read_bytes()
        except OSError as e:
            print(f"[ERROR] {name}: {e.strerror or e}", file=sys.stderr)
            code = 1
            continue
        print(f"{sha256_hex(data)}  {name}")
    return code


def _cmd_lex(argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        prog="lexforge lex", description="Tokenize a file with a generated .dfa artifact."
    )
    p.add_argument("--artifact", type=str, required=True, help="Path to a .dfa artifact.")
    p.add_argument("--mode", type=str, default="DEFAULT_MODE", help="Initial lexer mode.")
    p.add_argument("input", type=str, help="File to tokenize.")
    args = p.parse_args(argv)

    try:
        dfa = Automaton.from_bytes(Path(args.artifact).read_bytes())
        text = Path(args.input).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    try:
        for tok in dfa.tokenize(text, args.mode):
            flag = " (hidden)" if tok.hidden else ""
            print(f"{tok.start}\t{tok.type}\t{tok.text!r}{flag}")
    except LexError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    except KeyError as e:
        print(f"[ERROR] unknown mode {e}", file=sys.stderr)
        return 1
    return 0


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lexforge", description="Pinned lexer generation for grammars.")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("build")
    sub.add_parser("hash")
    sub.add_parser("lex")
    return p


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        build_argparser().print_help()
        return
    cmd, rest = argv[0], argv[1:]
    if cmd == "build":
        code = _cmd_build(rest)
    elif cmd == "hash":
        code = _cmd_hash(rest)
    elif cmd == "lex":
        code = _cmd_lex(rest)
    else:
        print(f"Unknown command: {cmd}", file=sys.stderr)
        code = 2
    raise SystemExit(code)


if __name__ == "__main__":
    main()
