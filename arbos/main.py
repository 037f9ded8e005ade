#!/usr/bin/env python3
"""arbos/main.py — CLI entry-point for the arbos pass framework.

Usage examples
--------------
    # Run registered passes over a JSON bundle
    python -m arbos run phi2.json -p unittest-cfg-trans-llvm-phi-2

    # Load an extra pass unit (module name or .py file) and run it
    python -m arbos run phi2.json -u my_checks/loop_check.py -p loop-check

    # Verify a bundle against an oracle file or an inline literal
    python -m arbos verify phi2.json expected.sexp --blocks 33
    python -m arbos verify phi2.json -e '(trans (edge (a) (b)))'

    # Print a function's CFG as an oracle literal
    python -m arbos oracle phi2.json --function main

    # List available passes
    python -m arbos passes

    # Parse an s-expression file / match a pattern against it
    python -m arbos parse expected.sexp --format json
    python -m arbos match '(edge (?src) (?dest))' edges.sexp

Exit codes
----------
    0   Success (all passes ran, verification PASS, pattern matched).
    1   Error: malformed oracle, unknown block or pass, bad IR or
        s-expression input, no pattern match.
    2   Infrastructure failure (missing file, plugin unit failed to load).
    3   Verification FAIL.

The module doubles as ``python -m arbos`` via the companion
``arbos/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import Optional, Sequence, TextIO

from sexql.errors import PatternError, SexqlError
from sexql.pattern import compile_pattern
from sexql.reader import dumps, parse_all, pformat, to_data

from arbos import __version__
from arbos.config import RunConfig
from arbos.errors import ArbosError, PluginLoadError
from arbos.ir import Bundle
from arbos.loader import load_bundle
from arbos.passes import PASS_FAILED, PassManager, PassRegistry, build_registry
from arbos.printer import format_oracle
from arbos.verifier import verify_cfg

_log = logging.getLogger("arbos")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2
EXIT_VIOLATION: int = 3

_handler: Optional[logging.Handler] = None


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``arbos`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    global _handler
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("arbos")
    if _handler is not None:
        root.removeHandler(_handler)
    root.setLevel(level)
    root.addHandler(handler)
    _handler = handler


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Resolve *raw* to an absolute ``Path``, raising on missing files."""
    p = Path(raw).expanduser().resolve()
    if not p.exists():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path
    for writing (creating parent directories as needed).
    """
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _load(raw: str) -> Bundle:
    """Load a bundle file; a bad file becomes ``SystemExit``."""
    path = _resolve_path(raw, "bundle")
    try:
        return load_bundle(path)
    except ArbosError as exc:
        _log.error("Invalid bundle %s: %s", path, exc)
        raise SystemExit(EXIT_ERROR)


def _run_config(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        keep_going=getattr(args, "keep_going", False),
        validate_ir=not getattr(args, "no_validate", False),
        discover_plugins=not getattr(args, "no_plugins", False),
        units=tuple(getattr(args, "unit", None) or ()),
    )


def _registry(config: RunConfig) -> PassRegistry:
    try:
        return build_registry(config)
    except PluginLoadError as exc:
        _log.error("%s", exc)
        raise SystemExit(EXIT_INFRA)
    except ArbosError as exc:
        _log.error("Cannot build pass registry: %s", exc)
        raise SystemExit(EXIT_ERROR)


# ===========================================================================
# Sub-command implementations
# ===========================================================================

# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------

def cmd_run(args: argparse.Namespace) -> int:
    """Run the named passes over one bundle, in command-line order."""
    config = _run_config(args)
    registry = _registry(config)
    bundle = _load(args.bundle)

    try:
        passes = [registry.create(name) for name in args.passes]
    except ArbosError as exc:
        _log.error("%s", exc)
        return EXIT_ERROR

    try:
        runs = PassManager(passes, config).run(bundle)
    except ArbosError as exc:
        _log.error("Bundle %r failed validation: %s", bundle.name, exc)
        return EXIT_ERROR

    for run in runs:
        _log.info("%-40s %-6s %.3fs", run.name, run.status, run.elapsed)
        if run.error is not None and run.status != PASS_FAILED:
            _log.error("%s: %s", run.name, run.error)

    if any(run.status == PASS_FAILED for run in runs):
        return EXIT_VIOLATION
    if any(not run.ok for run in runs):
        return EXIT_ERROR
    return EXIT_OK


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------

def cmd_verify(args: argparse.Namespace) -> int:
    """Verify a bundle's CFG against an oracle literal."""
    if args.expr is not None:
        literal = args.expr
    elif args.oracle is not None:
        literal = _resolve_path(args.oracle, "oracle").read_text(encoding="utf-8")
    else:
        _log.error("Specify an ORACLE file or -e LITERAL.")
        return EXIT_INFRA

    bundle = _load(args.bundle)
    try:
        report = verify_cfg(bundle, literal, block_count=args.blocks, function=args.function)
    except (ArbosError, SexqlError) as exc:
        _log.error("%s", exc)
        return EXIT_ERROR

    sys.stdout.write(f"{report}\n")
    return EXIT_OK if report.passed else EXIT_VIOLATION


# ---------------------------------------------------------------------------
# oracle
# ---------------------------------------------------------------------------

def cmd_oracle(args: argparse.Namespace) -> int:
    """Print the CFG of one or all functions as oracle literals."""
    bundle = _load(args.bundle)
    try:
        functions = [bundle.function(args.function)] if args.function else list(bundle.functions)
    except ArbosError as exc:
        _log.error("%s", exc)
        return EXIT_ERROR

    out = _open_output(args.output)
    try:
        for fn in functions:
            if len(functions) > 1:
                out.write(f"; {fn.name}\n")
            out.write(format_oracle(fn, width=args.width) + "\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ---------------------------------------------------------------------------
# passes
# ---------------------------------------------------------------------------

def cmd_passes(args: argparse.Namespace) -> int:
    """List the available passes."""
    registry = _registry(_run_config(args))
    out = sys.stdout
    for name in registry.names:
        description = registry.create(name).description
        out.write(f"  {name:<40} {description}\n")
        if args.origin:
            out.write(f"  {'':<40} from {registry.origin(name) or '<direct>'}\n")
    out.write(f"\n{len(registry)} pass(es) available.\n")
    return EXIT_OK


# ---------------------------------------------------------------------------
# parse (debugging)
# ---------------------------------------------------------------------------

def cmd_parse(args: argparse.Namespace) -> int:
    """Parse an s-expression file and print every top-level value."""
    src_path = _resolve_path(args.source_file, "source file")
    source = src_path.read_text(encoding="utf-8")

    try:
        values = parse_all(source, source=str(src_path))
    except SexqlError as exc:
        _log.error("Parse error: %s", exc)
        return EXIT_ERROR

    out = _open_output(args.output)
    try:
        if args.format == "json":
            out.write(json.dumps([to_data(v) for v in values], indent=2) + "\n")
        else:
            for value in values:
                if args.format == "sexp":
                    out.write(pformat(value) + "\n")
                else:
                    out.write(repr(value) + "\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ---------------------------------------------------------------------------
# match
# ---------------------------------------------------------------------------

def cmd_match(args: argparse.Namespace) -> int:
    """Match a pattern against every top-level value of a file."""
    try:
        pat = compile_pattern(args.pattern)
    except PatternError as exc:
        _log.error("%s", exc)
        return EXIT_ERROR

    src_path = _resolve_path(args.source_file, "source file")
    try:
        values = parse_all(src_path.read_text(encoding="utf-8"), source=str(src_path))
    except SexqlError as exc:
        _log.error("Parse error: %s", exc)
        return EXIT_ERROR

    matched = 0
    for position, value, m in pat.match_each(values):
        if m is None:
            _log.debug("#%d: no match: %s", position, dumps(value))
            continue
        matched += 1
        bindings = " ".join(f"{k}={dumps(v)}" for k, v in m.items())
        sys.stdout.write(f"#{position}: {bindings}".rstrip() + "\n")

    _log.info("%d of %d value(s) matched %s", matched, len(values), pat)
    return EXIT_OK if matched else EXIT_ERROR


# ===========================================================================
# Argument parser construction
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    # --- Top-level parser --------------------------------------------------
    parser = argparse.ArgumentParser(
        prog="arbos",
        description=(
            "arbos — pass/visitor framework over a CFG-based IR.\n\n"
            "Runs inspection and verification passes over JSON bundles and\n"
            "checks CFG shapes against s-expression oracles."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              arbos run    phi2.json -p unittest-cfg-trans-llvm-phi-2
              arbos verify phi2.json -e '(trans (edge (entry) (exit)))'
              arbos oracle phi2.json --function main
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # Shared argument groups (reusable) ------------------------------------

    def _add_plugin_args(p: argparse.ArgumentParser) -> None:
        g = p.add_argument_group("plugins")
        g.add_argument(
            "-u", "--unit",
            action="append",
            default=[],
            metavar="UNIT",
            help="Extra pass unit: module name or .py file exposing init() (repeatable).",
        )
        g.add_argument(
            "--no-plugins",
            action="store_true",
            help="Do not discover passes from installed entry points.",
        )

    def _add_output_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "-o", "--output",
            default=None,
            metavar="FILE",
            help='Output file ("-" or omit for stdout).',
        )

    # --- run ---------------------------------------------------------------
    p_run = subparsers.add_parser(
        "run",
        help="Run passes over a bundle.",
        description="Load a JSON bundle and execute the named passes in order.",
    )
    p_run.add_argument("bundle", metavar="BUNDLE", help="JSON bundle file.")
    p_run.add_argument(
        "-p", "--pass",
        dest="passes",
        action="append",
        required=True,
        metavar="PASS",
        help="Pass to run (repeatable; runs in the given order).",
    )
    p_run.add_argument(
        "-k", "--keep-going",
        action="store_true",
        help="Run remaining passes after a failure.",
    )
    p_run.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip the CFG adjacency/closure checks before running.",
    )
    _add_plugin_args(p_run)
    p_run.set_defaults(func=cmd_run)

    # --- verify ------------------------------------------------------------
    p_verify = subparsers.add_parser(
        "verify",
        help="Check a bundle's CFG against an oracle.",
        description=(
            "Decode a (trans (edge (src) (dest)) ...) oracle and check every "
            "edge against the CFG of each function (or --function)."
        ),
    )
    p_verify.add_argument("bundle", metavar="BUNDLE", help="JSON bundle file.")
    p_verify.add_argument(
        "oracle",
        metavar="ORACLE",
        nargs="?",
        default=None,
        help="File holding the oracle literal.",
    )
    p_verify.add_argument(
        "-e", "--expr",
        default=None,
        metavar="LITERAL",
        help="Oracle literal given inline (overrides ORACLE).",
    )
    p_verify.add_argument(
        "--function",
        default=None,
        metavar="NAME",
        help="Verify only this function.",
    )
    p_verify.add_argument(
        "--blocks",
        type=int,
        default=None,
        metavar="N",
        help="Also require exactly N basic blocks.",
    )
    p_verify.set_defaults(func=cmd_verify)

    # --- oracle ------------------------------------------------------------
    p_oracle = subparsers.add_parser(
        "oracle",
        help="Print a CFG as an oracle literal.",
        description="Write the (trans (edge ...)) literal describing each function's CFG.",
    )
    p_oracle.add_argument("bundle", metavar="BUNDLE", help="JSON bundle file.")
    p_oracle.add_argument(
        "--function",
        default=None,
        metavar="NAME",
        help="Only this function.",
    )
    p_oracle.add_argument(
        "--width",
        type=int,
        default=72,
        metavar="N",
        help="Line width for pretty-printing (default: 72).",
    )
    _add_output_arg(p_oracle)
    p_oracle.set_defaults(func=cmd_oracle)

    # --- passes ------------------------------------------------------------
    p_passes = subparsers.add_parser(
        "passes",
        help="List available passes.",
        description="List built-in, installed and -u loaded passes.",
    )
    p_passes.add_argument(
        "--origin",
        action="store_true",
        help="Show where each pass was registered from.",
    )
    _add_plugin_args(p_passes)
    p_passes.set_defaults(func=cmd_passes)

    # --- parse -------------------------------------------------------------
    p_parse = subparsers.add_parser(
        "parse",
        help="Parse an s-expression file and dump it.",
        description="Parse every top-level value of a file and print it back.",
    )
    p_parse.add_argument("source_file", metavar="FILE", help="S-expression source file.")
    p_parse.add_argument(
        "-f", "--format",
        choices=["sexp", "repr", "json"],
        default="sexp",
        help="Output format (default: sexp).",
    )
    _add_output_arg(p_parse)
    p_parse.set_defaults(func=cmd_parse)

    # --- match -------------------------------------------------------------
    p_match = subparsers.add_parser(
        "match",
        help="Match a pattern against an s-expression file.",
        description=(
            "Apply PATTERN (e.g. '(edge (?src) (?dest))') to every top-level "
            "value of FILE and print the captures of each match."
        ),
    )
    p_match.add_argument("pattern", metavar="PATTERN", help="Pattern text.")
    p_match.add_argument("source_file", metavar="FILE", help="S-expression source file.")
    p_match.set_defaults(func=cmd_match)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the arbos CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    # No subcommand given → print help.
    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except OSError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
