"""Reflow CLI: reflow run / reflow dev.

Entry point for the ``reflow`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys


def _names(value: str) -> tuple[str, ...]:
    return tuple(name.strip() for name in value.split(",") if name.strip())


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("program", help="Program file (a Python module of cells)")
    parser.add_argument("--ticks", type=int, default=None, dest="max_ticks", help="Stop after N ticks")
    parser.add_argument(
        "--tick-ms", type=float, default=None, dest="tick_ms",
        help="Fixed interval between ticks in milliseconds",
    )
    parser.add_argument(
        "--show", type=_names, default=None,
        help="Comma-separated variable names to print after each tick",
    )
    parser.add_argument(
        "--profile", action="store_true", default=None, help="Print per-tick phase timing",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the reflow CLI."""
    parser = argparse.ArgumentParser(
        prog="reflow",
        description="Tick-based reactive dataflow runtime.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # reflow run
    run_parser = subparsers.add_parser("run", help="Run a program")
    _add_run_options(run_parser)

    # reflow dev
    dev_parser = subparsers.add_parser("dev", help="Run a program and hot-reload it on edits")
    _add_run_options(dev_parser)

    return parser


def _get_version() -> str:
    """Get the package version."""
    from reflow import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from reflow._errors import ReflowError
    from reflow.app import dev, run

    options = {
        "max_ticks": args.max_ticks,
        "tick_ms": args.tick_ms,
        "show": args.show,
        "profile": args.profile,
    }
    entry = run if args.command == "run" else dev
    try:
        entry(args.program, **options)
    except ReflowError as exc:
        print(f"  Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
