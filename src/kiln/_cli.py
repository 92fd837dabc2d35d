"""kiln CLI — kiln build / kiln serve.

Entry point for the ``kiln`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys

from kiln._errors import ConfigError, KilnError
from kiln.assets import CopyPair, parse_copy_pair

_MODES = ("build", "serve")


def _port(value: str) -> int:
    """argparse type for a TCP port number."""
    try:
        port = int(value)
    except ValueError:
        port = 0
    if not 0 < port <= 65535:
        msg = f'Invalid port number: "{value}". Port must be a number between 1 and 65535.'
        raise argparse.ArgumentTypeError(msg)
    return port


def _copy_pair(value: str) -> CopyPair:
    """argparse type for a ``from:to`` copy pair."""
    try:
        return parse_copy_pair(value)
    except ConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the kiln CLI.

    Options default to None so values from ``kiln.toml`` apply unless
    given on the command line.
    """
    parser = argparse.ArgumentParser(
        prog="kiln",
        description="Bundle, copy, and serve a browser application.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument(
        "mode", nargs="?", choices=_MODES, default="build", help="Build mode",
    )
    parser.add_argument("--root", default=".", help="Project root directory")
    parser.add_argument(
        "-p", "--port", type=_port, help="Port for serving the application (default: 1234)",
    )
    parser.add_argument("-d", "--dist", help="Output directory (default: dist)")
    parser.add_argument("-e", "--entry", help="Entry file (default: src/main.ts)")
    parser.add_argument(
        "-o", "--output", help="Output file, relative to output directory (default: main.js)",
    )
    parser.add_argument(
        "-c", "--copy",
        type=_copy_pair,
        action="append",
        metavar="FROM:TO",
        help="Copy pair in the format 'from:to' (repeatable)",
    )
    parser.add_argument(
        "-t", "--testing",
        action="store_true",
        default=None,
        help="Run in test mode (loads .env.testing)",
    )
    parser.add_argument(
        "--no-watch",
        dest="watch",
        action="store_false",
        default=None,
        help="Serve without file watching and live reload",
    )
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    """KilnConfig overrides for the options given on the command line."""
    fields = ("port", "dist", "entry", "output", "testing", "watch")
    overrides: dict[str, object] = {
        name: getattr(args, name) for name in fields if getattr(args, name) is not None
    }
    if args.copy is not None:
        overrides["copy"] = tuple(args.copy)
    return overrides


def _get_version() -> str:
    """Get the package version."""
    from kiln import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from kiln.app import build, serve

    try:
        if args.mode == "serve":
            serve(root=args.root, **_overrides(args))
        else:
            build(root=args.root, **_overrides(args))
    except KilnError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
