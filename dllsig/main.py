#!/usr/bin/env python3
"""dllsig/main.py — CLI entry-point for the declaration compiler.

Usage examples
--------------
    # Encode every declaration in a header-like file
    python -m dllsig encode winapi.h

    # Encode a declaration given on the command line
    python -m dllsig encode -e "int (__stdcall *cb)(HWND, LPARAM);"

    # List the struct/union/interface bodies registered while parsing
    python -m dllsig types shell.h

    # Dump normalized type trees as S-expressions or JSON
    python -m dllsig dump winapi.h --format sexp

    # Print the GUID of an interface declared in a file
    python -m dllsig uuidof IShellLinkW --define shell.h

    # Validate wire strings with the independent wire grammar
    python -m dllsig check "(Si *@S.point)" "[4]%c"

Exit codes
----------
    0   Success.
    1   A declaration or wire string was rejected.
    2   Infrastructure failure (bad file, bad config, etc.).

The module doubles as ``python -m dllsig`` via the companion
``dllsig/__main__.py``.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, TextIO, Tuple

import sexpdata

from dllsig import __version__
from dllsig.dump import (
    definition_to_data,
    statement_to_dict,
    statement_to_sexp,
)
from dllsig.errors import DeclError
from dllsig.normalizer import Normalizer
from dllsig.session import DeclSession, SessionConfig
from dllsig.wire import WireFormatError, parse_wire

_log = logging.getLogger("dllsig")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Helpers
# ===========================================================================

def _configure_logging(verbosity: int, quiet: bool = False) -> None:
    """Attach a stderr handler to the ``dllsig`` logger.

    ``-q`` keeps only errors, ``-v`` adds INFO and ``-vv`` DEBUG.  Debug
    records also carry the module name, since they trace registrations
    from several modules.
    """
    if quiet:
        level = logging.ERROR
    elif verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    fmt = "dllsig: %(levelname)s: %(message)s"
    if level == logging.DEBUG:
        fmt = "dllsig: %(levelname)s: %(name)s: %(message)s"
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))

    root = logging.getLogger("dllsig")
    root.setLevel(level)
    # repeated in-process calls replace the earlier stream handler
    for old in [h for h in root.handlers if isinstance(h, logging.StreamHandler)]:
        root.removeHandler(old)
    root.addHandler(handler)


def _read_file(raw: str, label: str) -> Tuple[str, str]:
    """Return ``(text, display name)`` of a declaration or config file.

    A missing, unreadable or non-UTF-8 file ends the command with
    :data:`EXIT_INFRA`.
    """
    path = Path(raw).expanduser()
    try:
        return path.read_text(encoding="utf-8"), str(path)
    except (OSError, UnicodeDecodeError) as exc:
        _log.error("cannot read %s %s: %s", label, path, exc)
        raise SystemExit(EXIT_INFRA)


@contextmanager
def _output(dest: Optional[str]) -> Iterator[TextIO]:
    """Yield the stream a command writes its results to.

    *dest* ``None`` or ``"-"`` is stdout.  A file is created with its
    parent directories, and removed again if the command fails while
    writing, so a half-written encoding table is never left behind.
    """
    if dest is None or dest == "-":
        yield sys.stdout
        return
    path = Path(dest).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = open(path, "w", encoding="utf-8")
    except OSError as exc:
        _log.error("cannot write output %s: %s", path, exc)
        raise SystemExit(EXIT_INFRA)
    try:
        yield fh
    except BaseException:
        fh.close()
        path.unlink(missing_ok=True)
        raise
    fh.close()
    _log.info("wrote %s", path)


def _read_source(args: argparse.Namespace) -> Tuple[str, str]:
    """Return ``(text, filename)`` from ``--expr``, a file, or stdin."""
    if getattr(args, "expr", None):
        return args.expr, "<expr>"
    source = getattr(args, "source", None)
    if source is None or source == "-":
        return sys.stdin.read(), "<stdin>"
    return _read_file(source, "source file")


def _make_session(args: argparse.Namespace, filename: str = "<string>") -> DeclSession:
    if args.config:
        text, name = _read_file(args.config, "config file")
        try:
            config = SessionConfig.from_json(text, name)
        except (ValueError, TypeError) as exc:
            _log.error("bad config: %s", exc)
            raise SystemExit(EXIT_INFRA)
    else:
        config = SessionConfig()
    config.filename = filename
    if args.no_prelude:
        config.load_prelude = False
    return DeclSession(config)


def _report(exc: DeclError, fmt: str) -> None:
    if fmt == "json":
        sys.stderr.write(json.dumps(exc.to_json(), indent=2) + "\n")
    else:
        sys.stderr.write(exc.to_gcc_format() + "\n")


# ===========================================================================
# Subcommands
# ===========================================================================

def cmd_encode(args: argparse.Namespace) -> int:
    """Print the wire encoding of every statement."""
    text, filename = _read_source(args)
    session = _make_session(args, filename)
    try:
        statements = session.parse(text)
        encoded = [(stmt, stmt.encode()) for stmt in statements]
    except DeclError as exc:
        _report(exc, args.format)
        return EXIT_ERROR

    with _output(args.output) as out:
        if args.format == "json":
            rows = [
                {"kind": stmt.kind, "name": stmt.name, "wire": wire}
                for stmt, wire in encoded
            ]
            out.write(json.dumps(rows, indent=2) + "\n")
        else:
            for stmt, wire in encoded:
                out.write(f"{stmt.name or '-'}\t{wire}\n")
    return EXIT_OK


def cmd_types(args: argparse.Namespace) -> int:
    """Print the named-type bodies registered while parsing."""
    text, filename = _read_source(args)
    session = _make_session(args, filename)
    before = set(session.named_types)
    try:
        session.define(text)
    except DeclError as exc:
        _report(exc, args.format)
        return EXIT_ERROR

    items = [
        (key, body) for key, body in session.named_types.items()
        if args.all or key not in before
    ]
    with _output(args.output) as out:
        if args.format == "json":
            out.write(json.dumps(dict(items), indent=2) + "\n")
        else:
            for key, body in items:
                out.write(f"{key}\t{body}\n")
    return EXIT_OK


def cmd_dump(args: argparse.Namespace) -> int:
    """Dump normalized statement types (and, optionally, tag bodies)."""
    text, filename = _read_source(args)
    session = _make_session(args, filename)
    try:
        statements = session.parse(text)
    except DeclError as exc:
        _report(exc, "gcc")
        return EXIT_ERROR

    normalizer = Normalizer(session.registry)
    with _output(args.output) as out:
        if args.format == "json":
            rows = [statement_to_dict(stmt, normalizer) for stmt in statements]
            out.write(json.dumps(rows, indent=2) + "\n")
        else:
            for stmt in statements:
                out.write(statement_to_sexp(stmt, normalizer) + "\n")
            if args.tags:
                for _, _, definition in session.registry.iter_tags():
                    out.write(sexpdata.dumps(definition_to_data(definition)) + "\n")
    return EXIT_OK


def cmd_uuidof(args: argparse.Namespace) -> int:
    """Print the GUID of an interface type."""
    session = _make_session(args)
    try:
        for source in args.define or []:
            text, _ = _read_file(source, "definition file")
            session.define(text)
        guid = session.uuidof(args.type)
    except DeclError as exc:
        _report(exc, "gcc")
        return EXIT_ERROR
    sys.stdout.write(guid + "\n")
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    """Validate wire strings against the wire grammar."""
    wires: List[str] = list(args.wire)
    if not wires:
        wires = [ln.strip() for ln in sys.stdin.read().splitlines() if ln.strip()]

    bad = 0
    for wire in wires:
        try:
            decoded = parse_wire(wire)
        except WireFormatError as exc:
            bad += 1
            sys.stderr.write(f"{exc}\n")
            continue
        if args.verbose_tree:
            sys.stdout.write(f"{wire}\t{json.dumps(decoded)}\n")
        else:
            sys.stdout.write(f"{wire}\tok\n")
    return EXIT_ERROR if bad else EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="dllsig",
        description=(
            "dllsig — compile C/C++ declarations into the compact\n"
            "type notation used by the native call marshaller."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              dllsig encode winapi.h
              dllsig encode -e 'BOOL WINAPI Beep(DWORD, DWORD);'
              dllsig types shell.h --all
              dllsig uuidof IUnknown
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
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only log errors.",
    )
    parser.add_argument(
        "--config",
        default=None,
        metavar="FILE",
        help="JSON session configuration.",
    )
    parser.add_argument(
        "--no-prelude",
        action="store_true",
        help="Do not predefine GUID, IID, IUnknown and friends.",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    def _add_source_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "source",
            nargs="?",
            default=None,
            help='Declaration file ("-" or omit for stdin).',
        )
        p.add_argument(
            "-e", "--expr",
            default=None,
            metavar="TEXT",
            help="Declaration text given inline instead of a file.",
        )
        p.add_argument(
            "-o", "--output",
            default=None,
            metavar="FILE",
            help='Output file ("-" or omit for stdout).',
        )

    # -- encode ------------------------------------------------------------
    p_encode = subparsers.add_parser("encode", help="Encode declarations.")
    _add_source_args(p_encode)
    p_encode.add_argument(
        "-f", "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text).",
    )
    p_encode.set_defaults(func=cmd_encode)

    # -- types -------------------------------------------------------------
    p_types = subparsers.add_parser("types", help="List named type bodies.")
    _add_source_args(p_types)
    p_types.add_argument(
        "-f", "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text).",
    )
    p_types.add_argument(
        "--all",
        action="store_true",
        help="Include bodies registered by the prelude.",
    )
    p_types.set_defaults(func=cmd_types)

    # -- dump --------------------------------------------------------------
    p_dump = subparsers.add_parser("dump", help="Dump normalized type trees.")
    _add_source_args(p_dump)
    p_dump.add_argument(
        "-f", "--format",
        choices=["sexp", "json"],
        default="sexp",
        help="Output format (default: sexp).",
    )
    p_dump.add_argument(
        "--tags",
        action="store_true",
        help="Also dump every struct/union/enum/interface body (sexp only).",
    )
    p_dump.set_defaults(func=cmd_dump)

    # -- uuidof ------------------------------------------------------------
    p_uuid = subparsers.add_parser("uuidof", help="Print an interface GUID.")
    p_uuid.add_argument("type", help="Interface type, e.g. IUnknown.")
    p_uuid.add_argument(
        "-d", "--define",
        action="append",
        metavar="FILE",
        help="Declaration file to load first (repeatable).",
    )
    p_uuid.set_defaults(func=cmd_uuidof)

    # -- check -------------------------------------------------------------
    p_check = subparsers.add_parser("check", help="Validate wire strings.")
    p_check.add_argument(
        "wire",
        nargs="*",
        help="Wire strings (read from stdin, one per line, if omitted).",
    )
    p_check.add_argument(
        "--tree",
        dest="verbose_tree",
        action="store_true",
        help="Print the decoded tree as JSON.",
    )
    p_check.set_defaults(func=cmd_check)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the dllsig CLI.

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

    _configure_logging(args.verbose, args.quiet)

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
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
