#!/usr/bin/env python3
"""propresolvers/main.py — CLI entry-point for the property resolver generator.

Usage examples
--------------
    # Generate resolver modules for a source tree
    python -m propresolvers generate src/app --out-dir build/gen

    # Same, but pull declarations from a second code base too
    python -m propresolvers generate src/app --reference ../shared --out-dir gen

    # Only check for duplicate declarations (CI friendly)
    python -m propresolvers check src/app --format json -o report.json

    # Show what the indexer sees
    python -m propresolvers catalog src/app --format json

    # Show the declarations, before or after deduplication
    python -m propresolvers specs src/app --all

    # Show version and exit
    python -m propresolvers --version

Exit codes
----------
    0   Success (no error diagnostics).
    1   One or more diagnostics with severity ERROR were emitted.
    2   Infrastructure failure (missing source root, unreadable file, etc.).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO

from propresolvers import __version__
from propresolvers.catalog import index_compilation
from propresolvers.collector import SpecificationCollector
from propresolvers.dedup import deduplicate
from propresolvers.emitter import write_artifacts
from propresolvers.errors import CodeGenError, ErrorMessage, ErrorReporter, HostError
from propresolvers.host import (
    DEFAULT_DECLARATION_SUFFIX,
    DEFAULT_EXCLUDED_DIRS,
    Compilation,
    GeneratorConfig,
    load_compilation,
)
from propresolvers.pipeline import run

_log = logging.getLogger("propresolvers")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``propresolvers`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("propresolvers")
    root.setLevel(level)
    for existing in root.handlers:
        # Repeated calls (tests, embedding) re-target the one handler.
        if getattr(existing, "_propresolvers", False):
            existing.setStream(sys.stderr)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    handler._propresolvers = True  # type: ignore[attr-defined]
    root.addHandler(handler)


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


def _emit_diagnostics(
    diagnostics: List[ErrorMessage],
    fmt: str,
    stream: TextIO,
) -> int:
    """Write *diagnostics* to *stream* in the chosen format.

    Returns the count of ERROR-severity diagnostics.
    """
    error_count = 0
    for diag in diagnostics:
        if diag.severity is not None and diag.severity.is_error():
            error_count += 1

        if fmt == "json":
            stream.write(json.dumps(diag.to_dict()) + "\n")
        else:
            # gcc and summary: file:line:col: severity: message [code]
            stream.write(diag.to_gcc_format() + "\n")

    if fmt == "summary":
        stream.write(f"\n--- {len(diagnostics)} diagnostic(s), "
                     f"{error_count} error(s) ---\n")
    return error_count


def _config_from_args(args: argparse.Namespace) -> GeneratorConfig:
    excluded = set(DEFAULT_EXCLUDED_DIRS) | set(args.exclude_dir or ())
    return GeneratorConfig(
        sources=list(args.sources),
        references=list(args.reference or ()),
        root_name=args.root_name,
        output_namespace=getattr(args, "output_namespace", None),
        declaration_suffix=args.declaration_suffix,
        exclude_dirs=frozenset(excluded),
    )


def _load(config: GeneratorConfig) -> Optional[Compilation]:
    try:
        return load_compilation(config)
    except HostError as exc:
        _log.error("%s", exc.error_message.message)
        return None


# ===========================================================================
# Subcommands
# ===========================================================================

def cmd_generate(args: argparse.Namespace) -> int:
    """Run the full pipeline and write (or print) the generated modules."""
    config = _config_from_args(args)
    compilation = _load(config)
    if compilation is None:
        return EXIT_INFRA

    try:
        result = run(compilation, config)
    except CodeGenError as exc:
        sys.stderr.write(exc.to_gcc_format() + "\n")
        return EXIT_ERROR

    error_count = _emit_diagnostics(result.diagnostics, "gcc", sys.stderr)

    if args.out_dir:
        try:
            write_artifacts(result.artifacts, args.out_dir)
        except CodeGenError as exc:
            _log.error("%s", exc.error_message.message)
            return EXIT_INFRA
    else:
        out = _open_output(args.output)
        try:
            for artifact in result.artifacts:
                out.write(f"# ---- {artifact.relative_path} ----\n")
                out.write(artifact.code)
        finally:
            if out is not sys.stdout:
                out.close()

    return EXIT_ERROR if error_count > 0 else EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    """Report malformed and duplicate declarations without generating."""
    config = _config_from_args(args)
    compilation = _load(config)
    if compilation is None:
        return EXIT_INFRA

    try:
        result = run(compilation, config)
    except CodeGenError as exc:
        sys.stderr.write(exc.to_gcc_format() + "\n")
        return EXIT_ERROR

    out = _open_output(args.output)
    try:
        error_count = _emit_diagnostics(result.diagnostics, args.format, out)
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_ERROR if error_count > 0 else EXIT_OK


def cmd_catalog(args: argparse.Namespace) -> int:
    """Print every indexed type and its properties."""
    compilation = _load(_config_from_args(args))
    if compilation is None:
        return EXIT_INFRA

    catalog = index_compilation(compilation)
    out = _open_output(args.output)
    try:
        if args.format == "json":
            rows: List[Dict[str, Any]] = [
                {
                    "type": t.qualified_name,
                    "namespace": t.namespace,
                    "properties": [
                        {"name": p.name, "nullable": p.nullable} for p in t.properties
                    ],
                }
                for t in catalog
            ]
            out.write(json.dumps(rows, indent=2) + "\n")
        else:
            for t in catalog:
                props = ", ".join(p.name + ("?" if p.nullable else "") for p in t.properties)
                out.write(f"{t.qualified_name}: {props}\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


def cmd_specs(args: argparse.Namespace) -> int:
    """Print the collected resolver declarations."""
    compilation = _load(_config_from_args(args))
    if compilation is None:
        return EXIT_INFRA

    reporter = ErrorReporter()
    specs = SpecificationCollector(reporter).collect(compilation)
    if not args.all:
        specs = list(deduplicate(specs).retained)

    out = _open_output(args.output)
    try:
        if args.format == "json":
            rows = [
                {
                    "property": s.property_name,
                    "include": list(s.include_namespaces),
                    "exclude": list(s.exclude_namespaces),
                    "location": s.site.to_dict(),
                }
                for s in specs
            ]
            out.write(json.dumps(rows, indent=2) + "\n")
        else:
            for s in specs:
                line = f"{s.site}: {s.property_name}"
                if s.include_namespaces:
                    line += f" include={','.join(s.include_namespaces)}"
                if s.exclude_namespaces:
                    line += f" exclude={','.join(s.exclude_namespaces)}"
                out.write(line + "\n")
    finally:
        if out is not sys.stdout:
            out.close()

    error_count = _emit_diagnostics(reporter.diagnostics, "gcc", sys.stderr)
    return EXIT_ERROR if error_count > 0 else EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="propresolvers",
        description=(
            "Generate per-property dispatch resolvers for a Python source tree\n"
            "and report duplicate resolver declarations."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              propresolvers generate src/app --out-dir build/gen
              propresolvers check    src/app --format summary
              propresolvers catalog  src/app
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

    def _add_source_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "sources",
            nargs="+",
            metavar="SOURCE",
            help="Source root directories or files.",
        )
        g = p.add_argument_group("source discovery")
        g.add_argument(
            "--reference",
            action="append",
            metavar="PATH",
            help="Referenced code base whose declarations are also collected (repeatable).",
        )
        g.add_argument(
            "--root-name",
            default=None,
            help="Root identifier (default: name of the first package root).",
        )
        g.add_argument(
            "--declaration-suffix",
            default=DEFAULT_DECLARATION_SUFFIX,
            help=f"Suffix of declaration files (default: {DEFAULT_DECLARATION_SUFFIX}).",
        )
        g.add_argument(
            "--exclude-dir",
            action="append",
            metavar="NAME",
            help="Directory name to skip while walking (repeatable).",
        )

    def _add_output_args(p: argparse.ArgumentParser, formats: Sequence[str]) -> None:
        p.add_argument(
            "-o", "--output",
            default=None,
            metavar="FILE",
            help='Output file ("-" or omit for stdout).',
        )
        p.add_argument(
            "-f", "--format",
            choices=list(formats),
            default=formats[0],
            help=f"Output format (default: {formats[0]}).",
        )

    # generate --------------------------------------------------------------
    p_generate = subparsers.add_parser(
        "generate",
        help="Generate resolver modules.",
        description="Index types, collect declarations and emit one module per resolver.",
    )
    _add_source_args(p_generate)
    p_generate.add_argument(
        "--output-namespace",
        default=None,
        help="Dotted package the resolvers are generated into.",
    )
    p_generate.add_argument(
        "--out-dir",
        default=None,
        metavar="DIR",
        help="Write modules below DIR instead of printing them.",
    )
    p_generate.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Where to print modules when --out-dir is not given ("-" for stdout).',
    )
    p_generate.set_defaults(func=cmd_generate)

    # check -----------------------------------------------------------------
    p_check = subparsers.add_parser(
        "check",
        help="Report duplicate and malformed declarations.",
    )
    _add_source_args(p_check)
    _add_output_args(p_check, ["gcc", "json", "summary"])
    p_check.set_defaults(func=cmd_check)

    # catalog ---------------------------------------------------------------
    p_catalog = subparsers.add_parser(
        "catalog",
        help="List indexed types and their properties.",
    )
    _add_source_args(p_catalog)
    _add_output_args(p_catalog, ["text", "json"])
    p_catalog.set_defaults(func=cmd_catalog)

    # specs -----------------------------------------------------------------
    p_specs = subparsers.add_parser(
        "specs",
        help="List collected resolver declarations.",
    )
    _add_source_args(p_specs)
    _add_output_args(p_specs, ["text", "json"])
    p_specs.add_argument(
        "--all",
        action="store_true",
        help="Show every declaration, including repeats dropped by deduplication.",
    )
    p_specs.set_defaults(func=cmd_specs)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the propresolvers CLI.

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
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
