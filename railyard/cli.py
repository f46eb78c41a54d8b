# File: railyard/cli.py
"""
RailYard - Command-Line Interface
===================================

``argparse`` front end for the pipeline and the HTTP server.

Usage examples::

    # Validate a saved schema
    python -m railyard -s blog.json --validate-only

    # Print the build script without running it
    python -m railyard -s blog.yaml --dry-run > build.sh

    # Generate the app into ./apps
    python -m railyard -s blog.json -o ./apps --timeout 300 -v

    # Serve the HTTP API (and a frontend directory, if configured)
    python -m railyard --serve --port 3000

Exit codes:
    0: success
    1: validation error
    2: execution error (including an existing app of the same name)
    4: input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from railyard.config import Settings

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_EXECUTION_ERROR: int = 2
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

# -v count -> level; -q maps below zero.
_VERBOSITY_LEVELS: Dict[int, int] = {
    -1: logging.ERROR,
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


def _setup_logging(verbosity: int) -> None:
    """Send ``railyard.*`` records to stderr at the level ``-v``/``-q`` asked for."""
    level: int = _VERBOSITY_LEVELS[max(-1, min(verbosity, 2))]

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s", datefmt="%H:%M:%S"
        )
    )

    package_logger: logging.Logger = logging.getLogger("railyard")
    package_logger.setLevel(level)
    # Repeated cli_main calls (tests) must not stack handlers.
    package_logger.handlers = [stderr_handler]
    package_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    from railyard import __version__

    parser = argparse.ArgumentParser(
        prog="railyard",
        description=(
            "RailYard: visual Rails data-model composer.\n\n"
            "Validates Schema Documents (JSON/YAML or saved editor files) and "
            "scaffolds Rails applications from them."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s blog.json --validate-only\n"
            "  %(prog)s -s blog.yaml --dry-run > build.sh\n"
            "  %(prog)s -s blog.json -o ./apps -v\n"
            "  %(prog)s --serve --port 3000\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"RailYard v{__version__}")
    parser.add_argument(
        "-s", "--schema",
        metavar="PATH",
        help="Schema Document or saved editor file (JSON or YAML).",
    )
    parser.add_argument(
        "-o", "--output",
        metavar="DIR",
        help="Directory generated apps are moved into (default: ./output).",
    )

    modes = parser.add_argument_group("what to do")
    modes.add_argument(
        "--validate-only",
        action="store_true",
        help="Check the schema and print its errors and warnings.",
    )
    modes.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the build script to stdout instead of running it.",
    )
    modes.add_argument("--serve", action="store_true", help="Run the HTTP API with uvicorn.")

    overrides = parser.add_argument_group("settings (override RAILYARD_* variables)")
    overrides.add_argument(
        "--timeout", type=int, metavar="SECONDS", help="Build script time limit (default: 180)."
    )
    overrides.add_argument(
        "--shell", metavar="SHELL", help="Interpreter for the build script (default: bash)."
    )
    overrides.add_argument("--host", help="Bind address for --serve (default: 0.0.0.0).")
    overrides.add_argument("--port", type=int, help="Port for --serve (default: 3000).")
    overrides.add_argument(
        "--static-dir", metavar="DIR", help="Frontend directory served at '/' with --serve."
    )
    overrides.add_argument(
        "--fail-on-warnings",
        action="store_true",
        help="Refuse to build when the schema has warnings.",
    )

    output = parser.add_argument_group("output")
    output.add_argument(
        "-v", "--verbose", action="count", default=0, help="More logging (-v INFO, -vv DEBUG)."
    )
    output.add_argument("-q", "--quiet", action="store_true", help="Log errors only.")
    return parser


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def _build_settings_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Settings fields set explicitly on the command line."""
    overrides: Dict[str, Any] = {}
    if args.output is not None:
        overrides["output_dir"] = Path(args.output)
    if args.timeout is not None:
        overrides["timeout_seconds"] = args.timeout
    if args.shell is not None:
        overrides["shell"] = args.shell
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.static_dir is not None:
        overrides["static_dir"] = Path(args.static_dir)
    return overrides


def _load_settings(args: argparse.Namespace) -> Optional[Settings]:
    """Environment first, then flags.  Returns None when either is invalid."""
    try:
        base: Settings = Settings.from_env()
        return Settings.model_validate(
            {**base.model_dump(), **_build_settings_overrides(args)}
        )
    except (PydanticValidationError, ValueError) as exc:
        logger.error("Invalid settings: %s", exc)
        return None


# ---------------------------------------------------------------------------
# Validate-only mode
# ---------------------------------------------------------------------------


def _run_validate_only(schema_path: Path) -> int:
    """Print a validation report for ``schema_path``.  Returns the exit code."""
    from railyard.errors import SchemaLoadError
    from railyard.generator import load_schema_file
    from railyard.utils import Timer
    from railyard.validators import validate_full

    try:
        document: Dict[str, Any] = load_schema_file(schema_path)
    except SchemaLoadError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR

    with Timer("validation") as timer:
        result = validate_full(document)
    logger.info("Validated %s in %.3fs.", schema_path.name, timer.elapsed)

    models: Any = document.get("models")
    rule: str = "=" * 50
    print(rule)
    print(f"  Schema check: {schema_path.name}")
    print(rule)
    print(f"  App:      {document.get('app_name', '')}")
    print(f"  Models:   {len(models) if isinstance(models, list) else 0}")
    print(f"  Result:   {'valid' if result.is_valid else 'invalid'}")

    for title, messages, mark in (
        ("Errors", result.error_messages, "x"),
        ("Warnings", result.warning_messages, "!"),
    ):
        if messages:
            print(f"\n  {title} ({len(messages)}):")
            for message in messages:
                print(f"    {mark} {message}")

    if result.is_valid and not result.warnings:
        print("\n  No problems found.")
    print(rule)

    return EXIT_SUCCESS if result.is_valid else EXIT_VALIDATION_ERROR


# ---------------------------------------------------------------------------
# Generation mode
# ---------------------------------------------------------------------------


def _run_generation(schema_path: Path, settings: Settings, args: argparse.Namespace) -> int:
    """Run the pipeline (or only its build step for --dry-run)."""
    from railyard.generator import AppGenerator, GenerationReport

    generator: AppGenerator = AppGenerator.from_settings(
        settings, fail_on_warnings=args.fail_on_warnings
    )
    report: GenerationReport = generator.generate_from_file(schema_path, dry_run=args.dry_run)

    if args.dry_run and report.success and report.script is not None:
        sys.stdout.write(report.script)
        logger.info("Dry run: script printed, nothing executed.")
        return EXIT_SUCCESS

    print(report.summary())
    if report.execution is not None and not report.execution.success:
        print(report.log, file=sys.stderr)

    if report.success:
        return EXIT_SUCCESS
    if report.validation_errors or (args.fail_on_warnings and report.validation_warnings):
        return EXIT_VALIDATION_ERROR
    if report.execution is None:
        # Nothing ran: the file could not be loaded or parsed.
        return EXIT_INPUT_ERROR
    return EXIT_EXECUTION_ERROR


# ---------------------------------------------------------------------------
# Serve mode
# ---------------------------------------------------------------------------


def _run_server(settings: Settings) -> int:
    import uvicorn

    from railyard.api import create_app

    logger.info("Serving RailYard on %s:%d (output: %s).", settings.host, settings.port, settings.output_dir)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def _dispatch(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    settings: Optional[Settings] = _load_settings(args)
    if settings is None:
        return EXIT_INPUT_ERROR

    if args.serve:
        return _run_server(settings)

    if args.schema is None:
        logger.error("Nothing to do: pass -s/--schema or --serve.")
        parser.print_usage(sys.stderr)
        return EXIT_INPUT_ERROR

    schema_path: Path = Path(args.schema).resolve()
    if not schema_path.is_file():
        logger.error("No such schema file: %s", schema_path)
        return EXIT_INPUT_ERROR

    if args.validate_only:
        return _run_validate_only(schema_path)

    logger.info(
        "Generating from %s into %s (timeout %ss).",
        schema_path,
        settings.output_dir,
        settings.timeout_seconds,
    )
    return _run_generation(schema_path, settings, args)


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Parse ``argv`` (default ``sys.argv[1:]``), run the chosen mode and exit
    with its code.  ``__main__`` and the console script both land here.
    """
    parser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)
    _setup_logging(-1 if args.quiet else args.verbose)

    exit_code: int = _dispatch(args, parser)
    if exit_code != EXIT_SUCCESS:
        logger.debug("Exiting with code %d.", exit_code)
    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_EXECUTION_ERROR",
    "EXIT_INPUT_ERROR",
]
