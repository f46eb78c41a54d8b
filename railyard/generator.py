# File: railyard/generator.py
"""
RailYard - Generation Pipeline (Orchestrator)
===============================================
Connects every phase together:

    Schema Document → Validation → Build Script → Execute

``AppGenerator`` is the programmatic entry point and the backend of the CLI
and of the ``POST /generate`` endpoint.

Workflow::

    1. Load the document from a JSON/YAML file (or accept one in memory).
    2. Validate the raw document (validators.py).  Errors stop here.
    3. Parse into ``SchemaDocument`` (models.py).
    4. Render the bash build script (builder.py).
    5. Run it in a temporary directory (executor.py), unless dry-run.
    6. Return a ``GenerationReport`` with step timings and the verdict.

Error handling strategy:
    - Validation errors are collected and surfaced, never raised.
    - A document that fails validation never reaches the Script Builder.
    - Executor failures arrive as an ``ExecutionResult`` and are copied
      onto the report together with the build log.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from railyard.builder import ScriptBuilder
from railyard.config import Settings
from railyard.errors import SchemaLoadError
from railyard.executor import (
    DEFAULT_SHELL,
    DEFAULT_TIMEOUT_SECONDS,
    ExecutionResult,
    ScriptExecutor,
)
from railyard.models import SchemaDocument
from railyard.utils import Timer, count_lines
from railyard.validators import ValidationResult, validate_full

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard.generator")

DocumentLike = Union[SchemaDocument, Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class PipelineStep:
    name: str
    ok: bool
    seconds: float
    detail: str = ""


@dataclass(slots=True)
class GenerationReport:
    """Everything one ``AppGenerator.generate()`` call found out."""

    success: bool = False
    app_name: str = ""
    output_path: Optional[str] = None
    dry_run: bool = False

    total_models: int = 0
    total_fields: int = 0
    total_associations: int = 0
    script_lines: int = 0
    total_elapsed_seconds: float = 0.0

    steps: List[PipelineStep] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)

    script: Optional[str] = None
    execution: Optional[ExecutionResult] = None

    @property
    def conflict(self) -> bool:
        return self.execution is not None and self.execution.conflict

    @property
    def log(self) -> str:
        return self.execution.log if self.execution is not None else ""

    @property
    def error(self) -> Optional[str]:
        """First thing that went wrong, if anything did."""
        if self.validation_errors:
            return "Schema validation failed"
        if self.generation_errors:
            return self.generation_errors[0]
        if self.execution is not None and not self.execution.success:
            return self.execution.error
        return None

    def summary(self) -> str:
        """Plain-text report for the terminal."""
        verdict: str = "SUCCESS" if self.success else "FAILED"
        if self.dry_run:
            verdict += " (dry run)"

        facts: List[Tuple[str, Any]] = [
            ("Status", verdict),
            ("App", self.app_name),
            ("Output", self.output_path or "-"),
            ("Models", self.total_models),
            ("Fields", self.total_fields),
            ("Associations", self.total_associations),
            ("Script lines", self.script_lines),
            ("Total time", f"{self.total_elapsed_seconds:.3f}s"),
        ]
        rule: str = "=" * 60
        out: List[str] = [rule, "  RailYard Generation Report", rule]
        out.extend(f"  {label + ':':<15}{value}" for label, value in facts)

        if self.steps:
            out.append(_SECTION_RULE)
            out.append("  Pipeline Steps:")
            for step in self.steps:
                mark: str = "ok " if step.ok else "ERR"
                out.append(f"    [{mark}] {step.name:<18} {step.seconds:7.3f}s  {step.detail}")

        out.extend(_section("Validation Errors", self.validation_errors, "x"))
        out.extend(_section("Validation Warnings", self.validation_warnings, "!"))
        out.extend(_section("Errors", self.generation_errors, "x"))
        out.append(rule)
        return "\n".join(out)


_SECTION_RULE: str = "-" * 60


def _section(title: str, items: List[str], mark: str) -> List[str]:
    if not items:
        return []
    return [_SECTION_RULE, f"  {title} ({len(items)}):", *(f"    {mark} {item}" for item in items)]


# ---------------------------------------------------------------------------
# Schema loading
# ---------------------------------------------------------------------------

# format -> (parse function, its parse error, expected top-level shape)
_PARSERS: Dict[str, Tuple[Callable[[str], Any], Type[Exception], str]] = {
    "json": (json.loads, json.JSONDecodeError, "JSON object"),
    "yaml": (yaml.safe_load, yaml.YAMLError, "YAML mapping"),
}


def _parse_document(text: str, fmt: str, path: Path) -> Dict[str, Any]:
    parse, parse_error, shape = _PARSERS[fmt]
    try:
        data: Any = parse(text)
    except parse_error as exc:
        raise SchemaLoadError(f"Invalid {fmt.upper()} in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaLoadError(
            f"{path.name}: top level must be a {shape}, not {type(data).__name__}."
        )
    return data


def _unwrap_saved_state(data: Dict[str, Any]) -> Dict[str, Any]:
    """A saved editor file is ``{schema, positions}``; the document is ``schema``."""
    schema: Any = data.get("schema")
    if isinstance(schema, dict) and "models" not in data:
        return schema
    return data


def load_schema_file(path: Path) -> Dict[str, Any]:
    """
    Load a Schema Document (or a saved editor file) from JSON or YAML.

    ``.json`` is read as JSON and ``.yaml``/``.yml`` as YAML; any other
    extension tries JSON first and falls back to YAML.  Returns the raw
    document mapping, unvalidated.

    Raises:
        SchemaLoadError: missing file, unreadable file or unparseable content.
    """
    path = Path(path)
    if not path.exists():
        raise SchemaLoadError(f"Schema file not found: {path}")
    if not path.is_file():
        raise SchemaLoadError(f"Schema path is not a file: {path}")

    try:
        text: str = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaLoadError(f"Cannot read {path}: {exc}") from exc

    ext: str = path.suffix.lower()
    if ext == ".json":
        formats: List[str] = ["json"]
    elif ext in (".yaml", ".yml"):
        formats = ["yaml"]
    else:
        logger.info("Unknown extension '%s', trying JSON then YAML.", ext)
        formats = ["json", "yaml"]

    for fmt in formats[:-1]:
        try:
            return _unwrap_saved_state(_parse_document(text, fmt, path))
        except SchemaLoadError:
            logger.debug("%s is not %s.", path.name, fmt)
    return _unwrap_saved_state(_parse_document(text, formats[-1], path))


# ---------------------------------------------------------------------------
# AppGenerator
# ---------------------------------------------------------------------------


class AppGenerator:
    """
    Validate → build → execute, with a report.

    Usage::

        generator = AppGenerator(output_dir=Path("./output"))
        report = generator.generate(document)
        print(report.summary())

    The generator is reusable: create once, call ``generate()`` many times.
    """

    def __init__(
        self,
        *,
        output_dir: Path = Path("./output"),
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        shell: str = DEFAULT_SHELL,
        fail_on_warnings: bool = False,
    ) -> None:
        self._output_dir: Path = Path(output_dir)
        self._timeout_seconds: int = timeout_seconds
        self._shell: str = shell
        self._fail_on_warnings: bool = fail_on_warnings

        logger.debug(
            "AppGenerator initialised: output=%s, timeout=%ss, shell=%s.",
            output_dir,
            timeout_seconds,
            shell,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "AppGenerator":
        return cls(
            output_dir=settings.output_dir,
            timeout_seconds=settings.timeout_seconds,
            shell=settings.shell,
            **kwargs,
        )

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def generate_from_file(self, schema_path: Path, *, dry_run: bool = False) -> GenerationReport:
        """Load a file and run the pipeline.  Load failures are reported, not raised."""
        report: GenerationReport = GenerationReport(dry_run=dry_run)
        started: float = time.perf_counter()

        with Timer("load_schema") as timer:
            try:
                raw: Dict[str, Any] = load_schema_file(schema_path)
                load_error: Optional[str] = None
            except SchemaLoadError as exc:
                raw, load_error = {}, str(exc)

        report.steps.append(
            PipelineStep(
                "Load Schema File",
                load_error is None,
                timer.elapsed,
                load_error or f"from {Path(schema_path).name}",
            )
        )
        if load_error is not None:
            report.generation_errors.append(load_error)
            return self._finish(report, started)

        return self._run_pipeline(raw, report, dry_run, started)

    def generate(self, document: DocumentLike, *, dry_run: bool = False) -> GenerationReport:
        """Full pipeline on an in-memory document (raw mapping or ``SchemaDocument``)."""
        report: GenerationReport = GenerationReport(dry_run=dry_run)
        return self._run_pipeline(document, report, dry_run, time.perf_counter())

    def validate(self, document: DocumentLike) -> ValidationResult:
        return validate_full(document)

    # -----------------------------------------------------------------
    # Internal: pipeline
    # -----------------------------------------------------------------

    def _run_pipeline(
        self,
        document: DocumentLike,
        report: GenerationReport,
        dry_run: bool,
        started: float,
    ) -> GenerationReport:
        if isinstance(document, Mapping):
            report.app_name = str(document.get("app_name") or "")
        else:
            report.app_name = document.app_name

        if not self._check(document, report):
            return self._finish(report, started)

        parsed: Optional[SchemaDocument] = self._parse(document, report)
        if parsed is None:
            return self._finish(report, started)

        script: str = self._build(parsed, report)
        if not dry_run:
            self._execute(parsed, script, report)
        return self._finish(report, started)

    def _check(self, document: DocumentLike, report: GenerationReport) -> bool:
        with Timer("validation") as timer:
            result: ValidationResult = validate_full(document)

        report.validation_errors.extend(result.error_messages)
        report.validation_warnings.extend(result.warning_messages)

        if result.has_errors:
            outcome: str = f"{result.error_count} error(s)"
        elif result.has_warnings:
            outcome = f"{result.warning_count} warning(s)"
        else:
            outcome = "no problems"
        report.steps.append(PipelineStep("Validate Schema", result.is_valid, timer.elapsed, outcome))

        if result.has_errors:
            logger.error(
                "'%s' failed validation: %s",
                report.app_name,
                "; ".join(result.error_messages),
            )
            return False

        for message in result.warning_messages:
            logger.warning("'%s': %s", report.app_name, message)
        if result.has_warnings and self._fail_on_warnings:
            report.generation_errors.append("Validation warnings treated as errors")
            return False
        return True

    def _parse(
        self, document: DocumentLike, report: GenerationReport
    ) -> Optional[SchemaDocument]:
        if isinstance(document, SchemaDocument):
            parsed: SchemaDocument = document
        else:
            try:
                parsed = SchemaDocument.model_validate(document)
            except PydanticValidationError as exc:
                report.generation_errors.append(f"Malformed schema document: {exc}")
                logger.error("Could not parse a document that passed validation: %s", exc)
                return None

        report.total_models = len(parsed.models)
        report.total_fields = parsed.total_fields
        report.total_associations = parsed.total_associations
        return parsed

    def _build(self, document: SchemaDocument, report: GenerationReport) -> str:
        with Timer("build_script") as timer:
            script: str = ScriptBuilder(document).build()

        report.script = script
        report.script_lines = count_lines(script)
        report.steps.append(
            PipelineStep("Build Script", True, timer.elapsed, f"{report.script_lines} lines")
        )
        logger.info(
            "Built script for '%s': %d lines in %.3fs.",
            document.app_name,
            report.script_lines,
            timer.elapsed,
        )
        return script

    def _execute(self, document: SchemaDocument, script: str, report: GenerationReport) -> None:
        executor: ScriptExecutor = ScriptExecutor(
            script,
            document.app_name,
            self._output_dir,
            timeout_seconds=self._timeout_seconds,
            shell=self._shell,
        )
        with Timer("execute") as timer:
            result: ExecutionResult = executor.run()

        report.execution = result
        report.output_path = result.path
        if not result.success and result.error:
            report.generation_errors.append(result.error)
        report.steps.append(
            PipelineStep(
                "Execute Script",
                result.success,
                timer.elapsed,
                result.path or result.error or "",
            )
        )

    @staticmethod
    def _finish(report: GenerationReport, started: float) -> GenerationReport:
        report.total_elapsed_seconds = time.perf_counter() - started
        report.success = not report.validation_errors and not report.generation_errors
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "AppGenerator",
    "GenerationReport",
    "PipelineStep",
    "load_schema_file",
]
