# File: railyard/api.py
"""
RailYard - HTTP Surface
=========================
FastAPI application factory for the browser editor's backend.

Routes
------
    GET  /health     liveness probe
    POST /generate   validate → build → execute a Schema Document
    POST /validate   errors and warnings only, nothing is built
    POST /script     the build script for a valid document, nothing is run
    GET  /apps       names of the apps already in the output directory

Every response is JSON: ``{"success": true, "message": ..., ...}`` or
``{"success": false, "error": ..., ...}``.

Request bodies are read raw rather than through a Pydantic body model so that
a malformed document reaches the validator and comes back as a list of
messages instead of a 422.

The blocking build runs in the threadpool so the event loop stays free.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from railyard import __version__
from railyard.builder import ScriptBuilder
from railyard.config import Settings
from railyard.executor import list_generated_apps
from railyard.generator import AppGenerator, GenerationReport
from railyard.validators import ValidationResult, validate_full

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard.api")


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def success_response(message: str, data: Optional[Dict[str, Any]] = None) -> JSONResponse:
    return JSONResponse({"success": True, "message": message, **(data or {})})


def error_response(
    error: str, status_code: int = 400, data: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    return JSONResponse({"success": False, "error": error, **(data or {})}, status_code=status_code)


async def _read_document(request: Request) -> Tuple[Optional[Dict[str, Any]], Optional[JSONResponse]]:
    """Parse the body as a JSON object, or produce the 400 that says why not."""
    body: bytes = await request.body()
    if not body.strip():
        return None, error_response("Request body is empty")
    try:
        data: Any = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        return None, error_response("Invalid JSON", 400, {"message": str(exc)})
    if not isinstance(data, dict):
        return None, error_response("Schema document must be a JSON object")
    return data, None


def _report_response(report: GenerationReport) -> JSONResponse:
    if report.validation_errors:
        return error_response(
            "Schema validation failed", 400, {"errors": report.validation_errors}
        )
    if report.success:
        return success_response(
            "Rails app generated successfully!",
            {"output_path": report.output_path, "log": report.log},
        )
    status_code: int = 409 if report.conflict else 500
    return error_response(report.error or "Generation failed", status_code, {"log": report.log})


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    settings = settings or Settings.from_env()
    generator: AppGenerator = AppGenerator.from_settings(settings)

    app = FastAPI(
        title="RailYard API",
        description="Validate Rails data-model schemas and scaffold applications from them.",
        version=__version__,
    )
    app.state.settings = settings
    app.state.generator = generator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/health")
    async def health() -> JSONResponse:
        return success_response("RailYard server is running")

    @app.post("/generate")
    async def generate(request: Request) -> JSONResponse:
        try:
            document, problem = await _read_document(request)
            if problem is not None:
                return problem
            report: GenerationReport = await run_in_threadpool(generator.generate, document)
            return _report_response(report)
        except Exception as exc:
            logger.exception("Unhandled error in POST /generate.")
            return error_response("Internal server error", 500, {"message": str(exc)})

    @app.post("/validate")
    async def validate_document(request: Request) -> JSONResponse:
        document, problem = await _read_document(request)
        if problem is not None:
            return problem
        result: ValidationResult = validate_full(document)
        return JSONResponse(
            {
                "success": result.is_valid,
                "errors": result.error_messages,
                "warnings": result.warning_messages,
            }
        )

    @app.post("/script")
    async def script(request: Request) -> JSONResponse:
        try:
            document, problem = await _read_document(request)
            if problem is not None:
                return problem
            result: ValidationResult = validate_full(document)
            if result.has_errors:
                return error_response(
                    "Schema validation failed", 400, {"errors": result.error_messages}
                )
            return JSONResponse({"success": True, "script": ScriptBuilder(document).build()})
        except Exception as exc:
            logger.exception("Unhandled error in POST /script.")
            return error_response("Internal server error", 500, {"message": str(exc)})

    @app.get("/apps")
    async def apps() -> JSONResponse:
        names: List[str] = list_generated_apps(settings.output_dir)
        return success_response("Apps retrieved", {"apps": names})

    if settings.static_dir is not None:
        static_dir: Path = Path(settings.static_dir)
        if static_dir.is_dir():
            app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="frontend")
        else:
            logger.warning("Static directory %s does not exist; not serving it.", static_dir)

    logger.debug("FastAPI app created (output=%s).", settings.output_dir)
    return app


__all__: List[str] = ["create_app", "success_response", "error_response"]
