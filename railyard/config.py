# File: railyard/config.py
"""
RailYard - Runtime Settings
=============================
Typed settings for the HTTP server, the CLI and the executor.

``Settings()`` gives the defaults; ``Settings.from_env()`` layers the
``RAILYARD_*`` environment variables on top.  The CLI applies its own flags
last via ``model_copy(update=...)``.

Recognised variables (all optional):
    RAILYARD_HOST, RAILYARD_PORT, RAILYARD_OUTPUT_DIR, RAILYARD_TIMEOUT,
    RAILYARD_SHELL, RAILYARD_STATIC_DIR, RAILYARD_LOG_LEVEL,
    RAILYARD_CORS_ORIGINS (comma separated)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from railyard.executor import DEFAULT_SHELL, DEFAULT_TIMEOUT_SECONDS

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard.config")

ENV_PREFIX: str = "RAILYARD_"

_LOG_LEVELS: frozenset = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


class Settings(BaseModel):
    """Everything that varies between deployments."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    host: str = Field(default="0.0.0.0", description="HTTP bind address.")
    port: int = Field(default=3000, ge=1, le=65535, description="HTTP port.")
    output_dir: Path = Field(
        default=Path("./output"), description="Where generated apps are collected."
    )
    timeout_seconds: int = Field(
        default=DEFAULT_TIMEOUT_SECONDS, ge=1, description="Build script time limit."
    )
    shell: str = Field(default=DEFAULT_SHELL, description="Interpreter for the build script.")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    static_dir: Optional[Path] = Field(
        default=None, description="Frontend directory served at '/', if any."
    )
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level: str = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level '{v}'")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``RAILYARD_*`` variables (``os.environ`` by default)."""
        env: Mapping[str, str] = os.environ if environ is None else environ
        kwargs: Dict[str, Any] = {}

        if env.get(f"{ENV_PREFIX}HOST"):
            kwargs["host"] = env[f"{ENV_PREFIX}HOST"]
        if env.get(f"{ENV_PREFIX}PORT"):
            kwargs["port"] = int(env[f"{ENV_PREFIX}PORT"])
        if env.get(f"{ENV_PREFIX}OUTPUT_DIR"):
            kwargs["output_dir"] = Path(env[f"{ENV_PREFIX}OUTPUT_DIR"])
        if env.get(f"{ENV_PREFIX}TIMEOUT"):
            kwargs["timeout_seconds"] = int(env[f"{ENV_PREFIX}TIMEOUT"])
        if env.get(f"{ENV_PREFIX}SHELL"):
            kwargs["shell"] = env[f"{ENV_PREFIX}SHELL"]
        if env.get(f"{ENV_PREFIX}STATIC_DIR"):
            kwargs["static_dir"] = Path(env[f"{ENV_PREFIX}STATIC_DIR"])
        if env.get(f"{ENV_PREFIX}LOG_LEVEL"):
            kwargs["log_level"] = env[f"{ENV_PREFIX}LOG_LEVEL"]
        if env.get(f"{ENV_PREFIX}CORS_ORIGINS"):
            kwargs["cors_origins"] = [
                o.strip() for o in env[f"{ENV_PREFIX}CORS_ORIGINS"].split(",") if o.strip()
            ]

        settings = cls(**kwargs)
        logger.debug("Settings loaded from environment: %s", settings.model_dump(mode="json"))
        return settings


__all__: List[str] = ["Settings", "ENV_PREFIX"]
