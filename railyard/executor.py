# File: railyard/executor.py
"""
RailYard - Build Script Executor
==================================
Runs a build script in a throwaway directory with a hard time limit and
moves the generated application into the output directory.

Every outcome is an ``ExecutionResult``; nothing here raises for a failed
build.  Failure modes:

* **conflict**: ``<output_dir>/<app_name>`` already exists.  Checked before
  anything is written; nothing is run.  The check is best-effort: two
  concurrent builds of the same app name can still race on the final move.
* **timeout**: the script's whole process group is killed.
* **non-zero exit** from the script.
* **missing artefact**: the script exited 0 but ``<tmp>/<app_name>`` is not
  there.
* **unexpected exception** while writing, spawning or moving.

The temporary directory is removed on every path.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Dict, List, Optional

from railyard.utils import Timer, ensure_directory, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("railyard.executor")

DEFAULT_TIMEOUT_SECONDS: int = 180
DEFAULT_SHELL: str = "bash"
SCRIPT_FILENAME: str = "build.sh"
STDERR_PREFIX: str = "[ERROR] "

# How long to wait for the reader threads once the process is gone.
_READER_JOIN_SECONDS: float = 5.0


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of one script run."""

    success: bool
    log: str = ""
    path: Optional[str] = None
    error: Optional[str] = None
    conflict: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.path is not None:
            data["path"] = self.path
        if self.error is not None:
            data["error"] = self.error
        data["log"] = self.log
        return data


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class ScriptExecutor:
    """
    Run ``script`` and collect ``<tmp>/<app_name>`` into ``output_dir``.

    Usage::

        result = ScriptExecutor(script, "blog", Path("output")).run()
        if result.success:
            print(result.path)

    stdout and stderr are drained concurrently into one log, in arrival
    order, stderr lines prefixed with ``[ERROR]``.
    """

    def __init__(
        self,
        script: str,
        app_name: str,
        output_dir: Path,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        shell: str = DEFAULT_SHELL,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self.script: str = script
        self.app_name: str = app_name
        self.output_dir: Path = Path(output_dir).expanduser().resolve()
        self.timeout_seconds: float = timeout_seconds
        self.shell: str = shell

        self._log: List[str] = []
        self._lock: threading.Lock = threading.Lock()

    @property
    def final_path(self) -> Path:
        return self.output_dir / self.app_name

    # -----------------------------------------------------------------
    # Log handling
    # -----------------------------------------------------------------

    def _append(self, line: str) -> None:
        with self._lock:
            self._log.append(line)

    def _log_text(self) -> str:
        with self._lock:
            return "\n".join(self._log)

    def _drain(self, stream: IO[str], prefix: str) -> None:
        try:
            for line in iter(stream.readline, ""):
                self._append(prefix + line.rstrip("\n"))
        finally:
            stream.close()

    def _failure(self, error: str) -> ExecutionResult:
        self._append("")
        self._append(f"=== ERROR: {error} ===")
        logger.warning("Build of '%s' failed: %s", self.app_name, error)
        return ExecutionResult(success=False, error=error, log=self._log_text())

    # -----------------------------------------------------------------
    # Run
    # -----------------------------------------------------------------

    def run(self) -> ExecutionResult:
        self._log = []
        ensure_directory(self.output_dir)

        if self.final_path.exists():
            error: str = (
                f"App '{self.app_name}' already exists in output directory. "
                "Please choose a different name or delete the existing app."
            )
            logger.info("Refusing to build '%s': %s exists.", self.app_name, self.final_path)
            return ExecutionResult(success=False, error=error, log="", conflict=True)

        with tempfile.TemporaryDirectory(prefix="railyard-") as tmp:
            try:
                with Timer(f"execute {self.app_name}"):
                    return self._execute_in(Path(tmp))
            except Exception as exc:
                logger.exception("Unexpected failure while building '%s'.", self.app_name)
                return self._failure(f"Execution failed: {exc}")

    def _execute_in(self, workdir: Path) -> ExecutionResult:
        script_path: Path = workdir / SCRIPT_FILENAME
        write_file(script_path, self.script, atomic=False)
        script_path.chmod(0o755)

        self._append("=== RailYard Build Script ===")
        self._append(f"App Name: {self.app_name}")
        self._append(f"Temp Directory: {workdir}")
        self._append("=== Executing Script ===")
        self._append("")

        logger.info(
            "Running build script for '%s' (timeout %ss).", self.app_name, self.timeout_seconds
        )
        process: subprocess.Popen = subprocess.Popen(
            [self.shell, str(script_path)],
            cwd=str(workdir),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            start_new_session=True,
        )
        readers: List[threading.Thread] = [
            threading.Thread(target=self._drain, args=(process.stdout, ""), daemon=True),
            threading.Thread(target=self._drain, args=(process.stderr, STDERR_PREFIX), daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            returncode: int = process.wait(timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            _kill_process_group(process)
            process.wait()
            for reader in readers:
                reader.join(_READER_JOIN_SECONDS)
            return self._failure(
                f"Script execution timed out after {self.timeout_seconds} seconds"
            )

        for reader in readers:
            reader.join(_READER_JOIN_SECONDS)

        if returncode != 0:
            return self._failure(f"Script failed with exit code {returncode}")

        built: Path = workdir / self.app_name
        if not built.is_dir():
            self._append("")
            self._append(f"=== ERROR: Generated app not found at {built} ===")
            logger.warning("Build of '%s' produced no app directory.", self.app_name)
            return ExecutionResult(
                success=False,
                error="Generated app directory not found",
                log=self._log_text(),
            )

        shutil.move(str(built), str(self.final_path))

        self._append("")
        self._append("=== SUCCESS ===")
        self._append(f"App generated at: {self.final_path}")
        logger.info("Generated '%s' at %s.", self.app_name, self.final_path)
        return ExecutionResult(success=True, path=str(self.final_path), log=self._log_text())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _kill_process_group(process: subprocess.Popen) -> None:
    """SIGKILL the script and anything it spawned."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        process.kill()


def list_generated_apps(output_dir: Path) -> List[str]:
    """Names of the non-hidden directories in ``output_dir``, sorted."""
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        return []
    return sorted(
        entry.name
        for entry in output_dir.iterdir()
        if entry.is_dir() and not entry.name.startswith(".")
    )


def run_script(
    script: str,
    app_name: str,
    output_dir: Path,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    shell: str = DEFAULT_SHELL,
) -> ExecutionResult:
    """Shortcut for ``ScriptExecutor(...).run()``."""
    return ScriptExecutor(script, app_name, output_dir, timeout_seconds, shell).run()


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ExecutionResult",
    "ScriptExecutor",
    "list_generated_apps",
    "run_script",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_SHELL",
    "SCRIPT_FILENAME",
    "STDERR_PREFIX",
]
