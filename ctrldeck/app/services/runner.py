from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_OUTPUT_LIMIT_BYTES = 65_536


@dataclass(slots=True)
class ScriptResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def failure_text(self) -> str:
        """Best available description of why the run failed."""
        stderr = self.stderr.strip()
        if self.error and stderr:
            return f"{self.error}: {stderr}"
        return self.error or stderr or f"exit status {self.exit_code}"


def _truncate(text: str | bytes | None, limit: int) -> str:
    if not text:
        return ""
    if isinstance(text, bytes):
        text = text.decode(errors="replace")
    encoded = text.encode(errors="replace")
    if len(encoded) <= limit:
        return text
    return encoded[:limit].decode(errors="ignore")


def _shell_command(command: str) -> list[str]:
    if sys.platform == "win32":
        return ["powershell", "-NoProfile", "-Command", command]
    shell = shutil.which("bash") or "/bin/sh"
    return [shell, "-c", command]


def _script_command(path: Path) -> list[str]:
    suffix = path.suffix.lower()
    target = str(path)
    if suffix == ".sh":
        return [shutil.which("bash") or "/bin/sh", target]
    if suffix == ".py":
        return [sys.executable or "python3", target]
    if suffix == ".js":
        return ["node", target]
    if suffix == ".ps1":
        return ["powershell", "-NoProfile", "-File", target]
    if suffix in (".bat", ".cmd"):
        return ["cmd", "/c", target]
    return [target]


class ScriptRunner:
    """Run stored scripts or inline shell commands with bounded wait and output."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        output_limit_bytes: int = DEFAULT_OUTPUT_LIMIT_BYTES,
    ) -> None:
        self._timeout = timeout_seconds
        self._output_limit = output_limit_bytes

    async def run_inline(self, command: str) -> ScriptResult:
        if not command or not command.strip():
            return ScriptResult(exit_code=-1, error="script cannot be empty")
        return await self._run(_shell_command(command))

    async def run_path(self, script_path: str) -> ScriptResult:
        if ".." in Path(script_path).parts:
            return ScriptResult(exit_code=-1, error="directory traversal not allowed")
        path = Path(script_path).expanduser()
        if not path.exists():
            return ScriptResult(exit_code=-1, error=f"script not found: {script_path}")
        if path.is_dir():
            return ScriptResult(exit_code=-1, error=f"path is a directory, not a script: {script_path}")
        return await self._run(_script_command(path.resolve()))

    async def _run(self, args: list[str]) -> ScriptResult:
        def _execute() -> ScriptResult:
            started = time.monotonic()
            try:
                completed = subprocess.run(
                    args,
                    check=False,
                    capture_output=True,
                    text=True,
                    errors="replace",
                    timeout=self._timeout,
                    stdin=subprocess.DEVNULL,
                )
            except subprocess.TimeoutExpired as exc:
                return ScriptResult(
                    exit_code=-1,
                    stdout=_truncate(exc.stdout, self._output_limit),
                    stderr=_truncate(exc.stderr, self._output_limit),
                    error=f"execution timed out after {self._timeout:g}s",
                    duration_seconds=time.monotonic() - started,
                )
            except OSError as exc:
                return ScriptResult(
                    exit_code=-1,
                    error=f"failed to start {args[0]}: {exc}",
                    duration_seconds=time.monotonic() - started,
                )
            result = ScriptResult(
                exit_code=completed.returncode,
                stdout=_truncate(completed.stdout, self._output_limit),
                stderr=_truncate(completed.stderr, self._output_limit),
                duration_seconds=time.monotonic() - started,
            )
            if not result.ok:
                result.error = f"exit status {completed.returncode}"
            return result

        result = await asyncio.to_thread(_execute)
        if result.ok:
            logger.info("Script %s finished in %.2fs", args[0], result.duration_seconds)
        else:
            logger.warning("Script %s failed: %s", args[0], result.failure_text())
        return result
