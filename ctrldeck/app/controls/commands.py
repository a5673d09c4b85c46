from __future__ import annotations

import subprocess

from ctrldeck.app.controls.base import ControlError

COMMAND_TIMEOUT_SECONDS = 5


def run_command(args: list[str], *, timeout: float = COMMAND_TIMEOUT_SECONDS) -> str:
    """Run a control-surface CLI and return stdout, raising ControlError on any failure."""
    try:
        result = subprocess.run(
            args,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise ControlError(f"{args[0]} not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise ControlError(f"{' '.join(args)} timed out") from exc
    except OSError as exc:
        raise ControlError(f"{args[0]}: {exc}") from exc
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        stdout = (result.stdout or "").strip()
        raise ControlError(stderr or stdout or f"{args[0]} exited with status {result.returncode}")
    return result.stdout or ""
