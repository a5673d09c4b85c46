from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


class LaunchError(RuntimeError):
    """Raised when an application or URL could not be handed to the OS."""


def _spawn(args: list[str]) -> None:
    """Start a detached process without waiting for it."""
    kwargs: dict = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
    }
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True
    try:
        subprocess.Popen(args, **kwargs)
    except OSError as exc:
        raise LaunchError(f"failed to start {args[0]}: {exc}") from exc


class Launcher:
    """Launch applications and open URLs with the platform's default handlers."""

    def __init__(self, platform_name: str | None = None) -> None:
        self._platform = platform_name or sys.platform

    def launch(self, app_path: str) -> None:
        if not app_path or not app_path.strip():
            raise LaunchError("app path cannot be empty")
        app_path = app_path.strip()
        if self._platform == "win32":
            _spawn(["cmd", "/c", "start", "", app_path])
        elif self._platform == "darwin":
            _spawn(["open", app_path])
        elif app_path.endswith(".desktop"):
            self._launch_desktop_entry(app_path)
        else:
            _spawn([app_path])
        logger.info("Launched %s", app_path)

    def _launch_desktop_entry(self, desktop_file: str) -> None:
        try:
            _spawn(["gtk-launch", Path(desktop_file).stem])
        except LaunchError as exc:
            logger.debug("gtk-launch unavailable (%s), using gio", exc)
            _spawn(["gio", "launch", desktop_file])

    def open_url(self, url: str) -> None:
        if not url or not url.strip():
            raise LaunchError("URL cannot be empty")
        url = url.strip()
        if self._platform == "win32":
            _spawn(["cmd", "/c", "start", "", url])
        elif self._platform == "darwin":
            _spawn(["open", url])
        else:
            _spawn(["xdg-open", url])
        logger.info("Opened URL %s", url)
