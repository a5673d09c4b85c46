from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ctrldeck.app.schemas import Button, Script, Widget

logger = logging.getLogger(__name__)

BUTTONS_FILE = "buttons.json"
SCRIPTS_FILE = "scripts.json"
WIDGETS_FILE = "widgets.json"

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_BUTTONS: list[dict[str, Any]] = [
    {
        "id": "btn-1",
        "name": "Mute Mic",
        "icon": "mic-off",
        "action_type": "mute_mic",
        "action_data": {},
        "position": 0,
        "color": "#ef4444",
    },
    {
        "id": "btn-2",
        "name": "Volume Up",
        "icon": "volume-2",
        "action_type": "volume_up",
        "action_data": {"step": "5"},
        "position": 1,
        "color": "#3b82f6",
    },
    {
        "id": "btn-3",
        "name": "Volume Down",
        "icon": "volume-1",
        "action_type": "volume_down",
        "action_data": {"step": "5"},
        "position": 2,
        "color": "#3b82f6",
    },
]

DEFAULT_WIDGETS: list[dict[str, Any]] = [
    {"id": "widget-cpu", "type": "cpu", "position": 0, "enabled": True},
    {"id": "widget-ram", "type": "ram", "position": 1, "enabled": True},
    {"id": "widget-battery", "type": "battery", "position": 2, "enabled": True},
]


class ConfigStoreError(RuntimeError):
    """Raised when a configuration file cannot be read or parsed."""


class JsonConfigStore:
    """Buttons, scripts and widgets kept as JSON files in one directory."""

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = Path(config_dir)
        self._lock = threading.RLock()

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    def initialize(self) -> None:
        """Create the directory and any missing files with their defaults."""
        with self._lock:
            self._config_dir.mkdir(parents=True, exist_ok=True)
            defaults = {
                BUTTONS_FILE: DEFAULT_BUTTONS,
                SCRIPTS_FILE: [],
                WIDGETS_FILE: DEFAULT_WIDGETS,
            }
            for filename, payload in defaults.items():
                path = self._config_dir / filename
                if not path.exists():
                    logger.info("Creating default %s", path)
                    path.write_text(json.dumps(payload, indent=2))

    def _load(self, filename: str, model: type[ModelT]) -> list[ModelT]:
        path = self._config_dir / filename
        with self._lock:
            if not path.exists():
                return []
            try:
                raw = json.loads(path.read_text() or "[]")
            except (OSError, ValueError) as exc:
                raise ConfigStoreError(f"Cannot read {path}: {exc}") from exc
        if not isinstance(raw, list):
            raise ConfigStoreError(f"{path} must contain a JSON list")
        items: list[ModelT] = []
        for entry in raw:
            try:
                items.append(model.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping invalid entry in %s: %s", path, exc.errors()[:1])
        return items

    def list_buttons(self) -> list[Button]:
        return sorted(self._load(BUTTONS_FILE, Button), key=lambda button: button.position)

    def list_scripts(self) -> list[Script]:
        return self._load(SCRIPTS_FILE, Script)

    def list_widgets(self) -> list[Widget]:
        return sorted(self._load(WIDGETS_FILE, Widget), key=lambda widget: widget.position)

    def get_button(self, button_id: str) -> Button | None:
        return next((button for button in self.list_buttons() if button.id == button_id), None)

    def get_script(self, script_id: str) -> Script | None:
        return next((script for script in self.list_scripts() if script.id == script_id), None)
